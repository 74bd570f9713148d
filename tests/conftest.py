import pytest

from remiengine.dosing import build_protocol_params
from remiengine.ke0 import constant_ke0
from remiengine.models.masui import reference_pk_parameters
from remiengine.types import AsaClass, PatientCovariates, Sex

# Fixed-ke0 reference case: population PK (V1=3.57 L ...), ke0=0.12/min, 70 kg.


@pytest.fixture
def reference_weight():
    return 70.0


@pytest.fixture
def reference_pk():
    return reference_pk_parameters(ke0=0.12)


@pytest.fixture
def reference_params():
    return build_protocol_params(1.0)


@pytest.fixture
def standard_patient():
    """Covariates equal to the model's reference individual."""
    return PatientCovariates(patient_id="OR3-0412", age=54.0, weight=67.3, height=170.0,
                             sex=Sex.MALE, asa=AsaClass.LOW_RISK)


@pytest.fixture
def fixed_ke0():
    return constant_ke0(0.12)
