import math

import pytest

from remiengine.exceptions import OracleError
from remiengine.ke0 import constant_ke0
from remiengine.models.masui import calculate_pk_parameters, reference_pk_parameters
from remiengine.types import AsaClass, PatientCovariates, Sex


def test_reference_patient_gets_population_values(standard_patient, fixed_ke0):
    """At 67.3 kg and 54 y every covariate ratio is 1, so the thetas come through unchanged."""
    pk = calculate_pk_parameters(standard_patient, fixed_ke0)

    assert pk.v1 == pytest.approx(3.57)
    assert pk.v2 == pytest.approx(11.3)
    assert pk.v3 == pytest.approx(27.2)
    assert pk.cl == pytest.approx(0.401)
    assert pk.q2 == pytest.approx(0.8 * 0.401)
    assert pk.q3 == pytest.approx(0.3 * 0.401)
    assert pk.ke0 == 0.12
    assert pk == reference_pk_parameters(0.12)


def test_female_and_high_asa_modifiers(standard_patient, fixed_ke0):
    female_high = PatientCovariates(patient_id="x", age=54.0, weight=67.3, height=170.0,
                                    sex=Sex.FEMALE, asa=AsaClass.HIGH_RISK)
    pk = calculate_pk_parameters(female_high, fixed_ke0)

    assert pk.v1 == pytest.approx(3.57 * 1.308)
    assert pk.cl == pytest.approx(0.401 * (1 - 0.184))
    # V2 and V3 do not depend on sex or ASA
    assert pk.v2 == pytest.approx(11.3)
    assert pk.v3 == pytest.approx(27.2)


def test_weight_and_age_scaling(fixed_ke0):
    patient = PatientCovariates(patient_id="x", age=27.0, weight=100.0, height=180.0)
    pk = calculate_pk_parameters(patient, fixed_ke0)

    wr = 100.0 / 67.3
    assert pk.v1 == pytest.approx(3.57 * wr ** 0.75)
    assert pk.v2 == pytest.approx(11.3 * wr ** 1.03 * (1 + 0.146 * (0.5 - 1)))
    assert pk.v3 == pytest.approx(27.2 * wr ** 1.10)
    assert pk.cl == pytest.approx(0.401 * wr ** 0.75)


def test_rate_constants_are_derived_from_clearances(reference_pk):
    rc = reference_pk.rate_constants()

    assert rc.k10 == pytest.approx(0.401 / 3.57)
    assert rc.k12 == pytest.approx(0.3208 / 3.57)
    assert rc.k21 == pytest.approx(0.3208 / 11.3)
    assert rc.k13 == pytest.approx(0.1203 / 3.57)
    assert rc.k31 == pytest.approx(0.1203 / 27.2)
    assert rc.k10 == reference_pk.k10


def test_oracle_receives_patient_covariates(standard_patient):
    seen = []

    def oracle(age, weight, height, sex, asa):
        seen.append((age, weight, height, sex, asa))
        return 0.2

    pk = calculate_pk_parameters(standard_patient, oracle)

    assert pk.ke0 == 0.2
    assert seen == [(54.0, 67.3, 170.0, Sex.MALE, AsaClass.LOW_RISK)]


@pytest.mark.parametrize("bad", [0.0, -0.1, math.nan, math.inf])
def test_unusable_oracle_answer_is_rejected(standard_patient, bad):
    with pytest.raises(OracleError):
        calculate_pk_parameters(standard_patient, lambda *args: bad)


def test_constant_ke0_rejects_non_positive():
    with pytest.raises(ValueError):
        constant_ke0(0.0)
    assert constant_ke0(0.15)(40, 70, 170, Sex.MALE, AsaClass.LOW_RISK) == 0.15


def test_bmi(standard_patient):
    assert standard_patient.bmi == pytest.approx(67.3 / 1.7 ** 2)
