"""
Masui remimazolam covariate model.

    weight_ratio = weight / 67.3      age_ratio = age / 54.0

    V1 = θ1 · wr^0.75 · (1 + θ8·sex)
    V2 = θ2 · wr^θ4   · (1 + θ9·(ar - 1))
    V3 = θ3 · wr^θ5
    CL = θ6 · wr^0.75 · (1 + θ10·asa)
    Q2 = 0.8·CL        Q3 = 0.3·CL

sex and asa enter as their 0/1 codes. ke0 comes from the injected oracle.
"""
import logging

from .. import constants as K
from ..ke0 import Ke0Oracle, resolve_ke0
from ..types import PKParameters, PatientCovariates

logger = logging.getLogger(__name__)


def calculate_pk_parameters(patient: PatientCovariates, ke0_oracle: Ke0Oracle) -> PKParameters:
    weight_ratio = patient.weight / K.STANDARD_WEIGHT
    age_ratio = patient.age / K.STANDARD_AGE
    sex = int(patient.sex)
    asa = int(patient.asa)

    v1 = K.THETA_1 * weight_ratio ** K.ALLOMETRIC_EXPONENT * (1 + K.THETA_8 * sex)
    v2 = K.THETA_2 * weight_ratio ** K.THETA_4 * (1 + K.THETA_9 * (age_ratio - 1))
    v3 = K.THETA_3 * weight_ratio ** K.THETA_5
    cl = K.THETA_6 * weight_ratio ** K.ALLOMETRIC_EXPONENT * (1 + K.THETA_10 * asa)

    q2 = K.Q2_CL_RATIO * cl
    q3 = K.Q3_CL_RATIO * cl

    ke0 = resolve_ke0(ke0_oracle, patient)

    params = PKParameters(v1=v1, v2=v2, v3=v3, cl=cl, q2=q2, q3=q3, ke0=ke0)
    logger.debug("PK parameters for %s: %s", patient.patient_id, params)
    return params


def reference_pk_parameters(ke0: float = K.REFERENCE_KE0) -> PKParameters:
    """Population values for the standard 67.3 kg, 54 y, male, ASA I-II patient."""
    cl = K.THETA_6
    return PKParameters(v1=K.THETA_1, v2=K.THETA_2, v3=K.THETA_3, cl=cl,
                        q2=K.Q2_CL_RATIO * cl, q3=K.Q3_CL_RATIO * cl, ke0=ke0)
