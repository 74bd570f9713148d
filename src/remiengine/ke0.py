# src/remiengine/ke0.py
"""
The ke0 oracle seam.

Patient-specific ke0 estimation lives outside this package; the engine only needs
a synchronous callable with the signature below. `constant_ke0` covers the
non-individualized reference calculation and tests.
"""
import math
from typing import Callable

from .exceptions import OracleError
from .types import AsaClass, PatientCovariates, Sex

# ke0(age, weight, height, sex, asa) -> 1/min
Ke0Oracle = Callable[[float, float, float, Sex, AsaClass], float]


def constant_ke0(value: float) -> Ke0Oracle:
    """Oracle that ignores covariates and always answers `value`."""
    if not (value > 0) or not math.isfinite(value):
        raise ValueError(f"ke0 must be a positive finite number (got {value}).")

    def oracle(age, weight, height, sex, asa) -> float:
        return float(value)

    return oracle


def resolve_ke0(oracle: Ke0Oracle, patient: PatientCovariates) -> float:
    """Call the oracle for `patient` and reject unusable answers."""
    ke0 = oracle(patient.age, patient.weight, patient.height, patient.sex, patient.asa)
    if ke0 is None or not math.isfinite(ke0) or ke0 <= 0:
        raise OracleError(f"ke0 oracle returned {ke0!r} for patient '{patient.patient_id}'.")
    return float(ke0)
