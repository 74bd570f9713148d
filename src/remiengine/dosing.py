# src/remiengine/dosing.py
from __future__ import annotations

from typing import List, Optional

from . import constants as K
from .exceptions import ValidationError
from .types import PatientCovariates, ProtocolParams


def patient_errors(patient: PatientCovariates) -> List[str]:
    """
    Every reason `patient` is outside the supported population, in field order.
    An empty list means the patient is acceptable.
    """
    errors: list[str] = []
    if not patient.patient_id or not patient.patient_id.strip():
        errors.append("Patient ID is required.")
    if not (K.MIN_AGE <= patient.age <= K.MAX_AGE):
        errors.append(f"Age must be between {K.MIN_AGE:.0f} and {K.MAX_AGE:.0f} years (got {patient.age}).")
    if not (K.MIN_WEIGHT <= patient.weight <= K.MAX_WEIGHT):
        errors.append(f"Weight must be between {K.MIN_WEIGHT:.0f} and {K.MAX_WEIGHT:.0f} kg (got {patient.weight}).")
    if not (patient.height > 0):
        errors.append(f"Height must be > 0 cm (got {patient.height}).")
    else:
        bmi = patient.bmi
        if not (K.MIN_BMI <= bmi <= K.MAX_BMI):
            errors.append(f"BMI out of range (calculated: {bmi:.1f}); "
                          f"must be between {K.MIN_BMI:.0f} and {K.MAX_BMI:.0f}.")
    return errors


def bolus_dose_errors(bolus_mg: float) -> List[str]:
    if not (K.MIN_BOLUS_DOSE <= bolus_mg <= K.MAX_BOLUS_DOSE):
        return [f"Bolus dose must be between {K.MIN_BOLUS_DOSE:g} and {K.MAX_BOLUS_DOSE:g} mg (got {bolus_mg})."]
    return []


def target_ce_errors(target_ce: float) -> List[str]:
    if not (K.MIN_TARGET_CE <= target_ce <= K.MAX_TARGET_CE):
        return [f"Target effect-site concentration must be between {K.MIN_TARGET_CE:g} and "
                f"{K.MAX_TARGET_CE:g} ug/mL (got {target_ce})."]
    return []


def protocol_params_errors(params: ProtocolParams) -> List[str]:
    errors: list[str] = []
    if not (params.target_reach_time > 0):
        errors.append(f"Target reach time must be > 0 min (got {params.target_reach_time}).")
    if not (params.upper_threshold_ratio > 0):
        errors.append(f"Upper threshold ratio must be > 0 (got {params.upper_threshold_ratio}).")
    if not (0 < params.reduction_factor <= 1):
        errors.append(f"Reduction factor must be in (0, 1] (got {params.reduction_factor}).")
    return errors


def validate_request(patient: PatientCovariates, bolus_mg: float,
                     params: ProtocolParams) -> None:
    """
    Check a whole protocol request before anything is simulated.

    Raises:
      ValidationError carrying every failing reason.
    """
    errors = (patient_errors(patient)
              + bolus_dose_errors(bolus_mg)
              + target_ce_errors(params.target_ce)
              + protocol_params_errors(params))
    if errors:
        raise ValidationError(errors)


def build_protocol_params(target_ce: float, target_reach_time: Optional[float] = None,
                          upper_threshold_ratio: Optional[float] = None,
                          reduction_factor: Optional[float] = None) -> ProtocolParams:
    """
    Defaults from `constants`, overridden by whatever the caller supplied.
    Example: build_protocol_params(1.0, reduction_factor=0.8)
    """
    return ProtocolParams(target_ce=float(target_ce)).with_overrides(
        target_reach_time=target_reach_time,
        upper_threshold_ratio=upper_threshold_ratio,
        reduction_factor=reduction_factor,
    )


def reduced_rate(rate: float, reduction_factor: float) -> float:
    """Next rate after one threshold reduction, floored at MIN_INFUSION_RATE."""
    return max(K.MIN_INFUSION_RATE, rate * reduction_factor)


# --------------------------
# Small input validators
# --------------------------
def validate_rate(name: str, x: float) -> None:
    if not (0 <= x <= K.MAX_INFUSION_RATE):
        raise ValueError(f"{name} must be within [0, {K.MAX_INFUSION_RATE}] mg/kg/h (got {x}).")

def validate_non_negative(name: str, x: float) -> None:
    if x < 0:
        raise ValueError(f"{name} must be >= 0 (got {x}).")

def validate_positive(name: str, x: float) -> None:
    if not (x > 0):
        raise ValueError(f"{name} must be > 0 (got {x}).")
