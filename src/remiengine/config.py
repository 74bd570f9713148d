# src/remiengine/config.py
"""
Protocol requests stored as YAML.

    patient:
      id: OR3-0412
      age: 54
      weight: 67.3
      height: 170
      sex: male          # male | female
      asa: low           # low (ASA I-II) | high (ASA III-IV)
    bolus_dose: 7        # mg
    target_ce: 1.0       # ug/mL
    protocol:            # optional overrides
      target_reach_time: 20
      upper_threshold_ratio: 1.2
      reduction_factor: 0.7
    ke0: 0.12            # optional fixed ke0 (1/min)
    log_level: INFO      # optional
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Union

import yaml

from . import constants as K
from .exceptions import ConfigurationError
from .types import AsaClass, PatientCovariates, Sex

_TOP_LEVEL_KEYS = {"patient", "bolus_dose", "target_ce", "protocol", "ke0", "log_level"}
_PATIENT_KEYS = {"id", "age", "weight", "height", "sex", "asa"}
_PROTOCOL_KEYS = {"target_reach_time", "upper_threshold_ratio", "reduction_factor"}

_SEX_NAMES = {"male": Sex.MALE, "m": Sex.MALE, "female": Sex.FEMALE, "f": Sex.FEMALE}
_ASA_NAMES = {
    "low": AsaClass.LOW_RISK, "i-ii": AsaClass.LOW_RISK,
    "high": AsaClass.HIGH_RISK, "iii-iv": AsaClass.HIGH_RISK,
}


@dataclass(frozen=True)
class ProtocolRequest:
    patient: PatientCovariates
    bolus_dose: float
    target_ce: float
    overrides: Dict[str, float] = field(default_factory=dict)
    ke0: float = K.REFERENCE_KE0
    log_level: str = "INFO"


def parse_sex(value: Any) -> Sex:
    try:
        return _SEX_NAMES[str(value).strip().lower()]
    except KeyError:
        raise ConfigurationError(f"Unknown sex '{value}' (expected male or female).") from None


def parse_asa(value: Any) -> AsaClass:
    try:
        return _ASA_NAMES[str(value).strip().lower()]
    except KeyError:
        raise ConfigurationError(f"Unknown ASA class '{value}' (expected low or high).") from None


def request_from_dict(data: Mapping[str, Any]) -> ProtocolRequest:
    if not isinstance(data, Mapping):
        raise ConfigurationError("Request must be a mapping at the top level.")
    _reject_unknown("request", data, _TOP_LEVEL_KEYS)

    patient_data = _require(data, "patient", "request")
    if not isinstance(patient_data, Mapping):
        raise ConfigurationError("'patient' must be a mapping.")
    _reject_unknown("patient", patient_data, _PATIENT_KEYS)

    protocol_data = data.get("protocol") or {}
    if not isinstance(protocol_data, Mapping):
        raise ConfigurationError("'protocol' must be a mapping.")
    _reject_unknown("protocol", protocol_data, _PROTOCOL_KEYS)

    patient = PatientCovariates(
        patient_id=str(_require(patient_data, "id", "patient")),
        age=_as_float(_require(patient_data, "age", "patient"), "patient.age"),
        weight=_as_float(_require(patient_data, "weight", "patient"), "patient.weight"),
        height=_as_float(_require(patient_data, "height", "patient"), "patient.height"),
        sex=parse_sex(patient_data.get("sex", "male")),
        asa=parse_asa(patient_data.get("asa", "low")),
    )

    return ProtocolRequest(
        patient=patient,
        bolus_dose=_as_float(_require(data, "bolus_dose", "request"), "bolus_dose"),
        target_ce=_as_float(_require(data, "target_ce", "request"), "target_ce"),
        overrides={k: _as_float(v, f"protocol.{k}") for k, v in protocol_data.items()},
        ke0=_as_float(data.get("ke0", K.REFERENCE_KE0), "ke0"),
        log_level=str(data.get("log_level", "INFO")),
    )


def load_request(path: Union[str, Path]) -> ProtocolRequest:
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigurationError(f"Cannot read request file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc
    if data is None:
        raise ConfigurationError(f"Request file {path} is empty.")
    return request_from_dict(data)


def _require(data: Mapping[str, Any], key: str, where: str) -> Any:
    if key not in data:
        raise ConfigurationError(f"Missing required key '{key}' in {where}.")
    return data[key]


def _reject_unknown(where: str, data: Mapping[str, Any], allowed: set) -> None:
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ConfigurationError(f"Unknown key(s) in {where}: {', '.join(map(str, unknown))}")


def _as_float(value: Any, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"'{name}' must be a number (got {value!r}).") from None

