"""
Exceptions raised by remiengine.

Hierarchy:
    RemiEngineError (base)
    ├── ValidationError     request rejected before any simulation runs
    ├── ConfigurationError  malformed request file
    ├── OracleError         ke0 oracle returned an unusable value
    └── SimulationError     non-finite state produced during a run
"""
from __future__ import annotations

from typing import Iterable


class RemiEngineError(Exception):
    """Base exception for all remiengine errors."""
    pass


class ValidationError(RemiEngineError):
    """
    Raised when request inputs fall outside their clinical ranges.

    `errors` keeps every failing reason, in input order, so callers can show
    the whole list at once instead of one field at a time.
    """

    def __init__(self, errors: Iterable[str]):
        self.errors = list(errors)
        super().__init__("Validation failed: " + "; ".join(self.errors))


class ConfigurationError(RemiEngineError):
    pass


class OracleError(RemiEngineError):
    pass


class SimulationError(RemiEngineError):
    pass
