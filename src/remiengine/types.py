# src/remiengine/types.py
from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field, replace
from typing import Optional, Sequence

from . import constants as K

# All simulated time is kept in MINUTES; infusion rates in mg/kg/h at the API
# surface and converted to mg/min only inside the integrator.


class Sex(enum.IntEnum):
    """Covariate coding used by the Masui model (0 = male, 1 = female)."""
    MALE = 0
    FEMALE = 1


class AsaClass(enum.IntEnum):
    """ASA physical status collapsed to a binary covariate."""
    LOW_RISK = 0   # ASA I-II
    HIGH_RISK = 1  # ASA III-IV


class RecommendationTier(str, enum.Enum):
    TOP = "top"
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    NEEDS_REVIEW = "needs-review"


@dataclass(frozen=True)
class PatientCovariates:
    """
    Demographics that individualize the PK model.

    patient_id : free-text identifier (must be non-empty to pass validation)
    age        : years
    weight     : kg
    height     : cm
    sex        : Sex.MALE / Sex.FEMALE
    asa        : AsaClass.LOW_RISK (ASA I-II) / AsaClass.HIGH_RISK (ASA III-IV)
    """
    patient_id: str
    age: float
    weight: float
    height: float
    sex: Sex = Sex.MALE
    asa: AsaClass = AsaClass.LOW_RISK

    @property
    def bmi(self) -> float:
        height_m = self.height / 100.0
        return self.weight / (height_m ** 2)


@dataclass(frozen=True)
class RateConstants:
    """First-order rate constants (1/min). Always derived, never stored on PKParameters."""
    k10: float
    k12: float
    k21: float
    k13: float
    k31: float


@dataclass(frozen=True)
class PKParameters:
    """
    Three-compartment model with an effect site.

    v1, v2, v3 : compartment volumes (L)
    cl         : elimination clearance (L/min)
    q2, q3     : inter-compartmental clearances (L/min)
    ke0        : effect-site equilibration rate constant (1/min)
    """
    v1: float
    v2: float
    v3: float
    cl: float
    q2: float
    q3: float
    ke0: float

    @property
    def k10(self) -> float:
        return self.cl / self.v1

    @property
    def k12(self) -> float:
        return self.q2 / self.v1

    @property
    def k21(self) -> float:
        return self.q2 / self.v2

    @property
    def k13(self) -> float:
        return self.q3 / self.v1

    @property
    def k31(self) -> float:
        return self.q3 / self.v3

    def rate_constants(self) -> RateConstants:
        return RateConstants(k10=self.k10, k12=self.k12, k21=self.k21,
                             k13=self.k13, k31=self.k31)


@dataclass(frozen=True)
class CompartmentState:
    """Drug mass (mg) in central (a1), shallow (a2) and deep (a3) compartments."""
    a1: float = 0.0
    a2: float = 0.0
    a3: float = 0.0

    def plasma_concentration(self, v1: float) -> float:
        """Central concentration in ug/mL (mg / L)."""
        return self.a1 / v1


@dataclass(frozen=True)
class BolusState:
    """State immediately after the bolus at t=0."""
    compartments: CompartmentState
    plasma: float
    ce: float = 0.0


@dataclass(frozen=True)
class SimulationSample:
    """
    One row of a closed-loop trajectory.

    time                       : minutes, rounded to the 0.1 min grid
    ce / plasma                : effect-site / plasma concentration (ug/mL)
    infusion_rate              : rate in force after this step's threshold check (mg/kg/h)
    adjustment_count           : reductions applied so far
    is_bolus_event             : True only for the t=0 sample
    time_since_last_adjustment : minutes since the last reduction (offset by the
                                 initial -interval for the first one)
    """
    time: float
    ce: float
    plasma: float
    infusion_rate: float
    adjustment_count: int
    is_bolus_event: bool
    target_ce: float
    upper_threshold: float
    time_since_last_adjustment: float


@dataclass(frozen=True)
class DosageAdjustmentEvent:
    time: float
    old_rate: float
    new_rate: float
    ce_at_event: float
    reduction_percent: float
    sequence_number: int
    kind: str = "threshold_reduction"


@dataclass(frozen=True)
class OptimizationCandidate:
    rate: float
    ce_at_target: float
    error: float
    relative_error: float  # percent of target


@dataclass(frozen=True)
class OptimizationResult:
    optimal_rate: float
    predicted_ce: float
    absolute_error: float
    relative_error: float  # percent of target
    candidates: Sequence[OptimizationCandidate]


@dataclass(frozen=True)
class PerformanceMetrics:
    final_ce: float
    max_ce: float
    avg_deviation: float
    target_accuracy: float
    stability_index: float
    convergence_time: float

    @property
    def converged(self) -> bool:
        return math.isfinite(self.convergence_time)


@dataclass(frozen=True)
class ProtocolParams:
    """
    Per-request controller settings.

    target_ce             : desired effect-site concentration (ug/mL)
    target_reach_time     : minutes after the bolus at which Ce should hit target
    upper_threshold_ratio : reductions fire once Ce >= target_ce * ratio
    reduction_factor      : multiplier applied to the rate at each reduction
    """
    target_ce: float
    target_reach_time: float = K.DEFAULT_TARGET_REACH_TIME
    upper_threshold_ratio: float = K.DEFAULT_UPPER_THRESHOLD_RATIO
    reduction_factor: float = K.OPTIMIZED_REDUCTION_FACTOR

    @property
    def upper_threshold(self) -> float:
        return self.target_ce * self.upper_threshold_ratio

    def with_overrides(self, **overrides) -> "ProtocolParams":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


@dataclass(frozen=True)
class SimulationResult:
    trajectory: Sequence[SimulationSample]
    adjustments: Sequence[DosageAdjustmentEvent]
    metrics: PerformanceMetrics
    bolus_dose: float
    initial_rate: float
    params: ProtocolParams


@dataclass(frozen=True)
class ProtocolStep:
    """One line of the bedside instruction list."""
    step: int
    method: str
    dose: str
    total_dose: str
    timing: str
    notes: str


@dataclass(frozen=True)
class ComparisonEntry:
    bolus_dose: float
    optimal_rate: float
    final_ce: float
    target_accuracy: float
    adjustment_count: int
    score: float
    recommendation: RecommendationTier

    def selection_penalty(self, target_ce: float) -> float:
        """Distance of the final Ce from target plus a fixed charge per reduction; lower is better."""
        return abs(self.final_ce - target_ce) + self.adjustment_count * K.ADJUSTMENT_PENALTY


@dataclass(frozen=True)
class ProtocolResult:
    patient: PatientCovariates
    pk_params: PKParameters
    bolus_dose: float
    params: ProtocolParams
    optimization: OptimizationResult
    simulation: SimulationResult
    clinical_protocol: Sequence[ProtocolStep]
    comparison: Sequence[ComparisonEntry] = field(default_factory=tuple)
    calculation_time_ms: Optional[float] = None

    @property
    def optimal_rate(self) -> float:
        return self.optimization.optimal_rate

    @property
    def trajectory(self) -> Sequence[SimulationSample]:
        return self.simulation.trajectory

    @property
    def adjustments(self) -> Sequence[DosageAdjustmentEvent]:
        return self.simulation.adjustments

    @property
    def metrics(self) -> PerformanceMetrics:
        return self.simulation.metrics

    @property
    def recommended_comparison(self) -> Optional[ComparisonEntry]:
        """
        Comparison row with the smallest selection penalty against this request's
        target. On a tie the row that comes first in `comparison` is kept. The
        heuristic `score` is only used for the tier label.
        """
        best: Optional[ComparisonEntry] = None
        for entry in self.comparison:
            if best is None or (entry.selection_penalty(self.params.target_ce)
                                < best.selection_penalty(self.params.target_ce)):
                best = entry
        return best
