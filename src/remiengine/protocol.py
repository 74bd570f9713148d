# src/remiengine/protocol.py
"""
End-to-end protocol generation.

    patient -> PK parameters -> optimal continuous rate -> closed-loop run
            -> bedside step list + fixed bolus-dose comparison
"""
from __future__ import annotations

import logging
import time
from typing import Iterable, List, Optional

from . import constants as K
from .dosing import build_protocol_params, validate_request
from .exceptions import RemiEngineError
from .ke0 import Ke0Oracle
from .models.masui import calculate_pk_parameters
from .optimize import optimize_continuous_rate
from .simulate import simulate_threshold_protocol
from .types import (
    ComparisonEntry, DosageAdjustmentEvent, PatientCovariates, PerformanceMetrics,
    PKParameters, ProtocolParams, ProtocolResult, ProtocolStep, RecommendationTier,
)

logger = logging.getLogger(__name__)


def generate_protocol(patient: PatientCovariates, bolus_mg: float, target_ce: float,
                      ke0_oracle: Ke0Oracle, *,
                      target_reach_time: Optional[float] = None,
                      upper_threshold_ratio: Optional[float] = None,
                      reduction_factor: Optional[float] = None,
                      include_comparison: bool = True) -> ProtocolResult:
    """
    Build the full bolus + continuous protocol for one patient.

    Raises:
      ValidationError if any input is out of range; nothing is simulated then.
    """
    started = time.perf_counter()

    params = build_protocol_params(target_ce, target_reach_time=target_reach_time,
                                   upper_threshold_ratio=upper_threshold_ratio,
                                   reduction_factor=reduction_factor)
    validate_request(patient, bolus_mg, params)

    pk = calculate_pk_parameters(patient, ke0_oracle)

    optimization = optimize_continuous_rate(pk, patient.weight, bolus_mg,
                                            params.target_ce, params.target_reach_time)
    simulation = simulate_threshold_protocol(pk, patient.weight, bolus_mg,
                                             optimization.optimal_rate, params)

    steps = clinical_protocol_steps(bolus_mg, optimization.optimal_rate,
                                    simulation.adjustments, patient.weight)
    comparison = compare_bolus_doses(pk, patient.weight, params) if include_comparison else []

    elapsed_ms = (time.perf_counter() - started) * 1000.0
    logger.info("Protocol for patient %s generated in %.0f ms", patient.patient_id, elapsed_ms)

    return ProtocolResult(
        patient=patient,
        pk_params=pk,
        bolus_dose=float(bolus_mg),
        params=params,
        optimization=optimization,
        simulation=simulation,
        clinical_protocol=tuple(steps),
        comparison=tuple(comparison),
        calculation_time_ms=elapsed_ms,
    )


def clinical_protocol_steps(bolus_mg: float, continuous_rate: float,
                            adjustments: Iterable[DosageAdjustmentEvent],
                            weight_kg: float) -> List[ProtocolStep]:
    """Bolus, start of the infusion, then one line per threshold reduction."""
    steps = [
        ProtocolStep(step=1,
                     method="Bolus",
                     dose=f"{bolus_mg:g} mg",
                     total_dose=f"{bolus_mg:g} mg",
                     timing="At induction (immediately)",
                     notes="Rapid IV injection"),
        ProtocolStep(step=2,
                     method="Start continuous infusion",
                     dose=f"{continuous_rate:.2f} mg/kg/h",
                     total_dose=f"{continuous_rate * weight_kg:.1f} mg/h",
                     timing="Immediately after bolus",
                     notes="Optimized rate"),
    ]
    for index, adj in enumerate(adjustments):
        steps.append(ProtocolStep(step=index + 3,
                                  method="Threshold reduction",
                                  dose=f"{adj.new_rate:.2f} mg/kg/h",
                                  total_dose=f"{adj.new_rate * weight_kg:.1f} mg/h",
                                  timing=f"{adj.time:.0f} min",
                                  notes=f"{adj.reduction_percent:.0f}% reduction"))
    return steps


def recommendation_score(metrics: PerformanceMetrics, adjustment_count: int) -> float:
    """Accuracy plus bonuses for a single reduction and for ending near 1.0 ug/mL."""
    score = metrics.target_accuracy
    if adjustment_count == 1:
        score += K.SINGLE_ADJUSTMENT_BONUS
    if abs(metrics.final_ce - K.REFERENCE_FINAL_CE) < K.FINAL_CE_BONUS_TOLERANCE:
        score += K.FINAL_CE_BONUS
    return score


def recommendation_tier(score: float) -> RecommendationTier:
    if score >= K.TIER_TOP_SCORE:
        return RecommendationTier.TOP
    if score >= K.TIER_GOOD_SCORE:
        return RecommendationTier.GOOD
    if score >= K.TIER_ACCEPTABLE_SCORE:
        return RecommendationTier.ACCEPTABLE
    return RecommendationTier.NEEDS_REVIEW


def compare_bolus_doses(pk: PKParameters, weight_kg: float, params: ProtocolParams,
                        bolus_doses: Iterable[float] = K.COMPARISON_BOLUS_DOSES) -> List[ComparisonEntry]:
    """
    Run optimizer + closed-loop simulation for each bolus in `bolus_doses`.

    A dose whose run fails is logged and left out; the others are still returned,
    in the order they were given.
    """
    results: list[ComparisonEntry] = []
    for bolus in bolus_doses:
        try:
            optimization = optimize_continuous_rate(pk, weight_kg, bolus,
                                                    params.target_ce, params.target_reach_time)
            simulation = simulate_threshold_protocol(pk, weight_kg, bolus,
                                                     optimization.optimal_rate, params)
        except (ArithmeticError, ValueError, RemiEngineError) as exc:
            logger.warning("Comparison calculation failed for %g mg bolus: %s", bolus, exc)
            continue

        adjustment_count = len(simulation.adjustments)
        score = recommendation_score(simulation.metrics, adjustment_count)
        results.append(ComparisonEntry(
            bolus_dose=float(bolus),
            optimal_rate=optimization.optimal_rate,
            final_ce=simulation.metrics.final_ce,
            target_accuracy=simulation.metrics.target_accuracy,
            adjustment_count=adjustment_count,
            score=score,
            recommendation=recommendation_tier(score),
        ))
    return results
