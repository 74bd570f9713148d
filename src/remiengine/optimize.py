# src/remiengine/optimize.py
"""
Continuous-rate search after a bolus.

The open-loop simulation is inverted by brute force: every rate on a fixed
0.1 mg/kg/h grid is simulated up to the target reach time and the one whose
Ce lands closest to the target is kept. The grid is small (38 rates) so an
exhaustive scan is cheap and always returns the global optimum over the grid.
"""
import logging
import math
from typing import List

from . import constants as K
from .dosing import validate_non_negative, validate_positive
from .solvers import simulate_open_loop
from .types import OptimizationCandidate, OptimizationResult, PKParameters

logger = logging.getLogger(__name__)


def candidate_rates(min_rate: float = K.OPTIMIZATION_MIN_RATE,
                    max_rate: float = K.OPTIMIZATION_MAX_RATE,
                    step: float = K.OPTIMIZATION_STEP) -> List[float]:
    """
    Inclusive rate grid built from an integer index (min + i*step) so the
    number of candidates never depends on accumulated rounding.
    """
    validate_positive("step", step)
    if max_rate < min_rate:
        raise ValueError(f"max_rate must be >= min_rate (got {min_rate}..{max_rate}).")
    n_steps = int(round((max_rate - min_rate) / step))
    return [min_rate + i * step for i in range(n_steps + 1)]


def optimize_continuous_rate(pk: PKParameters, weight_kg: float, bolus_mg: float,
                             target_ce: float,
                             target_reach_time: float = K.DEFAULT_TARGET_REACH_TIME) -> OptimizationResult:
    """
    Find the grid rate whose open-loop Ce at `target_reach_time` is closest to `target_ce`.

    Ties keep the lowest rate (the incumbent is only replaced on a strictly
    smaller error).
    """
    validate_non_negative("bolus_mg", bolus_mg)
    validate_positive("target_ce", target_ce)
    validate_positive("weight_kg", weight_kg)

    best_rate = None
    best_ce = math.nan
    best_error = math.inf
    candidates: list[OptimizationCandidate] = []

    for rate in candidate_rates():
        ce = simulate_open_loop(pk, weight_kg, bolus_mg, rate, target_reach_time)
        error = abs(ce - target_ce)
        candidates.append(OptimizationCandidate(rate=rate, ce_at_target=ce, error=error,
                                                relative_error=error / target_ce * 100.0))
        logger.debug("rate %.2f mg/kg/h -> Ce(%.1f min) = %.4f", rate, target_reach_time, ce)

        if error < best_error:
            best_error = error
            best_rate = rate
            best_ce = ce

    logger.info("Optimal continuous rate after %.1f mg bolus: %.2f mg/kg/h (Ce=%.3f, error %.2f%%)",
                bolus_mg, best_rate, best_ce, best_error / target_ce * 100.0)

    return OptimizationResult(
        optimal_rate=best_rate,
        predicted_ce=best_ce,
        absolute_error=best_error,
        relative_error=best_error / target_ce * 100.0,
        candidates=tuple(candidates),
    )
