# src/remiengine/simulate.py
import logging
import math

from . import constants as K
from .dosing import reduced_rate, validate_non_negative, validate_positive, validate_rate
from .exceptions import SimulationError
from .metrics import evaluate_performance
from .solvers import bolus_initial_state, effect_site_step, infusion_mg_per_min, rk4_step
from .types import (
    DosageAdjustmentEvent, PKParameters, ProtocolParams, SimulationResult, SimulationSample,
)

logger = logging.getLogger(__name__)


def simulate_threshold_protocol(pk: PKParameters, weight_kg: float, bolus_mg: float,
                                initial_rate: float, params: ProtocolParams,
                                duration_min: float = K.SIMULATION_DURATION,
                                dt: float = K.TIME_STEP) -> SimulationResult:
    """
    Bolus + continuous infusion with debounced threshold reductions.

    Produces floor(duration_min / dt) + 1 samples, the first one at t=0 holding
    the bolus. At every later sample Ce is moved towards the plasma level of the
    current masses, then the controller runs:

      Ce >= target * upper_threshold_ratio
      and at least MINIMUM_ADJUSTMENT_INTERVAL since the last reduction
      and rate > MIN_INFUSION_RATE
        -> rate = max(MIN_INFUSION_RATE, rate * reduction_factor)

    The masses are then advanced with the rate that was in force when the
    step began; a reduction takes effect from the following step.
    """
    validate_positive("weight_kg", weight_kg)
    validate_non_negative("bolus_mg", bolus_mg)
    validate_rate("initial_rate", initial_rate)
    validate_positive("dt", dt)

    upper_threshold = params.upper_threshold
    initial = bolus_initial_state(bolus_mg, pk.v1)
    state = initial.compartments
    ce = initial.ce
    rc = pk.rate_constants()

    current_rate = float(initial_rate)
    last_adjustment_time = -K.MINIMUM_ADJUSTMENT_INTERVAL  # first crossing is always eligible
    adjustment_count = 0

    trajectory: list[SimulationSample] = []
    adjustments: list[DosageAdjustmentEvent] = []

    n_samples = int(math.floor(duration_min / dt)) + 1
    for i in range(n_samples):
        current_time = i * dt
        infusion = infusion_mg_per_min(current_rate, weight_kg)
        plasma = state.plasma_concentration(pk.v1)

        if i > 0:
            ce = effect_site_step(ce, plasma, pk.ke0, dt)

        if (ce >= upper_threshold
                and current_time - last_adjustment_time >= K.MINIMUM_ADJUSTMENT_INTERVAL
                and current_rate > K.MIN_INFUSION_RATE):
            old_rate = current_rate
            current_rate = reduced_rate(current_rate, params.reduction_factor)
            adjustment_count += 1
            adjustments.append(DosageAdjustmentEvent(
                time=current_time,
                old_rate=old_rate,
                new_rate=current_rate,
                ce_at_event=ce,
                reduction_percent=(old_rate - current_rate) / old_rate * 100.0,
                sequence_number=adjustment_count,
            ))
            last_adjustment_time = current_time
            logger.info("%.1f min: Ce=%.3f reached threshold %.3f, rate %.2f -> %.2f mg/kg/h",
                        current_time, ce, upper_threshold, old_rate, current_rate)

        trajectory.append(SimulationSample(
            time=round(current_time, 1),
            ce=ce,
            plasma=plasma,
            infusion_rate=current_rate,
            adjustment_count=adjustment_count,
            is_bolus_event=(i == 0),
            target_ce=params.target_ce,
            upper_threshold=upper_threshold,
            time_since_last_adjustment=current_time - last_adjustment_time,
        ))

        if i < n_samples - 1:
            state = rk4_step(state, rc, infusion, dt)

    if not math.isfinite(ce):
        raise SimulationError(f"Closed-loop simulation produced a non-finite Ce ({ce}).")

    metrics = evaluate_performance(trajectory, params.target_ce)
    logger.debug("Protocol for %.1f mg bolus at %.2f mg/kg/h: %d adjustment(s), %s",
                 bolus_mg, initial_rate, adjustment_count, metrics)

    return SimulationResult(
        trajectory=tuple(trajectory),
        adjustments=tuple(adjustments),
        metrics=metrics,
        bolus_dose=float(bolus_mg),
        initial_rate=float(initial_rate),
        params=params,
    )
