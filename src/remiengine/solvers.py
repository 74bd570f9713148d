# src/remiengine/solvers.py
import math

from . import constants as K
from .exceptions import SimulationError
from .models.three_compartment import three_compartment_derivatives
from .types import BolusState, CompartmentState, PKParameters, RateConstants


def bolus_initial_state(bolus_mg: float, v1: float) -> BolusState:
    """
    State at t=0 after an IV bolus.

    The whole dose is placed in the central compartment at once; the effect
    site starts empty and fills over time.
    """
    if bolus_mg < 0:
        raise ValueError(f"bolus_mg must be >= 0 (got {bolus_mg}).")
    compartments = CompartmentState(a1=float(bolus_mg), a2=0.0, a3=0.0)
    return BolusState(compartments=compartments,
                      plasma=compartments.plasma_concentration(v1),
                      ce=0.0)


def infusion_mg_per_min(rate_mg_kg_h: float, weight_kg: float) -> float:
    """Convert a weight-normalized rate (mg/kg/h) into an absolute one (mg/min)."""
    return rate_mg_kg_h * weight_kg / 60.0


def rk4_step(state: CompartmentState, rc: RateConstants,
             infusion_mg_min: float, dt: float = K.TIME_STEP) -> CompartmentState:
    """
    Advance compartment masses by one fixed step with classical 4th-order Runge-Kutta.

    The infusion is held constant across all four stages. A new state is
    returned; `state` is never modified.
    """
    k1 = three_compartment_derivatives(state, rc, infusion_mg_min)
    k2 = three_compartment_derivatives(_shift(state, k1, 0.5 * dt), rc, infusion_mg_min)
    k3 = three_compartment_derivatives(_shift(state, k2, 0.5 * dt), rc, infusion_mg_min)
    k4 = three_compartment_derivatives(_shift(state, k3, dt), rc, infusion_mg_min)

    return CompartmentState(
        a1=state.a1 + (dt / 6.0) * (k1.a1 + 2 * k2.a1 + 2 * k3.a1 + k4.a1),
        a2=state.a2 + (dt / 6.0) * (k1.a2 + 2 * k2.a2 + 2 * k3.a2 + k4.a2),
        a3=state.a3 + (dt / 6.0) * (k1.a3 + 2 * k2.a3 + 2 * k3.a3 + k4.a3),
    )


def _shift(state: CompartmentState, slope: CompartmentState, h: float) -> CompartmentState:
    return CompartmentState(state.a1 + h * slope.a1,
                            state.a2 + h * slope.a2,
                            state.a3 + h * slope.a3)


def effect_site_step(ce: float, plasma: float, ke0: float, dt: float = K.TIME_STEP) -> float:
    """Explicit Euler update of the effect site towards `plasma`."""
    return ce + dt * ke0 * (plasma - ce)


def simulate_open_loop(pk: PKParameters, weight_kg: float, bolus_mg: float,
                       rate_mg_kg_h: float, duration_min: float,
                       dt: float = K.TIME_STEP) -> float:
    """
    Bolus followed by a constant infusion, no controller.

    Runs floor(duration_min / dt) steps. Each step first samples plasma from the
    current masses, moves Ce towards it, and only then advances the masses.

    Returns:
      Ce (ug/mL) at `duration_min`.
    """
    if dt <= 0:
        raise ValueError(f"dt must be > 0 (got {dt}).")
    if duration_min < 0:
        raise ValueError(f"duration_min must be >= 0 (got {duration_min}).")

    initial = bolus_initial_state(bolus_mg, pk.v1)
    state = initial.compartments
    ce = initial.ce
    rc = pk.rate_constants()
    infusion = infusion_mg_per_min(rate_mg_kg_h, weight_kg)

    for _ in range(int(math.floor(duration_min / dt))):
        plasma = state.plasma_concentration(pk.v1)
        ce = effect_site_step(ce, plasma, pk.ke0, dt)
        state = rk4_step(state, rc, infusion, dt)

    if not math.isfinite(ce):
        raise SimulationError(f"Open-loop simulation produced a non-finite Ce ({ce}).")
    return ce
