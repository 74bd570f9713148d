from ..types import CompartmentState, RateConstants


def three_compartment_derivatives(state: CompartmentState, rc: RateConstants,
                                  infusion_mg_per_min: float) -> CompartmentState:
    """
    Mammillary three-compartment model with zero-order input into the central compartment.
    Three states:
      a1 = drug in central compartment (mg)
      a2 = drug in shallow peripheral compartment (mg)
      a3 = drug in deep peripheral compartment (mg)

    Parameters:
      state               : current masses
      rc                  : rate constants (1/min) derived from PKParameters
      infusion_mg_per_min : continuous infusion into the central compartment

    Returns the time derivatives (mg/min) packed in a CompartmentState so the
    integrator can combine stages with the same field names.
    """
    a1, a2, a3 = state.a1, state.a2, state.a3

    da1_dt = infusion_mg_per_min - (rc.k10 + rc.k12 + rc.k13) * a1 + rc.k21 * a2 + rc.k31 * a3
    da2_dt = rc.k12 * a1 - rc.k21 * a2
    da3_dt = rc.k13 * a1 - rc.k31 * a3

    return CompartmentState(da1_dt, da2_dt, da3_dt)
