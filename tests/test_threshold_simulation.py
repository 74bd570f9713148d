import numpy as np
import pytest

from remiengine import constants as K
from remiengine.dosing import build_protocol_params
from remiengine.metrics import trajectory_arrays
from remiengine.simulate import simulate_threshold_protocol


def _run(pk, bolus, rate, target=1.0, **overrides):
    params = build_protocol_params(target, **overrides)
    return simulate_threshold_protocol(pk, 70.0, bolus, rate, params)


def test_horizon_sample_count_and_bolus_flag(reference_pk):
    result = _run(reference_pk, 7.0, 0.6)
    traj = result.trajectory

    assert len(traj) == int(180 / 0.1) + 1 == 1801
    assert traj[0].time == 0.0 and traj[-1].time == 180.0
    assert traj[0].is_bolus_event
    assert not any(s.is_bolus_event for s in traj[1:])
    assert traj[0].plasma == pytest.approx(7.0 / 3.57)
    assert traj[0].ce == 0.0


def test_golden_trajectory_seven_mg(reference_pk):
    """Pinned samples of the fixed-ke0 reference run (7 mg bolus, 0.6 mg/kg/h)."""
    traj = _run(reference_pk, 7.0, 0.3 + 3 * 0.1).trajectory

    assert traj[1].time == 0.1
    assert traj[1].ce == pytest.approx(0.023213743431368696, rel=1e-9)
    assert traj[1].plasma == pytest.approx(1.9344786192807246, rel=1e-9)
    assert traj[10].ce == pytest.approx(0.20745860149533288, rel=1e-9)
    assert traj[200].ce == pytest.approx(0.95881015232991, rel=1e-9)
    assert traj[200].plasma == pytest.approx(1.0109784454229118, rel=1e-9)
    assert traj[600].ce == pytest.approx(1.1696083065427119, rel=1e-9)
    assert traj[1800].ce == pytest.approx(1.058060848094478, rel=1e-9)
    assert traj[1800].plasma == pytest.approx(1.062076361124975, rel=1e-9)


def test_golden_adjustment_and_metrics_seven_mg(reference_pk):
    result = _run(reference_pk, 7.0, 0.3 + 3 * 0.1)

    assert len(result.adjustments) == 1
    event = result.adjustments[0]
    assert event.time == pytest.approx(67.5)
    assert event.old_rate == pytest.approx(0.6)
    assert event.new_rate == pytest.approx(0.42)
    assert event.ce_at_event == pytest.approx(1.2001446817891221, rel=1e-9)
    assert event.reduction_percent == pytest.approx(30.0)
    assert event.sequence_number == 1

    m = result.metrics
    assert m.final_ce == pytest.approx(1.058060848094478, rel=1e-9)
    assert m.max_ce == pytest.approx(1.20147140944912, rel=1e-9)
    assert m.avg_deviation == pytest.approx(0.06127625680048694, rel=1e-9)
    assert m.target_accuracy == pytest.approx(84.17985012489592, rel=1e-9)
    assert m.stability_index == pytest.approx(99.79928949451735, rel=1e-9)
    assert m.convergence_time == pytest.approx(18.7)


def test_reduction_applies_from_the_following_step(reference_pk):
    """The sample at the event already shows the new rate; the drop in mass input starts after it."""
    traj = _run(reference_pk, 7.0, 0.3 + 3 * 0.1).trajectory

    assert traj[674].infusion_rate == pytest.approx(0.6)
    assert traj[675].infusion_rate == pytest.approx(0.42)
    assert traj[675].adjustment_count == 1
    assert traj[676].ce == pytest.approx(1.200532970807529, rel=1e-9)


def test_debounce_interval_between_reductions(reference_pk):
    """A high starting rate keeps Ce above threshold, so reductions fire exactly every 5 min."""
    result = _run(reference_pk, 7.0, 4.0)
    times = [e.time for e in result.adjustments]

    assert len(times) == 10
    assert times[0] == pytest.approx(3.8)
    assert times[-1] == pytest.approx(48.8)
    for earlier, later in zip(times, times[1:]):
        assert later - earlier >= K.MINIMUM_ADJUSTMENT_INTERVAL
    assert [e.sequence_number for e in result.adjustments] == list(range(1, 11))


def test_reductions_exactly_five_minutes_apart_are_allowed(reference_pk):
    result = _run(reference_pk, 0.0, 0.8)
    assert [round(e.time, 1) for e in result.adjustments] == [30.0, 35.0]


def test_monotonic_reduction_rule(reference_pk):
    for rate, factor in [(4.0, 0.7), (4.0, 0.1), (0.6, 0.7), (2.0, 0.5)]:
        result = _run(reference_pk, 7.0, rate, reduction_factor=factor)
        previous = rate
        for e in result.adjustments:
            assert e.old_rate == previous
            assert e.new_rate == max(K.MIN_INFUSION_RATE, e.old_rate * factor)
            assert e.new_rate <= e.old_rate
            previous = e.new_rate


def test_rate_floor_stops_further_reductions(reference_pk):
    result = _run(reference_pk, 7.0, 4.0, reduction_factor=0.1)

    assert [(e.old_rate, e.new_rate) for e in result.adjustments] == [(4.0, 0.4), (0.4, K.MIN_INFUSION_RATE)]
    rates = trajectory_arrays(result.trajectory)["infusion_rate"]
    assert rates.min() == K.MIN_INFUSION_RATE


def test_rates_stay_within_limits(reference_pk):
    result = _run(reference_pk, 10.0, 4.0, target=0.5)
    rates = trajectory_arrays(result.trajectory)["infusion_rate"]
    assert np.all(rates >= K.MIN_INFUSION_RATE)
    assert np.all(rates <= K.MAX_INFUSION_RATE)


def test_zero_input_closed_loop(reference_pk):
    result = _run(reference_pk, 0.0, 0.0)
    cols = trajectory_arrays(result.trajectory)

    assert np.all(cols["ce"] == 0.0)
    assert np.all(cols["plasma"] == 0.0)
    assert result.adjustments == ()


def test_identical_inputs_give_identical_runs(reference_pk):
    a = _run(reference_pk, 5.0, 0.7)
    b = _run(reference_pk, 5.0, 0.7)

    assert a.trajectory == b.trajectory
    assert a.adjustments == b.adjustments
    assert a.metrics == b.metrics


def test_initial_rate_outside_limits_is_rejected(reference_pk):
    with pytest.raises(ValueError):
        _run(reference_pk, 7.0, K.MAX_INFUSION_RATE + 0.5)
    with pytest.raises(ValueError):
        _run(reference_pk, 7.0, -0.1)
