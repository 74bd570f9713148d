import pytest

from remiengine import constants as K
from remiengine import optimize
from remiengine.optimize import candidate_rates, optimize_continuous_rate


def test_candidate_grid_is_inclusive_and_index_built():
    rates = candidate_rates()

    assert len(rates) == 38
    assert rates[0] == K.OPTIMIZATION_MIN_RATE
    assert rates[-1] == K.OPTIMIZATION_MAX_RATE
    assert rates[5] == 0.3 + 5 * 0.1
    assert all(b > a for a, b in zip(rates, rates[1:]))


def test_candidate_grid_rejects_bad_bounds():
    with pytest.raises(ValueError):
        candidate_rates(1.0, 0.5, 0.1)
    with pytest.raises(ValueError):
        candidate_rates(0.3, 4.0, 0.0)


def test_worked_example_seven_mg_bolus(reference_pk, reference_weight):
    """7 mg bolus, target 1.0 ug/mL at 20 min: 0.60 mg/kg/h lands at Ce ~ 0.960."""
    result = optimize_continuous_rate(reference_pk, reference_weight, 7.0, 1.0, 20.0)

    assert result.optimal_rate == pytest.approx(0.6)
    assert result.predicted_ce == pytest.approx(0.9603058596800911, rel=1e-9)
    assert result.absolute_error == pytest.approx(0.03969414031990892, rel=1e-8)
    assert result.relative_error == pytest.approx(3.969414031990892, rel=1e-8)
    assert len(result.candidates) == 38


def test_candidate_table_is_monotonic_in_rate(reference_pk, reference_weight):
    result = optimize_continuous_rate(reference_pk, reference_weight, 7.0, 1.0, 20.0)
    ces = [c.ce_at_target for c in result.candidates]

    assert ces[0] == pytest.approx(0.5920, abs=1e-4)
    assert ces[-1] == pytest.approx(5.1349, abs=1e-4)
    assert all(b > a for a, b in zip(ces, ces[1:]))


@pytest.mark.parametrize("bolus,target", [(3.0, 1.0), (7.0, 1.0), (10.0, 2.0), (1.0, 0.5)])
def test_result_is_global_optimum_over_grid(reference_pk, reference_weight, bolus, target):
    result = optimize_continuous_rate(reference_pk, reference_weight, bolus, target)

    assert all(result.absolute_error <= c.error for c in result.candidates)
    best = min(result.candidates, key=lambda c: c.error)
    assert result.optimal_rate == best.rate


def test_ties_keep_the_lowest_rate(reference_pk, monkeypatch):
    monkeypatch.setattr(optimize, "simulate_open_loop", lambda *args, **kwargs: 1.5)
    result = optimize_continuous_rate(reference_pk, 70.0, 7.0, 1.0)

    assert result.optimal_rate == K.OPTIMIZATION_MIN_RATE
    assert result.absolute_error == pytest.approx(0.5)


@pytest.mark.parametrize("target,expected_rate", [(0.5, 0.3), (3.0, 2.3)])
def test_boundary_targets_stay_on_grid(reference_pk, reference_weight, target, expected_rate):
    """Edge targets still return a grid rate with a finite error instead of failing."""
    result = optimize_continuous_rate(reference_pk, reference_weight, 7.0, target)

    assert K.OPTIMIZATION_MIN_RATE <= result.optimal_rate <= K.OPTIMIZATION_MAX_RATE
    assert result.optimal_rate == pytest.approx(expected_rate)
    assert result.absolute_error < 0.1


def test_invalid_optimizer_inputs(reference_pk):
    with pytest.raises(ValueError):
        optimize_continuous_rate(reference_pk, 70.0, 7.0, 0.0)
    with pytest.raises(ValueError):
        optimize_continuous_rate(reference_pk, 0.0, 7.0, 1.0)
