# src/remiengine/metrics.py
from typing import Dict, Sequence

import numpy as np

from . import constants as K
from .types import PerformanceMetrics, SimulationSample


def trajectory_arrays(samples: Sequence[SimulationSample]) -> Dict[str, np.ndarray]:
    """Column view of a trajectory: time (min), ce, plasma (ug/mL), infusion_rate (mg/kg/h)."""
    return {
        "time": np.array([s.time for s in samples], dtype=float),
        "ce": np.array([s.ce for s in samples], dtype=float),
        "plasma": np.array([s.plasma for s in samples], dtype=float),
        "infusion_rate": np.array([s.infusion_rate for s in samples], dtype=float),
    }


def maintenance_mask(t: np.ndarray, start_min: float = K.MAINTENANCE_START) -> np.ndarray:
    """Samples at or after `start_min` (the steady-state window)."""
    return t >= start_min


def final_ce(C: np.ndarray) -> float:
    return float(C[-1])


def max_ce(C: np.ndarray) -> float:
    return float(np.max(C))


def avg_deviation(C: np.ndarray, target: float) -> float:
    """Mean absolute distance from target (ug/mL)."""
    return float(np.mean(np.abs(C - target)))


def target_accuracy(C: np.ndarray, target: float, tol: float = K.ACCURACY_TOLERANCE) -> float:
    """Percentage of samples within +/- tol*target of target."""
    within = np.abs(C - target) <= target * tol
    return float(np.count_nonzero(within)) / C.size * 100.0


def stability_index(C: np.ndarray, scale: float = K.STABILITY_SCALE) -> float:
    """
    100 minus the scaled mean absolute sample-to-sample change, floored at 0.
    A single sample has no sample-to-sample change and scores 100 here rather
    than NaN (0/0), so a one-sample window still compares as perfectly stable.
    """
    if C.size < 2:
        return 100.0
    avg_variation = float(np.mean(np.abs(np.diff(C))))
    return max(0.0, 100.0 - avg_variation * scale)


def convergence_time(t: np.ndarray, C: np.ndarray, target: float,
                     tol: float = K.CONVERGENCE_TOLERANCE) -> float:
    """First time Ce comes within +/- tol*target of target; inf if it never does."""
    hits = np.flatnonzero(np.abs(C - target) <= target * tol)
    if hits.size == 0:
        return float("inf")
    return float(t[hits[0]])


def evaluate_performance(samples: Sequence[SimulationSample], target_ce: float) -> PerformanceMetrics:
    """
    Summary statistics of a finished closed-loop run.

    Deviation, accuracy and stability use the maintenance window only
    (t >= MAINTENANCE_START); max Ce and convergence look at the whole run.
    An empty window yields infinite deviation and zero accuracy.
    """
    cols = trajectory_arrays(samples)
    t, C = cols["time"], cols["ce"]
    mask = maintenance_mask(t)

    if not np.any(mask):
        return PerformanceMetrics(
            final_ce=0.0,
            max_ce=0.0,
            avg_deviation=float("inf"),
            target_accuracy=0.0,
            stability_index=0.0,
            convergence_time=float("inf"),
        )

    Cm = C[mask]
    return PerformanceMetrics(
        final_ce=final_ce(C),
        max_ce=max_ce(C),
        avg_deviation=avg_deviation(Cm, target_ce),
        target_accuracy=target_accuracy(Cm, target_ce),
        stability_index=stability_index(Cm),
        convergence_time=convergence_time(t, C, target_ce),
    )
