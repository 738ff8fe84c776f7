from functools import partial
from typing import Sequence, Tuple

import jax
import jax.numpy as jnp
import numpy as np

from ..core.errors import InvalidInputError
from ..core.types import GlucoseDataPoint

# Two samples are the same instant if their times differ by less than this (min)
_TIME_MATCH_TOL = 1e-6


def glucose_trace(points: Sequence[GlucoseDataPoint]) -> jnp.ndarray:
    """(T,) glucose in mg/dL from a series of samples."""
    return jnp.asarray([p.glucose for p in points], dtype=jnp.float32)


@partial(jax.jit, static_argnames=("low", "high"))
def time_in_range(trace: jnp.ndarray, low: float = 70.0, high: float = 180.0) -> jnp.ndarray:
    """Return the fraction of glucose readings within the target range."""
    trace = jnp.asarray(trace)
    in_range = (trace >= low) & (trace <= high)
    return jnp.mean(in_range)


@partial(jax.jit, static_argnames=("dt",))
def glucose_variability_metrics(trace: jnp.ndarray, dt: float):
    """
    trace: (T,) glucose in mg/dL, T >= 2
    dt: minutes between samples (e.g., 5.0)

    Returns:
      sd_mgdl, cv_pct, mag_mgdl_per_min
    """
    trace = jnp.asarray(trace)

    mean_g = jnp.mean(trace)
    sd_g = jnp.std(trace)
    cv_pct = 100.0 * sd_g / (mean_g + 1e-6)

    # mean absolute glucose change per minute
    dg = trace[1:] - trace[:-1]
    mag = jnp.mean(jnp.abs(dg)) / (dt + 1e-6)

    return sd_g, cv_pct, mag


def peak_excursion(points: Sequence[GlucoseDataPoint]) -> Tuple[float, float]:
    """(time, glucose) of the highest sample; the first one wins ties."""
    if not points:
        raise InvalidInputError("peak_excursion needs at least one sample")
    peak = max(points, key=lambda p: p.glucose)
    return peak.time, peak.glucose


def paired_rmse(measured: Sequence[GlucoseDataPoint], predicted: Sequence[GlucoseDataPoint]) -> float:
    """
    Root mean square glucose difference over the instants present in both series.

    Raises:
        InvalidInputError: the series share no sample times
    """
    m_t = np.asarray([p.time for p in measured], dtype=np.float64)
    p_t = np.asarray([p.time for p in predicted], dtype=np.float64)
    if m_t.size == 0 or p_t.size == 0:
        raise InvalidInputError("paired_rmse needs two non-empty series")

    # nearest predicted sample for each measured time
    idx = np.abs(m_t[:, None] - p_t[None, :]).argmin(axis=1)
    matched = np.abs(m_t - p_t[idx]) < _TIME_MATCH_TOL
    if not matched.any():
        raise InvalidInputError("measured and predicted series share no sample times")

    m_g = np.asarray([p.glucose for p in measured], dtype=np.float64)[matched]
    p_g = np.asarray([p.glucose for p in predicted], dtype=np.float64)[idx[matched]]
    return float(np.sqrt(np.mean((m_g - p_g) ** 2)))
