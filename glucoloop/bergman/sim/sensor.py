import logging
from functools import partial
from typing import List, Optional

import jax
import jax.numpy as jnp
import numpy as np
from jax import lax

from ..core.errors import InvalidInputError, check_finite, check_meal, check_window
from ..core.params import GLUCOSE_BOUNDS, MeasurementConfig
from ..core.types import GlucoseDataPoint, MealData
from ..sim.realism import KeyLike, as_key, measurement_noise
from ..sim.simulate import step_times

logger = logging.getLogger(__name__)


# ============================
# Synthetic CGM trace
# ============================
def postprandial_glucose(
    current: jnp.ndarray,
    since_meal: jnp.ndarray,
    basal_glucose: jnp.ndarray,
    carbs_g: jnp.ndarray,
    cfg: MeasurementConfig,
) -> jnp.ndarray:
    """
    Expected glucose at one tick given the previous tick's value.

    Before onset the value is carried unchanged. Within the rise window it is a
    Gaussian bump centred at peak_offset_min, scaled by basal + gain * carbs.
    After the window the previous value decays towards basal by
    exp(-(since - window) / tau); the decay compounds tick over tick, so the
    tail depends on the sampling interval.
    """
    peak = basal_glucose + cfg.carb_gain_mgdl_per_g * carbs_g
    rise = peak * jnp.exp(-(((since_meal - cfg.peak_offset_min) / cfg.peak_spread_min) ** 2))
    bump = basal_glucose + rise

    decay = jnp.exp(-(since_meal - cfg.rise_window_min) / cfg.decay_tau_min)
    decayed = basal_glucose + (current - basal_glucose) * decay

    return jnp.where(
        since_meal < 0.0,
        current,
        jnp.where(since_meal <= cfg.rise_window_min, bump, decayed),
    )


@partial(jax.jit, static_argnames=("cfg",))
def measured_trajectory(
    key: jnp.ndarray,
    times: jnp.ndarray,
    basal_glucose: float,
    meal: Optional[MealData],
    cfg: MeasurementConfig,
):
    """
    Scan the synthetic trace over `times`.

    Returns (glucose, insulin, new_key); noise is added to the running value and
    carried forward, so pre-meal ticks wander around basal.
    """
    n = times.shape[0]
    eps, insulin, key = measurement_noise(key, n, cfg)
    basal_glucose = jnp.asarray(basal_glucose, dtype=jnp.float32)

    def body(current, inputs):
        t, e = inputs
        if meal is not None:
            current = postprandial_glucose(current, t - meal.time, basal_glucose, meal.carbs_g, cfg)
        current = jnp.clip(current + e, GLUCOSE_BOUNDS[0], GLUCOSE_BOUNDS[1])
        return current, current

    _, glucose = lax.scan(body, basal_glucose, (times, eps))
    return glucose, insulin, key


class SyntheticMeasurementGenerator:
    """
    Noisy CGM-like glucose series for comparison against the model prediction.

    The only state is the PRNG key. Every call consumes a fresh subkey, so two
    generators built from the same seed yield identical sequences of series.
    Not safe to share between threads; give each caller its own generator.
    """

    def __init__(self, key: KeyLike = None, config: Optional[MeasurementConfig] = None):
        self.key = as_key(key)
        self.config = config if config is not None else MeasurementConfig()

    def generate(
        self,
        start_time: float,
        end_time: float,
        interval: float,
        basal_glucose: float,
        meal: Optional[MealData] = None,
    ) -> List[GlucoseDataPoint]:
        """
        One sample every `interval` minutes from start_time up to end_time.

        Raises:
            InvalidInputError: non-positive interval, inverted window, negative carbs,
                non-finite or non-positive basal glucose
        """
        start_time, end_time, interval = check_window(start_time, end_time, interval, step_name="interval")
        basal_glucose = check_finite("basal_glucose", basal_glucose)
        if basal_glucose <= 0.0:
            raise InvalidInputError(f"basal_glucose must be > 0, got {basal_glucose}")
        meal = check_meal(meal)

        times = step_times(start_time, end_time, interval)
        glucose, insulin, self.key = measured_trajectory(
            self.key, jnp.asarray(times, dtype=jnp.float32), basal_glucose, meal, self.config
        )
        glucose = np.asarray(glucose, dtype=np.float64)
        insulin = np.asarray(insulin, dtype=np.float64)

        logger.debug(f"Generated {len(times)} synthetic samples over [{start_time}, {end_time}] min")
        return [
            GlucoseDataPoint(time=float(t), glucose=float(g), insulin=float(i), insulin_effect=0.0)
            for t, g, i in zip(times, glucose, insulin)
        ]


def generate_measured(
    start_time: float,
    end_time: float,
    interval: float,
    basal_glucose: float,
    meal: Optional[MealData] = None,
    key: KeyLike = None,
    config: Optional[MeasurementConfig] = None,
) -> List[GlucoseDataPoint]:
    """Functional form of SyntheticMeasurementGenerator(key, config).generate(...)."""
    return SyntheticMeasurementGenerator(key, config).generate(start_time, end_time, interval, basal_glucose, meal)
