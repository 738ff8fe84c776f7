import logging
import math
from typing import List, Optional, Tuple

import jax.numpy as jnp
import numpy as np
from jax import jit, lax

from ..core.errors import check_window, check_meal
from ..core.params import ModelParameters, REPORT_INTERVAL_MIN, validate_model_parameters
from ..core.types import GlucoseDataPoint, MealData, G_IDX, X_IDX, I_IDX
from ..physiology.glucose_dynamics import (
    basal_state,
    euler_step,
    insulin_secretion,
    rate_of_appearance,
)

logger = logging.getLogger(__name__)

# Absorbs float error in (end - start) / step so an exact endpoint is not dropped
_WINDOW_EPS = 1e-9


def step_times(start_time: float, end_time: float, step: float) -> np.ndarray:
    """Times start + k * step for every k with start + k * step <= end (no accumulation)."""
    n_steps = int(math.floor((end_time - start_time) / step + _WINDOW_EPS)) + 1
    return start_time + np.arange(n_steps, dtype=np.float64) * step


def report_mask(n_steps: int, step: float, cadence: float = REPORT_INTERVAL_MIN) -> np.ndarray:
    """
    Mark the steps that are reported when decimating to `cadence` minutes.

    Step k is kept when its elapsed time k * step is the first to reach the next
    multiple of `cadence`. Counting buckets from the integer step index keeps the
    density of a `(t - start) % cadence < step` rule without depending on how
    the running time rounds.
    """
    elapsed = np.arange(n_steps, dtype=np.float64) * step
    buckets = np.floor(elapsed / cadence + _WINDOW_EPS).astype(np.int64)
    mask = np.ones(n_steps, dtype=bool)
    mask[1:] = buckets[1:] != buckets[:-1]
    return mask


@jit
def _rollout(x0: jnp.ndarray, times: jnp.ndarray, dt: float, params: ModelParameters, meal: Optional[MealData]) -> jnp.ndarray:
    """Integrate over `times`; row k is the state after the step evaluated at times[k]."""
    def body(x, t):
        x_next = euler_step(x, t, dt, params, meal)
        return x_next, x_next

    _, states = lax.scan(body, x0, times)
    return states


class GlucoseInsulinModel:
    """
    Single-meal glucose/insulin model integrated with fixed-step explicit Euler.

    Holds only its parameters; every call is a pure function of its arguments,
    so one instance can be shared between threads.
    """

    def __init__(self, parameters: Optional[ModelParameters] = None):
        self.parameters = validate_model_parameters(parameters if parameters is not None else ModelParameters())

    def rate_of_appearance(self, t: float, meal: Optional[MealData] = None) -> float:
        return float(rate_of_appearance(t, meal))

    def insulin_secretion(self, glucose: float, basal_glucose: Optional[float] = None) -> float:
        if basal_glucose is None:
            basal_glucose = self.parameters.G_b
        return float(insulin_secretion(glucose, basal_glucose))

    def trajectory(
        self,
        start_time: float,
        end_time: float,
        time_step: float,
        meal: Optional[MealData] = None,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Full-resolution integration without decimation.

        Returns:
            times: (N,) minutes
            states: (N, 3) columns G, X, I
        """
        start_time, end_time, time_step = check_window(start_time, end_time, time_step)
        meal = check_meal(meal)

        times = step_times(start_time, end_time, time_step)
        x0 = basal_state(self.parameters)
        states = _rollout(x0, jnp.asarray(times, dtype=jnp.float32), time_step, self.parameters, meal)
        return times, np.asarray(states, dtype=np.float64)

    def simulate(
        self,
        start_time: float,
        end_time: float,
        time_step: float,
        meal: Optional[MealData] = None,
    ) -> List[GlucoseDataPoint]:
        """
        Predicted series reported roughly every 5 minutes, ascending in time.

        Raises:
            InvalidInputError: non-positive step, inverted window, negative carbs
                or non-finite inputs
        """
        logger.debug(f"Simulating [{start_time}, {end_time}] min with dt={time_step} min, meal={meal}")
        times, states = self.trajectory(start_time, end_time, time_step, meal)
        keep = report_mask(len(times), time_step)

        points = [
            GlucoseDataPoint(
                time=float(t),
                glucose=float(x[G_IDX]),
                insulin=float(x[I_IDX]),
                insulin_effect=float(x[X_IDX]),
            )
            for t, x in zip(times[keep], states[keep])
        ]
        logger.debug(f"Integrated {len(times)} steps, reported {len(points)} samples")
        return points


def simulate(
    parameters: Optional[ModelParameters],
    start_time: float,
    end_time: float,
    time_step: float,
    meal: Optional[MealData] = None,
) -> List[GlucoseDataPoint]:
    """Functional form of GlucoseInsulinModel(parameters).simulate(...)."""
    return GlucoseInsulinModel(parameters).simulate(start_time, end_time, time_step, meal)
