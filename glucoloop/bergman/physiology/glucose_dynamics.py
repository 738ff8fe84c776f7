from typing import Optional

from jax import jit
import jax.numpy as jnp

from ..core.params import (
    ModelParameters,
    GLUCOSE_BOUNDS,
    INSULIN_BOUNDS,
    INSULIN_EFFECT_BOUNDS,
    ABSORPTION_FRACTION,
    BIOAVAILABILITY,
    DISTRIBUTION_VOLUME,
    ABSORPTION_WINDOW_MIN,
    SECRETION_GAIN,
)
from ..core.types import MealData, G_IDX, X_IDX, I_IDX


def rate_of_appearance(t, meal: Optional[MealData]) -> jnp.ndarray:
    """
    Glucose appearance from the meal [mg/dL/min].

    Rectangular profile: constant over [onset, onset + 30] min, zero elsewhere.
    The whole absorbed load f * D * Abs / V is spread evenly over the window.
    """
    if meal is None:
        return jnp.asarray(0.0)

    since_meal = t - meal.time
    rate = (ABSORPTION_FRACTION * meal.carbs_g * BIOAVAILABILITY) / (DISTRIBUTION_VOLUME * ABSORPTION_WINDOW_MIN)
    outside = (since_meal < 0.0) | (since_meal > ABSORPTION_WINDOW_MIN)
    return jnp.where(outside, 0.0, rate)


def insulin_secretion(G, G_b) -> jnp.ndarray:
    """Endogenous secretion phi(G - G_b) [uU/mL/min], linear above basal and zero at or below it."""
    return jnp.where(G <= G_b, 0.0, SECRETION_GAIN * (G - G_b))


@jit
def bergman_minimal(
    x: jnp.ndarray,             # [G mg/dL, X -, I uU/mL]
    ra: jnp.ndarray,            # mg/dL/min
    params: ModelParameters,
) -> jnp.ndarray:
    """
    Simplified Bergman minimal model vector field.

      dG/dt = -S_I * X * (G - G_b) + Ra - E_G * (G - G_b)
      dX/dt = -p2 * X + p3 * (I - I_b)
      dI/dt = -n * (I - I_b) + phi(G - G_b)

    At G = G_b, X = 0, I = I_b with no meal every derivative is zero.
    """
    G, X, I = x[G_IDX], x[X_IDX], x[I_IDX]
    dG = -params.S_I * X * (G - params.G_b) + ra - params.E_G * (G - params.G_b)
    dX = -params.p2 * X + params.p3 * (I - params.I_b)
    dI = -params.n * (I - params.I_b) + insulin_secretion(G, params.G_b)
    return jnp.stack([dG, dX, dI])


def clamp_state(x: jnp.ndarray) -> jnp.ndarray:
    """Keep G, X, I inside the safety-net bounds so large steps cannot blow up."""
    lo = jnp.array([GLUCOSE_BOUNDS[0], INSULIN_EFFECT_BOUNDS[0], INSULIN_BOUNDS[0]], dtype=x.dtype)
    hi = jnp.array([GLUCOSE_BOUNDS[1], INSULIN_EFFECT_BOUNDS[1], INSULIN_BOUNDS[1]], dtype=x.dtype)
    return jnp.clip(x, lo, hi)


@jit
def euler_step(
    x: jnp.ndarray,
    t: jnp.ndarray,             # min, evaluation time of Ra
    dt: float,                  # min
    params: ModelParameters,
    meal: Optional[MealData],
) -> jnp.ndarray:
    """One forward Euler step followed by clamping."""
    ra = rate_of_appearance(t, meal)
    dxdt = bergman_minimal(x, ra, params)
    return clamp_state(x + dt * dxdt)


def basal_state(params: ModelParameters) -> jnp.ndarray:
    """Equilibrium initial state: G = G_b, X = 0, I = I_b."""
    return jnp.array([params.G_b, 0.0, params.I_b], dtype=jnp.float32)
