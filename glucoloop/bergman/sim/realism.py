from typing import Tuple, Union

import jax.numpy as jnp
import numpy as np
from jax import random

from ..core.params import MeasurementConfig

KeyLike = Union[int, jnp.ndarray]


# ============================
# Small utilities
# ============================
def _splitn(key: jnp.ndarray, n: int):
    ks = random.split(key, n + 1)
    return ks[0], list(ks[1:])


def as_key(key: KeyLike = None) -> jnp.ndarray:
    """Accept a PRNG key, an integer seed, or None (fresh OS entropy)."""
    if key is None:
        key = int(np.random.SeedSequence().generate_state(1)[0]) & 0x7FFFFFFF
    if isinstance(key, (int, np.integer)):
        return random.PRNGKey(int(key))
    return jnp.asarray(key)


# ============================
# Measurement noise
# ============================
def glucose_noise(key: jnp.ndarray, n: int, cfg: MeasurementConfig) -> jnp.ndarray:
    """Independent uniform noise in +-amplitude/2 mg/dL, zeros when noise is disabled."""
    if not cfg.enable:
        return jnp.zeros((n,), dtype=jnp.float32)
    return cfg.noise_amplitude_mgdl * random.uniform(key, shape=(n,), minval=-0.5, maxval=0.5)


def display_insulin(key: jnp.ndarray, n: int, cfg: MeasurementConfig) -> jnp.ndarray:
    """Uniform [base, base + span) insulin values with no link to glucose; base when disabled."""
    if not cfg.enable:
        return jnp.full((n,), cfg.insulin_base, dtype=jnp.float32)
    return cfg.insulin_base + cfg.insulin_span * random.uniform(key, shape=(n,))


def measurement_noise(key: jnp.ndarray, n: int, cfg: MeasurementConfig) -> Tuple[jnp.ndarray, jnp.ndarray, jnp.ndarray]:
    """
    Return (glucose_eps, insulin_values, new_key) for n sampling ticks.
    """
    key, (k_eps, k_ins) = _splitn(key, 2)
    return glucose_noise(k_eps, n, cfg), display_insulin(k_ins, n, cfg), key
