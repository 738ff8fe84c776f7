from typing import NamedTuple, Tuple

import dataclasses
import logging

from ..core.errors import InvalidInputError, check_finite

logger = logging.getLogger(__name__)

# Safety-net clamps applied to derived state (not physiological limits)
GLUCOSE_BOUNDS: Tuple[float, float] = (40.0, 400.0)        # mg/dL
INSULIN_BOUNDS: Tuple[float, float] = (0.0, 100.0)         # uU/mL
INSULIN_EFFECT_BOUNDS: Tuple[float, float] = (-10.0, 10.0) # unitless

# Reporting cadence of the predicted series, independent of the integration step
REPORT_INTERVAL_MIN = 5.0

# Meal appearance: uniform over a fixed window after onset
ABSORPTION_FRACTION = 0.8      # -
BIOAVAILABILITY = 0.9          # -
DISTRIBUTION_VOLUME = 1.5      # dL/kg
ABSORPTION_WINDOW_MIN = 30.0   # min

# Endogenous secretion, uU/mL per min per mg/dL above basal
SECRETION_GAIN = 0.01

# Chart dataset defaults
DEFAULT_START_TIME = -30.0     # min
DEFAULT_END_TIME = 180.0       # min
DEFAULT_MEAL_TIME = 0.0        # min
DEFAULT_MEAL_CARBS = 50.0      # g
MEASURED_INTERVAL_MIN = 5.0    # CGM-like sampling
PREDICTED_TIME_STEP_MIN = 1.0  # Euler step


class ModelParameters(NamedTuple):
    """
    Simplified Bergman minimal model parameters.

    A NamedTuple rather than a dataclass so it is a pytree and can be handed
    to jitted code as-is.

      G_b  [mg/dL]               basal glucose
      I_b  [uU/mL]               basal insulin
      S_I  [1/min per uU/mL]     insulin sensitivity
      E_G  [1/min]               glucose effectiveness
      p2   [1/min]               remote effect decay
      p3   [1/min per uU/mL]     remote effect gain
      n    [1/min]               insulin clearance
    """
    G_b: float = 90.0
    I_b: float = 10.0
    S_I: float = 0.00005
    E_G: float = 0.01
    p2: float = 0.025
    p3: float = 0.000013
    n: float = 0.3


def create_model_parameters(**overrides) -> ModelParameters:
    """
    Build ModelParameters from the defaults plus keyword overrides.

    Raises:
        InvalidInputError: unknown parameter name or non-finite value
    """
    unknown = [name for name in overrides if name not in ModelParameters._fields]
    if unknown:
        raise InvalidInputError(f"Unknown model parameters: {unknown}. Valid names: {list(ModelParameters._fields)}")

    params = ModelParameters(**{name: check_finite(name, value) for name, value in overrides.items()})
    if overrides:
        logger.info(f"Applied {len(overrides)} parameter overrides: {list(overrides.keys())}")
    return params


def validate_model_parameters(params: ModelParameters) -> ModelParameters:
    """Return params with every field coerced to a finite float."""
    return ModelParameters(*(check_finite(name, value) for name, value in zip(params._fields, params)))


@dataclasses.dataclass(frozen=True)
class MeasurementConfig:
    # Postprandial rise (Gaussian bump centred after onset)
    rise_window_min: float = 120.0      # min after onset the bump formula applies
    peak_offset_min: float = 60.0       # min after onset
    peak_spread_min: float = 40.0       # min, denominator inside the exponent
    carb_gain_mgdl_per_g: float = 2.0   # mg/dL per g carbohydrate

    # Return to basal after the rise window
    decay_tau_min: float = 60.0

    # Measurement noise, uniform in +-noise_amplitude_mgdl / 2
    noise_amplitude_mgdl: float = 5.0

    # Display-only insulin channel, uniform in [base, base + span)
    insulin_base: float = 10.0
    insulin_span: float = 5.0

    enable: bool = True


def deterministic_config(cfg: MeasurementConfig) -> MeasurementConfig:
    """Disable all measurement noise so the synthetic curve is its expected value."""
    return dataclasses.replace(cfg, enable=False)
