import math
from typing import Optional

from ..core.types import MealData


class InvalidInputError(ValueError):
    """Raised when a simulation or generation entry point receives unusable arguments."""


def check_finite(name: str, value: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"{name} must be a real number, got {value!r}") from e
    if not math.isfinite(value):
        raise InvalidInputError(f"{name} must be finite, got {value}")
    return value


def check_window(start_time: float, end_time: float, step: float, step_name: str = "time_step"):
    """
    Validate a [start_time, end_time] window sampled every `step` minutes.
    Returns the three values as floats.
    """
    start_time = check_finite("start_time", start_time)
    end_time = check_finite("end_time", end_time)
    step = check_finite(step_name, step)
    if step <= 0.0:
        raise InvalidInputError(f"{step_name} must be > 0, got {step}")
    if end_time < start_time:
        raise InvalidInputError(f"end_time ({end_time}) must be >= start_time ({start_time})")
    return start_time, end_time, step


def check_meal(meal: Optional[MealData]) -> Optional[MealData]:
    if meal is None:
        return None
    time = check_finite("meal.time", meal.time)
    carbs_g = check_finite("meal.carbs_g", meal.carbs_g)
    if carbs_g < 0.0:
        raise InvalidInputError(f"meal.carbs_g must be >= 0, got {carbs_g}")
    return MealData(time=time, carbs_g=carbs_g)
