import dataclasses
import logging
import os
from typing import Dict, Optional, Tuple

import pandas as pd

from ..core.params import (
    ModelParameters,
    MeasurementConfig,
    GLUCOSE_BOUNDS,
    DEFAULT_START_TIME,
    DEFAULT_END_TIME,
    DEFAULT_MEAL_TIME,
    DEFAULT_MEAL_CARBS,
    MEASURED_INTERVAL_MIN,
    PREDICTED_TIME_STEP_MIN,
)
from ..core.types import GlucoseDataPoint, MealData
from ..sim.realism import KeyLike
from ..sim.sensor import SyntheticMeasurementGenerator
from ..sim.simulate import GlucoseInsulinModel

logger = logging.getLogger(__name__)

# Vertical headroom around the data, as a fraction of the glucose span
_GLUCOSE_PADDING_FRAC = 0.1

FRAME_COLUMNS = ["series", "time", "glucose", "insulin", "insulin_effect"]


@dataclasses.dataclass(frozen=True)
class ChartDataset:
    """Measured and predicted series for one meal, as handed to a charting consumer."""
    measured_data: Tuple[GlucoseDataPoint, ...]
    predicted_data: Tuple[GlucoseDataPoint, ...]
    meal_time: Optional[float] = None

    def axis_bounds(self) -> Dict[str, float]:
        """
        Plot extents covering both series.

        Time spans the earliest to latest sample. Glucose spans the data padded
        by 10% of its range on each side, clamped to the glucose bounds.
        """
        points = self.measured_data + self.predicted_data
        if not points:
            return {
                "time_min": DEFAULT_START_TIME,
                "time_max": DEFAULT_END_TIME,
                "glucose_min": GLUCOSE_BOUNDS[0],
                "glucose_max": GLUCOSE_BOUNDS[1],
            }

        times = [p.time for p in points]
        glucose = [p.glucose for p in points]
        lo, hi = min(glucose), max(glucose)
        pad = (hi - lo) * _GLUCOSE_PADDING_FRAC
        return {
            "time_min": min(times),
            "time_max": max(times),
            "glucose_min": min(max(lo - pad, GLUCOSE_BOUNDS[0]), GLUCOSE_BOUNDS[1]),
            "glucose_max": min(max(hi + pad, GLUCOSE_BOUNDS[0]), GLUCOSE_BOUNDS[1]),
        }

    def to_frame(self) -> pd.DataFrame:
        """Long-format table, one row per sample, tagged 'measured' or 'predicted'."""
        rows = [("measured",) + tuple(p) for p in self.measured_data]
        rows += [("predicted",) + tuple(p) for p in self.predicted_data]
        df = pd.DataFrame(rows, columns=FRAME_COLUMNS)
        df.attrs["meal_time"] = self.meal_time
        return df

    def to_csv(self, csv_path: str) -> pd.DataFrame:
        df = self.to_frame()
        parent = os.path.dirname(csv_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        df.to_csv(csv_path, index=False)
        logger.info(f"CSV data saved to {csv_path} ({len(df)} rows)")
        return df


def generate_chart_dataset(
    start_time: float = DEFAULT_START_TIME,
    end_time: float = DEFAULT_END_TIME,
    meal_time: float = DEFAULT_MEAL_TIME,
    meal_carbs: float = DEFAULT_MEAL_CARBS,
    parameters: Optional[ModelParameters] = None,
    key: KeyLike = None,
    config: Optional[MeasurementConfig] = None,
    generator: Optional[SyntheticMeasurementGenerator] = None,
) -> ChartDataset:
    """
    Measured (5 min sampling) and predicted (1 min Euler step) series for one meal.

    Pass `generator` to keep drawing from an existing PRNG stream; otherwise one
    is built from `key` and `config`.
    """
    params = parameters if parameters is not None else ModelParameters()
    meal = MealData(time=meal_time, carbs_g=meal_carbs)
    if generator is None:
        generator = SyntheticMeasurementGenerator(key, config)

    measured = generator.generate(
        start_time=start_time,
        end_time=end_time,
        interval=MEASURED_INTERVAL_MIN,
        basal_glucose=params.G_b,
        meal=meal,
    )
    predicted = GlucoseInsulinModel(params).simulate(
        start_time=start_time,
        end_time=end_time,
        time_step=PREDICTED_TIME_STEP_MIN,
        meal=meal,
    )

    logger.info(
        f"Built chart dataset over [{start_time}, {end_time}] min, meal {meal_carbs} g at t={meal_time}: "
        f"{len(measured)} measured, {len(predicted)} predicted samples"
    )
    return ChartDataset(measured_data=tuple(measured), predicted_data=tuple(predicted), meal_time=float(meal_time))
