from glucoloop.bergman.core.errors import InvalidInputError
from glucoloop.bergman.core.params import ModelParameters, MeasurementConfig, create_model_parameters
from glucoloop.bergman.core.types import GlucoseDataPoint, MealData
from glucoloop.bergman.sim.dataset import ChartDataset, generate_chart_dataset
from glucoloop.bergman.sim.sensor import SyntheticMeasurementGenerator, generate_measured
from glucoloop.bergman.sim.simulate import GlucoseInsulinModel, simulate

__all__ = [
    "ChartDataset",
    "GlucoseDataPoint",
    "GlucoseInsulinModel",
    "InvalidInputError",
    "MealData",
    "MeasurementConfig",
    "ModelParameters",
    "SyntheticMeasurementGenerator",
    "create_model_parameters",
    "generate_chart_dataset",
    "generate_measured",
    "simulate",
]
