import jax.numpy as jnp
import pytest

from glucoloop.bergman.analysis.run_meal import main
from glucoloop.bergman.core.errors import InvalidInputError
from glucoloop.bergman.core.params import ModelParameters, create_model_parameters
from glucoloop.bergman.core.types import GlucoseDataPoint
from glucoloop.bergman.evaluation.metrics import (
    glucose_trace,
    glucose_variability_metrics,
    paired_rmse,
    peak_excursion,
    time_in_range,
)


def _series(values, start=0.0, step=5.0):
    return [GlucoseDataPoint(start + i * step, v, 10.0, 0.0) for i, v in enumerate(values)]


def test_time_in_range():
    trace = jnp.array([60.0, 70.0, 120.0, 180.0, 250.0])
    assert float(time_in_range(trace)) == pytest.approx(0.6)


def test_variability_metrics():
    sd, cv, mag = glucose_variability_metrics(jnp.array([100.0, 110.0, 100.0, 110.0]), dt=5.0)
    assert float(sd) == pytest.approx(5.0, rel=1e-4)
    assert float(cv) == pytest.approx(100.0 * 5.0 / 105.0, rel=1e-4)
    assert float(mag) == pytest.approx(2.0, rel=1e-4)


def test_peak_excursion():
    assert peak_excursion(_series([90.0, 150.0, 120.0])) == (5.0, 150.0)
    with pytest.raises(InvalidInputError):
        peak_excursion([])


def test_glucose_trace():
    assert glucose_trace(_series([1.0, 2.0])).shape == (2,)


def test_paired_rmse_matches_on_shared_times():
    measured = _series([100.0, 110.0, 120.0])
    predicted = _series([100.0, 100.0, 100.0, 100.0, 120.0], step=2.5)
    # shared instants 0, 5, 10 -> errors 0, 10, 0
    assert paired_rmse(measured, predicted) == pytest.approx((100.0 / 3.0) ** 0.5)


def test_paired_rmse_without_overlap():
    with pytest.raises(InvalidInputError):
        paired_rmse(_series([100.0]), _series([100.0], start=1.0))
    with pytest.raises(InvalidInputError):
        paired_rmse([], _series([100.0]))


def test_create_model_parameters():
    assert create_model_parameters() == ModelParameters()
    params = create_model_parameters(S_I=8e-5, G_b="100")
    assert params.S_I == 8e-5
    assert params.G_b == 100.0
    assert params.I_b == 10.0


def test_create_model_parameters_rejects_bad_values():
    with pytest.raises(InvalidInputError):
        create_model_parameters(bogus=1.0)
    with pytest.raises(InvalidInputError):
        create_model_parameters(n=float("inf"))


def test_cli_writes_csv(tmp_path):
    dataset = main([
        "--output-dir", str(tmp_path),
        "--carbs", "60",
        "--param", "S_I=8e-5",
        "--physiology-only",
    ])
    assert dataset.meal_time == 0.0
    assert (tmp_path / "meal_60g_t0.csv").exists()
