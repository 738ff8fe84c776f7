import math

import jax
import pytest

from glucoloop.bergman.core.errors import InvalidInputError
from glucoloop.bergman.core.params import MeasurementConfig, deterministic_config
from glucoloop.bergman.core.types import MealData
from glucoloop.bergman.sim.sensor import SyntheticMeasurementGenerator, generate_measured

BASAL = 90.0
MEAL = MealData(time=0.0, carbs_g=50.0)
QUIET = deterministic_config(MeasurementConfig())


def _quiet_series(interval=5.0, meal=MEAL, start=-30.0, end=180.0):
    return SyntheticMeasurementGenerator(0, QUIET).generate(start, end, interval, BASAL, meal)


def test_sample_times_and_count():
    points = generate_measured(-30.0, 180.0, 5.0, BASAL, MEAL, key=1)
    assert len(points) == 43
    assert [p.time for p in points] == [-30.0 + 5.0 * k for k in range(43)]


def test_meal_raises_glucose_within_first_hour():
    points = generate_measured(-30.0, 180.0, 5.0, BASAL, MEAL, key=3)
    assert any(p.glucose > BASAL for p in points if 30.0 <= p.time <= 60.0)


def test_peak_at_sixty_minutes_without_noise():
    points = _quiet_series()
    peak = max(points, key=lambda p: p.glucose)
    assert peak.time == 60.0
    assert peak.glucose == pytest.approx(BASAL + BASAL + 2.0 * MEAL.carbs_g, rel=1e-5)


def test_gaussian_rise_without_noise():
    points = {p.time: p.glucose for p in _quiet_series()}
    peak = BASAL + 2.0 * MEAL.carbs_g
    expected = BASAL + peak * math.exp(-(((20.0 - 60.0) / 40.0) ** 2))
    assert points[20.0] == pytest.approx(expected, rel=1e-5)


def test_flat_before_meal_without_noise():
    for p in _quiet_series():
        if p.time < 0.0:
            assert p.glucose == BASAL


def test_cascading_decay_after_rise_window():
    points = {p.time: p.glucose for p in _quiet_series()}
    at_120 = points[120.0]
    at_125 = BASAL + (at_120 - BASAL) * math.exp(-5.0 / 60.0)
    at_130 = BASAL + (at_125 - BASAL) * math.exp(-10.0 / 60.0)
    assert points[125.0] == pytest.approx(at_125, rel=1e-5)
    assert points[130.0] == pytest.approx(at_130, rel=1e-5)
    # compounding makes it fall faster than a single closed-form decay from t=120
    closed_form = BASAL + (at_120 - BASAL) * math.exp(-10.0 / 60.0)
    assert points[130.0] < closed_form


def test_decay_shape_depends_on_interval():
    coarse = {p.time: p.glucose for p in _quiet_series(interval=10.0)}
    fine = {p.time: p.glucose for p in _quiet_series(interval=5.0)}
    assert coarse[140.0] != pytest.approx(fine[140.0], rel=1e-6)


def test_no_meal_without_noise_is_basal():
    points = _quiet_series(meal=None)
    assert all(p.glucose == BASAL for p in points)


def test_noise_bounded():
    points = generate_measured(-30.0, 180.0, 5.0, BASAL, None, key=7)
    # noise accumulates on the carried value, each step moves at most 2.5 mg/dL
    prev = BASAL
    for p in points:
        assert abs(p.glucose - prev) <= 2.5 + 1e-4
        prev = p.glucose


def test_insulin_and_effect_channels():
    points = generate_measured(-30.0, 180.0, 5.0, BASAL, MEAL, key=11)
    assert all(10.0 <= p.insulin < 15.0 + 1e-5 for p in points)
    assert all(p.insulin_effect == 0.0 for p in points)
    assert all(p.insulin == 10.0 for p in _quiet_series())


def test_glucose_clamped():
    points = generate_measured(-30.0, 180.0, 5.0, BASAL, MealData(time=0.0, carbs_g=500.0), key=5)
    assert all(40.0 <= p.glucose <= 400.0 for p in points)
    assert max(p.glucose for p in points) == 400.0


def test_same_seed_reproducible():
    a = generate_measured(-30.0, 180.0, 5.0, BASAL, MEAL, key=42)
    b = generate_measured(-30.0, 180.0, 5.0, BASAL, MEAL, key=jax.random.PRNGKey(42))
    assert a == b


def test_generator_advances_key_between_calls():
    gen = SyntheticMeasurementGenerator(42)
    first = gen.generate(-30.0, 180.0, 5.0, BASAL, MEAL)
    second = gen.generate(-30.0, 180.0, 5.0, BASAL, MEAL)
    assert first != second

    replay = SyntheticMeasurementGenerator(42)
    assert replay.generate(-30.0, 180.0, 5.0, BASAL, MEAL) == first
    assert replay.generate(-30.0, 180.0, 5.0, BASAL, MEAL) == second


@pytest.mark.parametrize(
    "args",
    [
        (0.0, 10.0, 0.0, BASAL),
        (0.0, 10.0, -5.0, BASAL),
        (10.0, 0.0, 5.0, BASAL),
        (0.0, 10.0, 5.0, float("nan")),
        (0.0, 10.0, 5.0, 0.0),
    ],
)
def test_rejects_bad_input(args):
    with pytest.raises(InvalidInputError):
        generate_measured(*args, key=0)


def test_rejects_negative_carbs():
    with pytest.raises(InvalidInputError):
        generate_measured(0.0, 10.0, 5.0, BASAL, MealData(time=0.0, carbs_g=-1.0), key=0)
