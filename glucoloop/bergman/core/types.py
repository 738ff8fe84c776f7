from typing import NamedTuple

# --------------------------
# State vector (3 states)
# 0 G (plasma glucose, mg/dL)
# 1 X (remote insulin effect, unitless)
# 2 I (plasma insulin, uU/mL)
# --------------------------
G_IDX = 0
X_IDX = 1
I_IDX = 2


# A single carbohydrate intake; time is minutes relative to simulation start (may be negative)
class MealData(NamedTuple):
    time: float
    carbs_g: float


# One reported sample of a series, glucose mg/dL, insulin uU/mL, insulin_effect is X
class GlucoseDataPoint(NamedTuple):
    time: float
    glucose: float
    insulin: float
    insulin_effect: float
