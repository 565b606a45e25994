"""Goal Derivation - Calorie, macro and micronutrient targets from a profile.

All functions are pure. Calorie targets use the Mifflin-St Jeor BMR; micronutrient
targets follow the adult and child RDA tables by age and gender.
"""

from typing import Optional

from .models import CalorieGoalMethod, GoalSettings, PrimaryGoal


LB_TO_KG = 0.453592
FALLBACK_BMR = 1500.0
GOAL_ADJUSTMENT = {PrimaryGoal.LOSE: -500.0, PrimaryGoal.MAINTAIN: 0.0, PrimaryGoal.GAIN: 500.0}
MIN_CALORIES_MALE = 1500.0
MIN_CALORIES_OTHER = 1200.0

DEFAULT_SPLIT = (30.0, 50.0, 20.0)
DEFAULT_MACRO_GRAMS = (150.0, 250.0, 70.0)
SODIUM_LIMIT_MG = 2300.0

PROFILE_FIELDS = ("goal", "weight", "height", "age", "gender", "activity_level", "calorie_goal_method")
SPLIT_FIELDS = ("protein_percentage", "carbs_percentage", "fats_percentage")


def _is_male(gender: str) -> bool:
    return gender.lower() == "male"


def _is_female(gender: str) -> bool:
    return gender.lower() == "female"


def calculate_bmr(weight_lb: float, height_cm: float, age: int, gender: str) -> float:
    """Mifflin-St Jeor basal metabolic rate in kcal/day.

    Args:
        weight_lb: Body weight in pounds
        height_cm: Height in centimeters
        age: Age in years; 0 or less gives the fallback BMR
        gender: "Male" uses the +5 constant, anything else -161

    Returns:
        BMR in kcal
    """
    if age <= 0:
        return FALLBACK_BMR
    base = 10 * weight_lb * LB_TO_KG + 6.25 * height_cm - 5 * age
    return base + 5 if _is_male(gender) else base - 161


def calculate_calorie_goal(goals: GoalSettings, calories_burned: float = 0.0) -> float:
    """Daily calorie target for a profile.

    The standard method scales BMR by the activity level. The dynamic method adds
    the day's workout burn to BMR instead. Lose and Gain shift the result by 500,
    and the target never drops below 1500 for men or 1200 otherwise.
    """
    bmr = calculate_bmr(goals.weight, goals.height, goals.age, goals.gender)
    if goals.calorie_goal_method == CalorieGoalMethod.DYNAMIC_TDEE:
        maintenance = bmr + calories_burned
    else:
        maintenance = bmr * goals.activity_level

    minimum = MIN_CALORIES_MALE if _is_male(goals.gender) else MIN_CALORIES_OTHER
    return max(minimum, maintenance + GOAL_ADJUSTMENT[goals.goal])


def normalize_split(protein_pct: float, carbs_pct: float, fats_pct: float) -> tuple[float, float, float]:
    """Keep a macro split that sums to 100 (within 1), else fall back to 30/50/20."""
    if abs(protein_pct + carbs_pct + fats_pct - 100.0) < 1.0:
        return protein_pct, carbs_pct, fats_pct
    return DEFAULT_SPLIT


def macro_grams(
    calories: Optional[float], protein_pct: float, carbs_pct: float, fats_pct: float
) -> tuple[float, float, float]:
    """Split a calorie target into (protein, carbs, fats) grams at 4/4/9 kcal per gram."""
    if not calories or calories <= 0:
        return DEFAULT_MACRO_GRAMS
    protein_pct, carbs_pct, fats_pct = normalize_split(protein_pct, carbs_pct, fats_pct)
    return (
        protein_pct / 100 * calories / 4,
        carbs_pct / 100 * calories / 4,
        fats_pct / 100 * calories / 9,
    )


def _calcium(age: int, female: bool) -> float:
    if age <= 3:
        return 700
    if age <= 8:
        return 1000
    if age <= 18:
        return 1300
    if age <= 50:
        return 1000
    if age <= 70:
        return 1200 if female else 1000
    return 1200


def _iron(age: int, female: bool) -> float:
    if age <= 3:
        return 7
    if age <= 8:
        return 10
    if age <= 13:
        return 8
    if age <= 18:
        return 15 if female else 11
    if age <= 50:
        return 18 if female else 8
    return 8


def _potassium(age: int, female: bool) -> float:
    if age <= 3:
        return 2000
    if age <= 8:
        return 2300
    if age <= 13:
        return 2300 if female else 2500
    if age <= 18:
        return 2300 if female else 3000
    return 2600 if female else 3400


def _vitamin_a(age: int, female: bool) -> float:
    if age <= 3:
        return 300
    if age <= 8:
        return 400
    if age <= 13:
        return 600
    return 700 if female else 900


def _vitamin_c(age: int, female: bool) -> float:
    if age <= 3:
        return 15
    if age <= 8:
        return 25
    if age <= 13:
        return 45
    if age <= 18:
        return 65 if female else 75
    return 75 if female else 90


def micronutrient_goals(age: int, gender: str) -> dict[str, float]:
    """Daily micronutrient targets keyed by GoalSettings field name.

    Calcium, iron, potassium and sodium are in mg, vitamin A in mcg RAE,
    vitamin C in mg and vitamin D in mcg. Sodium is the 2300 mg upper limit.
    """
    female = _is_female(gender)
    return {
        "calcium_goal": _calcium(age, female),
        "iron_goal": _iron(age, female),
        "potassium_goal": _potassium(age, female),
        "sodium_goal": SODIUM_LIMIT_MG,
        "vitamin_a_goal": _vitamin_a(age, female),
        "vitamin_c_goal": _vitamin_c(age, female),
        "vitamin_d_goal": 20 if age > 70 else 15,
    }


def merge_goals(
    current: Optional[GoalSettings], updates: dict, calories_burned: float = 0.0
) -> GoalSettings:
    """Apply user edits to saved goals and fill in the derived targets.

    Calories are recomputed when a profile field changes or none is set, unless
    the edit names a calorie target itself. Macro grams follow the calorie target
    and split. Micronutrient targets are filled when missing and recomputed when
    age or gender change. Any target named in the edit is kept as given; a split
    that does not sum to 100 is replaced by 30/50/20.

    Args:
        current: Saved goals, or None for a new user
        updates: Field values the user supplied
        calories_burned: Today's workout burn, used by the dynamic method

    Returns:
        The merged goals

    Raises:
        pydantic.ValidationError: If an edited value is invalid
    """
    base = current.model_dump(exclude={"updated_at"}) if current else {}
    goals = GoalSettings.model_validate({**base, **updates})
    is_new = current is None

    derived: dict = {}
    calories = goals.calories
    if "calories" not in updates and (
        is_new or calories is None or any(f in updates for f in PROFILE_FIELDS)
    ):
        calories = calculate_calorie_goal(goals, calories_burned)
        derived["calories"] = calories

    if is_new or "calories" in derived or "calories" in updates or any(f in updates for f in SPLIT_FIELDS):
        split = normalize_split(goals.protein_percentage, goals.carbs_percentage, goals.fats_percentage)
        protein, carbs, fats = macro_grams(calories, *split)
        derived.update(
            protein=protein,
            carbs=carbs,
            fats=fats,
            protein_percentage=split[0],
            carbs_percentage=split[1],
            fats_percentage=split[2],
        )

    refresh_micros = is_new or "age" in updates or "gender" in updates
    for field, value in micronutrient_goals(goals.age, goals.gender).items():
        if refresh_micros or getattr(goals, field) is None:
            derived[field] = value

    kept = {k: v for k, v in derived.items() if k not in updates or k in SPLIT_FIELDS}
    return goals.model_copy(update=kept)
