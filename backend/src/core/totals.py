"""Daily Totals - Pure reductions over a day's log.

All functions are pure: same input always produces same output, no side effects.
Optional nutrients that were never recorded count as zero.
"""

from .models import DailyLog, FoodItem, MacroTotals, MicronutrientTotals


MANUAL_SOURCE = "manual"
HEALTHKIT_SOURCE = "HealthKit"


def all_food_items(log: DailyLog) -> list[FoodItem]:
    """Flatten every meal of a log into one list of food items."""
    return [item for meal in log.meals for item in meal.food_items]


def food_item_count(log: DailyLog) -> int:
    return sum(len(meal.food_items) for meal in log.meals)


def total_calories(log: DailyLog) -> float:
    """Sum of calories across all meals."""
    return sum(item.calories for item in all_food_items(log))


def total_macros(log: DailyLog) -> MacroTotals:
    """Sum protein, fat and carbohydrate grams across all meals.

    Args:
        log: The daily log to reduce

    Returns:
        MacroTotals with gram sums
    """
    items = all_food_items(log)
    return MacroTotals(
        protein=sum(i.protein for i in items),
        fats=sum(i.fats for i in items),
        carbs=sum(i.carbs for i in items),
    )


def total_micronutrients(log: DailyLog) -> MicronutrientTotals:
    """Sum each tracked micronutrient across all meals.

    Args:
        log: The daily log to reduce

    Returns:
        MicronutrientTotals where missing values contributed 0
    """
    items = all_food_items(log)
    return MicronutrientTotals(
        calcium=sum(i.calcium or 0 for i in items),
        iron=sum(i.iron or 0 for i in items),
        potassium=sum(i.potassium or 0 for i in items),
        sodium=sum(i.sodium or 0 for i in items),
        vitamin_a=sum(i.vitamin_a or 0 for i in items),
        vitamin_c=sum(i.vitamin_c or 0 for i in items),
        vitamin_d=sum(i.vitamin_d or 0 for i in items),
    )


def total_fiber(log: DailyLog) -> float:
    return sum(i.fiber or 0 for i in all_food_items(log))


def total_saturated_fat(log: DailyLog) -> float:
    return sum(i.saturated_fat or 0 for i in all_food_items(log))


def total_polyunsaturated_fat(log: DailyLog) -> float:
    return sum(i.polyunsaturated_fat or 0 for i in all_food_items(log))


def total_monounsaturated_fat(log: DailyLog) -> float:
    return sum(i.monounsaturated_fat or 0 for i in all_food_items(log))


def calories_burned_manual(log: DailyLog) -> float:
    """Calories burned by exercises the user entered by hand."""
    return sum(e.calories_burned for e in log.exercises or [] if e.source == MANUAL_SOURCE)


def calories_burned_synced(log: DailyLog) -> float:
    """Calories burned by workouts synced from any external source."""
    return sum(e.calories_burned for e in log.exercises or [] if e.source != MANUAL_SOURCE)


def calculate_calories_from_macros(protein: float, carbs: float, fat: float) -> float:
    """Calculate calories from macronutrients.

    Uses standard conversion: 4 cal/g protein, 4 cal/g carbs, 9 cal/g fat.

    Args:
        protein: Grams of protein
        carbs: Grams of carbohydrates
        fat: Grams of fat

    Returns:
        Calories (unrounded)
    """
    return protein * 4 + carbs * 4 + fat * 9
