"""Insight Rules - Independent heuristics over a window of daily logs.

Each rule is a pure function ``(RuleContext) -> UserInsight | None``. A rule
that lacks the data it needs returns None; rules never raise for missing data
and never look at each other's results.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import timedelta
from statistics import pstdev
from typing import Optional

from .models import (
    DailyLog,
    GoalSettings,
    InsightCategory,
    PrimaryGoal,
    SleepSample,
    SleepState,
    UserInsight,
)
from .totals import (
    all_food_items,
    calculate_calories_from_macros,
    total_calories,
    total_fiber,
    total_macros,
    total_micronutrients,
    total_saturated_fat,
)


# --- Thresholds (heuristic constants, tunable) ---
MIN_SLEEP_SAMPLES = 4
SHORT_SLEEP_MIN_HOURS = 0.1
SHORT_SLEEP_MAX_HOURS = 6.5
BEDTIME_STDDEV_MINUTES = 75
SODIUM_OVER_GOAL = 1.15
WATER_LOW_FRACTION = 0.8
CALORIE_DEFICIT_FRACTION = 0.85
CALORIE_SURPLUS_FRACTION = 1.15
PROTEIN_LOW_FRACTION = 0.8
PROTEIN_HIGH_FRACTION = 1.5
FIBER_DAILY_GRAMS = 28.0
SAT_FAT_MAX_PERCENT = 7.0
WEEKEND_OVER_GOAL = 1.20
WEEKEND_OVER_WEEKDAY = 1.15
EXERCISE_MIN_FRACTION = 0.4
MEAL_MIN_CALORIES = 50
SYNERGY_LOW_FRACTION = 0.7
POST_WORKOUT_MIN_BURN = 200
POST_WORKOUT_WINDOW = timedelta(hours=2)
DEFAULT_WORKOUT_MINUTES = 30
CALORIE_GOAL_TOLERANCE = 0.10

SUGARY_KEYWORDS = (
    "soda",
    "candy",
    "chocolate bar",
    "cake",
    "cookies",
    "donut",
    "ice cream",
    "pastry",
    "sweet tea",
    "syrup",
)


@dataclass(frozen=True)
class RuleContext:
    """Inputs shared by every rule.

    Attributes:
        logs: Daily logs sorted ascending by date
        goals: Goal snapshot at evaluation time
        sleep_samples: Sleep intervals covering the window
        window_days: Length of the requested window in days
        days_threshold: Run length used by the streak-style calorie rules
    """

    logs: Sequence[DailyLog]
    goals: GoalSettings
    sleep_samples: Sequence[SleepSample] = field(default_factory=tuple)
    window_days: int = 7
    days_threshold: int = 3


@dataclass(frozen=True)
class InsightRule:
    """A named, independently testable insight predicate."""

    name: str
    check: Callable[[RuleContext], Optional[UserInsight]]


def _logs_with_food(logs: Sequence[DailyLog]) -> list[DailyLog]:
    return [log for log in logs if log.meals]


def _find_meal(log: DailyLog, meal_name: str):
    wanted = meal_name.lower()
    return next((m for m in log.meals if m.name.lower() == wanted), None)


# ==================== Sleep ====================


def check_sleep_duration(ctx: RuleContext) -> Optional[UserInsight]:
    """Average nightly sleep below 6.5 hours."""
    samples = ctx.sleep_samples
    if len(samples) < MIN_SLEEP_SAMPLES:
        return None
    total_asleep = sum(s.duration_seconds for s in samples if s.is_asleep)
    nights = {s.start_time.date() for s in samples}
    if not nights:
        return None

    average_hours = total_asleep / len(nights) / 3600
    if SHORT_SLEEP_MIN_HOURS < average_hours < SHORT_SLEEP_MAX_HOURS:
        return UserInsight(
            title="Prioritize Your Sleep",
            message=(
                f"Your average sleep time of {average_hours:.1f} hours is a bit low. "
                "Aiming for 7-9 hours can significantly boost energy, mood, and recovery."
            ),
            category=InsightCategory.SLEEP,
            priority=10,
        )
    return None


def check_sleep_consistency(ctx: RuleContext) -> Optional[UserInsight]:
    """Bedtimes spread by more than 75 minutes (population stddev)."""
    samples = ctx.sleep_samples
    if len(samples) < MIN_SLEEP_SAMPLES:
        return None
    bedtimes = [
        s.start_time.hour * 60 + s.start_time.minute
        for s in samples
        if s.state == SleepState.IN_BED
    ]
    if len(bedtimes) < 2:
        return None

    if pstdev(bedtimes) > BEDTIME_STDDEV_MINUTES:
        return UserInsight(
            title="Consistent Bedtime, Better Rest",
            message=(
                "Your bedtimes have varied quite a bit this week. A more regular sleep "
                "schedule, even on weekends, can improve your sleep quality."
            ),
            category=InsightCategory.SLEEP,
            priority=8,
        )
    return None


# ==================== Micronutrients & hydration ====================


def check_high_sodium(ctx: RuleContext) -> Optional[UserInsight]:
    """Average sodium on days with sodium data exceeds the goal by 15%."""
    sodium_goal = ctx.goals.sodium_goal
    if not sodium_goal or sodium_goal <= 0 or not ctx.logs:
        return None
    daily_sodium = [total_micronutrients(log).sodium for log in ctx.logs]
    days_with_sodium = [s for s in daily_sodium if s > 0]
    if len(days_with_sodium) < len(ctx.logs) // 2 or len(days_with_sodium) < 2:
        return None

    average = sum(days_with_sodium) / len(days_with_sodium)
    if average > sodium_goal * SODIUM_OVER_GOAL:
        return UserInsight(
            title="Sodium Intake Watch",
            message=(
                f"Your average sodium intake ({average:.0f}mg) has been about 15% higher "
                f"than your goal ({sodium_goal:.0f}mg). Consider checking labels on "
                "processed foods, restaurant meals, and sauces."
            ),
            category=InsightCategory.MICRO_NUTRIENT,
            priority=7,
            related_data={
                "nutrient": "Sodium",
                "average": f"{average:.0f}mg",
                "goal": f"{sodium_goal:.0f}mg",
            },
        )
    return None


def check_low_water(ctx: RuleContext) -> Optional[UserInsight]:
    """At least half (and at least two) of tracked days under 80% of the water goal."""
    trackers = [
        log.water_tracker
        for log in ctx.logs
        if log.water_tracker is not None and log.water_tracker.goal_ounces > 0
    ]
    if len(trackers) < 3:
        return None
    low_days = sum(1 for t in trackers if t.total_ounces < t.goal_ounces * WATER_LOW_FRACTION)

    if low_days >= len(trackers) // 2 and low_days >= 2:
        return UserInsight(
            title="Boost Your Hydration",
            message=(
                "Staying hydrated is key for energy and health! It looks like you're "
                "sometimes a bit below your water goal. Keeping a water bottle handy can "
                "be a great reminder."
            ),
            category=InsightCategory.HYDRATION,
            priority=8,
        )
    return None


def check_iron_vitamin_c_synergy(ctx: RuleContext) -> Optional[UserInsight]:
    """Iron and vitamin C both averaging under 70% of goal."""
    iron_goal, vit_c_goal = ctx.goals.iron_goal, ctx.goals.vitamin_c_goal
    if not iron_goal or not vit_c_goal or iron_goal <= 0 or vit_c_goal <= 0:
        return None
    if len(ctx.logs) < 3:
        return None
    totals = [total_micronutrients(log) for log in ctx.logs]
    avg_iron = sum(t.iron for t in totals) / len(totals)
    avg_vit_c = sum(t.vitamin_c for t in totals) / len(totals)

    if avg_iron < iron_goal * SYNERGY_LOW_FRACTION and avg_vit_c < vit_c_goal * SYNERGY_LOW_FRACTION:
        return UserInsight(
            title="Boost Iron Absorption",
            message=(
                "We've noticed your iron and Vitamin C intake are both a bit on the lower "
                "side. Vitamin C helps your body absorb iron more effectively! Try pairing "
                "iron-rich foods (like spinach or lentils) with Vitamin C sources (like bell "
                "peppers, citrus fruits, or tomatoes)."
            ),
            category=InsightCategory.MICRO_NUTRIENT,
            priority=7,
            related_data={"nutrient1": "Iron", "nutrient2": "Vitamin C"},
        )
    return None


def check_calcium_vitamin_d_synergy(ctx: RuleContext) -> Optional[UserInsight]:
    """Calcium and vitamin D both averaging under 70% of goal."""
    calcium_goal, vit_d_goal = ctx.goals.calcium_goal, ctx.goals.vitamin_d_goal
    if not calcium_goal or not vit_d_goal or calcium_goal <= 0 or vit_d_goal <= 0:
        return None
    if len(ctx.logs) < 3:
        return None
    totals = [total_micronutrients(log) for log in ctx.logs]
    avg_calcium = sum(t.calcium for t in totals) / len(totals)
    avg_vit_d = sum(t.vitamin_d for t in totals) / len(totals)

    if avg_calcium < calcium_goal * SYNERGY_LOW_FRACTION and avg_vit_d < vit_d_goal * SYNERGY_LOW_FRACTION:
        return UserInsight(
            title="Calcium and Vitamin D Team-Up",
            message=(
                "Your intake for both Calcium and Vitamin D appears to be on the lower side. "
                "These nutrients work together - Vitamin D is essential for your body to "
                "absorb calcium effectively. Consider foods fortified with both, or sunlight "
                "for Vitamin D!"
            ),
            category=InsightCategory.MICRO_NUTRIENT,
            priority=7,
            related_data={
                "nutrient1": "Calcium",
                "nutrient2": "Vitamin D",
                "sourceName": "NIH Office of Dietary Supplements",
                "sourceURL": "https://ods.od.nih.gov/factsheets/Calcium-Consumer/",
            },
        )
    return None


# ==================== Calories ====================


def _trailing_run(
    ctx: RuleContext, outside: Callable[[float, float], bool]
) -> tuple[int, float]:
    """Find a contiguous run of out-of-band days, scanning back from the newest log.

    Only the trailing ``2 * days_threshold`` logs are considered. Returns the run
    length (capped at days_threshold) and the summed distance from the goal.
    """
    goal = ctx.goals.calories or 0
    run, distance = 0, 0.0
    for log in reversed(ctx.logs[-ctx.days_threshold * 2:]):
        calories = total_calories(log)
        if outside(calories, goal):
            run += 1
            distance += abs(goal - calories)
            if run >= ctx.days_threshold:
                break
        else:
            run, distance = 0, 0.0
    return run, distance


def check_calorie_deficit(ctx: RuleContext) -> Optional[UserInsight]:
    """A run of days under 85% of the calorie goal, unless the user is trying to lose."""
    goal = ctx.goals.calories
    if not goal or goal <= 0 or len(ctx.logs) < ctx.days_threshold:
        return None
    run, distance = _trailing_run(ctx, lambda cal, g: cal < g * CALORIE_DEFICIT_FRACTION)

    if run >= ctx.days_threshold and ctx.goals.goal != PrimaryGoal.LOSE:
        average = distance / run
        return UserInsight(
            title="Fueling Your Body",
            message=(
                f"Noticed your calorie intake has been about {average:.0f} calories below "
                f"your target for the last {run} logged days. Ensure you're eating enough "
                "to support your energy and goals!"
            ),
            category=InsightCategory.NUTRITION_GENERAL,
            priority=9,
        )
    return None


def check_calorie_surplus(ctx: RuleContext) -> Optional[UserInsight]:
    """A run of days over 115% of the calorie goal, unless the user is trying to gain."""
    goal = ctx.goals.calories
    if not goal or goal <= 0 or len(ctx.logs) < ctx.days_threshold:
        return None
    run, distance = _trailing_run(ctx, lambda cal, g: cal > g * CALORIE_SURPLUS_FRACTION)

    if run >= ctx.days_threshold and ctx.goals.goal != PrimaryGoal.GAIN:
        average = distance / run
        return UserInsight(
            title="Mindful Portions",
            message=(
                f"It looks like your calorie intake has been about {average:.0f} calories "
                f"over your target for the past {run} logged days. Focusing on portion "
                "sizes might be helpful."
            ),
            category=InsightCategory.NUTRITION_GENERAL,
            priority=9,
        )
    return None


def check_weekend_variation(ctx: RuleContext) -> Optional[UserInsight]:
    """Weekend calories well above both the goal and the weekday average."""
    goal = ctx.goals.calories
    if not goal or goal <= 0:
        return None
    weekend = [total_calories(log) for log in ctx.logs if log.log_date.weekday() >= 5]
    weekday = [total_calories(log) for log in ctx.logs if log.log_date.weekday() < 5]
    if len(weekend) < 1 or len(weekday) < 2:
        return None

    avg_weekend = sum(weekend) / len(weekend)
    avg_weekday = sum(weekday) / len(weekday)
    if avg_weekend > goal * WEEKEND_OVER_GOAL and avg_weekend > avg_weekday * WEEKEND_OVER_WEEKDAY:
        return UserInsight(
            title="Weekend Calorie Check-in",
            message=(
                "It looks like your calorie intake tends to be higher on weekends "
                f"(avg {avg_weekend:.0f} kcal) compared to weekdays (avg {avg_weekday:.0f} "
                "kcal). Being mindful on weekends can help stay on track!"
            ),
            category=InsightCategory.CONSISTENCY,
            priority=6,
            related_data={
                "weekendAvg": f"{avg_weekend:.0f} kcal",
                "weekdayAvg": f"{avg_weekday:.0f} kcal",
            },
        )
    return None


def check_calorie_goal_achievement(ctx: RuleContext) -> Optional[UserInsight]:
    """Every one of the last days_threshold days within 10% of the calorie goal."""
    goal = ctx.goals.calories
    if not goal or goal <= 0 or len(ctx.logs) < ctx.days_threshold:
        return None
    recent = ctx.logs[-ctx.days_threshold:]
    days_met = sum(
        1
        for log in recent
        if goal * (1 - CALORIE_GOAL_TOLERANCE) <= total_calories(log) <= goal * (1 + CALORIE_GOAL_TOLERANCE)
    )

    if days_met >= ctx.days_threshold:
        return UserInsight(
            title="Great Job on Your Goals!",
            message=(
                "Awesome consistency! You've been hitting your calorie targets for the last "
                f"{days_met} logged days. Keep up the fantastic work!"
            ),
            category=InsightCategory.POSITIVE_REINFORCEMENT,
            priority=10,
        )
    return None


# ==================== Macros ====================


def _average_protein(logs: Sequence[DailyLog]) -> float:
    return sum(total_macros(log).protein for log in logs) / len(logs)


def check_protein_low(ctx: RuleContext) -> Optional[UserInsight]:
    """Average protein below 80% of goal."""
    goal = ctx.goals.protein
    if goal <= 0 or len(ctx.logs) < 3:
        return None
    average = _average_protein(ctx.logs)

    if average < goal * PROTEIN_LOW_FRACTION:
        return UserInsight(
            title="Boost Your Protein",
            message=(
                f"Your average protein intake ({average:.0f}g) is a bit below your goal of "
                f"{goal:.0f}g. Protein helps with muscle repair and satiety. Consider adding "
                "sources like chicken, beans, tofu, or Greek yogurt."
            ),
            category=InsightCategory.MACRO_BALANCE,
            priority=7,
            related_data={"nutrient": "Protein", "average": f"{average:.0f}g", "goal": f"{goal:.0f}g"},
        )
    return None


def check_protein_high(ctx: RuleContext) -> Optional[UserInsight]:
    """Average protein above 150% of goal over at least five days."""
    goal = ctx.goals.protein
    if goal <= 0 or len(ctx.logs) < 5:
        return None
    average = _average_protein(ctx.logs)

    if average > goal * PROTEIN_HIGH_FRACTION:
        return UserInsight(
            title="Protein Intake Note",
            message=(
                f"Your average protein intake ({average:.0f}g) is noticeably above your goal "
                f"of {goal:.0f}g. While protein is important, ensure a balanced intake of all "
                "macros."
            ),
            category=InsightCategory.MACRO_BALANCE,
            priority=4,
            related_data={"nutrient": "Protein", "average": f"{average:.0f}g", "goal": f"{goal:.0f}g"},
        )
    return None


def check_fiber_intake(ctx: RuleContext) -> Optional[UserInsight]:
    """Average fiber on days with food below half of 28g."""
    with_food = _logs_with_food(ctx.logs)
    if len(with_food) < 3:
        return None
    average = sum(total_fiber(log) for log in with_food) / len(with_food)

    if average < FIBER_DAILY_GRAMS * 0.5:
        return UserInsight(
            title="Boost Your Fiber",
            message=(
                f"Your average daily fiber intake ({average:.1f}g) is lower than the "
                "recommended 28g. Increasing fiber with foods like whole grains, beans, "
                "fruits, and vegetables can improve digestive health and help you feel full."
            ),
            category=InsightCategory.FIBER_INTAKE,
            priority=7,
            related_data={
                "nutrient": "Fiber",
                "average": f"{average:.1f}g",
                "goal": f"{int(FIBER_DAILY_GRAMS)}g",
                "sourceName": "U.S. Food & Drug Administration",
                "sourceURL": "https://www.fda.gov/food/nutrition-facts-label/daily-value-nutrition-and-supplement-facts-labels",
            },
        )
    return None


def check_saturated_fat(ctx: RuleContext) -> Optional[UserInsight]:
    """Saturated fat above 7% of calories on days with food."""
    with_food = _logs_with_food(ctx.logs)
    if len(with_food) < 3:
        return None
    sat_fat_grams = sum(total_saturated_fat(log) for log in with_food)
    calories = sum(total_calories(log) for log in with_food)
    if calories <= 0:
        return None

    percent = sat_fat_grams * 9 / calories * 100
    if percent > SAT_FAT_MAX_PERCENT:
        return UserInsight(
            title="Saturated Fat Awareness",
            message=(
                f"On average, about {percent:.0f}% of your calories came from saturated fat. "
                "The American Heart Association recommends aiming for 5-6%. Consider swapping "
                "some sources for healthier unsaturated fats like those in avocado, nuts, and "
                "olive oil."
            ),
            category=InsightCategory.SATURATED_FAT,
            priority=8,
            related_data={
                "nutrient": "Saturated Fat",
                "percentage": f"{percent:.0f}%",
                "recommendation": "5-6%",
                "sourceName": "American Heart Association",
                "sourceURL": "https://www.heart.org/en/healthy-living/healthy-eating/eat-smart/fats/saturated-fat",
            },
        )
    return None


def meal_balance_rule(meal_name: str) -> Callable[[RuleContext], Optional[UserInsight]]:
    """Build a rule flagging a named meal that is carb-heavy or fat-heavy and low in protein."""

    def check(ctx: RuleContext) -> Optional[UserInsight]:
        if len(ctx.logs) < 3:
            return None
        protein_cals = carb_cals = fat_cals = total = 0.0
        meal_count = 0
        for log in ctx.logs:
            meal = _find_meal(log, meal_name)
            if meal is None:
                continue
            protein_g = sum(i.protein for i in meal.food_items)
            carbs_g = sum(i.carbs for i in meal.food_items)
            fats_g = sum(i.fats for i in meal.food_items)
            meal_total = calculate_calories_from_macros(protein_g, carbs_g, fats_g)
            if meal_total > MEAL_MIN_CALORIES:
                protein_cals += protein_g * 4
                carb_cals += carbs_g * 4
                fat_cals += fats_g * 9
                total += meal_total
                meal_count += 1
        if meal_count < 2 or total <= 0:
            return None

        protein_pct = protein_cals / total * 100
        carb_pct = carb_cals / total * 100
        fat_pct = fat_cals / total * 100
        if carb_pct > 70 and protein_pct < 10:
            return UserInsight(
                title=f"Balancing Your {meal_name}",
                message=(
                    f"Your {meal_name.lower()}s often seem to be high in carbohydrates. Adding "
                    "a lean protein source could provide more sustained energy and fullness."
                ),
                category=InsightCategory.MACRO_BALANCE,
                priority=5,
                related_data={"meal": meal_name, "avgCarb%": f"{carb_pct:.0f}"},
            )
        if fat_pct > 60 and protein_pct < 10:
            return UserInsight(
                title=f"Rethink Your {meal_name} Fats",
                message=(
                    f"Your {meal_name.lower()}s tend to be quite high in fats. While healthy "
                    "fats are good, balancing with protein and complex carbs is key. Perhaps "
                    "explore leaner options?"
                ),
                category=InsightCategory.MACRO_BALANCE,
                priority=5,
                related_data={"meal": meal_name, "avgFat%": f"{fat_pct:.0f}"},
            )
        return None

    return check


# ==================== Habits ====================


def skipped_meal_rule(meal_name: str) -> Callable[[RuleContext], Optional[UserInsight]]:
    """Build a rule flagging a meal missing on three or more days."""

    def check(ctx: RuleContext) -> Optional[UserInsight]:
        if len(ctx.logs) < 4:
            return None
        skipped = sum(1 for log in ctx.logs if _find_meal(log, meal_name) is None)

        if skipped >= 3:
            return UserInsight(
                title="Consistent Meal Times",
                message=(
                    f"We've noticed you've skipped {meal_name} a few times this week. Studies "
                    "suggest that eating regular meals can help regulate metabolism and "
                    "maintain energy levels throughout the day."
                ),
                category=InsightCategory.MEAL_TIMING,
                priority=5,
                related_data={
                    "meal": meal_name,
                    "skippedDays": str(skipped),
                    "sourceName": "Int J Environ Res Public Health. 2021",
                    "sourceURL": "https://www.ncbi.nlm.nih.gov/pmc/articles/PMC8538637/",
                },
            )
        return None

    return check


def check_meal_timing(ctx: RuleContext) -> Optional[UserInsight]:
    """Breakfast start hour varies by more than three hours."""
    if len(ctx.logs) < 5:
        return None
    hours = []
    for log in ctx.logs:
        breakfast = _find_meal(log, "Breakfast")
        if breakfast is None:
            continue
        stamps = [i.timestamp for i in breakfast.food_items if i.timestamp is not None]
        if stamps:
            hours.append(min(stamps).hour)
    if len(hours) < 3:
        return None

    if max(hours) - min(hours) > 3:
        return UserInsight(
            title="Consistent Meal Times?",
            message=(
                "Having regular meal times can help regulate hunger and energy. We've noticed "
                "your breakfast times vary a bit. Could a more consistent schedule help?"
            ),
            category=InsightCategory.MEAL_TIMING,
            priority=5,
        )
    return None


def _enough_logs_for_window(ctx: RuleContext) -> bool:
    return len(ctx.logs) >= ctx.window_days // 2 and len(ctx.logs) >= 3


def check_food_variety(ctx: RuleContext) -> Optional[UserInsight]:
    """Fewer than two distinct foods per day of the window."""
    if not _enough_logs_for_window(ctx):
        return None
    distinct = {
        item.name.strip().lower() for log in ctx.logs for item in all_food_items(log)
    }

    if 0 < len(distinct) < ctx.window_days * 2:
        return UserInsight(
            title="Spice Up Your Plate!",
            message=(
                "Eating a variety of foods provides a wider range of nutrients. Try "
                "introducing one or two new healthy foods this week!"
            ),
            category=InsightCategory.FOOD_VARIETY,
            priority=4,
            related_data={"distinctItems": str(len(distinct))},
        )
    return None


def check_exercise_consistency(ctx: RuleContext) -> Optional[UserInsight]:
    """Exercise logged on fewer than 40% of logged days."""
    if not _enough_logs_for_window(ctx):
        return None
    active_days = sum(1 for log in ctx.logs if log.exercises)

    if active_days / len(ctx.logs) < EXERCISE_MIN_FRACTION:
        return UserInsight(
            title="Stay Active!",
            message=(
                "Consistent exercise boosts your metabolism and overall health. We've noticed "
                "fewer workout logs recently. Even a short walk or home workout can make a "
                "difference!"
            ),
            category=InsightCategory.CONSISTENCY,
            priority=6,
        )
    return None


def check_post_workout_nutrition(ctx: RuleContext) -> Optional[UserInsight]:
    """A workout over 200 kcal with no protein or carb refuel within two hours."""
    for log in ctx.logs:
        stamped = [i for i in all_food_items(log) if i.timestamp is not None]
        for exercise in log.exercises or []:
            if exercise.calories_burned <= POST_WORKOUT_MIN_BURN:
                continue
            minutes = exercise.duration_minutes if exercise.duration_minutes is not None else DEFAULT_WORKOUT_MINUTES
            workout_end = exercise.date + timedelta(minutes=minutes)
            window_end = workout_end + POST_WORKOUT_WINDOW
            refueled = any(
                workout_end < item.timestamp <= window_end and (item.protein > 10 or item.carbs > 15)
                for item in stamped
            )
            if not refueled:
                return UserInsight(
                    title="Post-Workout Refuel",
                    message=(
                        "Great job on your recent workouts! Remember, refueling with some "
                        "protein and carbs within a couple of hours after a significant "
                        "session can help with recovery and muscle repair."
                    ),
                    category=InsightCategory.POST_WORKOUT,
                    priority=8,
                )
    return None


def check_sugary_foods(ctx: RuleContext) -> Optional[UserInsight]:
    """Sugary items on at least half the days and at least one per logged day."""
    if len(ctx.logs) < 3:
        return None
    item_count = 0
    sugary_days = set()
    for log in ctx.logs:
        for item in all_food_items(log):
            name = item.name.lower()
            if any(keyword in name for keyword in SUGARY_KEYWORDS):
                item_count += 1
                sugary_days.add(log.log_date)

    if (
        len(sugary_days) >= len(ctx.logs) // 2
        and item_count >= len(ctx.logs)
        and len(sugary_days) >= 2
    ):
        return UserInsight(
            title="Sugar Awareness",
            message=(
                "We've noticed a few items that are often high in added sugars in your logs. "
                "While treats are fine in moderation, being mindful of overall sugar intake is "
                "beneficial for sustained energy."
            ),
            category=InsightCategory.SUGAR_AWARENESS,
            priority=6,
        )
    return None


# Evaluation order doubles as the tie-break order for equal priorities.
DEFAULT_RULES: tuple[InsightRule, ...] = (
    InsightRule("sleep_duration", check_sleep_duration),
    InsightRule("sleep_consistency", check_sleep_consistency),
    InsightRule("high_sodium", check_high_sodium),
    InsightRule("low_water", check_low_water),
    InsightRule("calorie_deficit", check_calorie_deficit),
    InsightRule("calorie_surplus", check_calorie_surplus),
    InsightRule("protein_low", check_protein_low),
    InsightRule("protein_high", check_protein_high),
    InsightRule("fiber_intake", check_fiber_intake),
    InsightRule("saturated_fat", check_saturated_fat),
    InsightRule("skipped_breakfast", skipped_meal_rule("Breakfast")),
    InsightRule("meal_timing", check_meal_timing),
    InsightRule("weekend_variation", check_weekend_variation),
    InsightRule("food_variety", check_food_variety),
    InsightRule("exercise_consistency", check_exercise_consistency),
    InsightRule("lunch_balance", meal_balance_rule("Lunch")),
    InsightRule("iron_vitamin_c", check_iron_vitamin_c_synergy),
    InsightRule("calcium_vitamin_d", check_calcium_vitamin_d_synergy),
    InsightRule("post_workout", check_post_workout_nutrition),
    InsightRule("sugary_foods", check_sugary_foods),
    InsightRule("calorie_goal_achievement", check_calorie_goal_achievement),
)
