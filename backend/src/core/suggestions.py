"""Daily Smart Suggestion - One time-of-day tip for today's log.

Unlike the ranked insight rules, this is a first-match chain: only one
suggestion is shown and it depends on the current hour.
"""

from datetime import datetime, timedelta
from typing import Optional

from .models import DailyLog, GoalSettings, InsightCategory, UserInsight
from .totals import all_food_items, total_macros


REFUEL_MIN_BURN = 150
REFUEL_WINDOW = timedelta(hours=2)
DEFAULT_WORKOUT_MINUTES = 30


def _suggestion(title: str, message: str, priority: int) -> UserInsight:
    return UserInsight(
        title=title,
        message=message,
        category=InsightCategory.SMART_SUGGESTION,
        priority=priority,
    )


def _has_meal(log: DailyLog, name: str) -> bool:
    return any(meal.name == name for meal in log.meals)


def evaluate_daily_suggestion(
    today_log: Optional[DailyLog], goals: GoalSettings, now: datetime
) -> UserInsight:
    """Pick the single most relevant suggestion for right now.

    Args:
        today_log: The log for the current day, if one exists
        goals: Goal snapshot (protein goal is used in the evening)
        now: Current local time

    Returns:
        The first matching suggestion; never None
    """
    if today_log is None or today_log.log_date != now.date():
        return _suggestion(
            "Welcome!",
            "Start logging your meals and workouts to receive personalized tips here.",
            1,
        )

    hour = now.hour
    workouts = [e for e in today_log.exercises or [] if e.calories_burned > REFUEL_MIN_BURN]
    if workouts:
        last = workouts[-1]
        minutes = last.duration_minutes if last.duration_minutes is not None else DEFAULT_WORKOUT_MINUTES
        if now - (last.date + timedelta(minutes=minutes)) < REFUEL_WINDOW:
            return _suggestion(
                "Post-Workout Refuel",
                f"Great work on your recent {last.name.lower()}! A snack with protein and "
                "carbs can help with recovery.",
                100,
            )

    if hour >= 19:
        protein_remaining = goals.protein - total_macros(today_log).protein
        if 15 < protein_remaining < 50:
            return _suggestion(
                "Hit Your Protein Goal",
                f"You're just {protein_remaining:.0f}g of protein away from your goal. A Greek "
                "yogurt or protein shake could be a great choice!",
                90,
            )

    if 12 <= hour < 15 and not _has_meal(today_log, "Lunch"):
        return _suggestion(
            "Lunch Time!",
            "Don't forget to log your lunch to stay on track with your goals for the day.",
            80,
        )

    if 18 <= hour < 21 and not _has_meal(today_log, "Dinner"):
        return _suggestion(
            "Time for Dinner?",
            "Remember to log your dinner to get a complete picture of your day's nutrition.",
            80,
        )

    if all_food_items(today_log):
        return _suggestion(
            "Keep Up the Great Work!",
            "Consistency is the key to reaching your goals. You're doing great today!",
            5,
        )

    return _suggestion(
        "Have a Great Day!",
        "Log your first meal or workout to get personalized tips and insights.",
        1,
    )
