"""MCP Server - Tool definitions for the nutrition assistant.

Defines the MCP tools for logging food, exercise, water, weight and sleep,
and for reading insights, achievements and challenges. Every mutating tool
triggers the matching achievement hook.
"""

import logging
import os
from contextvars import ContextVar
from datetime import date, datetime

from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings
from pydantic import ValidationError

from ..core.achievements import AchievementOutcome
from ..core.goals import merge_goals
from ..core.insights import DEFAULT_MAX_INSIGHTS, DEFAULT_WINDOW_DAYS
from ..core.models import (
    AchievementCriteriaType,
    FoodItem,
    GoalSettings,
    LoggedExercise,
    Meal,
    SleepSample,
    SleepState,
    UserInsight,
    WaterTracker,
    WeightEntry,
)
from ..core.totals import (
    calories_burned_manual,
    calories_burned_synced,
    food_item_count,
    total_calories,
    total_macros,
)
from .achievement_service import AchievementService
from .firestore_client import FirestoreConfig, NutritionFirestoreClient
from .insights_service import InsightsService


logger = logging.getLogger(__name__)

# Context variable to store current user_id per request
current_user_id: ContextVar[str | None] = ContextVar("current_user_id", default=None)

transport_security = TransportSecuritySettings(
    enable_dns_rebinding_protection=True,
    allowed_hosts=[
        "localhost:*",
        "127.0.0.1:*",
        "*.run.app:*",
        "*.run.app",
    ],
)

mcp = FastMCP(
    "mealwise",
    instructions="""Mealwise - Nutrition logging with insights and achievements.

Use these tools to log meals, workouts, water, weight and sleep, and to show
the user their weekly insights, daily tip, achievements and challenges.

On first use, call set_goals to configure the user's targets.
After logging, mention any achievements that were unlocked.""",
    stateless_http=True,
    transport_security=transport_security,
)

# Lazy-initialized clients
_firestore_client: NutritionFirestoreClient | None = None
_insights_service: InsightsService | None = None
_achievement_service: AchievementService | None = None


def get_firestore_client() -> NutritionFirestoreClient:
    """Get or create Firestore client."""
    global _firestore_client
    if _firestore_client is None:
        config = FirestoreConfig(
            project_id=os.environ.get("GOOGLE_CLOUD_PROJECT"),
            database=os.environ.get("FIRESTORE_DATABASE", "mealwise"),
        )
        _firestore_client = NutritionFirestoreClient(config)
    return _firestore_client


def get_insights_service() -> InsightsService:
    global _insights_service
    if _insights_service is None:
        _insights_service = InsightsService(get_firestore_client())
    return _insights_service


def get_achievement_service() -> AchievementService:
    global _achievement_service
    if _achievement_service is None:
        _achievement_service = AchievementService(get_firestore_client())
    return _achievement_service


def get_user_id() -> str:
    """Get the current user ID.

    Raises:
        RuntimeError: If the request carried no user
    """
    user_id = current_user_id.get()
    if user_id is None:
        raise RuntimeError("No user in request context. Ensure X-User-ID is provided.")
    return user_id


def _unlocked_titles(outcome: AchievementOutcome) -> list[str]:
    return [d.title for d in outcome.unlocked]


def _insight_dict(insight: UserInsight) -> dict:
    return insight.model_dump(mode="json")


# ==================== Goal Tools ====================


@mcp.tool()
def set_goals(
    goal: str | None = None,
    weight: float | None = None,
    height: float | None = None,
    age: int | None = None,
    gender: str | None = None,
    activity_level: float | None = None,
    calorie_goal_method: str | None = None,
    target_weight: float | None = None,
    water_goal: float | None = None,
    protein_percentage: float | None = None,
    carbs_percentage: float | None = None,
    fats_percentage: float | None = None,
    calories: float | None = None,
    protein: float | None = None,
    carbs: float | None = None,
    fats: float | None = None,
    calcium_goal: float | None = None,
    iron_goal: float | None = None,
    potassium_goal: float | None = None,
    sodium_goal: float | None = None,
    vitamin_a_goal: float | None = None,
    vitamin_c_goal: float | None = None,
    vitamin_d_goal: float | None = None,
) -> dict:
    """Update the user's profile and daily nutrition goals.

    Only the arguments given are changed. Calorie, macro and micronutrient
    targets are derived from the profile unless given explicitly.

    Args:
        goal: Primary goal - "Lose", "Maintain" or "Gain"
        weight: Current weight in lb
        height: Height in cm
        age: Age in years
        gender: "Male" or "Female"
        activity_level: BMR multiplier (1.2 sedentary to 1.9 very active)
        calorie_goal_method: "Standard (Mifflin + Activity Level)" or "Dynamic (TDEE + Activity)"
        target_weight: Target weight in lb
        water_goal: Daily water target in ounces
        protein_percentage: Share of calories from protein
        carbs_percentage: Share of calories from carbohydrates
        fats_percentage: Share of calories from fat
        calories: Explicit daily calorie target (e.g., 2000)
        protein: Explicit daily protein target in grams
        carbs: Explicit daily carbohydrate target in grams
        fats: Explicit daily fat target in grams
        calcium_goal: Explicit calcium target in mg
        iron_goal: Explicit iron target in mg
        potassium_goal: Explicit potassium target in mg
        sodium_goal: Explicit sodium limit in mg
        vitamin_a_goal: Explicit vitamin A target in mcg
        vitamin_c_goal: Explicit vitamin C target in mg
        vitamin_d_goal: Explicit vitamin D target in mcg

    Returns:
        The saved goals and any achievements unlocked
    """
    updates = {k: v for k, v in locals().items() if v is not None}
    user_id = get_user_id()
    db = get_firestore_client()

    today_log = db.get_log(user_id, date.today())
    burned = (
        calories_burned_manual(today_log) + calories_burned_synced(today_log) if today_log else 0.0
    )

    try:
        goals = merge_goals(db.get_goals(user_id), updates, burned)
    except ValidationError as e:
        return {"error": f"Invalid goals: {e}"}

    if not db.save_goals(user_id, goals):
        return {"error": "Failed to save goals. Please try again."}

    outcome = get_achievement_service().on_goal_set(user_id)
    return {
        "goals": goals.model_dump(mode="json", exclude={"updated_at"}),
        "achievements_unlocked": _unlocked_titles(outcome),
    }


@mcp.tool()
def get_goals() -> dict:
    """Retrieve the user's current goals.

    Returns:
        Dictionary with all configured goals, or error message if not set up
    """
    goals = get_firestore_client().get_goals(get_user_id())
    if goals is None:
        return {"error": "No goals found. Please use set_goals first."}
    return goals.model_dump(mode="json", exclude={"updated_at"})


# ==================== Logging Tools ====================


@mcp.tool()
def log_food(
    name: str,
    calories: float,
    protein: float,
    carbs: float,
    fats: float,
    meal: str = "Snack",
    serving_size: str = "1 serving",
    fiber: float | None = None,
    saturated_fat: float | None = None,
    polyunsaturated_fat: float | None = None,
    monounsaturated_fat: float | None = None,
    sodium: float | None = None,
    calcium: float | None = None,
    iron: float | None = None,
    potassium: float | None = None,
    vitamin_a: float | None = None,
    vitamin_c: float | None = None,
    vitamin_d: float | None = None,
    eaten_at: str | None = None,
) -> dict:
    """Add a food item to a meal in the day's log.

    Args:
        name: Name of the food (e.g., "Greek yogurt")
        calories: Total calories for this serving
        protein: Protein in grams
        carbs: Carbohydrates in grams
        fats: Fat in grams
        meal: Meal to add to ("Breakfast", "Lunch", "Dinner", "Snack")
        serving_size: Free-text serving description
        fiber: Optional fiber in grams
        saturated_fat: Optional saturated fat in grams
        polyunsaturated_fat: Optional polyunsaturated fat in grams
        monounsaturated_fat: Optional monounsaturated fat in grams
        sodium: Optional sodium in mg
        calcium: Optional calcium in mg
        iron: Optional iron in mg
        potassium: Optional potassium in mg
        vitamin_a: Optional vitamin A in mcg
        vitamin_c: Optional vitamin C in mg
        vitamin_d: Optional vitamin D in mcg
        eaten_at: Optional ISO time it was eaten (e.g., "2024-05-06T19:30:00");
            defaults to now. The item goes into that day's log.

    Returns:
        The created item, that day's totals and any achievements unlocked
    """
    user_id = get_user_id()
    db = get_firestore_client()

    try:
        # Wall-clock time; any offset is dropped.
        eaten = datetime.fromisoformat(eaten_at).replace(tzinfo=None) if eaten_at else datetime.now()
        item = FoodItem(
            name=name,
            calories=calories,
            protein=protein,
            carbs=carbs,
            fats=fats,
            serving_size=serving_size,
            fiber=fiber,
            saturated_fat=saturated_fat,
            polyunsaturated_fat=polyunsaturated_fat,
            monounsaturated_fat=monounsaturated_fat,
            sodium=sodium,
            calcium=calcium,
            iron=iron,
            potassium=potassium,
            vitamin_a=vitamin_a,
            vitamin_c=vitamin_c,
            vitamin_d=vitamin_d,
            timestamp=eaten,
        )
    except (ValueError, ValidationError) as e:
        return {"error": f"Invalid food item: {e}"}

    log_date = eaten.date()
    log = db.get_or_create_log(user_id, log_date)
    target = next((m for m in log.meals if m.name == meal), None)
    if target is None:
        target = Meal(name=meal)
        log.meals.append(target)
    target.food_items.append(item)

    if not db.save_log(user_id, log):
        return {"error": "Failed to log food. Please try again."}

    outcome = get_achievement_service().on_log_mutated(user_id, log_date)
    macros = total_macros(log)
    return {
        "item": item.model_dump(mode="json"),
        "meal": meal,
        "daily_totals": {
            "calories": round(total_calories(log), 1),
            "protein": round(macros.protein, 1),
            "carbs": round(macros.carbs, 1),
            "fats": round(macros.fats, 1),
        },
        "achievements_unlocked": _unlocked_titles(outcome),
    }


@mcp.tool()
def delete_food(item_id: str) -> dict:
    """Delete a food item from today's log.

    Args:
        item_id: The ID of the item to delete

    Returns:
        Confirmation and the number of items remaining
    """
    user_id = get_user_id()
    db = get_firestore_client()

    today = date.today()
    log = db.get_log(user_id, today)
    if log is None:
        return {"error": "Nothing logged today."}

    before = food_item_count(log)
    for meal in log.meals:
        meal.food_items = [f for f in meal.food_items if f.id != item_id]
    log.meals = [m for m in log.meals if m.food_items]
    if food_item_count(log) == before:
        return {"error": "Item not found."}

    if not db.save_log(user_id, log):
        return {"error": "Delete failed. Please try again."}

    get_achievement_service().on_log_mutated(user_id, today)
    return {"success": True, "items_remaining": food_item_count(log)}


@mcp.tool()
def log_exercise(
    name: str,
    calories_burned: float,
    duration_minutes: int | None = None,
) -> dict:
    """Record a workout that just finished.

    Args:
        name: Activity name (e.g., "Running")
        calories_burned: Active calories burned
        duration_minutes: Optional workout length

    Returns:
        The saved exercise and any challenges completed
    """
    user_id = get_user_id()
    db = get_firestore_client()

    try:
        exercise = LoggedExercise(
            name=name,
            calories_burned=calories_burned,
            duration_minutes=duration_minutes,
            date=datetime.now(),
        )
    except ValidationError as e:
        return {"error": f"Invalid exercise: {e}"}

    today = date.today()
    log = db.get_or_create_log(user_id, today)
    log.exercises = (log.exercises or []) + [exercise]
    if not db.save_log(user_id, log):
        return {"error": "Failed to log exercise. Please try again."}

    completed = get_achievement_service().on_exercise_logged(user_id)
    return {
        "exercise": exercise.model_dump(mode="json"),
        "challenges_completed": [c.title for c in completed],
    }


@mcp.tool()
def log_water(ounces: float) -> dict:
    """Add water to today's intake.

    Args:
        ounces: Amount drunk, in fluid ounces

    Returns:
        Today's water total and goal
    """
    if ounces <= 0:
        return {"error": "Amount must be positive."}

    user_id = get_user_id()
    db = get_firestore_client()

    today = date.today()
    log = db.get_or_create_log(user_id, today)
    goals = db.get_goals(user_id) or GoalSettings()
    tracker = log.water_tracker or WaterTracker(date=today, goal_ounces=goals.water_goal)
    log.water_tracker = tracker.model_copy(update={"total_ounces": tracker.total_ounces + ounces})

    if not db.save_log(user_id, log):
        return {"error": "Failed to log water. Please try again."}

    outcome = get_achievement_service().on_log_mutated(user_id, today)
    return {
        "total_ounces": log.water_tracker.total_ounces,
        "goal_ounces": log.water_tracker.goal_ounces,
        "achievements_unlocked": _unlocked_titles(outcome),
    }


@mcp.tool()
def log_weight(weight: float) -> dict:
    """Record a weigh-in and update the current weight in the user's goals.

    Args:
        weight: Body weight in lb

    Returns:
        The saved entry and any achievements unlocked
    """
    user_id = get_user_id()
    db = get_firestore_client()

    try:
        entry = WeightEntry(date=datetime.now(), weight=weight)
    except ValidationError as e:
        return {"error": f"Invalid weight: {e}"}

    if not db.add_weight_entry(user_id, entry):
        return {"error": "Failed to log weight. Please try again."}

    goals = db.get_goals(user_id)
    if goals is not None:
        db.save_goals(user_id, goals.model_copy(update={"weight": weight}))

    outcome = get_achievement_service().on_weight_updated(user_id)
    return {
        "entry": entry.model_dump(mode="json"),
        "achievements_unlocked": _unlocked_titles(outcome),
    }


@mcp.tool()
def log_sleep(start_time: str, end_time: str, state: str = "asleep") -> dict:
    """Record a sleep interval.

    Args:
        start_time: Start in ISO format (e.g., "2024-05-01T23:10:00")
        end_time: End in ISO format
        state: One of inBed, asleep, asleepCore, asleepDeep, asleepREM, awake

    Returns:
        The saved sample
    """
    user_id = get_user_id()

    try:
        sample = SleepSample(
            start_time=datetime.fromisoformat(start_time),
            end_time=datetime.fromisoformat(end_time),
            state=SleepState(state),
        )
    except (ValueError, ValidationError) as e:
        return {"error": f"Invalid sleep sample: {e}"}

    if sample.end_time <= sample.start_time:
        return {"error": "end_time must be after start_time."}

    if not get_firestore_client().save_sleep_samples(user_id, [sample]):
        return {"error": "Failed to log sleep. Please try again."}
    return {"sample": sample.model_dump(mode="json")}


@mcp.tool()
def record_feature_use(feature: str) -> dict:
    """Record use of an app feature that can unlock an achievement.

    Args:
        feature: barcodeScanUsed, imageScanUsed or aiRecipeLogged

    Returns:
        Any achievements unlocked
    """
    try:
        criteria = AchievementCriteriaType(feature)
    except ValueError:
        return {"error": f"Unknown feature: {feature}"}

    outcome = get_achievement_service().on_feature_used(get_user_id(), criteria)
    return {"achievements_unlocked": _unlocked_titles(outcome)}


# ==================== Query Tools ====================


@mcp.tool()
def get_today() -> dict:
    """Get today's log with totals.

    Returns:
        Dictionary with date, meals, exercises, water and totals
    """
    user_id = get_user_id()
    db = get_firestore_client()

    today = date.today()
    log = db.get_or_create_log(user_id, today)
    macros = total_macros(log)

    return {
        "date": today.isoformat(),
        "meals": [m.model_dump(mode="json") for m in log.meals],
        "exercises": [e.model_dump(mode="json") for e in log.exercises or []],
        "water_ounces": log.water_tracker.total_ounces if log.water_tracker else 0,
        "totals": {
            "calories": round(total_calories(log), 1),
            "protein": round(macros.protein, 1),
            "carbs": round(macros.carbs, 1),
            "fats": round(macros.fats, 1),
        },
    }


@mcp.tool()
async def get_insights(days: int | None = None, max_insights: int | None = None) -> list[dict]:
    """Generate personalized insights from recent logs.

    Args:
        days: Number of days to analyse, ending today (default 7)
        max_insights: Maximum number of insights to return (default 5)

    Returns:
        Insights ordered by priority, highest first
    """
    user_id = get_user_id()
    if days is None:
        days = int(os.environ.get("INSIGHT_WINDOW_DAYS", DEFAULT_WINDOW_DAYS))
    if max_insights is None:
        max_insights = int(os.environ.get("MAX_INSIGHTS", DEFAULT_MAX_INSIGHTS))

    insights = await get_insights_service().refresh(user_id, days, max_insights)
    return [_insight_dict(i) for i in insights]


@mcp.tool()
def get_daily_suggestion() -> dict:
    """Get a single tip for the current time of day."""
    return _insight_dict(get_insights_service().daily_suggestion(get_user_id()))


@mcp.tool()
def get_achievements() -> dict:
    """List all achievements with the user's progress, points and level.

    Returns:
        Dictionary with total_points, level and achievements
    """
    user_id = get_user_id()
    service = get_achievement_service()

    entries = service.get_achievements(user_id)
    progress = service.get_progress(user_id)
    if entries is None or progress is None:
        return {"error": "Failed to load achievements. Please try again."}

    return {
        "total_points": progress.total_points,
        "level": progress.level,
        "achievements": [
            {
                "id": definition.id,
                "title": definition.title,
                "description": definition.description,
                "icon_name": definition.icon_name,
                "points": definition.points_value,
                "unlocked": status.is_unlocked,
                "progress": status.current_progress,
                "goal": definition.criteria_value,
            }
            for definition, status in entries
        ],
    }


@mcp.tool()
def get_challenges() -> dict:
    """List this week's challenges, starting a new batch if none are active.

    Returns:
        Dictionary with the active challenges
    """
    user_id = get_user_id()
    service = get_achievement_service()

    service.generate_weekly_challenges(user_id)
    challenges = service.get_challenges(user_id)
    if challenges is None:
        return {"error": "Failed to load challenges. Please try again."}

    return {
        "challenges": [
            {
                "id": c.id,
                "title": c.title,
                "description": c.description,
                "type": c.type.value,
                "progress": c.progress,
                "goal": c.goal,
                "points": c.points_value,
                "completed": c.is_completed,
                "expires_at": c.expires_at.isoformat(),
            }
            for c in challenges
        ]
    }
