"""Core Data Models - Pydantic models for type safety.

Models carry validation only; all derived numbers live in the pure
functions of the other core modules.
"""

from datetime import datetime
from datetime import date as DateType
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field
import uuid


def _new_id() -> str:
    return str(uuid.uuid4())


# ==================== Logging ====================


class FoodItem(BaseModel):
    """A single food item logged inside a meal."""

    id: str = Field(default_factory=_new_id)
    name: str = Field(min_length=1, description="Name of the food")
    calories: float = Field(ge=0, description="Total calories")
    protein: float = Field(ge=0, description="Protein in grams")
    carbs: float = Field(ge=0, description="Carbohydrates in grams")
    fats: float = Field(ge=0, description="Fat in grams")
    saturated_fat: Optional[float] = Field(default=None, ge=0)
    polyunsaturated_fat: Optional[float] = Field(default=None, ge=0)
    monounsaturated_fat: Optional[float] = Field(default=None, ge=0)
    fiber: Optional[float] = Field(default=None, ge=0)
    calcium: Optional[float] = Field(default=None, ge=0, description="mg")
    iron: Optional[float] = Field(default=None, ge=0, description="mg")
    potassium: Optional[float] = Field(default=None, ge=0, description="mg")
    sodium: Optional[float] = Field(default=None, ge=0, description="mg")
    vitamin_a: Optional[float] = Field(default=None, ge=0, description="mcg")
    vitamin_c: Optional[float] = Field(default=None, ge=0, description="mg")
    vitamin_d: Optional[float] = Field(default=None, ge=0, description="mcg")
    serving_size: str = Field(default="1 serving")
    serving_weight: float = Field(default=0, ge=0, description="Serving weight in grams")
    timestamp: Optional[datetime] = Field(default=None, description="When the item was eaten")


class Meal(BaseModel):
    """A named group of food items (Breakfast, Lunch, ...)."""

    id: str = Field(default_factory=_new_id)
    name: str = Field(min_length=1)
    food_items: list[FoodItem] = Field(default_factory=list)


class LoggedExercise(BaseModel):
    """A workout recorded manually or synced from HealthKit."""

    id: str = Field(default_factory=_new_id)
    name: str = Field(min_length=1)
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    calories_burned: float = Field(ge=0)
    date: datetime = Field(description="Start of the workout")
    source: str = Field(default="manual", description="'manual' or 'HealthKit'")


class WaterTracker(BaseModel):
    """Water intake for one day."""

    total_ounces: float = Field(default=0, ge=0)
    goal_ounces: float = Field(default=64.0, ge=0)
    date: DateType


class DailyLog(BaseModel):
    """One user's food, exercise and water record for one calendar day."""

    log_date: DateType = Field(description="Date of this log (YYYY-MM-DD)")
    meals: list[Meal] = Field(default_factory=list)
    exercises: Optional[list[LoggedExercise]] = None
    water_tracker: Optional[WaterTracker] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


# ==================== Goals ====================


class PrimaryGoal(str, Enum):
    LOSE = "Lose"
    MAINTAIN = "Maintain"
    GAIN = "Gain"


class CalorieGoalMethod(str, Enum):
    MIFFLIN_WITH_ACTIVITY = "Standard (Mifflin + Activity Level)"
    DYNAMIC_TDEE = "Dynamic (TDEE + Activity)"


class GoalSettings(BaseModel):
    """Snapshot of the user's goals at evaluation time.

    A missing calorie goal means it has not been computed yet.
    """

    calories: Optional[float] = Field(default=None, ge=0, description="Daily calorie target")
    protein: float = Field(default=150, ge=0, description="Daily protein target in grams")
    carbs: float = Field(default=250, ge=0, description="Daily carbohydrate target in grams")
    fats: float = Field(default=70, ge=0, description="Daily fat target in grams")
    goal: PrimaryGoal = Field(default=PrimaryGoal.MAINTAIN)
    weight: float = Field(default=150.0, gt=0, description="Current weight in lb")
    target_weight: Optional[float] = Field(default=None, gt=0)
    height: float = Field(default=170.0, gt=0, description="Height in cm")
    age: int = Field(default=25, ge=0)
    gender: str = Field(default="Male")
    activity_level: float = Field(default=1.2, gt=0, description="Activity multiplier applied to BMR")
    calorie_goal_method: CalorieGoalMethod = Field(default=CalorieGoalMethod.MIFFLIN_WITH_ACTIVITY)
    protein_percentage: float = Field(default=30.0, ge=0, le=100)
    carbs_percentage: float = Field(default=50.0, ge=0, le=100)
    fats_percentage: float = Field(default=20.0, ge=0, le=100)
    calcium_goal: Optional[float] = None
    iron_goal: Optional[float] = None
    potassium_goal: Optional[float] = None
    sodium_goal: Optional[float] = None
    vitamin_a_goal: Optional[float] = None
    vitamin_c_goal: Optional[float] = None
    vitamin_d_goal: Optional[float] = None
    water_goal: float = Field(default=64.0, ge=0, description="Daily water target in ounces")
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class WeightEntry(BaseModel):
    """A single weigh-in."""

    id: str = Field(default_factory=_new_id)
    date: datetime
    weight: float = Field(gt=0)


# ==================== Sleep ====================


class SleepState(str, Enum):
    IN_BED = "inBed"
    ASLEEP = "asleep"
    ASLEEP_CORE = "asleepCore"
    ASLEEP_DEEP = "asleepDeep"
    ASLEEP_REM = "asleepREM"
    AWAKE = "awake"


ASLEEP_STATES = frozenset(
    {SleepState.ASLEEP, SleepState.ASLEEP_CORE, SleepState.ASLEEP_DEEP, SleepState.ASLEEP_REM}
)


class SleepSample(BaseModel):
    """A sleep-analysis interval from the health store."""

    id: str = Field(default_factory=_new_id)
    start_time: datetime
    end_time: datetime
    state: SleepState

    @property
    def is_asleep(self) -> bool:
        return self.state in ASLEEP_STATES

    @property
    def duration_seconds(self) -> float:
        return (self.end_time - self.start_time).total_seconds()


# ==================== Insights ====================


class InsightCategory(str, Enum):
    NUTRITION_GENERAL = "nutritionGeneral"
    HYDRATION = "hydration"
    MACRO_BALANCE = "macroBalance"
    MICRO_NUTRIENT = "microNutrient"
    MEAL_TIMING = "mealTiming"
    CONSISTENCY = "consistency"
    POST_WORKOUT = "postWorkout"
    FOOD_VARIETY = "foodVariety"
    POSITIVE_REINFORCEMENT = "positiveReinforcement"
    SUGAR_AWARENESS = "sugarAwareness"
    FIBER_INTAKE = "fiberIntake"
    SATURATED_FAT = "saturatedFat"
    SMART_SUGGESTION = "smartSuggestion"
    SLEEP = "sleep"


class UserInsight(BaseModel):
    """A derived observation about recent logging behaviour. Never persisted."""

    id: str = Field(default_factory=_new_id)
    title: str
    message: str
    category: InsightCategory
    priority: int = 0
    related_data: Optional[dict[str, str]] = None


# ==================== Achievements ====================


class AchievementCriteriaType(str, Enum):
    LOGGING_STREAK = "loggingStreak"
    CALORIE_GOAL_HIT_COUNT = "calorieGoalHitCount"
    MACRO_GOAL_HIT_COUNT = "macroGoalHitCount"
    WATER_GOAL_HIT_COUNT = "waterGoalHitCount"
    WEIGHT_CHANGE = "weightChange"
    TARGET_WEIGHT_REACHED = "targetWeightReached"
    FEATURE_USED = "featureUsed"
    BARCODE_SCAN_USED = "barcodeScanUsed"
    IMAGE_SCAN_USED = "imageScanUsed"
    AI_RECIPE_LOGGED = "aiRecipeLogged"


class AchievementDefinition(BaseModel):
    """Static catalog entry. Not user data."""

    model_config = {"frozen": True}

    id: str
    title: str
    description: str
    icon_name: str
    criteria_type: AchievementCriteriaType
    criteria_value: float = Field(gt=0)
    points_value: int = Field(ge=0)


class UserAchievementStatus(BaseModel):
    """Per-user state of one achievement. is_unlocked never reverts."""

    achievement_id: str
    is_unlocked: bool = False
    unlocked_date: Optional[datetime] = None
    current_progress: float = Field(default=0.0, ge=0)
    last_progress_update: Optional[datetime] = None


class UserProgress(BaseModel):
    """Points and derived level for a user."""

    total_points: int = Field(default=0, ge=0)
    level: int = Field(default=1, ge=1)


# ==================== Challenges ====================


class ChallengeType(str, Enum):
    LOGGING_STREAK = "loggingStreak"
    PROTEIN_GOAL_HIT = "proteinGoalHit"
    WORKOUT_LOGGED = "workoutLogged"
    CALORIE_RANGE = "calorieRange"


class ChallengeTemplate(BaseModel):
    """A reusable challenge shape sampled into weekly batches."""

    model_config = {"frozen": True}

    title: str
    description: str
    type: ChallengeType
    goal: float = Field(gt=0)
    points_value: int = Field(ge=0)


class Challenge(BaseModel):
    """A time-boxed challenge instance. is_completed never reverts."""

    id: str = Field(default_factory=_new_id)
    title: str
    description: str
    type: ChallengeType
    goal: float = Field(gt=0)
    progress: float = Field(default=0, ge=0)
    points_value: int = Field(ge=0)
    is_completed: bool = False
    expires_at: datetime
    credited_keys: list[str] = Field(
        default_factory=list, description="Credit keys already counted (e.g. ISO dates)"
    )


# ==================== Reductions ====================


class MacroTotals(BaseModel):
    """Macronutrient sums for a day."""

    protein: float = 0
    fats: float = 0
    carbs: float = 0


class MicronutrientTotals(BaseModel):
    """Micronutrient sums for a day. Absent values count as zero."""

    calcium: float = 0
    iron: float = 0
    potassium: float = 0
    sodium: float = 0
    vitamin_a: float = 0
    vitamin_c: float = 0
    vitamin_d: float = 0
