"""Achievements - Catalog, level derivation and the unlock state machine.

The engine works on one user's statuses in memory and records every change
it makes; the shell persists the drained outcome. Nothing here does I/O.

Status lifecycle per achievement:
    locked (no progress) -> locked (with progress) -> unlocked
Unlocked is terminal. Progress never decreases and stays in [0, criteria_value].
"""

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional

from .models import (
    AchievementCriteriaType,
    AchievementDefinition,
    ChallengeType,
    DailyLog,
    GoalSettings,
    UserAchievementStatus,
    WeightEntry,
)
from .totals import food_item_count, total_calories, total_macros


LEVEL_THRESHOLDS: tuple[int, ...] = (0, 100, 250, 500, 1000, 2000, 5000)

CALORIE_TOLERANCE = 100.0
PROTEIN_TOLERANCE = 10.0
CARBS_TOLERANCE = 20.0
FATS_TOLERANCE = 5.0
TARGET_WEIGHT_TOLERANCE = 0.5
PROGRESS_EPSILON = 0.01

FIRST_LOG = "first_log"
GOAL_SETTER = "goal_setter"
CALORIE_TARGET_HIT = "calorie_target_hit"
MACRO_MASTER = "macro_master"
HYDRATION_HERO = "hydration_hero"
ON_THE_WEIGH = "on_the_weigh"
FIRST_5_LBS = "first_5_lbs"
TARGET_REACHED = "target_reached"

_C = AchievementCriteriaType

ACHIEVEMENT_CATALOG: tuple[AchievementDefinition, ...] = (
    AchievementDefinition(id=FIRST_LOG, title="First Steps", description="Log your first meal or food item.", icon_name="figure.walk.arrival", criteria_type=_C.LOGGING_STREAK, criteria_value=1, points_value=10),
    AchievementDefinition(id="log_streak_3", title="Getting Started", description="Log food entries for 3 consecutive days.", icon_name="flame.fill", criteria_type=_C.LOGGING_STREAK, criteria_value=3, points_value=20),
    AchievementDefinition(id="log_streak_7", title="Consistent Logger", description="Log food entries for 7 consecutive days.", icon_name="calendar.badge.clock", criteria_type=_C.LOGGING_STREAK, criteria_value=7, points_value=50),
    AchievementDefinition(id=GOAL_SETTER, title="Goal Setter", description="Set your initial calorie and macro goals.", icon_name="target", criteria_type=_C.FEATURE_USED, criteria_value=1, points_value=15),
    AchievementDefinition(id=CALORIE_TARGET_HIT, title="Calorie Target Hit", description="Meet your daily calorie goal.", icon_name="checkmark.circle.fill", criteria_type=_C.CALORIE_GOAL_HIT_COUNT, criteria_value=1, points_value=20),
    AchievementDefinition(id=MACRO_MASTER, title="Macro Master", description="Meet all 3 macro goals on the same day.", icon_name="chart.pie.fill", criteria_type=_C.MACRO_GOAL_HIT_COUNT, criteria_value=1, points_value=30),
    AchievementDefinition(id=HYDRATION_HERO, title="Hydration Hero", description="Meet your daily water goal.", icon_name="drop.fill", criteria_type=_C.WATER_GOAL_HIT_COUNT, criteria_value=1, points_value=15),
    AchievementDefinition(id=ON_THE_WEIGH, title="On the Weigh", description="Log your weight for the first time.", icon_name="scalemass.fill", criteria_type=_C.FEATURE_USED, criteria_value=1, points_value=10),
    AchievementDefinition(id=FIRST_5_LBS, title="First 5 Pounds", description="Lose (or gain) your first 5 lbs.", icon_name="figure.walk.motion", criteria_type=_C.WEIGHT_CHANGE, criteria_value=5, points_value=50),
    AchievementDefinition(id=TARGET_REACHED, title="Target Reached", description="Reach your set target weight.", icon_name="flag.checkered", criteria_type=_C.TARGET_WEIGHT_REACHED, criteria_value=1, points_value=100),
    AchievementDefinition(id="scanner_pro", title="Scanner Pro", description="Log a food item using the barcode scanner.", icon_name="barcode.viewfinder", criteria_type=_C.BARCODE_SCAN_USED, criteria_value=1, points_value=20),
    AchievementDefinition(id="ai_chef", title="AI Chef", description="Log a recipe generated by the AI Chatbot.", icon_name="brain.head.profile", criteria_type=_C.AI_RECIPE_LOGGED, criteria_value=1, points_value=25),
    AchievementDefinition(id="picture_perfect", title="Picture Perfect", description="Log a food item using image recognition.", icon_name="camera.viewfinder", criteria_type=_C.IMAGE_SCAN_USED, criteria_value=1, points_value=25),
)


def calculate_level(points: int, thresholds: Sequence[int] = LEVEL_THRESHOLDS) -> int:
    """Derive a level from a points total.

    Scans thresholds from the highest down and takes the first one reached.

    Args:
        points: Total points earned
        thresholds: Ascending point thresholds, one per level

    Returns:
        Level number, never below 1
    """
    for index in range(len(thresholds) - 1, -1, -1):
        if points >= thresholds[index]:
            return max(1, index + 1)
    return 1


def default_statuses(catalog: Iterable[AchievementDefinition] = ACHIEVEMENT_CATALOG) -> dict[str, UserAchievementStatus]:
    """A locked, zero-progress status for every definition."""
    return {d.id: UserAchievementStatus(achievement_id=d.id) for d in catalog}


# ==================== Goal predicates ====================


def calorie_goal_hit(log: DailyLog, goals: GoalSettings) -> bool:
    if goals.calories is None:
        return False
    return abs(total_calories(log) - goals.calories) <= CALORIE_TOLERANCE


def protein_goal_hit(log: DailyLog, goals: GoalSettings) -> bool:
    return abs(total_macros(log).protein - goals.protein) <= PROTEIN_TOLERANCE


def macro_goals_hit(log: DailyLog, goals: GoalSettings) -> bool:
    """Protein, carbs and fats all within tolerance on the same day."""
    macros = total_macros(log)
    return (
        abs(macros.protein - goals.protein) <= PROTEIN_TOLERANCE
        and abs(macros.carbs - goals.carbs) <= CARBS_TOLERANCE
        and abs(macros.fats - goals.fats) <= FATS_TOLERANCE
    )


def water_goal_hit(log: DailyLog) -> bool:
    tracker = log.water_tracker
    return tracker is not None and tracker.total_ounces >= tracker.goal_ounces


def logging_streak(logs: Iterable[DailyLog], end_date: date) -> int:
    """Count consecutive days, ending at ``end_date``, that have at least one food item.

    Args:
        logs: Logs in any order; days without a log break the streak
        end_date: Last day of the streak

    Returns:
        Number of consecutive days with food (0 if end_date has none)
    """
    days_with_food = {log.log_date for log in logs if food_item_count(log) > 0}
    streak = 0
    day = end_date
    while day in days_with_food:
        streak += 1
        day -= timedelta(days=1)
    return streak


def weight_change(history: Sequence[WeightEntry], current_weight: float) -> Optional[float]:
    """Absolute change from the earliest weigh-in, or None without history."""
    if not history:
        return None
    first = min(history, key=lambda entry: entry.date)
    return abs(current_weight - first.weight)


# ==================== Engine ====================


@dataclass(frozen=True)
class ChallengeCredit:
    """Progress owed to every active challenge of a type."""

    type: ChallengeType
    amount: float = 1
    credit_key: Optional[str] = None


@dataclass
class AchievementOutcome:
    """Everything an evaluation pass changed, for the caller to persist."""

    statuses: list[UserAchievementStatus] = field(default_factory=list)
    unlocked: list[AchievementDefinition] = field(default_factory=list)
    challenge_credits: list[ChallengeCredit] = field(default_factory=list)

    @property
    def points(self) -> int:
        return sum(d.points_value for d in self.unlocked)

    @property
    def is_empty(self) -> bool:
        return not (self.statuses or self.unlocked or self.challenge_credits)


class AchievementEngine:
    """Evaluates unlock conditions against one user's achievement statuses.

    All checks are idempotent: once an achievement is unlocked every further
    check for it is a no-op.
    """

    def __init__(
        self,
        statuses: Optional[dict[str, UserAchievementStatus]] = None,
        catalog: Sequence[AchievementDefinition] = ACHIEVEMENT_CATALOG,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        """Initialize the engine.

        Args:
            statuses: Persisted statuses keyed by achievement id (missing ones default to locked)
            catalog: Achievement definitions
            clock: Source of the current time
        """
        self.catalog = tuple(catalog)
        self._definitions = {d.id: d for d in self.catalog}
        self.statuses = default_statuses(self.catalog)
        self.statuses.update(statuses or {})
        self._clock = clock
        self._changed: dict[str, UserAchievementStatus] = {}
        self._unlocked: list[AchievementDefinition] = []
        self._credits: list[ChallengeCredit] = []

    def definition(self, achievement_id: str) -> Optional[AchievementDefinition]:
        return self._definitions.get(achievement_id)

    def should_check(self, achievement_id: str) -> bool:
        """True if the achievement exists and is still locked."""
        if achievement_id not in self._definitions:
            return False
        status = self.statuses.get(achievement_id)
        return not (status and status.is_unlocked)

    def unlock(self, achievement_id: str) -> bool:
        """Unlock an achievement. Returns False if unknown or already unlocked."""
        if not self.should_check(achievement_id):
            return False
        definition = self._definitions[achievement_id]
        now = self._clock()
        status = self.statuses[achievement_id].model_copy(
            update={
                "is_unlocked": True,
                "unlocked_date": now,
                "current_progress": definition.criteria_value,
                "last_progress_update": now,
            }
        )
        self._record(status)
        self._unlocked.append(definition)
        return True

    def update_progress(self, achievement_id: str, progress: float) -> bool:
        """Move progress toward unlock. Returns True if the stored value changed.

        Progress is clamped into [0, criteria_value] and never moves backwards.
        """
        if not self.should_check(achievement_id):
            return False
        definition = self._definitions[achievement_id]
        current = self.statuses[achievement_id]
        capped = min(max(0.0, progress), definition.criteria_value)
        if capped - current.current_progress <= PROGRESS_EPSILON:
            return False
        self._record(
            current.model_copy(
                update={"current_progress": capped, "last_progress_update": self._clock()}
            )
        )
        return True

    def credit_challenge(self, challenge_type: ChallengeType, amount: float = 1, credit_key: Optional[str] = None) -> None:
        self._credits.append(ChallengeCredit(challenge_type, amount, credit_key))

    # --- checks ---

    def check_first_log(self) -> None:
        self.unlock(FIRST_LOG)

    def check_daily_goals(self, log: DailyLog, goals: GoalSettings) -> None:
        """Check calorie, macro and water goals for one day's log.

        Also credits the calorieRange and proteinGoalHit challenges,
        at most once per log date.
        """
        credit_key = log.log_date.isoformat()
        if goals.calories is None:
            return
        if calorie_goal_hit(log, goals):
            self.credit_challenge(ChallengeType.CALORIE_RANGE, 1, credit_key)
            self.unlock(CALORIE_TARGET_HIT)
        if protein_goal_hit(log, goals):
            self.credit_challenge(ChallengeType.PROTEIN_GOAL_HIT, 1, credit_key)
        if self.should_check(MACRO_MASTER) and macro_goals_hit(log, goals):
            self.unlock(MACRO_MASTER)
        if self.should_check(HYDRATION_HERO) and water_goal_hit(log):
            self.unlock(HYDRATION_HERO)

    def check_logging_streak(self, logs: Iterable[DailyLog], end_date: date) -> int:
        """Advance every logging-streak achievement from the current streak.

        Returns:
            The streak length that was evaluated
        """
        streak = logging_streak(logs, end_date)
        for definition in self.catalog:
            if definition.criteria_type != AchievementCriteriaType.LOGGING_STREAK:
                continue
            if not self.should_check(definition.id) or streak <= 0:
                continue
            if streak >= definition.criteria_value:
                self.unlock(definition.id)
            else:
                self.update_progress(definition.id, streak)
        return streak

    def check_first_weight_log(self) -> None:
        self.unlock(ON_THE_WEIGH)

    def check_weight_change(self, history: Sequence[WeightEntry], current_weight: float) -> None:
        definition = self.definition(FIRST_5_LBS)
        if definition is None or not self.should_check(FIRST_5_LBS):
            return
        change = weight_change(history, current_weight)
        if change is None:
            return
        self.update_progress(FIRST_5_LBS, change)
        if change >= definition.criteria_value:
            self.unlock(FIRST_5_LBS)

    def check_target_weight(self, current_weight: float, target_weight: Optional[float]) -> None:
        if target_weight is None or not self.should_check(TARGET_REACHED):
            return
        if abs(current_weight - target_weight) <= TARGET_WEIGHT_TOLERANCE:
            self.unlock(TARGET_REACHED)

    def check_goal_set(self) -> None:
        self.unlock(GOAL_SETTER)

    def check_feature_used(self, feature: AchievementCriteriaType) -> Optional[AchievementDefinition]:
        """Instantly unlock the first achievement whose criteria matches the feature."""
        definition = next((d for d in self.catalog if d.criteria_type == feature), None)
        if definition is None:
            return None
        self.unlock(definition.id)
        return definition

    # --- results ---

    def drain(self) -> AchievementOutcome:
        """Return and clear everything changed since the last drain."""
        outcome = AchievementOutcome(
            statuses=list(self._changed.values()),
            unlocked=list(self._unlocked),
            challenge_credits=list(self._credits),
        )
        self._changed.clear()
        self._unlocked.clear()
        self._credits.clear()
        return outcome

    def _record(self, status: UserAchievementStatus) -> None:
        self.statuses[status.achievement_id] = status
        self._changed[status.achievement_id] = status
