"""Tests for the achievement service using an in-memory store."""

import random
from datetime import date, datetime, timedelta

import pytest

from src.core.achievements import calculate_level, default_statuses
from src.core.models import (
    AchievementCriteriaType,
    Challenge,
    ChallengeType,
    DailyLog,
    FoodItem,
    GoalSettings,
    Meal,
    UserProgress,
    WeightEntry,
)
from src.shell.achievement_service import AchievementService


NOW = datetime(2024, 5, 6, 12, 0)
TODAY = NOW.date()


class InMemoryStore:
    """Dict-backed stand-in for the Firestore client."""

    def __init__(self):
        self.goals: dict = {}
        self.logs: dict = {}
        self.weights: dict = {}
        self.statuses: dict = {}
        self.points: dict = {}
        self.challenges: dict = {}
        self.fail_statuses = False
        self.fail_status_saves = False

    def get_goals(self, user_id):
        return self.goals.get(user_id)

    def get_log(self, user_id, log_date):
        return self.logs.get((user_id, log_date))

    def get_logs_range(self, user_id, start_date, end_date):
        return sorted(
            (log for (uid, d), log in self.logs.items() if uid == user_id and start_date <= d <= end_date),
            key=lambda log: log.log_date,
        )

    def get_weight_history(self, user_id):
        return sorted(self.weights.get(user_id, []), key=lambda e: e.date)

    def get_achievement_statuses(self, user_id):
        if self.fail_statuses:
            return None
        statuses = default_statuses()
        statuses.update(self.statuses.get(user_id, {}))
        return statuses

    def save_achievement_status(self, user_id, status):
        if self.fail_status_saves:
            return False
        self.statuses.setdefault(user_id, {})[status.achievement_id] = status
        return True

    def get_progress(self, user_id):
        total = self.points.get(user_id, 0)
        return UserProgress(total_points=total, level=calculate_level(total))

    def add_points(self, user_id, delta):
        self.points[user_id] = self.points.get(user_id, 0) + delta
        return self.get_progress(user_id)

    def get_challenges(self, user_id, expiring_after):
        return [c for c in self.challenges.get(user_id, {}).values() if c.expires_at > expiring_after]

    def save_challenges(self, user_id, challenges):
        for c in challenges:
            self.save_challenge(user_id, c)
        return True

    def save_challenge(self, user_id, challenge):
        self.challenges.setdefault(user_id, {})[challenge.id] = challenge
        return True


def food_log(day: date, calories: float = 500, protein: float = 30) -> DailyLog:
    return DailyLog(
        log_date=day,
        meals=[Meal(name="Lunch", food_items=[FoodItem(name="Plate", calories=calories, protein=protein, carbs=50, fats=20)])],
    )


def open_challenge(type: ChallengeType, goal: float = 3, points: int = 75) -> Challenge:
    return Challenge(title=type.value, description="d", type=type, goal=goal, points_value=points, expires_at=NOW + timedelta(days=5))


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def notifications():
    return []


@pytest.fixture
def service(store, notifications):
    return AchievementService(
        store,
        clock=lambda: NOW,
        rng=random.Random(3),
        notify=lambda user_id, title, body: notifications.append((user_id, title, body)),
    )


class TestOnLogMutated:
    """Tests for log-driven achievement checks."""

    def test_first_log_awards_points_once(self, service, store, notifications):
        """First Steps unlocks once and its points are added once."""
        store.logs[("u1", TODAY)] = food_log(TODAY)

        outcome = service.on_log_mutated("u1", TODAY)
        assert "first_log" in [d.id for d in outcome.unlocked]
        assert store.points["u1"] == 10
        assert store.statuses["u1"]["first_log"].is_unlocked
        assert notifications[0][1] == "Achievement Unlocked!"

        again = service.on_log_mutated("u1", TODAY)
        assert again.unlocked == []
        assert store.points["u1"] == 10

    def test_streak_unlocks(self, service, store):
        """Three consecutive days unlock the three-day streak."""
        for n in range(3):
            day = TODAY - timedelta(days=n)
            store.logs[("u1", day)] = food_log(day)

        service.on_log_mutated("u1", TODAY)
        assert store.statuses["u1"]["log_streak_3"].is_unlocked
        assert store.statuses["u1"]["log_streak_7"].current_progress == 3
        assert store.points["u1"] == 10 + 20

    def test_empty_log_checks_nothing(self, service, store):
        """A log with no food unlocks nothing."""
        store.logs[("u1", TODAY)] = DailyLog(log_date=TODAY)
        assert service.on_log_mutated("u1", TODAY).is_empty
        assert "u1" not in store.points

    def test_unavailable_statuses_skip_check(self, service, store):
        """A failed status read skips the check instead of raising."""
        store.fail_statuses = True
        store.logs[("u1", TODAY)] = food_log(TODAY)
        assert service.on_log_mutated("u1", TODAY).is_empty

    def test_daily_challenges_credited_once_per_day(self, service, store):
        """Repeated edits to the same day credit daily challenges once."""
        store.goals["u1"] = GoalSettings(calories=500, protein=30)
        store.logs[("u1", TODAY)] = food_log(TODAY)
        protein = open_challenge(ChallengeType.PROTEIN_GOAL_HIT, goal=4)
        streak = open_challenge(ChallengeType.LOGGING_STREAK, goal=7)
        store.save_challenges("u1", [protein, streak])

        service.on_log_mutated("u1", TODAY)
        service.on_log_mutated("u1", TODAY)

        assert store.challenges["u1"][protein.id].progress == 1
        assert store.challenges["u1"][streak.id].progress == 1


class TestChallenges:
    """Tests for challenge generation and progress."""

    def test_generate_persists_five(self, service, store):
        """A user with no challenges gets five expiring in a week."""
        batch = service.generate_weekly_challenges("u1")
        assert len(batch) == 5
        assert len(store.challenges["u1"]) == 5
        assert all(c.expires_at == NOW + timedelta(days=7) for c in batch)

        assert service.generate_weekly_challenges("u1") == []
        assert len(store.challenges["u1"]) == 5

    def test_workout_completion_awards_points(self, service, store, notifications):
        """Completing a challenge awards its points and notifies."""
        workout = open_challenge(ChallengeType.WORKOUT_LOGGED, goal=2, points=50)
        store.save_challenges("u1", [workout])

        assert service.on_exercise_logged("u1") == []
        completed = service.on_exercise_logged("u1")
        assert [c.id for c in completed] == [workout.id]
        assert store.points["u1"] == 50
        assert notifications[-1][1] == "Challenge Complete!"

        assert service.on_exercise_logged("u1") == []
        assert store.points["u1"] == 50

    def test_other_types_untouched(self, service, store):
        """Only challenges of the credited type move."""
        protein = open_challenge(ChallengeType.PROTEIN_GOAL_HIT)
        store.save_challenges("u1", [protein])
        service.update_challenge_progress("u1", ChallengeType.WORKOUT_LOGGED, 1)
        assert store.challenges["u1"][protein.id].progress == 0

    def test_get_challenges_active_only(self, service, store):
        """Expired challenges are not listed."""
        expired = open_challenge(ChallengeType.WORKOUT_LOGGED).model_copy(update={"expires_at": NOW - timedelta(days=1)})
        live = open_challenge(ChallengeType.CALORIE_RANGE)
        store.save_challenges("u1", [expired, live])
        assert [c.id for c in service.get_challenges("u1")] == [live.id]


class TestOtherHooks:
    """Tests for goal, weight and feature hooks."""

    def test_goal_set(self, service, store):
        """Setting goals unlocks Goal Setter."""
        service.on_goal_set("u1")
        assert store.statuses["u1"]["goal_setter"].is_unlocked
        assert store.points["u1"] == 15

    def test_feature_use_idempotent(self, service, store):
        """The same feature twice leaves points unchanged after the first."""
        service.on_feature_used("u1", AchievementCriteriaType.IMAGE_SCAN_USED)
        unlocked_date = store.statuses["u1"]["picture_perfect"].unlocked_date
        service.on_feature_used("u1", AchievementCriteriaType.IMAGE_SCAN_USED)
        assert store.points["u1"] == 25
        assert store.statuses["u1"]["picture_perfect"].unlocked_date == unlocked_date

    def test_weight_updated(self, service, store):
        """Weigh-ins unlock weight achievements against the first entry and target."""
        store.goals["u1"] = GoalSettings(target_weight=174)
        store.weights["u1"] = [
            WeightEntry(date=datetime(2024, 4, 1), weight=180),
            WeightEntry(date=datetime(2024, 5, 6), weight=174.2),
        ]
        outcome = service.on_weight_updated("u1")
        assert {d.id for d in outcome.unlocked} == {"on_the_weigh", "first_5_lbs", "target_reached"}
        assert store.points["u1"] == 10 + 50 + 100

    def test_weight_without_history(self, service):
        """No weigh-ins, nothing to check."""
        assert service.on_weight_updated("u1").is_empty

    def test_get_achievements_pairs_catalog(self, service):
        """Every catalog entry is listed with its status."""
        entries = service.get_achievements("u1")
        assert len(entries) == 13
        assert all(d.id == s.achievement_id for d, s in entries)

    def test_unsaved_unlock_awards_nothing(self, service, store, notifications):
        """An unlock whose status fails to save gives no points until it is saved."""
        store.fail_status_saves = True
        outcome = service.on_feature_used("u1", AchievementCriteriaType.BARCODE_SCAN_USED)
        service.on_feature_used("u1", AchievementCriteriaType.BARCODE_SCAN_USED)
        assert outcome.unlocked == []
        assert store.points.get("u1", 0) == 0
        assert notifications == []

        store.fail_status_saves = False
        service.on_feature_used("u1", AchievementCriteriaType.BARCODE_SCAN_USED)
        service.on_feature_used("u1", AchievementCriteriaType.BARCODE_SCAN_USED)
        assert store.points["u1"] == 20
        assert len(notifications) == 1
        assert store.statuses["u1"]["scanner_pro"].is_unlocked
