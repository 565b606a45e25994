"""Tests for the insights service - fetching, fallbacks and cancellation."""

import asyncio
import threading
from datetime import date, datetime, timedelta

from src.core.models import (
    DailyLog,
    FoodItem,
    GoalSettings,
    Meal,
    PrimaryGoal,
)
from src.shell.insights_service import InsightsService


NOW = datetime(2024, 5, 6, 10, 0)
TODAY = NOW.date()


def deficit_logs() -> list[DailyLog]:
    return [
        DailyLog(
            log_date=TODAY - timedelta(days=2 - i),
            meals=[Meal(name="Lunch", food_items=[FoodItem(name="Plate", calories=c, protein=150, carbs=0, fats=0)])],
        )
        for i, c in enumerate([1500, 1600, 1550])
    ]


class FakeStore:
    """Configurable in-memory data source."""

    def __init__(self, logs=None, goals=None, sleep=None, today_log=None):
        self.logs = logs
        self.goals = goals
        self.sleep = sleep
        self.today_log = today_log
        self.ranges = []

    def get_goals(self, user_id):
        return self.goals

    def get_log(self, user_id, log_date):
        return self.today_log

    def get_logs_range(self, user_id, start_date, end_date):
        self.ranges.append((start_date, end_date))
        return self.logs

    def get_sleep_samples(self, user_id, start, end):
        return self.sleep


class SlowFirstStore(FakeStore):
    """Blocks the first log fetch until released."""

    def __init__(self):
        super().__init__(goals=GoalSettings(calories=2000), sleep=[])
        self.calls = 0
        self.first_started = threading.Event()
        self.release_first = threading.Event()

    def get_logs_range(self, user_id, start_date, end_date):
        self.calls += 1
        if self.calls == 1:
            self.first_started.set()
            self.release_first.wait(timeout=5)
            return deficit_logs()
        return []


class TestRefresh:
    """Tests for InsightsService.refresh."""

    def test_evaluates_window(self):
        """The window ends today and spans the requested days."""
        store = FakeStore(logs=deficit_logs(), goals=GoalSettings(calories=2000, protein=150), sleep=[])
        service = InsightsService(store, clock=lambda: NOW)

        result = asyncio.run(service.refresh("u1", days=7))

        assert store.ranges == [(TODAY - timedelta(days=6), TODAY)]
        assert any(i.title == "Fueling Your Body" for i in result)
        assert service.latest["u1"] == result

    def test_log_failure_returns_error_insight(self):
        """A failed log fetch yields a single error insight."""
        service = InsightsService(FakeStore(logs=None), clock=lambda: NOW)
        result = asyncio.run(service.refresh("u1"))
        assert len(result) == 1
        assert result[0].title == "Insight Error"
        assert result[0].priority == 0

    def test_missing_goals_use_defaults(self):
        """Without saved goals the defaults apply."""
        service = InsightsService(FakeStore(logs=[], goals=None, sleep=[]), clock=lambda: NOW)
        result = asyncio.run(service.refresh("u1"))
        assert [i.title for i in result] == ["More Data Needed"]

    def test_sleep_failure_degrades(self):
        """Unavailable sleep data does not stop the other rules."""
        goals = GoalSettings(calories=2000, protein=150, goal=PrimaryGoal.MAINTAIN)
        service = InsightsService(FakeStore(logs=deficit_logs(), goals=goals, sleep=None), clock=lambda: NOW)
        result = asyncio.run(service.refresh("u1"))
        assert any(i.title == "Fueling Your Body" for i in result)

    def test_respects_max_insights(self):
        """The limit is passed through to the engine."""
        goals = GoalSettings(calories=2000, protein=300)
        service = InsightsService(FakeStore(logs=deficit_logs(), goals=goals, sleep=[]), clock=lambda: NOW)
        result = asyncio.run(service.refresh("u1", max_insights=1))
        assert len(result) == 1

    def test_newer_refresh_supersedes(self):
        """A newer request cancels the older one, whose caller gets the newer result."""
        store = SlowFirstStore()
        service = InsightsService(store, clock=lambda: NOW)

        async def scenario():
            first = asyncio.create_task(service.refresh("u1"))
            await asyncio.to_thread(store.first_started.wait, 5)
            try:
                second = await service.refresh("u1")
                first_result = await first
            finally:
                store.release_first.set()
            return first_result, second

        first_result, second = asyncio.run(scenario())

        assert [i.title for i in second] == ["More Data Needed"]
        assert first_result == second
        assert service.latest["u1"] == second

    def test_users_do_not_cancel_each_other(self):
        """Refreshes for different users run independently."""
        store = FakeStore(logs=[], goals=None, sleep=[])
        service = InsightsService(store, clock=lambda: NOW)

        async def scenario():
            return await asyncio.gather(service.refresh("u1"), service.refresh("u2"))

        a, b = asyncio.run(scenario())
        assert a[0].title == b[0].title == "More Data Needed"
        assert set(service.latest) == {"u1", "u2"}


class TestDailySuggestion:
    """Tests for InsightsService.daily_suggestion."""

    def test_welcome_without_log(self):
        """No log today yields the welcome tip."""
        service = InsightsService(FakeStore(), clock=lambda: NOW)
        assert service.daily_suggestion("u1").title == "Welcome!"

    def test_uses_today_log(self):
        """Today's log drives the suggestion."""
        log = DailyLog(log_date=date(2024, 5, 6), meals=[Meal(name="Breakfast", food_items=[FoodItem(name="Eggs", calories=200, protein=12, carbs=1, fats=14)])])
        service = InsightsService(FakeStore(today_log=log), clock=lambda: NOW)
        assert service.daily_suggestion("u1").title == "Keep Up the Great Work!"
