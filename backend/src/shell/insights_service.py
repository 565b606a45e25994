"""Insights Service - Fetch a user's recent data and run the insight rules.

Storage calls are blocking, so they run in worker threads. A newer refresh
for the same user cancels the one still in flight.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import date, datetime, time, timedelta
from typing import Protocol

from ..core.insights import (
    DEFAULT_MAX_INSIGHTS,
    DEFAULT_WINDOW_DAYS,
    error_insight,
    evaluate_insights,
)
from ..core.models import DailyLog, GoalSettings, SleepSample, UserInsight
from ..core.suggestions import evaluate_daily_suggestion


logger = logging.getLogger(__name__)

LOAD_FAILED_MESSAGE = "We couldn't load your recent logs. Please try again in a moment."


class InsightsStore(Protocol):
    """Reads the insight engines need. Failed reads return None."""

    def get_goals(self, user_id: str) -> GoalSettings | None: ...

    def get_log(self, user_id: str, log_date: date) -> DailyLog | None: ...

    def get_logs_range(
        self, user_id: str, start_date: date, end_date: date
    ) -> list[DailyLog] | None: ...

    def get_sleep_samples(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[SleepSample] | None: ...


class InsightsService:
    """Produces ranked insights and the daily suggestion for a user."""

    def __init__(
        self,
        store: InsightsStore,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Initialize the service.

        Args:
            store: Data source for logs, goals and sleep
            clock: Source of the current local time
        """
        self._store = store
        self._clock = clock
        self._tasks: dict[str, asyncio.Task] = {}
        self.latest: dict[str, list[UserInsight]] = {}

    async def refresh(
        self,
        user_id: str,
        days: int = DEFAULT_WINDOW_DAYS,
        max_insights: int = DEFAULT_MAX_INSIGHTS,
    ) -> list[UserInsight]:
        """Recompute insights for the last ``days`` days.

        If another refresh for the same user starts before this one finishes,
        this one is cancelled and its caller receives the newer result.

        Args:
            user_id: The user's ID
            days: Window length, ending today
            max_insights: Maximum number of insights to return

        Returns:
            Insights ordered by priority; never empty
        """
        previous = self._tasks.get(user_id)
        if previous is not None and not previous.done():
            logger.info("Superseding insight evaluation for %s", user_id[:8])
            previous.cancel()

        own = asyncio.create_task(self._evaluate(user_id, max(days, 1), max_insights))
        self._tasks[user_id] = own
        task = own
        try:
            while True:
                try:
                    if task is own:
                        return await task
                    return await asyncio.shield(task)
                except asyncio.CancelledError:
                    current = self._tasks.get(user_id)
                    if current is None or current is task:
                        raise
                    task = current
        finally:
            if self._tasks.get(user_id) is own:
                del self._tasks[user_id]

    async def _evaluate(self, user_id: str, days: int, max_insights: int) -> list[UserInsight]:
        today = self._clock().date()
        start = today - timedelta(days=days - 1)

        logs = await asyncio.to_thread(self._store.get_logs_range, user_id, start, today)
        if logs is None:
            logger.warning("Could not load logs for %s; returning error insight", user_id[:8])
            insights = [error_insight(LOAD_FAILED_MESSAGE)]
        else:
            goals = await asyncio.to_thread(self._store.get_goals, user_id) or GoalSettings()
            sleep = await asyncio.to_thread(
                self._store.get_sleep_samples,
                user_id,
                datetime.combine(start, time.min),
                datetime.combine(today + timedelta(days=1), time.min),
            )
            if sleep is None:
                logger.warning("Sleep data unavailable for %s", user_id[:8])
                sleep = []
            insights = evaluate_insights(
                logs, goals, sleep, max_insights=max_insights, window_days=days
            )
            logger.info(
                "Generated %d insights for %s from %d logs",
                len(insights), user_id[:8], len(logs),
            )

        self.latest[user_id] = insights
        return insights

    def daily_suggestion(self, user_id: str) -> UserInsight:
        """The single time-of-day suggestion for right now."""
        now = self._clock()
        log = self._store.get_log(user_id, now.date())
        goals = self._store.get_goals(user_id) or GoalSettings()
        return evaluate_daily_suggestion(log, goals, now)
