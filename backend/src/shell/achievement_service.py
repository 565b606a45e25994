"""Achievement Service - Runs achievement and challenge checks on user events.

Each hook loads the user's statuses, lets the core engine decide what changed,
then persists statuses, awards points and credits challenges.
"""

import logging
import random
from collections.abc import Callable, Sequence
from datetime import date, datetime, timedelta
from typing import Protocol

from ..core.achievements import (
    ACHIEVEMENT_CATALOG,
    AchievementEngine,
    AchievementOutcome,
)
from ..core.challenges import active_challenges, apply_progress
from ..core.challenges import generate_weekly_challenges as build_weekly_batch
from ..core.models import (
    AchievementCriteriaType,
    AchievementDefinition,
    Challenge,
    ChallengeType,
    DailyLog,
    GoalSettings,
    UserAchievementStatus,
    UserProgress,
    WeightEntry,
)
from ..core.totals import food_item_count


logger = logging.getLogger(__name__)

Notifier = Callable[[str, str, str], None]


class AchievementStore(Protocol):
    """Storage the achievement hooks read and write. Failed reads return None."""

    def get_goals(self, user_id: str) -> GoalSettings | None: ...

    def get_log(self, user_id: str, log_date: date) -> DailyLog | None: ...

    def get_logs_range(
        self, user_id: str, start_date: date, end_date: date
    ) -> list[DailyLog] | None: ...

    def get_weight_history(self, user_id: str) -> list[WeightEntry] | None: ...

    def get_achievement_statuses(self, user_id: str) -> dict[str, UserAchievementStatus] | None: ...

    def save_achievement_status(self, user_id: str, status: UserAchievementStatus) -> bool: ...

    def get_progress(self, user_id: str) -> UserProgress | None: ...

    def add_points(self, user_id: str, delta: int) -> UserProgress | None: ...

    def get_challenges(self, user_id: str, expiring_after: datetime) -> list[Challenge] | None: ...

    def save_challenges(self, user_id: str, challenges: list[Challenge]) -> bool: ...

    def save_challenge(self, user_id: str, challenge: Challenge) -> bool: ...


def log_notification(user_id: str, title: str, body: str) -> None:
    """Default notifier: write the notification to the log."""
    logger.info("Notify %s: %s - %s", user_id[:8], title, body)


class AchievementService:
    """Event hooks that keep achievements, points and challenges up to date."""

    def __init__(
        self,
        store: AchievementStore,
        catalog: Sequence[AchievementDefinition] = ACHIEVEMENT_CATALOG,
        clock: Callable[[], datetime] = datetime.utcnow,
        rng: random.Random | None = None,
        notify: Notifier | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            store: Persistence for statuses, points, logs and challenges
            catalog: Achievement definitions
            clock: Source of the current time
            rng: Randomness for challenge selection
            notify: Called with (user_id, title, body) on unlocks and completions
        """
        self._store = store
        self.catalog = tuple(catalog)
        self._clock = clock
        self._rng = rng or random.Random()
        self._notify = notify or log_notification
        self._streak_days = max(
            (
                int(d.criteria_value)
                for d in self.catalog
                if d.criteria_type == AchievementCriteriaType.LOGGING_STREAK
            ),
            default=1,
        )

    def _engine(self, user_id: str) -> AchievementEngine | None:
        statuses = self._store.get_achievement_statuses(user_id)
        if statuses is None:
            logger.warning("Skipping achievement check for %s: statuses unavailable", user_id[:8])
            return None
        return AchievementEngine(statuses, self.catalog, self._clock)

    # ==================== Event Hooks ====================

    def on_log_mutated(self, user_id: str, log_date: date) -> AchievementOutcome:
        """Re-check log-driven achievements after food, water or exercise changes.

        Args:
            user_id: The user's ID
            log_date: Date of the log that changed

        Returns:
            What changed (empty if nothing was checked)
        """
        engine = self._engine(user_id)
        if engine is None:
            return AchievementOutcome()

        log = self._store.get_log(user_id, log_date)
        if log is None:
            return AchievementOutcome()

        goals = self._store.get_goals(user_id)
        if goals is not None:
            engine.check_daily_goals(log, goals)

        if food_item_count(log) > 0:
            engine.check_first_log()
            start = log_date - timedelta(days=self._streak_days - 1)
            logs = self._store.get_logs_range(user_id, start, log_date)
            if logs is not None:
                engine.check_logging_streak(logs, log_date)
            engine.credit_challenge(ChallengeType.LOGGING_STREAK, 1, log_date.isoformat())

        return self._apply(user_id, engine.drain())

    def on_exercise_logged(self, user_id: str) -> list[Challenge]:
        """Credit workout challenges for one logged workout."""
        return self.update_challenge_progress(user_id, ChallengeType.WORKOUT_LOGGED, 1)

    def on_weight_updated(self, user_id: str) -> AchievementOutcome:
        """Check weigh-in, weight change and target weight achievements."""
        engine = self._engine(user_id)
        if engine is None:
            return AchievementOutcome()

        history = self._store.get_weight_history(user_id)
        if not history:
            return AchievementOutcome()

        current = max(history, key=lambda entry: entry.date).weight
        goals = self._store.get_goals(user_id)

        engine.check_first_weight_log()
        engine.check_weight_change(history, current)
        engine.check_target_weight(current, goals.target_weight if goals else None)
        return self._apply(user_id, engine.drain())

    def on_goal_set(self, user_id: str) -> AchievementOutcome:
        engine = self._engine(user_id)
        if engine is None:
            return AchievementOutcome()
        engine.check_goal_set()
        return self._apply(user_id, engine.drain())

    def on_feature_used(self, user_id: str, feature: AchievementCriteriaType) -> AchievementOutcome:
        engine = self._engine(user_id)
        if engine is None:
            return AchievementOutcome()
        engine.check_feature_used(feature)
        return self._apply(user_id, engine.drain())

    # ==================== Challenges ====================

    def generate_weekly_challenges(self, user_id: str) -> list[Challenge]:
        """Start a new weekly batch if the user has no unexpired challenges.

        Returns:
            The newly created challenges (empty if none were needed or saving failed)
        """
        now = self._clock()
        existing = self._store.get_challenges(user_id, now)
        if existing is None:
            return []

        batch = build_weekly_batch(existing, now, self._rng)
        if not batch:
            return []
        if not self._store.save_challenges(user_id, batch):
            return []

        logger.info("Generated %d weekly challenges for %s", len(batch), user_id[:8])
        return batch

    def update_challenge_progress(
        self,
        user_id: str,
        challenge_type: ChallengeType,
        amount: float = 1,
        credit_key: str | None = None,
    ) -> list[Challenge]:
        """Add progress to every open challenge of a type.

        Args:
            user_id: The user's ID
            challenge_type: Which challenges to credit
            amount: Progress to add
            credit_key: If given, each challenge counts this key at most once

        Returns:
            Challenges completed by this call
        """
        now = self._clock()
        challenges = self._store.get_challenges(user_id, now)
        if challenges is None:
            return []

        completed = []
        for challenge in challenges:
            if challenge.type != challenge_type:
                continue
            result = apply_progress(challenge, amount, now, credit_key)
            if result is None:
                continue
            updated, done = result
            if not self._store.save_challenge(user_id, updated):
                continue
            if done:
                logger.info("Challenge %s completed by %s", updated.title, user_id[:8])
                self._store.add_points(user_id, updated.points_value)
                self._notify(
                    user_id,
                    "Challenge Complete!",
                    f"You completed '{updated.title}' and earned {updated.points_value} points!",
                )
                completed.append(updated)
        return completed

    # ==================== Queries ====================

    def get_progress(self, user_id: str) -> UserProgress | None:
        return self._store.get_progress(user_id)

    def get_achievements(
        self, user_id: str
    ) -> list[tuple[AchievementDefinition, UserAchievementStatus]] | None:
        """Catalog entries paired with the user's status, in catalog order."""
        statuses = self._store.get_achievement_statuses(user_id)
        if statuses is None:
            return None
        return [
            (d, statuses.get(d.id) or UserAchievementStatus(achievement_id=d.id))
            for d in self.catalog
        ]

    def get_challenges(self, user_id: str) -> list[Challenge] | None:
        now = self._clock()
        challenges = self._store.get_challenges(user_id, now)
        if challenges is None:
            return None
        return active_challenges(challenges, now)

    # ==================== Helpers ====================

    def _apply(self, user_id: str, outcome: AchievementOutcome) -> AchievementOutcome:
        """Persist statuses, then award points and credit challenges.

        Points and notifications are only given for unlocks whose status was
        saved; an unsaved unlock is re-detected on the next event.
        """
        saved = set()
        for status in outcome.statuses:
            if self._store.save_achievement_status(user_id, status):
                saved.add(status.achievement_id)
            else:
                logger.warning(
                    "Status for %s not saved for %s", status.achievement_id, user_id[:8]
                )

        outcome.unlocked = [d for d in outcome.unlocked if d.id in saved]
        for definition in outcome.unlocked:
            logger.info("Achievement %s unlocked by %s", definition.id, user_id[:8])
            if definition.points_value > 0:
                self._store.add_points(user_id, definition.points_value)
            self._notify(
                user_id,
                "Achievement Unlocked!",
                f"You've earned '{definition.title}' (+{definition.points_value} points).",
            )

        for credit in outcome.challenge_credits:
            self.update_challenge_progress(
                user_id, credit.type, credit.amount, credit.credit_key
            )
        return outcome
