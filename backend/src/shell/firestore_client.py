"""Firestore Client - Persistence for logs, goals, achievements and challenges.

This module handles all database I/O for the insight and achievement engines.
All I/O is contained here; business logic is in the core module.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from google.cloud import firestore
from pydantic import ValidationError

from ..core.achievements import calculate_level, default_statuses
from ..core.models import (
    Challenge,
    DailyLog,
    GoalSettings,
    SleepSample,
    UserAchievementStatus,
    UserProgress,
    WeightEntry,
)


logger = logging.getLogger(__name__)


@dataclass
class FirestoreConfig:
    """Configuration for Firestore client.

    Attributes:
        project_id: GCP project ID (None for default)
        database: Firestore database name (None for default database)
    """

    project_id: str | None = None
    database: str | None = None


def encode(value: Any) -> Any:
    """Convert model dumps into Firestore-friendly values.

    Dates become ISO strings, enums their values; datetimes pass through.
    """
    if isinstance(value, dict):
        return {k: encode(v) for k, v in value.items()}
    if isinstance(value, list):
        return [encode(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date) and not isinstance(value, datetime):
        return value.isoformat()
    return value


def decode(value: Any) -> Any:
    """Normalise Firestore values for model validation.

    Firestore returns timezone-aware UTC datetimes; the models use naive UTC.
    """
    if isinstance(value, dict):
        return {k: decode(v) for k, v in value.items()}
    if isinstance(value, list):
        return [decode(v) for v in value]
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class NutritionFirestoreClient:
    """Client for persisting nutrition data and gamification state to Firestore.

    Document structure per user:
        users/{user_id}: { total_points, level }
            settings/goals: { calories, protein, ... }
            logs/{YYYY-MM-DD}: { log_date, meals: [...], exercises, water_tracker }
            weightHistory/{entry_id}: { date, weight }
            sleepSamples/{sample_id}: { start_time, end_time, state }
            achievementStatus/{achievement_id}: { is_unlocked, current_progress, ... }
            activeChallenges/{challenge_id}: { type, goal, progress, expires_at, ... }
    """

    def __init__(self, config: FirestoreConfig | None = None) -> None:
        """Initialize Firestore client.

        Args:
            config: Firestore configuration
        """
        self.config = config or FirestoreConfig()
        self._client: firestore.Client | None = None

    @property
    def client(self) -> firestore.Client:
        """Lazy initialization of Firestore client."""
        if self._client is None:
            kwargs: dict[str, Any] = {}
            if self.config.project_id:
                kwargs["project"] = self.config.project_id
            if self.config.database:
                kwargs["database"] = self.config.database
            self._client = firestore.Client(**kwargs)
        return self._client

    def _user_ref(self, user_id: str) -> firestore.DocumentReference:
        """Get reference to user document."""
        return self.client.collection("users").document(user_id)

    def _goals_ref(self, user_id: str) -> firestore.DocumentReference:
        return self._user_ref(user_id).collection("settings").document("goals")

    def _log_ref(self, user_id: str, log_date: date) -> firestore.DocumentReference:
        return self._user_ref(user_id).collection("logs").document(log_date.isoformat())

    def _status_collection(self, user_id: str) -> firestore.CollectionReference:
        return self._user_ref(user_id).collection("achievementStatus")

    def _challenge_collection(self, user_id: str) -> firestore.CollectionReference:
        return self._user_ref(user_id).collection("activeChallenges")

    # ==================== Goal Operations ====================

    def get_goals(self, user_id: str) -> GoalSettings | None:
        """Fetch the user's goal snapshot.

        Args:
            user_id: The user's ID

        Returns:
            GoalSettings if found, None otherwise
        """
        logger.debug("Fetching goals for user: %s", user_id[:8])
        try:
            doc = self._goals_ref(user_id).get()
            if not doc.exists:
                return None
            return GoalSettings(**decode(doc.to_dict()))
        except Exception as e:
            logger.error("Failed to fetch goals: %s", str(e))
            return None

    def save_goals(self, user_id: str, goals: GoalSettings) -> bool:
        """Save the user's goals.

        Args:
            user_id: The user's ID
            goals: Goals to save

        Returns:
            True if successful
        """
        logger.info("Saving goals for user: %s", user_id[:8])
        try:
            data = encode(goals.model_dump())
            data["updated_at"] = datetime.utcnow()
            self._goals_ref(user_id).set(data)
            return True
        except Exception as e:
            logger.error("Failed to save goals: %s", str(e))
            return False

    # ==================== Daily Log Operations ====================

    def _decode_log(self, data: dict) -> DailyLog:
        data = decode(data)
        if isinstance(data.get("log_date"), str):
            data["log_date"] = date.fromisoformat(data["log_date"])
        return DailyLog(**data)

    def get_log(self, user_id: str, log_date: date) -> DailyLog | None:
        """Fetch a daily log.

        Args:
            user_id: The user's ID
            log_date: Date of the log

        Returns:
            DailyLog if found, None otherwise
        """
        logger.debug("Fetching log for %s on %s", user_id[:8], log_date)
        try:
            doc = self._log_ref(user_id, log_date).get()
            if not doc.exists:
                return None
            return self._decode_log(doc.to_dict())
        except Exception as e:
            logger.error("Failed to fetch log: %s", str(e))
            return None

    def get_or_create_log(self, user_id: str, log_date: date) -> DailyLog:
        """Fetch a daily log, or an empty one for a day with nothing logged yet."""
        return self.get_log(user_id, log_date) or DailyLog(log_date=log_date)

    def save_log(self, user_id: str, log: DailyLog) -> bool:
        """Save a daily log.

        Args:
            user_id: The user's ID
            log: The log to save

        Returns:
            True if successful
        """
        logger.info("Saving log for %s on %s", user_id[:8], log.log_date)
        try:
            data = encode(log.model_dump())
            data["updated_at"] = datetime.utcnow()
            self._log_ref(user_id, log.log_date).set(data)
            return True
        except Exception as e:
            logger.error("Failed to save log: %s", str(e))
            return False

    def get_logs_range(
        self, user_id: str, start_date: date, end_date: date
    ) -> list[DailyLog] | None:
        """Fetch logs for a date range.

        Args:
            user_id: The user's ID
            start_date: Start of range (inclusive)
            end_date: End of range (inclusive)

        Returns:
            Logs in ascending date order (may be empty), or None if the query failed
        """
        logger.debug(
            "Fetching logs for %s from %s to %s", user_id[:8], start_date, end_date
        )
        logs: list[DailyLog] = []

        try:
            logs_ref = self._user_ref(user_id).collection("logs")
            query = (
                logs_ref.where("log_date", ">=", start_date.isoformat())
                .where("log_date", "<=", end_date.isoformat())
                .order_by("log_date")
            )

            for doc in query.stream():
                try:
                    logs.append(self._decode_log(doc.to_dict()))
                except ValidationError as e:
                    logger.warning("Skipping malformed log %s: %s", doc.id, str(e))

            logger.debug("Found %d logs in range", len(logs))
            return logs
        except Exception as e:
            logger.error("Failed to fetch logs range: %s", str(e))
            return None

    # ==================== Weight & Sleep ====================

    def get_weight_history(self, user_id: str) -> list[WeightEntry] | None:
        """Fetch all weigh-ins, oldest first.

        Returns:
            List of WeightEntry, or None if the query failed
        """
        try:
            query = self._user_ref(user_id).collection("weightHistory").order_by("date")
            return [WeightEntry(**decode(doc.to_dict())) for doc in query.stream()]
        except Exception as e:
            logger.error("Failed to fetch weight history: %s", str(e))
            return None

    def add_weight_entry(self, user_id: str, entry: WeightEntry) -> bool:
        logger.info("Adding weight entry for %s", user_id[:8])
        try:
            ref = self._user_ref(user_id).collection("weightHistory").document(entry.id)
            ref.set(encode(entry.model_dump()))
            return True
        except Exception as e:
            logger.error("Failed to add weight entry: %s", str(e))
            return False

    def get_sleep_samples(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[SleepSample] | None:
        """Fetch sleep samples starting within [start, end).

        Returns:
            List of SleepSample, or None if the query failed
        """
        try:
            query = (
                self._user_ref(user_id).collection("sleepSamples")
                .where("start_time", ">=", start)
                .where("start_time", "<", end)
                .order_by("start_time")
            )
            return [SleepSample(**decode(doc.to_dict())) for doc in query.stream()]
        except Exception as e:
            logger.error("Failed to fetch sleep samples: %s", str(e))
            return None

    def save_sleep_samples(self, user_id: str, samples: list[SleepSample]) -> bool:
        """Store synced sleep samples in one batch."""
        logger.info("Saving %d sleep samples for %s", len(samples), user_id[:8])
        try:
            batch = self.client.batch()
            collection = self._user_ref(user_id).collection("sleepSamples")
            for sample in samples:
                batch.set(collection.document(sample.id), encode(sample.model_dump()))
            batch.commit()
            return True
        except Exception as e:
            logger.error("Failed to save sleep samples: %s", str(e))
            return False

    # ==================== Achievement Operations ====================

    def get_achievement_statuses(self, user_id: str) -> dict[str, UserAchievementStatus] | None:
        """Fetch achievement statuses, defaulting any missing or malformed record.

        Args:
            user_id: The user's ID

        Returns:
            Statuses keyed by achievement id, or None if the query failed
        """
        statuses = default_statuses()
        try:
            for doc in self._status_collection(user_id).stream():
                try:
                    status = UserAchievementStatus(**decode(doc.to_dict()))
                except (ValidationError, TypeError) as e:
                    logger.warning("Ignoring malformed achievement status %s: %s", doc.id, str(e))
                    continue
                statuses[status.achievement_id] = status
            return statuses
        except Exception as e:
            logger.error("Failed to fetch achievement statuses: %s", str(e))
            return None

    def save_achievement_status(self, user_id: str, status: UserAchievementStatus) -> bool:
        try:
            ref = self._status_collection(user_id).document(status.achievement_id)
            ref.set(encode(status.model_dump()), merge=True)
            return True
        except Exception as e:
            logger.error("Failed to save achievement status: %s", str(e))
            return False

    def get_progress(self, user_id: str) -> UserProgress | None:
        """Fetch the user's points and level."""
        try:
            doc = self._user_ref(user_id).get()
            data = doc.to_dict() if doc.exists else {}
            data = data or {}
            return UserProgress(
                total_points=data.get("total_points", 0),
                level=data.get("level", 1),
            )
        except Exception as e:
            logger.error("Failed to fetch progress: %s", str(e))
            return None

    def add_points(self, user_id: str, delta: int) -> UserProgress | None:
        """Atomically add points and recompute the level.

        Runs as a Firestore transaction (read total, add, write total and level
        together); the client retries on contention.

        Args:
            user_id: The user's ID
            delta: Points to add

        Returns:
            The new UserProgress, or None if the transaction failed
        """
        user_ref = self._user_ref(user_id)

        @firestore.transactional
        def apply(transaction: firestore.Transaction) -> UserProgress:
            snapshot = user_ref.get(transaction=transaction)
            data = (snapshot.to_dict() if snapshot.exists else None) or {}
            total = int(data.get("total_points", 0)) + delta
            progress = UserProgress(total_points=total, level=calculate_level(total))
            transaction.set(user_ref, progress.model_dump(), merge=True)
            return progress

        try:
            progress = apply(self.client.transaction())
            logger.info(
                "Awarded %d points to %s (total=%d, level=%d)",
                delta, user_id[:8], progress.total_points, progress.level,
            )
            return progress
        except Exception as e:
            logger.error("Failed to add points: %s", str(e))
            return None

    # ==================== Challenge Operations ====================

    def get_challenges(self, user_id: str, expiring_after: datetime) -> list[Challenge] | None:
        """Fetch challenges that expire after the given time.

        Returns:
            List of Challenge, or None if the query failed
        """
        try:
            query = self._challenge_collection(user_id).where("expires_at", ">", expiring_after)
            challenges = []
            for doc in query.stream():
                try:
                    challenges.append(Challenge(**decode(doc.to_dict())))
                except ValidationError as e:
                    logger.warning("Ignoring malformed challenge %s: %s", doc.id, str(e))
            return challenges
        except Exception as e:
            logger.error("Failed to fetch challenges: %s", str(e))
            return None

    def save_challenges(self, user_id: str, challenges: list[Challenge]) -> bool:
        """Write a batch of challenges atomically."""
        logger.info("Saving %d challenges for %s", len(challenges), user_id[:8])
        try:
            batch = self.client.batch()
            collection = self._challenge_collection(user_id)
            for challenge in challenges:
                batch.set(collection.document(challenge.id), encode(challenge.model_dump()))
            batch.commit()
            return True
        except Exception as e:
            logger.error("Failed to save challenges: %s", str(e))
            return False

    def save_challenge(self, user_id: str, challenge: Challenge) -> bool:
        try:
            ref = self._challenge_collection(user_id).document(challenge.id)
            ref.set(encode(challenge.model_dump()), merge=True)
            return True
        except Exception as e:
            logger.error("Failed to save challenge: %s", str(e))
            return False
