"""Tests for the Firestore client with a mocked Firestore SDK."""

from datetime import date, datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from src.core.models import ChallengeType, DailyLog, GoalSettings, PrimaryGoal
from src.shell import firestore_client
from src.shell.firestore_client import NutritionFirestoreClient, decode, encode


@pytest.fixture
def sdk():
    return MagicMock()


@pytest.fixture
def db(sdk):
    client = NutritionFirestoreClient()
    client._client = sdk
    return client


def user_subcollection(sdk):
    """The mock reached by users/{uid}/<collection>."""
    return sdk.collection.return_value.document.return_value.collection.return_value


def snapshot(data, exists=True, doc_id="doc"):
    doc = MagicMock()
    doc.exists = exists
    doc.id = doc_id
    doc.to_dict.return_value = data
    return doc


class TestEncoding:
    """Tests for value conversion to and from Firestore."""

    def test_encode_dates_and_enums(self):
        """Dates become ISO strings and enums their values, recursively."""
        data = {"log_date": date(2024, 5, 6), "goal": PrimaryGoal.LOSE, "items": [{"type": ChallengeType.CALORIE_RANGE}]}
        assert encode(data) == {"log_date": "2024-05-06", "goal": "Lose", "items": [{"type": "calorieRange"}]}

    def test_encode_keeps_datetimes(self):
        """Datetimes are stored as native timestamps."""
        stamp = datetime(2024, 5, 6, 8, 30)
        assert encode({"at": stamp}) == {"at": stamp}

    def test_decode_normalizes_timezone(self):
        """Aware datetimes come back as naive UTC."""
        aware = datetime(2024, 5, 6, 10, 0, tzinfo=timezone(timedelta(hours=2)))
        assert decode({"at": [aware]}) == {"at": [datetime(2024, 5, 6, 8, 0)]}


class TestGoals:
    """Tests for goal reads and writes."""

    def test_missing_goals(self, db, sdk):
        """A missing document reads as None."""
        user_subcollection(sdk).document.return_value.get.return_value = snapshot(None, exists=False)
        assert db.get_goals("user-123456789") is None

    def test_reads_goals(self, db, sdk):
        """Stored goals are validated into GoalSettings."""
        user_subcollection(sdk).document.return_value.get.return_value = snapshot({"calories": 1800, "goal": "Lose"})
        goals = db.get_goals("user-123456789")
        assert goals.calories == 1800
        assert goals.goal == PrimaryGoal.LOSE

    def test_save_failure_returns_false(self, db, sdk):
        """Storage errors are reported as False."""
        user_subcollection(sdk).document.return_value.set.side_effect = RuntimeError("unavailable")
        assert db.save_goals("user-123456789", GoalSettings()) is False


class TestLogs:
    """Tests for daily log persistence."""

    def test_save_log_uses_iso_date(self, db, sdk):
        """Logs are keyed and stored by ISO date."""
        assert db.save_log("user-123456789", DailyLog(log_date=date(2024, 5, 6))) is True
        logs = user_subcollection(sdk)
        logs.document.assert_called_with("2024-05-06")
        stored = logs.document.return_value.set.call_args[0][0]
        assert stored["log_date"] == "2024-05-06"

    def test_range_query_failure_is_none(self, db, sdk):
        """A failed range query is distinguishable from an empty range."""
        user_subcollection(sdk).where.side_effect = RuntimeError("unavailable")
        assert db.get_logs_range("user-123456789", date(2024, 5, 1), date(2024, 5, 7)) is None

    def test_range_query_decodes_logs(self, db, sdk):
        """Documents in the range are returned as DailyLogs."""
        query = user_subcollection(sdk).where.return_value.where.return_value.order_by.return_value
        query.stream.return_value = [snapshot({"log_date": "2024-05-06", "meals": []})]
        logs = db.get_logs_range("user-123456789", date(2024, 5, 1), date(2024, 5, 7))
        assert [log.log_date for log in logs] == [date(2024, 5, 6)]

    def test_get_or_create_log(self, db, sdk):
        """A day with no document starts as an empty log."""
        user_subcollection(sdk).document.return_value.get.return_value = snapshot(None, exists=False)
        log = db.get_or_create_log("user-123456789", date(2024, 5, 6))
        assert log.log_date == date(2024, 5, 6)
        assert log.meals == []


class TestAchievementStatuses:
    """Tests for achievement status reads."""

    def test_malformed_status_falls_back_to_default(self, db, sdk):
        """Unreadable documents are skipped and the default status is used."""
        user_subcollection(sdk).stream.return_value = [
            snapshot({"achievement_id": "first_log", "is_unlocked": True, "current_progress": 1}, doc_id="first_log"),
            snapshot({"achievement_id": "goal_setter", "current_progress": "lots"}, doc_id="goal_setter"),
        ]
        statuses = db.get_achievement_statuses("user-123456789")
        assert statuses["first_log"].is_unlocked is True
        assert statuses["goal_setter"].is_unlocked is False
        assert statuses["goal_setter"].current_progress == 0
        assert len(statuses) == 13

    def test_status_query_failure_is_none(self, db, sdk):
        """A failed read returns None so callers can skip the check."""
        user_subcollection(sdk).stream.side_effect = RuntimeError("unavailable")
        assert db.get_achievement_statuses("user-123456789") is None


class TestProgress:
    """Tests for points and level."""

    def test_new_user_progress(self, db, sdk):
        """A user with no document starts at zero points, level 1."""
        sdk.collection.return_value.document.return_value.get.return_value = snapshot(None, exists=False)
        progress = db.get_progress("user-123456789")
        assert progress.total_points == 0
        assert progress.level == 1

    def test_add_points_transaction(self, db, sdk, monkeypatch):
        """Points are read and written inside one transaction with the level."""
        monkeypatch.setattr(firestore_client.firestore, "transactional", lambda fn: fn)
        transaction = MagicMock()
        sdk.transaction.return_value = transaction
        user_ref = sdk.collection.return_value.document.return_value
        user_ref.get.return_value = snapshot({"total_points": 90, "level": 1})

        progress = db.add_points("user-123456789", 20)

        assert progress.total_points == 110
        assert progress.level == 2
        user_ref.get.assert_called_once_with(transaction=transaction)
        transaction.set.assert_called_once_with(user_ref, {"total_points": 110, "level": 2}, merge=True)

    def test_add_points_new_user(self, db, sdk, monkeypatch):
        """A missing user document counts from zero."""
        monkeypatch.setattr(firestore_client.firestore, "transactional", lambda fn: fn)
        sdk.collection.return_value.document.return_value.get.return_value = snapshot(None, exists=False)
        assert db.add_points("user-123456789", 15).total_points == 15

    def test_add_points_failure(self, db, sdk):
        """A failed transaction returns None."""
        sdk.transaction.side_effect = RuntimeError("contention")
        assert db.add_points("user-123456789", 20) is None
