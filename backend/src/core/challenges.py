"""Challenges - Weekly challenge generation and progress.

All functions are pure: time and randomness are passed in.
"""

import random
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Optional

from .models import Challenge, ChallengeTemplate, ChallengeType


CHALLENGES_PER_BATCH = 5
CHALLENGE_DURATION = timedelta(days=7)

CHALLENGE_TEMPLATES: tuple[ChallengeTemplate, ...] = (
    ChallengeTemplate(title="Workout Warrior", description="Log 3 separate workouts this week.", type=ChallengeType.WORKOUT_LOGGED, goal=3, points_value=75),
    ChallengeTemplate(title="Protein Power", description="Meet your daily protein goal 4 times.", type=ChallengeType.PROTEIN_GOAL_HIT, goal=4, points_value=75),
    ChallengeTemplate(title="Calorie Controller", description="Stay within 100 calories of your goal for 3 days.", type=ChallengeType.CALORIE_RANGE, goal=3, points_value=60),
    ChallengeTemplate(title="Dedicated Dieter", description="Log your food for all 7 days of the week.", type=ChallengeType.LOGGING_STREAK, goal=7, points_value=150),
    ChallengeTemplate(title="Weekend Warrior", description="Log at least one workout on Saturday or Sunday.", type=ChallengeType.WORKOUT_LOGGED, goal=1, points_value=40),
    ChallengeTemplate(title="Five-a-Day", description="Log at least 5 days in a row this week.", type=ChallengeType.LOGGING_STREAK, goal=5, points_value=100),
    ChallengeTemplate(title="Macro-Minded", description="Hit your protein goal 2 times in a row.", type=ChallengeType.PROTEIN_GOAL_HIT, goal=2, points_value=50),
    ChallengeTemplate(title="Active Start", description="Log 2 workouts before Wednesday.", type=ChallengeType.WORKOUT_LOGGED, goal=2, points_value=50),
)


def active_challenges(challenges: Iterable[Challenge], now: datetime) -> list[Challenge]:
    """Challenges that have not expired yet (completed ones included)."""
    return [c for c in challenges if c.expires_at > now]


def is_open(challenge: Challenge, now: datetime) -> bool:
    """True if the challenge can still receive progress."""
    return not challenge.is_completed and challenge.expires_at > now


def generate_weekly_challenges(
    existing: Iterable[Challenge],
    now: datetime,
    rng: random.Random,
    templates: tuple[ChallengeTemplate, ...] = CHALLENGE_TEMPLATES,
    count: int = CHALLENGES_PER_BATCH,
) -> list[Challenge]:
    """Create a fresh weekly batch if the user has no unexpired challenges.

    Args:
        existing: The user's current challenges
        now: Current time
        rng: Randomness source (seed it for reproducible batches)
        templates: Pool to sample from
        count: Batch size

    Returns:
        New challenges to persist; empty if any challenge is still unexpired
    """
    if active_challenges(existing, now):
        return []

    expires_at = now + CHALLENGE_DURATION
    picked = rng.sample(list(templates), min(count, len(templates)))
    return [
        Challenge(
            title=t.title,
            description=t.description,
            type=t.type,
            goal=t.goal,
            points_value=t.points_value,
            expires_at=expires_at,
        )
        for t in picked
    ]


def apply_progress(
    challenge: Challenge,
    amount: float,
    now: datetime,
    credit_key: Optional[str] = None,
) -> Optional[tuple[Challenge, bool]]:
    """Add progress to one challenge.

    Args:
        challenge: The challenge to credit
        amount: Progress to add (must be positive)
        now: Current time
        credit_key: If given, the same key is only ever counted once

    Returns:
        (updated challenge, completed by this call), or None when the
        challenge is closed or the key was already credited
    """
    if amount <= 0 or not is_open(challenge, now):
        return None
    if credit_key is not None and credit_key in challenge.credited_keys:
        return None

    progress = challenge.progress + amount
    completed = progress >= challenge.goal
    keys = challenge.credited_keys + [credit_key] if credit_key is not None else challenge.credited_keys
    updated = challenge.model_copy(
        update={"progress": progress, "is_completed": completed, "credited_keys": list(keys)}
    )
    return updated, completed
