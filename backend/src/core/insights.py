"""Insight Engine - Rank the output of independent insight rules.

All functions are pure: same input always produces same output, no side effects.
"""

from collections.abc import Iterable, Sequence

from .models import DailyLog, GoalSettings, InsightCategory, SleepSample, UserInsight
from .rules import DEFAULT_RULES, InsightRule, RuleContext


DEFAULT_MAX_INSIGHTS = 5
DEFAULT_WINDOW_DAYS = 7
DEFAULT_DAYS_THRESHOLD = 3


def fallback_insight() -> UserInsight:
    """The insight shown when no rule fires."""
    return UserInsight(
        title="More Data Needed",
        message="Log consistently for a few more days to unlock your personalized weekly insights!",
        category=InsightCategory.NUTRITION_GENERAL,
        priority=1,
    )


def error_insight(message: str) -> UserInsight:
    """A renderable insight standing in for a failed analysis."""
    return UserInsight(
        title="Insight Error",
        message=message,
        category=InsightCategory.NUTRITION_GENERAL,
        priority=0,
    )


def collect_insights(ctx: RuleContext, rules: Iterable[InsightRule] = DEFAULT_RULES) -> list[UserInsight]:
    """Run every rule against the context, keeping the ones that fired, in rule order."""
    found = []
    for rule in rules:
        insight = rule.check(ctx)
        if insight is not None:
            found.append(insight)
    return found


def rank_insights(insights: Iterable[UserInsight], max_insights: int) -> list[UserInsight]:
    """Order by priority (highest first) and keep the top ``max_insights``.

    The sort is stable, so equal priorities keep their rule order.
    """
    ranked = sorted(insights, key=lambda i: i.priority, reverse=True)
    return ranked[:max_insights]


def evaluate_insights(
    logs: Sequence[DailyLog],
    goals: GoalSettings,
    sleep_samples: Sequence[SleepSample] = (),
    max_insights: int = DEFAULT_MAX_INSIGHTS,
    window_days: int = DEFAULT_WINDOW_DAYS,
    days_threshold: int = DEFAULT_DAYS_THRESHOLD,
    rules: Iterable[InsightRule] = DEFAULT_RULES,
) -> list[UserInsight]:
    """Evaluate all insight rules over a window of logs.

    Args:
        logs: Daily logs for the window, in either date order
        goals: Goal snapshot
        sleep_samples: Sleep intervals for the window
        max_insights: Maximum number of insights to return
        window_days: Number of days the window was requested for
        days_threshold: Run length for the calorie streak rules
        rules: Rule registry to evaluate

    Returns:
        Insights ordered by priority descending; never empty
    """
    ctx = RuleContext(
        logs=tuple(sorted(logs, key=lambda log: log.log_date)),
        goals=goals,
        sleep_samples=tuple(sleep_samples),
        window_days=window_days,
        days_threshold=days_threshold,
    )
    insights = rank_insights(collect_insights(ctx, rules), max(max_insights, 1))

    if not insights:
        insights = [fallback_insight()]
    return insights
