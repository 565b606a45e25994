"""Unit tests for the insight engine - ranking, truncation and fallbacks."""

from datetime import date, timedelta

from src.core.insights import (
    collect_insights,
    error_insight,
    evaluate_insights,
    fallback_insight,
    rank_insights,
)
from src.core.models import (
    DailyLog,
    FoodItem,
    GoalSettings,
    InsightCategory,
    Meal,
    PrimaryGoal,
    UserInsight,
)
from src.core.rules import InsightRule, RuleContext


START = date(2024, 5, 6)


def insight(title: str, priority: int) -> UserInsight:
    return UserInsight(title=title, message=title, category=InsightCategory.NUTRITION_GENERAL, priority=priority)


def fixed_rule(title: str, priority: int) -> InsightRule:
    return InsightRule(title, lambda ctx: insight(title, priority))


def logs_with(calories: list[float], sodium: float = 0) -> list[DailyLog]:
    return [
        DailyLog(
            log_date=START + timedelta(days=i),
            meals=[Meal(name="Lunch", food_items=[FoodItem(name="Plate", calories=c, protein=0, carbs=0, fats=0, sodium=sodium)])],
        )
        for i, c in enumerate(calories)
    ]


class TestFallback:
    """Tests for the never-empty guarantee."""

    def test_empty_logs_return_fallback(self):
        """No data yields exactly the fallback insight."""
        result = evaluate_insights([], GoalSettings())
        assert len(result) == 1
        assert result[0].title == "More Data Needed"
        assert result[0].priority == 1

    def test_no_rules_fire(self):
        """A registry that never fires still returns the fallback."""
        result = evaluate_insights(logs_with([2000]), GoalSettings(), rules=[InsightRule("never", lambda ctx: None)])
        assert [i.title for i in result] == [fallback_insight().title]

    def test_error_insight(self):
        """Error insights carry the message at priority 0."""
        err = error_insight("Could not load")
        assert err.title == "Insight Error"
        assert err.message == "Could not load"
        assert err.priority == 0


class TestRanking:
    """Tests for priority ordering and truncation."""

    def test_sorted_by_priority_descending(self):
        """Higher priorities come first."""
        ranked = rank_insights([insight("a", 3), insight("b", 9), insight("c", 6)], 5)
        assert [i.priority for i in ranked] == [9, 6, 3]

    def test_ties_keep_rule_order(self):
        """Equal priorities keep their evaluation order."""
        ranked = rank_insights([insight("first", 5), insight("second", 5), insight("third", 5)], 5)
        assert [i.title for i in ranked] == ["first", "second", "third"]

    def test_truncates_to_max(self):
        """No more than max_insights are returned."""
        rules = [fixed_rule(f"r{i}", i) for i in range(10)]
        result = evaluate_insights(logs_with([2000]), GoalSettings(), max_insights=3, rules=rules)
        assert len(result) == 3
        assert [i.priority for i in result] == [9, 8, 7]

    def test_max_insights_at_least_one(self):
        """A non-positive limit still returns one insight."""
        rules = [fixed_rule("only", 4)]
        result = evaluate_insights([], GoalSettings(), max_insights=0, rules=rules)
        assert [i.title for i in result] == ["only"]

    def test_collect_keeps_rule_order(self):
        """Collected insights follow registry order."""
        ctx = RuleContext(logs=(), goals=GoalSettings())
        rules = [fixed_rule("x", 1), InsightRule("none", lambda c: None), fixed_rule("y", 2)]
        assert [i.title for i in collect_insights(ctx, rules)] == ["x", "y"]


class TestEvaluateInsights:
    """End-to-end tests over the default rules."""

    def test_deficit_scenario_maintain(self):
        """Three low days while maintaining surface the deficit insight."""
        goals = GoalSettings(calories=2000, goal=PrimaryGoal.MAINTAIN)
        result = evaluate_insights(logs_with([1500, 1600, 1550]), goals)
        deficit = [i for i in result if i.title == "Fueling Your Body"]
        assert len(deficit) == 1
        assert deficit[0].priority == 9

    def test_deficit_scenario_lose(self):
        """The same days while losing weight do not."""
        goals = GoalSettings(calories=2000, goal=PrimaryGoal.LOSE)
        result = evaluate_insights(logs_with([1500, 1600, 1550]), goals)
        assert all(i.title != "Fueling Your Body" for i in result)

    def test_sodium_scenario(self):
        """High sodium over three days surfaces the sodium insight."""
        logs = logs_with([2000, 2000, 2000])
        for log, sodium in zip(logs, [2800, 2700, 2650]):
            log.meals[0].food_items[0].sodium = sodium
        result = evaluate_insights(logs, GoalSettings(calories=2000, sodium_goal=2300), max_insights=10)
        assert any(i.title == "Sodium Intake Watch" for i in result)

    def test_unordered_logs_are_sorted(self):
        """The deficit run is measured from the newest date regardless of input order."""
        logs = logs_with([2000, 1500, 1600, 1550])
        shuffled = [logs[2], logs[0], logs[3], logs[1]]
        result = evaluate_insights(shuffled, GoalSettings(calories=2000), max_insights=10)
        assert any(i.title == "Fueling Your Body" for i in result)

    def test_output_ordered_and_bounded(self):
        """Real rule output is sorted and within the limit."""
        goals = GoalSettings(calories=2000, sodium_goal=2300, iron_goal=18, vitamin_c_goal=90)
        result = evaluate_insights(logs_with([1500, 1600, 1550, 1400], sodium=3000), goals, max_insights=4)
        assert 1 <= len(result) <= 4
        priorities = [i.priority for i in result]
        assert priorities == sorted(priorities, reverse=True)
