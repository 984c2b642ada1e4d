import pytest
from datetime import date
from decimal import Decimal

from coupleledger.app.engine.budgets import budget_variances, variance_ratio
from coupleledger.app.engine.optimizer import (
    TipType, format_money, generate_recommendations, goal_plan_copy, goal_savings_plan,
    identify_patterns, months_until, seasonal_factors
)
from coupleledger.app.engine.trends import INSUFFICIENT_DATA, TrendDirection, linear_slope, pattern_strength

TODAY = date(2024, 7, 15)

def test_linear_slope():
    assert linear_slope([Decimal(10), Decimal(20), Decimal(30)]) == Decimal(10)
    assert linear_slope([Decimal(5)]) == Decimal(0)

def test_flat_pattern_is_minimal():
    strength = pattern_strength([100] * 6)
    assert strength.category == "minimal"
    assert strength.volatility == Decimal(0)
    assert strength.confidence == 67
    assert strength.average == Decimal(100)

def test_steep_pattern_is_very_strong():
    strength = pattern_strength([100, 200])
    assert strength.category == "very_strong"
    assert strength.percentage_change == Decimal("100.0")
    assert strength.monthly_change == Decimal(100)
    assert strength.volatility == Decimal(50)
    assert strength.confidence == 67

def test_single_month_pattern_is_insufficient():
    strength = pattern_strength([50])
    assert strength.category == INSUFFICIENT_DATA
    assert strength.confidence == 0

def test_variance_ratio_without_budget():
    assert variance_ratio(Decimal(5), Decimal(0)) == Decimal(1)
    assert variance_ratio(Decimal(0), Decimal(0)) == Decimal(0)

def test_budget_variances_latest_month_first():
    actual = {("Food", "2024-03"): Decimal(130), ("Fun", "2024-03"): Decimal(20)}
    budgeted = {
        ("Food", "2024-02"): Decimal(100),
        ("Fun", "2024-03"): Decimal(100),
        ("Food", "2024-03"): Decimal(100),
    }
    variances = budget_variances(actual, budgeted)

    assert [(v.category, v.month) for v in variances] == [
        ("Food", "2024-03"), ("Fun", "2024-03"), ("Food", "2024-02")
    ]
    food = variances[0]
    assert food.variance == Decimal("0.3")
    assert food.overage_percentage == Decimal(30)
    assert food.suggested_reduction == Decimal(30)
    assert food.unused_amount == Decimal(0)
    assert variances[1].unused_amount == Decimal(80)
    assert variances[2].variance == Decimal(-1)

def test_identify_patterns_orders_months():
    patterns = identify_patterns([
        ("Travel", "2024-03", 200), ("Travel", "2024-01", 100), ("Travel", "2024-02", 150)
    ])
    travel = patterns["Travel"]
    assert [month for month, _ in travel.data] == ["2024-01", "2024-02", "2024-03"]
    assert travel.direction == TrendDirection.INCREASING
    assert travel.strength.category == "very_strong"

def test_seasonal_factors():
    factors = seasonal_factors([("A", "2024-01", 100), ("B", "2024-01", 100), ("A", "2024-02", 400)])
    assert factors == {"01": Decimal("0.50"), "02": Decimal("2.00")}
    assert seasonal_factors([]) == {}

@pytest.mark.parametrize("target,expected", [
    (date(2024, 12, 31), 6),
    (date(2024, 12, 1), 5),
    (date(2024, 7, 15), 1),
    (date(2024, 6, 1), -1),
])
def test_months_until(target, expected):
    assert months_until(target, TODAY) == expected

def test_goal_plan_with_short_window():
    plan = goal_savings_plan("g1", "Trip", 1200, 0, date(2024, 12, 31), TODAY)
    assert plan.months_remaining == 6
    assert plan.monthly_needed == Decimal("200.00")
    assert plan.recommended_monthly == Decimal("200.00")
    assert plan.confidence == Decimal("0.88")

def test_goal_plan_with_long_window():
    plan = goal_savings_plan("g1", "Trip", 1200, 0, date(2025, 7, 15), TODAY)
    assert plan.months_remaining == 13
    assert plan.monthly_needed == Decimal("92.31")
    assert plan.confidence == Decimal("0.92")

def test_goal_plan_without_usable_date_uses_default_horizon():
    assert goal_savings_plan("g1", None, 600, 0, None, TODAY).months_remaining == 6
    assert goal_savings_plan("g1", None, 600, 0, date(2024, 1, 1), TODAY).months_remaining == 6

def test_reached_goal_has_no_plan():
    assert goal_savings_plan("g1", "Trip", 500, 500, None, TODAY) is None

def test_goal_plan_copy_for_tight_deadline():
    plan = goal_savings_plan("g1", "Trip", 1200, 0, date(2024, 8, 1), TODAY)
    assert plan.months_remaining == 1
    copy = goal_plan_copy(plan, "SEK")
    assert copy.startswith("Only 1 month remain for Trip.")
    assert "1,200.00 SEK" in copy

def test_format_money():
    assert format_money(Decimal("1234"), "SEK") == "1,234.00 SEK"

def test_reduction_and_reallocation_tips():
    variances = budget_variances(
        {("Food", "2024-03"): Decimal(130), ("Fun", "2024-03"): Decimal(20)},
        {("Food", "2024-03"): Decimal(100), ("Fun", "2024-03"): Decimal(100), ("Food", "2024-02"): Decimal(100)},
    )
    tips = generate_recommendations({}, variances, [], "SEK")

    assert [tip.tip_type for tip in tips] == [TipType.REDUCTION, TipType.REALLOCATION]
    reduction, reallocation = tips
    assert reduction.category == "Food"
    assert reduction.impact_amount == Decimal("30.00")
    assert "30.0% over budget in Food" in reduction.description
    assert reallocation.description == "Move 80.00 SEK from Fun to Food"
    assert reallocation.confidence_score == Decimal("0.7")

def test_underused_budget_alone_gives_no_tip():
    variances = budget_variances({}, {("Fun", "2024-03"): Decimal(100)})
    assert generate_recommendations({}, variances, [], "SEK") == []

def test_seasonal_tip_for_rising_category():
    patterns = identify_patterns([
        ("Travel", "2024-01", 100), ("Travel", "2024-02", 150), ("Travel", "2024-03", 200)
    ])
    tips = generate_recommendations(patterns, [], [], "SEK")

    assert len(tips) == 1
    assert tips[0].tip_type == TipType.SEASONAL
    assert tips[0].category == "Travel"
    assert tips[0].impact_amount == Decimal("100.00")
    assert tips[0].confidence_score == Decimal("0.74")

def test_falling_category_gives_no_seasonal_tip():
    patterns = identify_patterns([("Travel", "2024-01", 200), ("Travel", "2024-02", 100)])
    assert generate_recommendations(patterns, [], [], "SEK") == []

def test_goal_tip_carries_plan():
    plan = goal_savings_plan("g1", "Trip", 1200, 0, None, TODAY)
    tips = generate_recommendations({}, [], [plan], "SEK")

    assert tips[0].tip_type == TipType.GOAL_BASED
    assert tips[0].title == "Keep Trip on track"
    assert tips[0].impact_amount == Decimal("200.00")
    assert tips[0].goal_plan.goal_id == "g1"
