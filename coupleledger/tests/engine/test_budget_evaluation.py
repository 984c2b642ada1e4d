import pytest
from datetime import date
from decimal import Decimal

from coupleledger.app.engine.budgets import (
    BudgetRow, BudgetStatus, classify_budget_status, evaluate_category, evaluate_period,
    month_bounds, months_in_period
)
from coupleledger.app.errors import ValidationError

@pytest.mark.parametrize("spend,budgeted,expected", [
    (110, 100, BudgetStatus.OVER_BUDGET),
    (90, 100, BudgetStatus.UNDER_BUDGET),
    (100, 100, BudgetStatus.ON_TRACK),
    ("109.99", 100, BudgetStatus.ON_TRACK),
    ("90.01", 100, BudgetStatus.ON_TRACK),
    (0, 100, BudgetStatus.UNDER_BUDGET),
    (50, 0, BudgetStatus.NO_BUDGET),
    (0, 0, BudgetStatus.NO_BUDGET),
])
def test_classify_budget_status_thresholds(spend, budgeted, expected):
    assert classify_budget_status(spend, budgeted) == expected

def test_months_in_period_spans_years():
    assert months_in_period(date(2023, 11, 15), date(2024, 2, 3)) == [
        (2023, 11), (2023, 12), (2024, 1), (2024, 2)
    ]

def test_months_in_period_rejects_reversed_range():
    with pytest.raises(ValidationError) as excinfo:
        months_in_period(date(2024, 3, 1), date(2024, 2, 1))
    assert excinfo.value.field == "end_date"

def test_month_bounds():
    assert month_bounds(2024, 2) == (date(2024, 2, 1), date(2024, 2, 29))
    assert month_bounds(2023, 12) == (date(2023, 12, 1), date(2023, 12, 31))

def test_budgets_are_summed_across_months():
    rows = [
        BudgetRow(category_id="food", month=1, year=2024, amount=Decimal("100")),
        BudgetRow(category_id="food", month=2, year=2024, amount=Decimal("100")),
    ]
    evaluation = evaluate_category("food", Decimal("220"), rows, [(2024, 1), (2024, 2)])
    assert evaluation.budgeted == Decimal("200")
    assert evaluation.status == BudgetStatus.OVER_BUDGET
    assert evaluation.low_confidence is False
    assert evaluation.remaining == Decimal("-20")

def test_partial_budget_coverage_is_low_confidence():
    rows = [BudgetRow(category_id="food", month=1, year=2024, amount=Decimal("100"))]
    evaluation = evaluate_category("food", Decimal("100"), rows, [(2024, 1), (2024, 2)])
    assert evaluation.months_with_budget == 1
    assert evaluation.budget_coverage == Decimal("0.5")
    assert evaluation.low_confidence is True

def test_evaluate_period_counts_statuses():
    rows = [
        BudgetRow(category_id="food", month=3, year=2024, amount=Decimal("100")),
        BudgetRow(category_id="rent", month=3, year=2024, amount=Decimal("1000")),
        BudgetRow(category_id="fun", month=4, year=2024, amount=Decimal("50")),
    ]
    spend = {"food": Decimal("120"), "rent": Decimal("1000"), "travel": Decimal("40")}
    evaluation = evaluate_period(date(2024, 3, 1), date(2024, 3, 31), spend, rows)

    by_id = {item.category_id: item for item in evaluation.categories}
    assert set(by_id) == {"food", "rent", "travel"}
    assert by_id["travel"].status == BudgetStatus.NO_BUDGET
    assert evaluation.status_counts == {
        "no-budget": 1, "over-budget": 1, "on-track": 1, "under-budget": 0
    }
    assert evaluation.total_budgeted == Decimal("1100")
