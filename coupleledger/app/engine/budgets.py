from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from coupleledger.app.engine.money import HUNDRED, ZERO, to_decimal
from coupleledger.app.errors import ValidationError

# Fixed business thresholds, in percent of the budgeted amount
OVER_BUDGET_THRESHOLD = Decimal("10")
UNDER_BUDGET_THRESHOLD = Decimal("-10")


class BudgetStatus(str, Enum):
    NO_BUDGET = "no-budget"
    OVER_BUDGET = "over-budget"
    ON_TRACK = "on-track"
    UNDER_BUDGET = "under-budget"


class BudgetRow(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    category_id: str
    month: int
    year: int
    amount: Decimal


class CategoryEvaluation(BaseModel):
    model_config = ConfigDict(frozen=True)

    category_id: str
    spend: Decimal
    budgeted: Decimal
    variance: Optional[Decimal] = None
    status: BudgetStatus
    months_in_period: int
    months_with_budget: int
    budget_coverage: Decimal
    low_confidence: bool
    remaining: Decimal


class PeriodEvaluation(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: date
    end: date
    months_in_period: int
    categories: List[CategoryEvaluation]
    total_spend: Decimal
    total_budgeted: Decimal
    status_counts: Dict[str, int]


def months_in_period(start: date, end: date) -> List[Tuple[int, int]]:
    """Every (year, month) touched by [start, end], inclusive"""
    if end < start:
        raise ValidationError("end_date", "End date must not be before start date", end.isoformat())
    months = []
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        months.append((year, month))
        month += 1
        if month > 12:
            month = 1
            year += 1
    return months


def budget_variance(spend: Decimal, budgeted: Decimal) -> Optional[Decimal]:
    if budgeted <= ZERO:
        return None
    return (spend - budgeted) / budgeted * HUNDRED


def classify_budget_status(spend, budgeted) -> BudgetStatus:
    """
    Single source of truth for budget status.

    Exactly +10% is already over budget and exactly -10% already under.
    """
    variance = budget_variance(to_decimal(spend, "spend"), to_decimal(budgeted, "budgeted"))
    if variance is None:
        return BudgetStatus.NO_BUDGET
    if variance >= OVER_BUDGET_THRESHOLD:
        return BudgetStatus.OVER_BUDGET
    if variance <= UNDER_BUDGET_THRESHOLD:
        return BudgetStatus.UNDER_BUDGET
    return BudgetStatus.ON_TRACK


def evaluate_category(
    category_id: str,
    spend,
    budget_rows: Iterable[BudgetRow],
    period_months: List[Tuple[int, int]]
) -> CategoryEvaluation:
    spend = to_decimal(spend, "spend")
    wanted = set(period_months)
    budgeted = ZERO
    covered = set()
    for row in budget_rows:
        key = (row.year, row.month)
        if row.category_id != category_id or key not in wanted:
            continue
        budgeted += to_decimal(row.amount)
        covered.add(key)

    month_count = len(period_months)
    coverage = Decimal(len(covered)) / Decimal(month_count) if month_count else ZERO
    return CategoryEvaluation(
        category_id=category_id,
        spend=spend,
        budgeted=budgeted,
        variance=budget_variance(spend, budgeted),
        status=classify_budget_status(spend, budgeted),
        months_in_period=month_count,
        months_with_budget=len(covered),
        budget_coverage=coverage,
        low_confidence=len(covered) < month_count,
        remaining=budgeted - spend,
    )


def evaluate_period(
    start: date,
    end: date,
    spend_by_category: Mapping[str, Decimal],
    budget_rows: Iterable[BudgetRow],
    category_ids: Optional[Iterable[str]] = None
) -> PeriodEvaluation:
    """
    Budget vs actual for every category that has spend or a budget in the
    period (or for the given category ids).
    """
    period = months_in_period(start, end)
    rows = list(budget_rows)
    wanted = set(period)

    if category_ids is None:
        ids = set(spend_by_category)
        ids.update(row.category_id for row in rows if (row.year, row.month) in wanted)
    else:
        ids = set(category_ids)

    evaluations = [
        evaluate_category(category_id, spend_by_category.get(category_id, ZERO), rows, period)
        for category_id in sorted(ids)
    ]

    counts = {status.value: 0 for status in BudgetStatus}
    for evaluation in evaluations:
        counts[evaluation.status.value] += 1

    return PeriodEvaluation(
        start=start,
        end=end,
        months_in_period=len(period),
        categories=evaluations,
        total_spend=sum((e.spend for e in evaluations), ZERO),
        total_budgeted=sum((e.budgeted for e in evaluations), ZERO),
        status_counts=counts,
    )


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    if not 1 <= month <= 12:
        raise ValidationError("month", "Month must be between 1 and 12", month)
    start = date(year, month, 1)
    if month == 12:
        end = date(year, 12, 31)
    else:
        end = date(year, month + 1, 1) - timedelta(days=1)
    return start, end


def spend_by_category(pairs: Iterable[Tuple[object, Decimal]]) -> Dict[str, Decimal]:
    """Sum (expense, amount) pairs per category id"""
    totals: Dict[str, Decimal] = {}
    for expense, amount in pairs:
        totals[expense.category_id] = totals.get(expense.category_id, ZERO) + amount
    return totals


class BudgetVariance(BaseModel):
    """Spend against budget for one category in one month; variance is a ratio"""
    model_config = ConfigDict(frozen=True)

    category: str
    month: str
    budget_amount: Decimal
    actual_amount: Decimal
    variance: Decimal
    overage_percentage: Decimal
    suggested_reduction: Decimal
    unused_amount: Decimal


def variance_ratio(actual: Decimal, budgeted: Decimal) -> Decimal:
    if budgeted > ZERO:
        return (actual - budgeted) / budgeted
    if actual > ZERO:
        return Decimal("1")
    return ZERO


def budget_variances(
    actual: Mapping[Tuple[str, str], Decimal],
    budgeted: Mapping[Tuple[str, str], Decimal]
) -> List[BudgetVariance]:
    """
    One entry per budgeted (category, YYYY-MM), most recent month first.
    Spend in months without a budget is not a variance.
    """
    ordered = sorted(budgeted, key=lambda key: (key[1], key[0]))
    ordered.sort(key=lambda key: key[1], reverse=True)

    variances = []
    for key in ordered:
        category, month = key
        budget_amount = to_decimal(budgeted[key])
        actual_amount = to_decimal(actual.get(key, ZERO))
        ratio = variance_ratio(actual_amount, budget_amount)
        variances.append(BudgetVariance(
            category=category,
            month=month,
            budget_amount=budget_amount,
            actual_amount=actual_amount,
            variance=ratio,
            overage_percentage=max(ZERO, ratio * HUNDRED),
            suggested_reduction=max(ZERO, actual_amount - budget_amount),
            unused_amount=max(ZERO, budget_amount - actual_amount),
        ))
    return variances
