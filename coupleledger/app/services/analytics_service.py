from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.orm import Session

from coupleledger.app.engine.budgets import months_in_period
from coupleledger.app.engine.money import HUNDRED, ZERO, as_amount
from coupleledger.app.engine.scopes import Scope, resolve_scope, scoped_amounts
from coupleledger.app.engine.trends import TrendSummary, analyze_category_trends, analyze_trend
from coupleledger.app.models.models import Budget, Category, Income
from coupleledger.app.services.couple_service import household_for
from coupleledger.app.services.expense_service import load_ledger
from coupleledger.app.services.savings_service import get_goals
from coupleledger.app.services.summary_service import month_settlement, settlement_payload

TOP_CATEGORY_LIMIT = 5
RECENT_MONTHS = 3
REQUIRED_MONTHS = 2

def month_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"

def _shift_year(value: date, years: int) -> date:
    try:
        return value.replace(year=value.year + years)
    except ValueError:
        # Feb 29 in a non-leap year
        return value.replace(year=value.year + years, day=28)

def _percent(value: Decimal) -> float:
    return float(round(value, 2))

def trend_payload(summary: TrendSummary) -> Dict[str, Any]:
    return {
        "direction": summary.direction.value,
        "strength": summary.strength,
        "percentage_change": float(summary.percentage_change),
        "normalized_strength": float(summary.normalized_strength),
        "data_points": summary.data_points,
    }

def _monthly_spend(pairs, period: List[Tuple[int, int]]) -> Dict[str, Dict[str, Any]]:
    months = {f"{year:04d}-{month:02d}": {"total": ZERO, "count": 0} for year, month in period}
    for expense, amount in pairs:
        bucket = months.get(month_key(expense.date))
        if bucket is not None:
            bucket["total"] += amount
            bucket["count"] += 1
    return months

def spending_trends(db: Session, user_id: str, start_date: date, end_date: date, scope: Optional[str] = None):
    """
    Monthly spend for the scope over the period, the same months one year
    earlier, and a trend classification of the series.
    """
    period = months_in_period(start_date, end_date)
    couple, view = household_for(db, user_id)
    resolution = resolve_scope(scope, view.has_partner)

    current = _monthly_spend(
        scoped_amounts(load_ledger(db, couple.id, start_date, end_date), view, resolution.effective),
        period
    )
    previous_start, previous_end = _shift_year(start_date, -1), _shift_year(end_date, -1)
    previous = _monthly_spend(
        scoped_amounts(load_ledger(db, couple.id, previous_start, previous_end), view, resolution.effective),
        months_in_period(previous_start, previous_end)
    )

    budgets = db.query(Budget).filter(Budget.couple_id == couple.id).all()
    budget_by_month: Dict[str, Decimal] = {}
    for budget in budgets:
        key = f"{budget.year:04d}-{budget.month:02d}"
        budget_by_month[key] = budget_by_month.get(key, ZERO) + budget.amount

    monthly_totals = []
    for key, bucket in current.items():
        monthly_totals.append({
            "month": key,
            "total_spending": as_amount(bucket["total"]),
            "expense_count": bucket["count"],
            "avg_expense": as_amount(bucket["total"] / bucket["count"]) if bucket["count"] else 0.0,
            "total_budget": as_amount(budget_by_month.get(key, ZERO)),
        })

    current_total = sum((bucket["total"] for bucket in current.values()), ZERO)
    previous_total = sum((bucket["total"] for bucket in previous.values()), ZERO)
    year_change = (current_total - previous_total) / previous_total * HUNDRED if previous_total > ZERO else ZERO

    summary = analyze_trend([bucket["total"] for bucket in current.values()])
    payload = {
        "scope": resolution.effective.value,
        "monthlyTotals": monthly_totals,
        "previousYearTotals": [
            {"month": key, "total_spending": as_amount(bucket["total"])}
            for key, bucket in previous.items()
        ],
        "summary": {
            "totalSpending": as_amount(current_total),
            "avgMonthlySpending": as_amount(current_total / len(period)),
            "trendPercentage": _percent(year_change),
            "trendDirection": "up" if year_change > ZERO else "down" if year_change < ZERO else "stable",
            "monthCount": len(period),
            "trend": trend_payload(summary),
        },
    }
    return payload, resolution

def category_trends(db: Session, user_id: str, start_date: date, end_date: date, scope: Optional[str] = None):
    """Top categories by spend, each with its monthly series, budgets and trend"""
    period = months_in_period(start_date, end_date)
    couple, view = household_for(db, user_id)
    resolution = resolve_scope(scope, view.has_partner)
    pairs = scoped_amounts(load_ledger(db, couple.id, start_date, end_date), view, resolution.effective)
    names = {category.id: category.name for category in db.query(Category).all()}

    totals: Dict[str, Decimal] = {}
    counts: Dict[str, int] = {}
    series: Dict[str, Dict[str, Decimal]] = {}
    for expense, amount in pairs:
        totals[expense.category_id] = totals.get(expense.category_id, ZERO) + amount
        counts[expense.category_id] = counts.get(expense.category_id, 0) + 1
        months = series.setdefault(expense.category_id, {})
        months[month_key(expense.date)] = months.get(month_key(expense.date), ZERO) + amount

    # Ties broken by name so the ranking is stable
    ranked = sorted(totals, key=lambda key: (-totals[key], names.get(key, key)))[:TOP_CATEGORY_LIMIT]

    all_months = [f"{year:04d}-{month:02d}" for year, month in period]
    trend_input = {
        category_id: [(key, series[category_id].get(key, ZERO)) for key in all_months]
        for category_id in ranked
    }
    trends = analyze_category_trends(trend_input)

    wanted = set(period)
    budgets = [
        budget for budget in db.query(Budget).filter(
            Budget.couple_id == couple.id,
            Budget.category_id.in_(ranked)
        ).all()
        if (budget.year, budget.month) in wanted
    ]

    trends_by_category = {}
    for category_id in ranked:
        name = names.get(category_id, "Unknown")
        trends_by_category[name] = {
            "category_id": category_id,
            "monthlyData": [
                {"month": key, "total_spending": as_amount(amount)}
                for key, amount in trend_input[category_id]
            ],
            "budgetData": [
                {"month": f"{budget.year:04d}-{budget.month:02d}", "budget_amount": as_amount(budget.amount)}
                for budget in sorted(budgets, key=lambda row: (row.year, row.month))
                if budget.category_id == category_id
            ],
            "totalSpending": as_amount(totals[category_id]),
            "trend": trend_payload(trends[category_id]),
        }

    category_totals = [
        {
            "category": names.get(category_id, "Unknown"),
            "category_id": category_id,
            "total_spending": as_amount(totals[category_id]),
            "expense_count": counts[category_id],
        }
        for category_id in ranked
    ]
    payload = {
        "scope": resolution.effective.value,
        "topCategories": [names.get(category_id, "Unknown") for category_id in ranked],
        "trendsByCategory": trends_by_category,
        "categoryTotals": category_totals,
        "summary": {
            "totalCategories": len(category_totals),
            "topCategory": category_totals[0]["category"] if category_totals else None,
            "topCategorySpending": category_totals[0]["total_spending"] if category_totals else 0.0,
        },
    }
    return payload, resolution

def _income_expense_months(db: Session, user_id: str, start_date: date, end_date: date):
    """
    Months (sorted) with income or own spend for one user.

    Spend is the user's own share of each expense, not what they paid.
    Returns (rows, income entry count, expense entry count).
    """
    couple, view = household_for(db, user_id)
    incomes = db.query(Income).filter(
        Income.user_id == user_id,
        Income.date >= start_date,
        Income.date <= end_date
    ).all()
    own = scoped_amounts(load_ledger(db, couple.id, start_date, end_date), view, Scope.MINE)

    months: Dict[str, Dict[str, Decimal]] = {}
    for income in incomes:
        bucket = months.setdefault(month_key(income.date), {"income": ZERO, "expenses": ZERO})
        bucket["income"] += income.amount
    for expense, amount in own:
        bucket = months.setdefault(month_key(expense.date), {"income": ZERO, "expenses": ZERO})
        bucket["expenses"] += amount

    rows = []
    for key in sorted(months):
        income = months[key]["income"]
        expenses = months[key]["expenses"]
        savings = income - expenses
        rate = savings / income * HUNDRED if income > ZERO else ZERO
        rows.append({
            "month": key,
            "income": income,
            "expenses": expenses,
            "savings": savings,
            "savingsRate": round(rate, 2),
        })
    return rows, len(incomes), len(own)

def _rate_trend(rows: List[Dict[str, Any]]) -> Decimal:
    """Change of the recent average savings rate against the earlier months"""
    recent = rows[-RECENT_MONTHS:]
    earlier = rows[:-RECENT_MONTHS]
    recent_avg = sum((row["savingsRate"] for row in recent), ZERO) / len(recent) if recent else ZERO
    earlier_avg = sum((row["savingsRate"] for row in earlier), ZERO) / len(earlier) if earlier else ZERO
    if earlier_avg <= ZERO:
        return ZERO
    return (recent_avg - earlier_avg) / earlier_avg * HUNDRED

def _trend_label(change: Decimal) -> str:
    if change > ZERO:
        return "improving"
    if change < ZERO:
        return "declining"
    return "stable"

def _month_rows_payload(rows):
    return [
        {
            "month": row["month"],
            "income": as_amount(row["income"]),
            "expenses": as_amount(row["expenses"]),
            "savings": as_amount(row["savings"]),
            "savingsRate": _percent(row["savingsRate"]),
        }
        for row in rows
    ]

def income_expenses(db: Session, user_id: str, start_date: date, end_date: date) -> Dict[str, Any]:
    months_in_period(start_date, end_date)
    rows, _, _ = _income_expense_months(db, user_id, start_date, end_date)
    total_income = sum((row["income"] for row in rows), ZERO)
    total_expenses = sum((row["expenses"] for row in rows), ZERO)
    average_rate = sum((row["savingsRate"] for row in rows), ZERO) / len(rows) if rows else ZERO
    change = _rate_trend(rows)
    return {
        "monthlyData": _month_rows_payload(rows),
        "summary": {
            "totalIncome": as_amount(total_income),
            "totalExpenses": as_amount(total_expenses),
            "totalSurplus": as_amount(total_income - total_expenses),
            "avgSavingsRate": _percent(average_rate),
            "savingsTrend": _percent(change),
            "savingsTrendDirection": _trend_label(change),
            "monthCount": len(rows),
        },
    }

def savings_rate(db: Session, user_id: str, start_date: date, end_date: date) -> Dict[str, Any]:
    """Savings rate for every month with income; own share of expenses only"""
    months_in_period(start_date, end_date)
    rows, _, _ = _income_expense_months(db, user_id, start_date, end_date)
    return {
        "savingsRateData": [
            {"month": row["month"], "savingsRate": _percent(row["savingsRate"])}
            for row in rows
            if row["income"] > ZERO
        ],
    }

def savings_analysis(db: Session, user_id: str, start_date: date, end_date: date) -> Dict[str, Any]:
    """Savings-rate series with goals; tells the caller when there is too little data"""
    months_in_period(start_date, end_date)
    rows, income_entries, expense_entries = _income_expense_months(db, user_id, start_date, end_date)
    goals = get_goals(db, user_id)

    availability = {
        "hasIncome": income_entries > 0,
        "hasExpenses": expense_entries > 0,
        "incomeEntries": income_entries,
        "expenseEntries": expense_entries,
        "requiredForMeaningfulAnalysis": REQUIRED_MONTHS,
    }
    empty_summary = {
        "totalIncome": 0.0,
        "totalExpenses": 0.0,
        "totalSavings": 0.0,
        "averageSavingsRate": 0.0,
        "savingsRateTrend": 0.0,
        "trendDirection": "no-data",
        "monthCount": 0,
    }

    if income_entries == 0 and expense_entries == 0:
        availability["message"] = "Add income and expense entries to see meaningful savings analysis"
        return {"monthlyData": [], "savingsGoals": goals, "summary": empty_summary, "dataAvailability": availability}
    if income_entries == 0:
        availability["message"] = (
            f"You have {expense_entries} expense entries but no income entries. "
            "Add income entries to calculate your savings rate."
        )
        return {"monthlyData": [], "savingsGoals": goals, "summary": empty_summary, "dataAvailability": availability}
    if expense_entries == 0:
        availability["message"] = (
            f"You have {income_entries} income entries but no expense entries. "
            "Add expense entries to calculate your savings rate."
        )
        return {"monthlyData": [], "savingsGoals": goals, "summary": empty_summary, "dataAvailability": availability}

    total_income = sum((row["income"] for row in rows), ZERO)
    total_expenses = sum((row["expenses"] for row in rows), ZERO)
    average_rate = sum((row["savingsRate"] for row in rows), ZERO) / len(rows)

    if len(rows) < REQUIRED_MONTHS:
        availability["monthsWithData"] = len(rows)
        availability["message"] = (
            f"You have data for {len(rows)} month(s). Add more income and expense entries "
            "across multiple months to see trends and meaningful analysis."
        )
        summary = {
            "totalIncome": as_amount(total_income),
            "totalExpenses": as_amount(total_expenses),
            "totalSavings": as_amount(total_income - total_expenses),
            "averageSavingsRate": _percent(average_rate),
            "savingsRateTrend": 0.0,
            "trendDirection": "insufficient-data",
            "monthCount": len(rows),
        }
        return {"monthlyData": _month_rows_payload(rows), "savingsGoals": goals,
                "summary": summary, "dataAvailability": availability}

    change = _rate_trend(rows)
    availability["monthsWithData"] = len(rows)
    return {
        "monthlyData": _month_rows_payload(rows),
        "savingsGoals": goals,
        "summary": {
            "totalIncome": as_amount(total_income),
            "totalExpenses": as_amount(total_expenses),
            "totalSavings": as_amount(total_income - total_expenses),
            "averageSavingsRate": _percent(average_rate),
            "savingsRateTrend": _percent(change),
            "trendDirection": _trend_label(change),
            "monthCount": len(rows),
        },
        "dataAvailability": availability,
    }

def current_settlement(db: Session, user_id: str, today: Optional[date] = None) -> Dict[str, Any]:
    """Who owes whom for the current calendar month"""
    today = today or date.today()
    couple, _ = household_for(db, user_id)
    settlement = month_settlement(db, couple, today.year, today.month)
    return {
        "settlement": settlement_payload(db, couple, settlement),
        "totalSharedExpenses": as_amount(settlement.total_shared_expenses),
        "monthYear": month_key(today),
    }
