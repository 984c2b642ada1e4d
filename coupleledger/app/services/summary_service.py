from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
import structlog

from coupleledger.app.config import get_settings
from coupleledger.app.engine.budgets import classify_budget_status, month_bounds, spend_by_category
from coupleledger.app.engine.money import ZERO, as_amount
from coupleledger.app.engine.scopes import Scope, aggregate_scopes, resolve_scope, scoped_amounts
from coupleledger.app.engine.settlement import Settlement, compute_settlement, settlement_message
from coupleledger.app.models.models import Budget, Category, Couple, MonthlyStatement, User
from coupleledger.app.services.couple_service import household_for, member_names
from coupleledger.app.services.expense_service import load_ledger
from coupleledger.app.services.income_service import get_incomes
from coupleledger.app.services.recurring_service import materialize_month

logger = structlog.get_logger(__name__)

def _member(user: Optional[User]) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    return {"id": user.id, "name": user.display_name, "email": user.email, "color": user.color}

def couple_summary(
    db: Session,
    user_id: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None
) -> Dict[str, Any]:
    """ours / mine / partner totals plus who the couple is"""
    couple, view = household_for(db, user_id)
    totals = aggregate_scopes(load_ledger(db, couple.id, start_date, end_date), view)

    user = db.query(User).filter(User.id == user_id).first()
    partner = None
    if view.has_partner:
        partner = db.query(User).filter(User.id == view.partner_id).first()

    return {
        "totals": {
            "ours": as_amount(totals.ours),
            "mine": as_amount(totals.mine),
            "partner": as_amount(totals.partner),
        },
        "couple": {
            "connected": view.has_partner,
            "user": _member(user),
            "partner": _member(partner),
        },
        "metadata": {
            "currency": get_settings().currency,
            "partner_scope": totals.partner_scope,
            "expense_count": totals.expense_count,
        },
    }

def scope_user_ids(view, scope: Scope) -> List[str]:
    """Whose incomes count toward a scope"""
    if scope == Scope.MINE:
        return [view.current_user_id]
    if scope == Scope.PARTNER:
        return [view.partner_id]
    if view.has_partner:
        return [view.current_user_id, view.partner_id]
    return [view.current_user_id]

def chart_data(db: Session, user_id: str, year: int, month: int, scope: Optional[str] = None):
    """
    Category spend against the month's budget, plus income vs expenses.

    Returns (payload, scope resolution).
    """
    start, end = month_bounds(year, month)
    couple, view = household_for(db, user_id)
    resolution = resolve_scope(scope, view.has_partner)

    pairs = scoped_amounts(load_ledger(db, couple.id, start, end), view, resolution.effective)
    spend = spend_by_category(pairs)
    budgets = {
        budget.category_id: budget.amount
        for budget in db.query(Budget).filter(
            Budget.couple_id == couple.id,
            Budget.month == month,
            Budget.year == year
        ).all()
    }
    names = {category.id: category.name for category in db.query(Category).all()}

    category_spending = []
    for category_id in sorted(set(spend) | set(budgets), key=lambda key: names.get(key, key)):
        total = spend.get(category_id, ZERO)
        budgeted = budgets.get(category_id, ZERO)
        category_spending.append({
            "category_id": category_id,
            "category": names.get(category_id, "Unknown"),
            "total": as_amount(total),
            "budget": as_amount(budgeted),
            "status": classify_budget_status(total, budgeted).value,
        })

    incomes = get_incomes(db, scope_user_ids(view, resolution.effective), start, end)
    income_total = sum((Decimal(income.amount) for income in incomes), ZERO)

    payload = {
        "scope": resolution.effective.value,
        "categorySpending": category_spending,
        "monthlyTotals": {
            "income": as_amount(income_total),
            "expenses": as_amount(sum(spend.values(), ZERO)),
        },
    }
    return payload, resolution

def settlement_payload(db: Session, couple: Couple, settlement: Settlement) -> Dict[str, Any]:
    names = member_names(db, couple)
    return {
        "amount": as_amount(settlement.amount),
        "settled": settlement.settled,
        "debtor": names.get(settlement.debtor_id) if settlement.debtor_id else None,
        "creditor": names.get(settlement.creditor_id) if settlement.creditor_id else None,
        "debtorId": settlement.debtor_id,
        "creditorId": settlement.creditor_id,
        "message": settlement_message(settlement, names, get_settings().currency),
    }

def month_settlement(db: Session, couple: Couple, year: int, month: int) -> Settlement:
    start, end = month_bounds(year, month)
    return compute_settlement(load_ledger(db, couple.id, start, end), couple.partner_1_id, couple.partner_2_id)

def _store_statement(db: Session, couple: Couple, year: int, month: int, settlement: Settlement) -> MonthlyStatement:
    statement = db.query(MonthlyStatement).filter(
        MonthlyStatement.couple_id == couple.id,
        MonthlyStatement.month == month,
        MonthlyStatement.year == year
    ).first()
    if statement is None:
        statement = MonthlyStatement(couple_id=couple.id, month=month, year=year)
        db.add(statement)

    statement.total_expenses = settlement.total_expenses
    statement.total_shared_expenses = settlement.total_shared_expenses
    statement.settlement_amount = settlement.amount
    statement.debtor_id = settlement.debtor_id
    statement.creditor_id = settlement.creditor_id
    db.commit()
    db.refresh(statement)
    return statement

def monthly_summary(db: Session, user_id: str, year: int, month: int) -> Dict[str, Any]:
    """
    Month statement: recurring templates are materialized first, then the
    settlement is recomputed and stored as that month's snapshot.
    """
    month_bounds(year, month)
    couple, _ = household_for(db, user_id)
    materialize_month(db, couple.id, year, month)

    settlement = month_settlement(db, couple, year, month)
    statement = _store_statement(db, couple, year, month, settlement)

    logger.info("statement_snapshot", couple_id=couple.id, year=year, month=month,
                settled=settlement.settled, amount=str(settlement.amount))

    return {
        "statementId": statement.id,
        "month": month,
        "year": year,
        "totalExpenses": as_amount(settlement.total_expenses),
        "totalSharedExpenses": as_amount(settlement.total_shared_expenses),
        "expenseCount": settlement.expense_count,
        "paid": {key: as_amount(value) for key, value in settlement.paid.items()},
        "owed": {key: as_amount(value) for key, value in settlement.owed.items()},
        "settlement": settlement_payload(db, couple, settlement),
        "currency": get_settings().currency,
    }
