from datetime import date
from typing import List, Dict, Any, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from fastapi import HTTPException
import structlog

from coupleledger.app.engine.budgets import BudgetRow, evaluate_period, months_in_period, spend_by_category
from coupleledger.app.engine.money import as_amount, quantize_cents, require_non_negative
from coupleledger.app.engine.scopes import resolve_scope, scoped_amounts
from coupleledger.app.models.models import Budget, Category
from coupleledger.app.schemas.budgets import BudgetUpsert
from coupleledger.app.services.couple_service import household_for
from coupleledger.app.services.expense_service import load_ledger

logger = structlog.get_logger(__name__)

def budget_payload(budget: Budget) -> Dict[str, Any]:
    return {
        "id": budget.id,
        "couple_id": budget.couple_id,
        "category_id": budget.category_id,
        "category_name": budget.category.name if budget.category else None,
        "month": budget.month,
        "year": budget.year,
        "amount": as_amount(budget.amount),
        "created_at": budget.created_at,
    }

def _find_budget(db: Session, couple_id: str, budget_data: BudgetUpsert) -> Optional[Budget]:
    return db.query(Budget).filter(
        Budget.couple_id == couple_id,
        Budget.category_id == budget_data.category_id,
        Budget.month == budget_data.month,
        Budget.year == budget_data.year
    ).first()

def upsert_budget(db: Session, user_id: str, budget_data: BudgetUpsert) -> Dict[str, Any]:
    """Create or replace the budget for (category, month, year); last write wins"""
    amount = quantize_cents(require_non_negative(budget_data.amount))
    couple, _ = household_for(db, user_id)

    category = db.query(Category).filter(Category.id == budget_data.category_id).first()
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")

    couple_id = couple.id
    budget = _find_budget(db, couple_id, budget_data)

    created = budget is None
    if created:
        budget = Budget(
            couple_id=couple_id,
            category_id=budget_data.category_id,
            month=budget_data.month,
            year=budget_data.year,
            amount=amount
        )
        db.add(budget)
    else:
        budget.amount = amount

    try:
        db.commit()
    except IntegrityError:
        # A concurrent first write for the same month got there first
        db.rollback()
        budget = _find_budget(db, couple_id, budget_data)
        if budget is None:
            raise
        budget.amount = amount
        created = False
        db.commit()
        logger.info("budget_upsert_retried", budget_id=budget.id)
    db.refresh(budget)

    logger.info("budget_upserted", budget_id=budget.id, category_id=budget.category_id,
                month=budget.month, year=budget.year, amount=str(amount), created=created)
    return budget_payload(budget)

def get_budgets(db: Session, user_id: str, month: Optional[int] = None, year: Optional[int] = None) -> List[Dict[str, Any]]:
    """Get budgets for the user's couple, optionally for one month"""
    couple, _ = household_for(db, user_id)
    query = db.query(Budget).filter(Budget.couple_id == couple.id)
    if month is not None:
        query = query.filter(Budget.month == month)
    if year is not None:
        query = query.filter(Budget.year == year)
    budgets = query.order_by(Budget.year, Budget.month).all()
    return [budget_payload(budget) for budget in budgets]

def budget_rows_for_period(db: Session, couple_id: str, start: date, end: date) -> List[BudgetRow]:
    period = months_in_period(start, end)
    years = {year for year, _ in period}
    rows = db.query(Budget).filter(
        Budget.couple_id == couple_id,
        Budget.year.in_(years)
    ).all()
    wanted = set(period)
    return [BudgetRow.model_validate(row) for row in rows if (row.year, row.month) in wanted]

def evaluate_budgets(
    db: Session,
    user_id: str,
    start_date: date,
    end_date: date,
    scope: Optional[str] = None
) -> Dict[str, Any]:
    """Budget vs actual for every category touched in [start_date, end_date]"""
    couple, view = household_for(db, user_id)
    resolution = resolve_scope(scope, view.has_partner)

    rows = budget_rows_for_period(db, couple.id, start_date, end_date)
    ledger = load_ledger(db, couple.id, start_date, end_date)
    spend = spend_by_category(scoped_amounts(ledger, view, resolution.effective))

    evaluation = evaluate_period(start_date, end_date, spend, rows)
    names = {category.id: category.name for category in db.query(Category).all()}

    return {
        "start_date": evaluation.start,
        "end_date": evaluation.end,
        "scope": resolution.effective.value,
        "months_in_period": evaluation.months_in_period,
        "categories": [
            {
                "category_id": item.category_id,
                "category_name": names.get(item.category_id),
                "spend": as_amount(item.spend),
                "budgeted": as_amount(item.budgeted),
                "remaining": as_amount(item.remaining),
                "variance": float(round(item.variance, 1)) if item.variance is not None else None,
                "status": item.status.value,
                "months_in_period": item.months_in_period,
                "months_with_budget": item.months_with_budget,
                "budget_coverage": float(round(item.budget_coverage, 2)),
                "low_confidence": item.low_confidence,
            }
            for item in evaluation.categories
        ],
        "total_spend": as_amount(evaluation.total_spend),
        "total_budgeted": as_amount(evaluation.total_budgeted),
        "status_counts": evaluation.status_counts,
    }

def delete_budget(db: Session, user_id: str, budget_id: str) -> Dict[str, Any]:
    couple, _ = household_for(db, user_id)
    budget = db.query(Budget).filter(Budget.id == budget_id, Budget.couple_id == couple.id).first()
    if not budget:
        raise HTTPException(status_code=404, detail="Budget not found")

    db.delete(budget)
    db.commit()
    logger.info("budget_deleted", budget_id=budget_id)
    return {"message": "Budget deleted successfully"}
