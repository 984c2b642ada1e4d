from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session
from fastapi import HTTPException
import structlog

from coupleledger.app.engine.ledger import CoupleView, LedgerExpense, snapshot
from coupleledger.app.engine.money import as_amount, quantize_cents
from coupleledger.app.engine.scopes import ScopeResolution, resolve_scope, scoped_amounts, viewer_for_scope
from coupleledger.app.engine.splits import (
    calculate_shares, normalized_ratios, parse_split_type, shares_for_expense, split_config_from_fields
)
from coupleledger.app.errors import ValidationError
from coupleledger.app.models.models import Expense, Category
from coupleledger.app.schemas.expenses import ExpenseCreate, ExpenseUpdate
from coupleledger.app.services.couple_service import household_for
from coupleledger.app.services.user_service import display_name

logger = structlog.get_logger(__name__)

def validate_split(
    view: CoupleView,
    amount: Any,
    split_type: Optional[str],
    ratio_user1: Any,
    ratio_user2: Any,
    payer_id: str
) -> Tuple[Decimal, str, Decimal, Decimal, Dict[str, Decimal]]:
    """
    Run the split rules over raw fields and return what gets stored:
    (amount, split type, ratio user1, ratio user2), plus the owed shares
    computed from exactly those values.

    Raises ValidationError before anything touches the database.
    """
    config = split_config_from_fields(split_type, ratio_user1, ratio_user2, payer_id)
    shares = calculate_shares(amount, config, view.user1_id, view.user2_id, payer_id)
    first, second = normalized_ratios(config, view.user1_id, payer_id)
    kind = parse_split_type(split_type)
    return quantize_cents(Decimal(str(amount))), kind.value, first, second, shares

def _ensure_category(db: Session, category_id: str) -> Category:
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise HTTPException(status_code=404, detail=f"Category with id {category_id} not found")
    return category

def expense_payload(expense: Expense, owed_share: Optional[Decimal] = None) -> Dict[str, Any]:
    return {
        "id": expense.id,
        "couple_id": expense.couple_id,
        "amount": as_amount(expense.amount),
        "date": expense.date,
        "category_id": expense.category_id,
        "category_name": expense.category.name if expense.category else None,
        "paid_by_user_id": expense.paid_by_user_id,
        "paid_by_name": display_name(expense.paid_by) if expense.paid_by else None,
        "split_type": expense.split_type,
        "split_ratio_user1": float(expense.split_ratio_user1),
        "split_ratio_user2": float(expense.split_ratio_user2),
        "description": expense.description,
        "notes": expense.notes,
        "recurring_expense_id": expense.recurring_expense_id,
        "owed_share": as_amount(owed_share),
        "created_at": expense.created_at,
    }

def _share_of(expense: Expense, view: CoupleView, user_id: str) -> Decimal:
    record = LedgerExpense.model_validate(expense)
    return shares_for_expense(record, view.user1_id, view.user2_id).get(user_id, Decimal("0"))

def create_expense(db: Session, user_id: str, expense_data: ExpenseCreate) -> Dict[str, Any]:
    """Validate through the split rules, then store with normalized ratios"""
    couple, view = household_for(db, user_id)
    payer_id = expense_data.paid_by_user_id or user_id

    amount, split_type, ratio_user1, ratio_user2, shares = validate_split(
        view,
        expense_data.amount,
        expense_data.split_type,
        expense_data.split_ratio_user1,
        expense_data.split_ratio_user2,
        payer_id
    )
    _ensure_category(db, expense_data.category_id)

    expense = Expense(
        couple_id=couple.id,
        amount=amount,
        date=expense_data.date or date.today(),
        category_id=expense_data.category_id,
        paid_by_user_id=payer_id,
        split_type=split_type,
        split_ratio_user1=ratio_user1,
        split_ratio_user2=ratio_user2,
        description=expense_data.description,
        notes=expense_data.notes
    )
    db.add(expense)
    db.commit()
    db.refresh(expense)

    logger.info("expense_created", expense_id=expense.id, couple_id=couple.id,
                amount=str(amount), split_type=split_type)
    return expense_payload(expense, shares.get(user_id, Decimal("0")))

def query_expenses(
    db: Session,
    couple_id: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    category_id: Optional[str] = None
) -> List[Expense]:
    query = db.query(Expense).filter(Expense.couple_id == couple_id)
    if start_date:
        query = query.filter(Expense.date >= start_date)
    if end_date:
        query = query.filter(Expense.date <= end_date)
    if category_id:
        query = query.filter(Expense.category_id == category_id)
    return query.order_by(Expense.date.desc(), Expense.created_at.desc()).all()

def load_ledger(
    db: Session,
    couple_id: str,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    category_id: Optional[str] = None
) -> List[LedgerExpense]:
    """Detached engine snapshot of a couple's expenses"""
    return snapshot(query_expenses(db, couple_id, start_date, end_date, category_id))

def list_expenses(
    db: Session,
    user_id: str,
    scope: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    category_id: Optional[str] = None
) -> Tuple[List[Dict[str, Any]], ScopeResolution]:
    """
    Expenses visible in a scope, newest first, each with the viewer's share.

    'partner' without a connected partner falls back to 'ours'; the caller
    gets the resolution back to report the effective scope.
    """
    couple, view = household_for(db, user_id)
    resolution = resolve_scope(scope, view.has_partner)
    rows = query_expenses(db, couple.id, start_date, end_date, category_id)

    viewer_id = viewer_for_scope(view, resolution.effective)
    visible = {expense.id for expense, _ in scoped_amounts(snapshot(rows), view, resolution.effective)}

    payloads = [
        expense_payload(row, _share_of(row, view, viewer_id))
        for row in rows
        if row.id in visible
    ]
    logger.debug("expenses_listed", couple_id=couple.id, scope=resolution.effective.value,
                 count=len(payloads))
    return payloads, resolution

RECENT_LIMIT = 5

def recent_expenses(db: Session, user_id: str, limit: int = RECENT_LIMIT) -> List[Dict[str, Any]]:
    """Latest expenses of the couple, each with the user's own share"""
    couple, view = household_for(db, user_id)
    rows = db.query(Expense).filter(Expense.couple_id == couple.id).order_by(
        Expense.date.desc(), Expense.created_at.desc()
    ).limit(limit).all()
    return [expense_payload(row, _share_of(row, view, user_id)) for row in rows]

def _get_owned_expense(db: Session, couple_id: str, expense_id: str) -> Expense:
    expense = db.query(Expense).filter(
        Expense.id == expense_id,
        Expense.couple_id == couple_id
    ).first()
    if not expense:
        raise HTTPException(status_code=404, detail=f"Expense with id {expense_id} not found")
    return expense

def get_expense(db: Session, user_id: str, expense_id: str) -> Dict[str, Any]:
    couple, view = household_for(db, user_id)
    expense = _get_owned_expense(db, couple.id, expense_id)
    return expense_payload(expense, _share_of(expense, view, user_id))

def update_expense(db: Session, user_id: str, expense_id: str, expense_data: ExpenseUpdate) -> Dict[str, Any]:
    """Re-validate the merged record before writing anything"""
    couple, view = household_for(db, user_id)
    expense = _get_owned_expense(db, couple.id, expense_id)
    changes = expense_data.model_dump(exclude_unset=True)

    payer_id = changes.get("paid_by_user_id") or expense.paid_by_user_id
    split_type = changes.get("split_type") or expense.split_type
    ratio_user1 = changes.get("split_ratio_user1", expense.split_ratio_user1)
    ratio_user2 = changes.get("split_ratio_user2", expense.split_ratio_user2)
    if "amount" in changes and changes["amount"] is None:
        raise ValidationError("amount", "Value is required")
    amount = changes.get("amount", expense.amount)

    amount, split_type, ratio_user1, ratio_user2, shares = validate_split(
        view, amount, split_type, ratio_user1, ratio_user2, payer_id
    )
    if changes.get("category_id"):
        _ensure_category(db, changes["category_id"])
        expense.category_id = changes["category_id"]

    expense.amount = amount
    expense.paid_by_user_id = payer_id
    expense.split_type = split_type
    expense.split_ratio_user1 = ratio_user1
    expense.split_ratio_user2 = ratio_user2
    if changes.get("date"):
        expense.date = changes["date"]
    if changes.get("description") is not None:
        expense.description = changes["description"]
    if "notes" in changes:
        expense.notes = changes["notes"]

    db.commit()
    db.refresh(expense)
    logger.info("expense_updated", expense_id=expense.id, fields=sorted(changes))
    return expense_payload(expense, shares.get(user_id, Decimal("0")))

def delete_expense(db: Session, user_id: str, expense_id: str):
    couple, _ = household_for(db, user_id)
    expense = _get_owned_expense(db, couple.id, expense_id)
    db.delete(expense)
    db.commit()
    logger.info("expense_deleted", expense_id=expense_id, couple_id=couple.id)
    return {"message": "Expense deleted successfully"}
