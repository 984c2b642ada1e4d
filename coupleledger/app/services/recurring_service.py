from datetime import datetime
from typing import Any, Dict, List
from sqlalchemy.orm import Session
from fastapi import HTTPException
import structlog

from coupleledger.app.engine.budgets import month_bounds
from coupleledger.app.engine.money import ZERO, as_amount
from coupleledger.app.errors import ValidationError
from coupleledger.app.models.models import RecurringExpense, Expense, Category
from coupleledger.app.schemas.recurring import RecurringExpenseCreate, RecurringExpenseUpdate
from coupleledger.app.services.couple_service import household_for
from coupleledger.app.services.expense_service import validate_split

logger = structlog.get_logger(__name__)

def _ensure_category(db: Session, category_id: str):
    if not db.query(Category).filter(Category.id == category_id).first():
        raise HTTPException(status_code=404, detail=f"Category with id {category_id} not found")

def _get_template(db: Session, couple_id: str, template_id: str) -> RecurringExpense:
    template = db.query(RecurringExpense).filter(
        RecurringExpense.id == template_id,
        RecurringExpense.couple_id == couple_id
    ).first()
    if not template:
        raise HTTPException(status_code=404, detail=f"Recurring expense with id {template_id} not found")
    return template

def create_template(db: Session, user_id: str, template_data: RecurringExpenseCreate) -> RecurringExpense:
    """Store a monthly template; it goes through the same split rules as expenses"""
    couple, view = household_for(db, user_id)
    payer_id = template_data.paid_by_user_id or user_id

    amount, split_type, ratio_user1, ratio_user2, _ = validate_split(
        view,
        template_data.default_amount,
        template_data.split_type,
        template_data.split_ratio_user1,
        template_data.split_ratio_user2,
        payer_id
    )
    _ensure_category(db, template_data.category_id)

    template = RecurringExpense(
        couple_id=couple.id,
        description=template_data.description,
        default_amount=amount,
        category_id=template_data.category_id,
        paid_by_user_id=payer_id,
        split_type=split_type,
        split_ratio_user1=ratio_user1,
        split_ratio_user2=ratio_user2
    )
    db.add(template)
    db.commit()
    db.refresh(template)
    logger.info("recurring_template_created", template_id=template.id, couple_id=couple.id)
    return template

def get_templates(db: Session, user_id: str) -> List[RecurringExpense]:
    couple, _ = household_for(db, user_id)
    return db.query(RecurringExpense).filter(
        RecurringExpense.couple_id == couple.id,
        RecurringExpense.is_active == True
    ).order_by(RecurringExpense.created_at).all()

def update_template(db: Session, user_id: str, template_id: str,
                    template_data: RecurringExpenseUpdate) -> RecurringExpense:
    """
    Merge the changes into the template and re-run the split rules before
    writing. Months generated afterwards pick up the new version.
    """
    couple, view = household_for(db, user_id)
    template = _get_template(db, couple.id, template_id)
    changes = template_data.model_dump(exclude_unset=True)

    if "default_amount" in changes and changes["default_amount"] is None:
        raise ValidationError("default_amount", "Value is required")
    payer_id = changes.get("paid_by_user_id") or template.paid_by_user_id
    amount, split_type, ratio_user1, ratio_user2, _ = validate_split(
        view,
        changes.get("default_amount", template.default_amount),
        changes.get("split_type") or template.split_type,
        changes.get("split_ratio_user1", template.split_ratio_user1),
        changes.get("split_ratio_user2", template.split_ratio_user2),
        payer_id
    )
    if changes.get("category_id"):
        _ensure_category(db, changes["category_id"])
        template.category_id = changes["category_id"]
    if changes.get("description"):
        template.description = changes["description"]

    template.default_amount = amount
    template.paid_by_user_id = payer_id
    template.split_type = split_type
    template.split_ratio_user1 = ratio_user1
    template.split_ratio_user2 = ratio_user2
    template.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(template)
    logger.info("recurring_template_updated", template_id=template_id, fields=sorted(changes))
    return template

def deactivate_template(db: Session, user_id: str, template_id: str):
    """Stop generating the template; already materialized expenses stay"""
    couple, _ = household_for(db, user_id)
    template = _get_template(db, couple.id, template_id)
    template.is_active = False
    db.commit()
    logger.info("recurring_template_deactivated", template_id=template_id)
    return {"message": "Recurring expense deactivated"}

def _materialize(db: Session, couple_id: str, year: int, month: int) -> List[RecurringExpense]:
    first_day, _ = month_bounds(year, month)
    templates = db.query(RecurringExpense).filter(
        RecurringExpense.couple_id == couple_id,
        RecurringExpense.is_active == True
    ).all()

    written = []
    for template in templates:
        existing = db.query(Expense).filter(
            Expense.recurring_expense_id == template.id,
            Expense.date == first_day
        ).first()
        if existing and existing.recurring_template_updated_at == template.updated_at:
            continue
        if existing:
            db.delete(existing)
            db.flush()

        db.add(Expense(
            couple_id=couple_id,
            amount=template.default_amount,
            date=first_day,
            category_id=template.category_id,
            paid_by_user_id=template.paid_by_user_id,
            split_type=template.split_type,
            split_ratio_user1=template.split_ratio_user1,
            split_ratio_user2=template.split_ratio_user2,
            description=template.description,
            recurring_expense_id=template.id,
            recurring_template_updated_at=template.updated_at
        ))
        written.append(template)

    if written:
        db.commit()
        logger.info("recurring_materialized", couple_id=couple_id, year=year, month=month, written=len(written))
    return written

def materialize_month(db: Session, couple_id: str, year: int, month: int) -> int:
    """
    Make sure every active template has its expense on the 1st of the month.

    Idempotent: one row per (template, date). A row generated from an older
    version of the template is replaced.
    Returns the number of rows written.
    """
    return len(_materialize(db, couple_id, year, month))

def generate_month(db: Session, user_id: str, year: int, month: int) -> Dict[str, Any]:
    """Materialize the user's couple templates for one month and report what was written"""
    couple, _ = household_for(db, user_id)
    written = _materialize(db, couple.id, year, month)
    return {
        "generatedCount": len(written),
        "generatedAmount": as_amount(sum((template.default_amount for template in written), ZERO)),
        "year": year,
        "month": month,
    }
