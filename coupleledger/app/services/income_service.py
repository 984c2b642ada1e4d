from datetime import date
from typing import List, Optional
from sqlalchemy.orm import Session
from fastapi import HTTPException
import structlog

from coupleledger.app.engine.money import quantize_cents, require_positive
from coupleledger.app.models.models import Income
from coupleledger.app.schemas.incomes import IncomeCreate
from coupleledger.app.services.user_service import get_user_by_id

logger = structlog.get_logger(__name__)

def create_income(db: Session, user_id: str, income_data: IncomeCreate) -> Income:
    """Record an income for the requesting user"""
    get_user_by_id(db, user_id)
    income = Income(
        user_id=user_id,
        source=income_data.source,
        amount=quantize_cents(require_positive(income_data.amount)),
        date=income_data.date
    )
    db.add(income)
    db.commit()
    db.refresh(income)
    logger.info("income_created", income_id=income.id, user_id=user_id)
    return income

def get_incomes(
    db: Session,
    user_ids: List[str],
    start_date: Optional[date] = None,
    end_date: Optional[date] = None
) -> List[Income]:
    """Incomes of the given users, newest first"""
    query = db.query(Income).filter(Income.user_id.in_(user_ids))
    if start_date:
        query = query.filter(Income.date >= start_date)
    if end_date:
        query = query.filter(Income.date <= end_date)
    return query.order_by(Income.date.desc()).all()

def delete_income(db: Session, user_id: str, income_id: str):
    income = db.query(Income).filter(Income.id == income_id, Income.user_id == user_id).first()
    if not income:
        raise HTTPException(status_code=404, detail=f"Income with id {income_id} not found")
    db.delete(income)
    db.commit()
    return {"message": "Income deleted successfully"}
