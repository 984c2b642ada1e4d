from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from coupleledger.app.database import get_db_session
from coupleledger.app.schemas.incomes import IncomeCreate, IncomeResponse
from coupleledger.app.services.income_service import create_income, get_incomes, delete_income
from coupleledger.app.services.user_service import get_user_by_id

router = APIRouter()

@router.post("/", response_model=IncomeResponse)
def create_income_route(
    income_data: IncomeCreate,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """Record an income for the requesting user"""
    return create_income(db, user_id, income_data)

@router.get("/", response_model=List[IncomeResponse])
def get_incomes_route(
    user_id: str = Query(..., description="ID of the requesting user"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db_session)
):
    """Get the user's incomes, newest first"""
    get_user_by_id(db, user_id)
    return get_incomes(db, [user_id], start_date, end_date)

@router.delete("/{income_id}")
def delete_income_route(
    income_id: str,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """Delete one of the user's incomes"""
    return delete_income(db, user_id, income_id)
