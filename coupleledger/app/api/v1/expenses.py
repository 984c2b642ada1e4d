from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from coupleledger.app.database import get_db_session
from coupleledger.app.schemas.expenses import ExpenseCreate, ExpenseUpdate, ExpenseResponse
from coupleledger.app.services.expense_service import (
    create_expense, list_expenses, recent_expenses, get_expense, update_expense, delete_expense
)

router = APIRouter()

EFFECTIVE_SCOPE_HEADER = "X-Effective-Scope"

@router.post("/", response_model=ExpenseResponse)
def create_expense_route(
    expense_data: ExpenseCreate,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """
    Record an expense.

    - Payer defaults to the requesting user
    - Custom ratios must add up to 100
    - Invalid input returns 422 with the offending field
    """
    return create_expense(db, user_id, expense_data)

@router.get("/", response_model=List[ExpenseResponse])
def list_expenses_route(
    response: Response,
    user_id: str = Query(..., description="ID of the requesting user"),
    scope: Optional[str] = Query("ours", description="ours, mine or partner"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    category_id: Optional[str] = Query(None),
    db: Session = Depends(get_db_session)
):
    """
    List expenses visible in a scope, newest first.

    - owed_share is the scope viewer's share of each expense
    - The scope actually applied is returned in the X-Effective-Scope header
    """
    expenses, resolution = list_expenses(db, user_id, scope, start_date, end_date, category_id)
    response.headers[EFFECTIVE_SCOPE_HEADER] = resolution.effective.value
    return expenses

@router.get("/recent", response_model=List[ExpenseResponse])
def recent_expenses_route(
    user_id: str = Query(..., description="ID of the requesting user"),
    limit: int = Query(5, ge=1, le=50),
    db: Session = Depends(get_db_session)
):
    """Latest expenses of the couple, newest first"""
    return recent_expenses(db, user_id, limit)

@router.get("/{expense_id}", response_model=ExpenseResponse)
def get_expense_route(
    expense_id: str,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """Get one expense of the user's couple"""
    return get_expense(db, user_id, expense_id)

@router.put("/{expense_id}", response_model=ExpenseResponse)
def update_expense_route(
    expense_id: str,
    expense_data: ExpenseUpdate,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """
    Update an expense.

    - The merged record is re-validated before anything is written
    """
    return update_expense(db, user_id, expense_id, expense_data)

@router.delete("/{expense_id}")
def delete_expense_route(
    expense_id: str,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """Delete an expense"""
    return delete_expense(db, user_id, expense_id)
