from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import date

from coupleledger.app.database import get_db_session
from coupleledger.app.schemas.budgets import BudgetUpsert, BudgetResponse, BudgetEvaluationResponse
from coupleledger.app.services.budget_service import upsert_budget, get_budgets, evaluate_budgets, delete_budget

router = APIRouter()

@router.post("/", response_model=BudgetResponse)
def upsert_budget_endpoint(
    budget_data: BudgetUpsert,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """
    Set the budget for a category and month; replaces an existing one
    """
    return upsert_budget(db, user_id, budget_data)

@router.get("/", response_model=List[BudgetResponse])
def get_budgets_endpoint(
    user_id: str = Query(..., description="ID of the requesting user"),
    month: Optional[int] = Query(None, ge=1, le=12, description="Month (1-12)"),
    year: Optional[int] = Query(None, description="Year"),
    db: Session = Depends(get_db_session)
):
    """
    Get budgets for the user's couple
    """
    return get_budgets(db, user_id, month, year)

@router.get("/evaluation", response_model=BudgetEvaluationResponse)
def evaluate_budgets_endpoint(
    user_id: str = Query(..., description="ID of the requesting user"),
    start_date: date = Query(..., description="First day of the period"),
    end_date: date = Query(..., description="Last day of the period"),
    scope: Optional[str] = Query("ours", description="ours, mine or partner"),
    db: Session = Depends(get_db_session)
):
    """
    Budget vs actual per category over a period

    - Budgets of every month touched by the period are summed
    - low_confidence marks categories with months lacking a budget
    """
    return evaluate_budgets(db, user_id, start_date, end_date, scope)

@router.delete("/{budget_id}")
def delete_budget_endpoint(
    budget_id: str,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """
    Delete a budget
    """
    return delete_budget(db, user_id, budget_id)
