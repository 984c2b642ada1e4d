from datetime import date
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from coupleledger.app.api.v1.expenses import EFFECTIVE_SCOPE_HEADER
from coupleledger.app.database import get_db_session
from coupleledger.app.services.analytics_service import (
    spending_trends, category_trends, income_expenses, savings_analysis, current_settlement
)

router = APIRouter()

@router.get("/trends/{start_date}/{end_date}", response_model=Dict[str, Any])
def trends_route(
    start_date: date,
    end_date: date,
    response: Response,
    user_id: str = Query(..., description="ID of the requesting user"),
    scope: Optional[str] = Query("ours", description="ours, mine or partner"),
    db: Session = Depends(get_db_session)
):
    """
    Monthly spending totals with previous-year comparison and trend
    """
    payload, resolution = spending_trends(db, user_id, start_date, end_date, scope)
    response.headers[EFFECTIVE_SCOPE_HEADER] = resolution.effective.value
    return payload

@router.get("/category-trends/{start_date}/{end_date}", response_model=Dict[str, Any])
def category_trends_route(
    start_date: date,
    end_date: date,
    response: Response,
    user_id: str = Query(..., description="ID of the requesting user"),
    scope: Optional[str] = Query("ours", description="ours, mine or partner"),
    db: Session = Depends(get_db_session)
):
    """
    Top 5 categories by spending with monthly breakdown and trend
    """
    payload, resolution = category_trends(db, user_id, start_date, end_date, scope)
    response.headers[EFFECTIVE_SCOPE_HEADER] = resolution.effective.value
    return payload

@router.get("/income-expenses/{start_date}/{end_date}", response_model=Dict[str, Any])
def income_expenses_route(
    start_date: date,
    end_date: date,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """
    Monthly income against the user's own share of expenses
    """
    return income_expenses(db, user_id, start_date, end_date)

@router.get("/savings-analysis/{start_date}/{end_date}", response_model=Dict[str, Any])
def savings_analysis_route(
    start_date: date,
    end_date: date,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """
    Savings rate per month, goals and a trend direction

    - dataAvailability explains what is missing when there is too little data
    """
    return savings_analysis(db, user_id, start_date, end_date)

@router.get("/current-settlement", response_model=Dict[str, Any])
def current_settlement_route(
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """
    Who owes whom for the current month
    """
    return current_settlement(db, user_id)
