from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from coupleledger.app.api.v1.expenses import EFFECTIVE_SCOPE_HEADER
from coupleledger.app.database import get_db_session
from coupleledger.app.services.summary_service import chart_data, monthly_summary

router = APIRouter()

@router.get("/charts/{year}/{month}", response_model=Dict[str, Any])
def chart_data_route(
    year: int,
    month: int,
    response: Response,
    user_id: str = Query(..., description="ID of the requesting user"),
    scope: Optional[str] = Query("ours", description="ours, mine or partner"),
    db: Session = Depends(get_db_session)
):
    """
    Category spending against budget plus income vs expenses for a month.

    - status per category uses the fixed +/-10% thresholds
    """
    payload, resolution = chart_data(db, user_id, year, month, scope)
    response.headers[EFFECTIVE_SCOPE_HEADER] = resolution.effective.value
    return payload

@router.get("/monthly/{year}/{month}", response_model=Dict[str, Any])
def monthly_summary_route(
    year: int,
    month: int,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """
    Monthly statement with settlement.

    - Recurring expenses for the month are generated first
    - The statement snapshot is stored (one per couple and month)
    """
    return monthly_summary(db, user_id, year, month)
