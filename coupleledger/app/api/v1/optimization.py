from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from coupleledger.app.api.v1.expenses import EFFECTIVE_SCOPE_HEADER
from coupleledger.app.database import get_db_session
from coupleledger.app.schemas.optimization import TipUpdate, TipResponse
from coupleledger.app.services.optimization_service import analyze, get_tips, update_tip, dismiss_tip

router = APIRouter()

@router.get("/analyze", response_model=Dict[str, Any])
def analyze_route(
    response: Response,
    user_id: str = Query(..., description="ID of the requesting user"),
    scope: Optional[str] = Query("ours", description="ours, mine or partner"),
    db: Session = Depends(get_db_session)
):
    """
    Analyze the last year of spending and refresh the optimization tips

    - Open tips of the same scope are replaced, dismissed ones are kept
    - The scope actually applied is returned in the X-Effective-Scope header
    """
    payload, resolution = analyze(db, user_id, scope)
    response.headers[EFFECTIVE_SCOPE_HEADER] = resolution.effective.value
    return payload

@router.get("/tips", response_model=List[TipResponse])
def get_tips_route(
    user_id: str = Query(..., description="ID of the requesting user"),
    scope: Optional[str] = Query(None, description="Only tips of this scope"),
    db: Session = Depends(get_db_session)
):
    """Open, unexpired tips, most confident first"""
    return get_tips(db, user_id, scope)

@router.post("/tips/{tip_id}/dismiss")
def dismiss_tip_route(
    tip_id: str,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    return dismiss_tip(db, user_id, tip_id)

@router.put("/tips/{tip_id}", response_model=TipResponse)
def update_tip_route(
    tip_id: str,
    tip_data: TipUpdate,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """Dismiss or restore a tip"""
    return update_tip(db, user_id, tip_id, tip_data)
