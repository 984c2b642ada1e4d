from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from coupleledger.app.schemas.couples import CoupleLink, CoupleResponse, CoupleSummaryResponse
from coupleledger.app.services.couple_service import get_household, link_partner, unlink_partner
from coupleledger.app.services.summary_service import couple_summary
from coupleledger.app.database import get_db_session

router = APIRouter()

@router.get("/", response_model=CoupleResponse)
async def get_couple_route(
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """
    Get the couple the user belongs to.

    - Users without a partner get their single-person household
    """
    return get_household(db, user_id)

@router.post("/link", response_model=CoupleResponse)
async def link_couple_route(
    link_data: CoupleLink,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """
    Link the user with a partner by email.

    - 400 when linking with yourself
    - 404 when no user has that email
    - 409 when either side is already linked with someone else
    """
    return link_partner(db, user_id, link_data.partner_email)

@router.post("/unlink", response_model=CoupleResponse)
async def unlink_couple_route(
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """
    Disconnect the couple.

    - Partner scope is disabled until linked again
    """
    return unlink_partner(db, user_id)

@router.get("/summary", response_model=CoupleSummaryResponse)
async def couple_summary_route(
    user_id: str = Query(..., description="ID of the requesting user"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db_session)
):
    """
    Totals for ours / mine / partner and who the couple is.

    - partner total is null when no partner is connected
    """
    return couple_summary(db, user_id, start_date, end_date)
