from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from coupleledger.app.database import get_db_session
from coupleledger.app.schemas.recurring import (
    RecurringExpenseCreate, RecurringExpenseUpdate, RecurringExpenseResponse, GenerateRequest, GenerateResponse
)
from coupleledger.app.services.recurring_service import (
    create_template, get_templates, update_template, deactivate_template, generate_month
)

router = APIRouter()

@router.post("/", response_model=RecurringExpenseResponse)
def create_recurring_route(
    template_data: RecurringExpenseCreate,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """
    Create a monthly recurring expense.

    - Materialized on the 1st of each month when the monthly summary is requested
    """
    return create_template(db, user_id, template_data)

@router.get("/", response_model=List[RecurringExpenseResponse])
def get_recurring_route(
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """Active recurring expenses of the user's couple"""
    return get_templates(db, user_id)

@router.put("/{template_id}", response_model=RecurringExpenseResponse)
def update_recurring_route(
    template_id: str,
    template_data: RecurringExpenseUpdate,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """
    Update a recurring expense.

    - Split rules are checked again on the merged template
    - Already generated months are rewritten the next time they are generated
    """
    return update_template(db, user_id, template_id, template_data)

@router.delete("/{template_id}")
def deactivate_recurring_route(
    template_id: str,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """Stop a recurring expense; past expenses are kept"""
    return deactivate_template(db, user_id, template_id)

@router.post("/generate", response_model=GenerateResponse)
def generate_recurring_route(
    request: GenerateRequest,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """
    Generate this couple's recurring expenses for one month.

    - Idempotent: a month already generated from the current templates writes nothing
    """
    return generate_month(db, user_id, request.year, request.month)
