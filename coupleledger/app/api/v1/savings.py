from datetime import date
from typing import Any, Dict, List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from coupleledger.app.database import get_db_session
from coupleledger.app.schemas.savings import (
    SavingsGoalCreate, SavingsGoalUpdate, SavingsGoalResponse,
    ContributionCreate, ContributionResponse, ContributionResult, QuickAddRequest
)
from coupleledger.app.services.analytics_service import savings_rate
from coupleledger.app.services.savings_service import (
    create_goal, get_goals, update_goal, delete_goal, add_contribution, quick_add, get_contributions
)

router = APIRouter()

@router.post("/goals", response_model=SavingsGoalResponse)
def create_goal_route(
    goal_data: SavingsGoalCreate,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """Create a savings goal for the user's couple"""
    return create_goal(db, user_id, goal_data)

@router.get("/goals", response_model=List[SavingsGoalResponse])
def get_goals_route(
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """
    Get savings goals, pinned first

    - Each goal carries its progress percent and remaining amount
    """
    return get_goals(db, user_id)

@router.put("/goals/{goal_id}", response_model=SavingsGoalResponse)
def update_goal_route(
    goal_id: str,
    goal_data: SavingsGoalUpdate,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """Update a savings goal"""
    return update_goal(db, user_id, goal_id, goal_data)

@router.delete("/goals/{goal_id}")
def delete_goal_route(
    goal_id: str,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """Delete a savings goal and its contributions"""
    return delete_goal(db, user_id, goal_id)

@router.post("/goals/{goal_id}/contributions", response_model=ContributionResult)
def add_contribution_route(
    goal_id: str,
    contribution_data: ContributionCreate,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """
    Add money to a goal.

    - Amounts above what is left are capped to the remaining amount
    - Dates in the future are rejected
    - A goal that already reached its target accepts nothing more
    """
    return add_contribution(db, user_id, goal_id, contribution_data)

@router.get("/goals/{goal_id}/contributions", response_model=List[ContributionResponse])
def get_contributions_route(
    goal_id: str,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """Contributions to a goal, newest first"""
    return get_contributions(db, user_id, goal_id)

@router.post("/goals/{goal_id}/quick-add", response_model=ContributionResult)
def quick_add_route(
    goal_id: str,
    request: QuickAddRequest,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """
    One-tap contribution of a preset amount, capped like any other
    """
    return quick_add(db, user_id, goal_id, request)

@router.get("/rate/{start_date}/{end_date}", response_model=Dict[str, Any])
def savings_rate_route(
    start_date: date,
    end_date: date,
    user_id: str = Query(..., description="ID of the requesting user"),
    db: Session = Depends(get_db_session)
):
    """
    Monthly savings rate over the period

    - Only months with income are listed
    """
    return savings_rate(db, user_id, start_date, end_date)
