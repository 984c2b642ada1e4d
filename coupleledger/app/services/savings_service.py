from datetime import date
from typing import Any, Dict, List
from sqlalchemy.orm import Session
from fastapi import HTTPException
import structlog

from coupleledger.app.config import get_settings
from coupleledger.app.engine.money import as_amount, quantize_cents, require_positive
from coupleledger.app.engine.savings import GoalState, apply_contribution, goal_progress
from coupleledger.app.errors import ValidationError
from coupleledger.app.models.models import SavingsGoal, SavingsContribution
from coupleledger.app.schemas.savings import (
    SavingsGoalCreate, SavingsGoalUpdate, ContributionCreate, QuickAddRequest
)
from coupleledger.app.services.couple_service import household_for

logger = structlog.get_logger(__name__)

def goal_payload(goal: SavingsGoal) -> Dict[str, Any]:
    progress = goal_progress(GoalState.model_validate(goal))
    return {
        "id": goal.id,
        "couple_id": goal.couple_id,
        "user_id": goal.user_id,
        "goal_name": goal.goal_name,
        "target_amount": as_amount(goal.target_amount),
        "current_amount": as_amount(goal.current_amount),
        "category": goal.category,
        "target_date": goal.target_date,
        "color_index": goal.color_index,
        "is_pinned": goal.is_pinned,
        "progress_percent": float(progress.percent),
        "remaining_amount": as_amount(progress.remaining),
        "created_at": goal.created_at,
    }

def create_goal(db: Session, user_id: str, goal_data: SavingsGoalCreate) -> Dict[str, Any]:
    target = quantize_cents(require_positive(goal_data.target_amount, "target_amount"))
    couple, _ = household_for(db, user_id)

    goal = SavingsGoal(
        couple_id=couple.id,
        user_id=user_id,
        goal_name=goal_data.goal_name,
        target_amount=target,
        current_amount=0,
        category=goal_data.category,
        target_date=goal_data.target_date,
        color_index=goal_data.color_index,
        is_pinned=goal_data.is_pinned
    )
    db.add(goal)
    db.commit()
    db.refresh(goal)
    logger.info("savings_goal_created", goal_id=goal.id, target=str(target))
    return goal_payload(goal)

def get_goals(db: Session, user_id: str) -> List[Dict[str, Any]]:
    """Goals of the user's couple, pinned first"""
    couple, _ = household_for(db, user_id)
    goals = db.query(SavingsGoal).filter(SavingsGoal.couple_id == couple.id).order_by(
        SavingsGoal.is_pinned.desc(), SavingsGoal.created_at
    ).all()
    return [goal_payload(goal) for goal in goals]

def _get_goal(db: Session, user_id: str, goal_id: str) -> SavingsGoal:
    couple, _ = household_for(db, user_id)
    goal = db.query(SavingsGoal).filter(
        SavingsGoal.id == goal_id,
        SavingsGoal.couple_id == couple.id
    ).first()
    if not goal:
        raise HTTPException(status_code=404, detail=f"Savings goal with id {goal_id} not found")
    return goal

def update_goal(db: Session, user_id: str, goal_id: str, goal_data: SavingsGoalUpdate) -> Dict[str, Any]:
    goal = _get_goal(db, user_id, goal_id)
    changes = goal_data.model_dump(exclude_unset=True)

    if "target_amount" in changes:
        goal.target_amount = quantize_cents(require_positive(changes.pop("target_amount"), "target_amount"))
    for field in ("goal_name", "category", "target_date", "color_index", "is_pinned"):
        if field in changes and changes[field] is not None:
            setattr(goal, field, changes[field])

    db.commit()
    db.refresh(goal)
    return goal_payload(goal)

def delete_goal(db: Session, user_id: str, goal_id: str):
    goal = _get_goal(db, user_id, goal_id)
    db.delete(goal)
    db.commit()
    logger.info("savings_goal_deleted", goal_id=goal_id)
    return {"message": "Savings goal deleted successfully"}

def add_contribution(db: Session, user_id: str, goal_id: str, contribution_data: ContributionCreate) -> Dict[str, Any]:
    """
    Add money to a goal.

    The engine decides how much is actually applied; the goal increment and
    the contribution row are committed together.
    """
    goal = _get_goal(db, user_id, goal_id)
    settings = get_settings()
    on_date = contribution_data.date or date.today()

    outcome = apply_contribution(
        GoalState.model_validate(goal),
        contribution_data.amount,
        on_date,
        enforce_cap=settings.enforce_contribution_cap
    )

    contribution = SavingsContribution(
        goal_id=goal.id,
        user_id=user_id,
        amount=outcome.applied_amount,
        requested_amount=outcome.requested_amount,
        capped=outcome.capped,
        date=on_date,
        note=contribution_data.note
    )
    goal.current_amount = outcome.new_current_amount
    db.add(contribution)
    db.commit()
    db.refresh(goal)
    db.refresh(contribution)

    if outcome.capped:
        logger.info("contribution_capped", goal_id=goal.id,
                    requested=str(outcome.requested_amount), applied=str(outcome.applied_amount))
    else:
        logger.info("contribution_applied", goal_id=goal.id, applied=str(outcome.applied_amount))

    return {
        "goal": goal_payload(goal),
        "contribution": contribution_payload(contribution),
    }

def quick_add(db: Session, user_id: str, goal_id: str, request: QuickAddRequest) -> Dict[str, Any]:
    """One-tap contribution of a configured increment, capped like any other"""
    increments = get_settings().quick_add_increments
    if request.increment not in increments:
        allowed = ", ".join(str(value) for value in increments)
        raise ValidationError("increment", f"Quick-add amount must be one of {allowed}", request.increment)
    return add_contribution(
        db,
        user_id,
        goal_id,
        ContributionCreate(amount=request.increment, date=date.today(), note=request.note)
    )

def contribution_payload(contribution: SavingsContribution) -> Dict[str, Any]:
    return {
        "id": contribution.id,
        "goal_id": contribution.goal_id,
        "user_id": contribution.user_id,
        "amount": as_amount(contribution.amount),
        "requested_amount": as_amount(contribution.requested_amount),
        "capped": bool(contribution.capped),
        "date": contribution.date,
        "note": contribution.note,
        "created_at": contribution.created_at,
    }

def get_contributions(db: Session, user_id: str, goal_id: str) -> List[Dict[str, Any]]:
    """Contributions to a goal, newest first"""
    goal = _get_goal(db, user_id, goal_id)
    contributions = db.query(SavingsContribution).filter(
        SavingsContribution.goal_id == goal.id
    ).order_by(SavingsContribution.date.desc(), SavingsContribution.created_at.desc()).all()
    return [contribution_payload(contribution) for contribution in contributions]
