from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict

from coupleledger.app.engine.money import (
    HUNDRED, ZERO, quantize_cents, require_not_future, require_positive, to_decimal
)
from coupleledger.app.errors import ValidationError


class GoalState(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    target_amount: Decimal
    current_amount: Decimal = ZERO


class ContributionOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    requested_amount: Decimal
    applied_amount: Decimal
    capped: bool
    new_current_amount: Decimal
    remaining_after: Decimal


class GoalProgress(BaseModel):
    model_config = ConfigDict(frozen=True)

    percent: Decimal
    remaining: Decimal
    is_complete: bool


def remaining_for(goal: GoalState) -> Decimal:
    return max(ZERO, to_decimal(goal.target_amount) - to_decimal(goal.current_amount))


def apply_contribution(
    goal: GoalState,
    amount,
    on_date: date,
    today: Optional[date] = None,
    enforce_cap: bool = True
) -> ContributionOutcome:
    """
    Validate and (maybe) clip a contribution.

    Every path that adds money to a goal goes through here, so the cap can't
    be skipped by quick-add shortcuts.
    """
    requested = quantize_cents(require_positive(amount))
    require_not_future(on_date, today)

    current = to_decimal(goal.current_amount, "current_amount")
    remaining = remaining_for(goal)

    applied = requested
    capped = False
    if enforce_cap and requested > remaining:
        applied = remaining
        capped = True

    if applied <= ZERO:
        raise ValidationError("amount", "This goal has already reached its target")

    new_current = current + applied
    return ContributionOutcome(
        requested_amount=requested,
        applied_amount=applied,
        capped=capped,
        new_current_amount=new_current,
        remaining_after=max(ZERO, to_decimal(goal.target_amount) - new_current),
    )


def goal_progress(goal: GoalState) -> GoalProgress:
    target = to_decimal(goal.target_amount)
    current = to_decimal(goal.current_amount)
    if target <= ZERO:
        return GoalProgress(percent=ZERO, remaining=ZERO, is_complete=False)
    percent = min(HUNDRED, current / target * HUNDRED)
    return GoalProgress(
        percent=percent.quantize(Decimal("0.1")),
        remaining=remaining_for(goal),
        is_complete=current >= target,
    )
