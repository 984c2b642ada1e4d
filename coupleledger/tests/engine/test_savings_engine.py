import pytest
from datetime import date, timedelta
from decimal import Decimal

from coupleledger.app.engine.savings import GoalState, apply_contribution, goal_progress
from coupleledger.app.errors import ValidationError

TODAY = date(2024, 6, 15)

def test_contribution_is_capped_to_remaining():
    goal = GoalState(target_amount=Decimal("1000"), current_amount=Decimal("900"))
    outcome = apply_contribution(goal, 200, TODAY, today=TODAY)

    assert outcome.applied_amount == Decimal("100")
    assert outcome.requested_amount == Decimal("200.00")
    assert outcome.capped is True
    assert outcome.new_current_amount == Decimal("1000")
    assert outcome.remaining_after == Decimal("0")

def test_contribution_under_remaining_is_not_capped():
    goal = GoalState(target_amount=Decimal("1000"), current_amount=Decimal("100"))
    outcome = apply_contribution(goal, "50.5", TODAY, today=TODAY)
    assert outcome.applied_amount == Decimal("50.50")
    assert outcome.capped is False
    assert outcome.new_current_amount == Decimal("150.50")

def test_cap_can_be_disabled():
    goal = GoalState(target_amount=Decimal("1000"), current_amount=Decimal("900"))
    outcome = apply_contribution(goal, 200, TODAY, today=TODAY, enforce_cap=False)
    assert outcome.applied_amount == Decimal("200.00")
    assert outcome.new_current_amount == Decimal("1100.00")

def test_completed_goal_rejects_contributions():
    goal = GoalState(target_amount=Decimal("500"), current_amount=Decimal("500"))
    with pytest.raises(ValidationError) as excinfo:
        apply_contribution(goal, 10, TODAY, today=TODAY)
    assert "already reached" in excinfo.value.message

@pytest.mark.parametrize("amount", [0, -20])
def test_non_positive_contribution_rejected(amount):
    goal = GoalState(target_amount=Decimal("500"))
    with pytest.raises(ValidationError) as excinfo:
        apply_contribution(goal, amount, TODAY, today=TODAY)
    assert excinfo.value.field == "amount"

def test_future_dated_contribution_rejected():
    goal = GoalState(target_amount=Decimal("500"))
    with pytest.raises(ValidationError) as excinfo:
        apply_contribution(goal, 10, TODAY + timedelta(days=1), today=TODAY)
    assert excinfo.value.field == "date"

def test_goal_progress():
    progress = goal_progress(GoalState(target_amount=Decimal("400"), current_amount=Decimal("100")))
    assert progress.percent == Decimal("25.0")
    assert progress.remaining == Decimal("300")
    assert progress.is_complete is False

def test_goal_progress_zero_target():
    progress = goal_progress(GoalState(target_amount=Decimal("0")))
    assert progress.percent == Decimal("0")
    assert progress.is_complete is False
