import pytest
from datetime import date
from decimal import Decimal

from coupleledger.app.engine.ledger import CoupleView, LedgerExpense
from coupleledger.app.engine.scopes import (
    Scope, aggregate_scopes, resolve_scope, sanitize_scope, scope_total, scoped_amounts
)

A = "user-a"
B = "user-b"

def expense(id, amount, payer, split_type="50/50", r1=None, r2=None):
    return LedgerExpense(
        id=id,
        amount=Decimal(str(amount)),
        date=date(2024, 5, 2),
        category_id="cat",
        paid_by_user_id=payer,
        split_type=split_type,
        split_ratio_user1=r1,
        split_ratio_user2=r2,
    )

@pytest.fixture
def ledger():
    return [
        expense("e1", 100, A),
        expense("e2", 60, B, "custom", Decimal("70"), Decimal("30")),
        expense("e3", "25.55", A, "personal"),
        expense("e4", "9.99", B),
    ]

@pytest.fixture
def connected_view():
    return CoupleView(user1_id=A, user2_id=B, current_user_id=A, connected=True)

def test_mine_plus_partner_equals_ours(ledger, connected_view):
    totals = aggregate_scopes(ledger, connected_view)
    assert totals.mine + totals.partner == totals.ours
    assert totals.ours == Decimal("195.54")
    assert totals.partner_scope == "enabled"

def test_personal_expense_counts_for_payer_only(ledger, connected_view):
    partner_view = CoupleView(user1_id=A, user2_id=B, current_user_id=B, connected=True)
    mine = {e.id for e, _ in scoped_amounts(ledger, connected_view, Scope.MINE)}
    theirs = {e.id for e, _ in scoped_amounts(ledger, partner_view, Scope.MINE)}
    assert "e3" in mine
    assert "e3" not in theirs

def test_partner_scope_from_each_side_matches(ledger, connected_view):
    partner_view = CoupleView(user1_id=A, user2_id=B, current_user_id=B, connected=True)
    assert aggregate_scopes(ledger, connected_view).partner == aggregate_scopes(ledger, partner_view).mine

def test_aggregation_is_idempotent(ledger, connected_view):
    assert aggregate_scopes(ledger, connected_view) == aggregate_scopes(ledger, connected_view)

def test_partner_scope_falls_back_when_disconnected(ledger):
    view = CoupleView(user1_id=A, user2_id=B, current_user_id=A, connected=False)
    total, resolution = scope_total(ledger, view, "partner")
    assert resolution.effective == Scope.OURS
    assert resolution.fell_back is True
    assert total == aggregate_scopes(ledger, view).ours
    assert aggregate_scopes(ledger, view).partner is None

def test_resolve_scope_keeps_partner_when_connected():
    resolution = resolve_scope("partner", True)
    assert resolution.effective == Scope.PARTNER
    assert resolution.partner_scope == "enabled"

@pytest.mark.parametrize("raw,expected", [
    (None, Scope.OURS),
    ("", Scope.OURS),
    ("MINE", Scope.MINE),
    ("everything", Scope.OURS),
    (42, Scope.OURS),
])
def test_sanitize_scope(raw, expected):
    assert sanitize_scope(raw) == expected

def test_scoped_amounts_value_expenses_at_share(ledger, connected_view):
    amounts = dict((e.id, amount) for e, amount in scoped_amounts(ledger, connected_view, Scope.MINE))
    assert amounts["e1"] == Decimal("50.00")
    assert amounts["e2"] == Decimal("42.00")
    assert amounts["e3"] == Decimal("25.55")

def test_single_user_mine_equals_ours():
    view = CoupleView(user1_id=A, current_user_id=A)
    totals = aggregate_scopes([expense("e1", 40, A)], view)
    assert totals.mine == totals.ours == Decimal("40.00")
