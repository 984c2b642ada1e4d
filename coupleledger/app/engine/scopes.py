from decimal import Decimal
from enum import Enum
from typing import Iterable, List, Optional, Tuple

import structlog
from pydantic import BaseModel, ConfigDict

from coupleledger.app.engine.ledger import CoupleView, LedgerExpense, snapshot
from coupleledger.app.engine.money import ZERO
from coupleledger.app.engine.splits import shares_for_expense
from coupleledger.app.errors import LinkageError

logger = structlog.get_logger(__name__)

# Personal expenses are part of the household total and of the payer's own
# scope; they never show up in the other person's scope.
PERSONAL_COUNTS_TOWARD_OURS = True


class Scope(str, Enum):
    OURS = "ours"
    MINE = "mine"
    PARTNER = "partner"


class ScopeResolution(BaseModel):
    model_config = ConfigDict(frozen=True)

    requested: Scope
    effective: Scope
    partner_scope: str  # "enabled" | "disabled"

    @property
    def fell_back(self) -> bool:
        return self.requested != self.effective


class ScopeTotals(BaseModel):
    model_config = ConfigDict(frozen=True)

    ours: Decimal
    mine: Decimal
    partner: Optional[Decimal] = None
    partner_scope: str = "disabled"
    expense_count: int = 0


def sanitize_scope(candidate) -> Scope:
    if isinstance(candidate, Scope):
        return candidate
    if not candidate or not isinstance(candidate, str):
        return Scope.OURS
    try:
        return Scope(candidate.strip().lower())
    except ValueError:
        return Scope.OURS


def _require_linkage(scope: Scope, connected: bool):
    if scope == Scope.PARTNER and not connected:
        raise LinkageError(scope.value)


def resolve_scope(requested, connected: bool) -> ScopeResolution:
    """Partner scope without a connected partner quietly becomes 'ours'"""
    scope = sanitize_scope(requested)
    partner_scope = "enabled" if connected else "disabled"
    try:
        _require_linkage(scope, connected)
    except LinkageError as exc:
        logger.info("scope_fallback", requested=exc.requested_scope, effective=Scope.OURS.value)
        return ScopeResolution(requested=scope, effective=Scope.OURS, partner_scope=partner_scope)
    return ScopeResolution(requested=scope, effective=scope, partner_scope=partner_scope)


def viewer_for_scope(view: CoupleView, scope: Scope) -> str:
    if scope == Scope.PARTNER and view.has_partner:
        return view.partner_id
    return view.current_user_id


def _split_users(view: CoupleView) -> Tuple[str, Optional[str]]:
    return view.user1_id, view.user2_id


def aggregate_scopes(expenses: Iterable[LedgerExpense], view: CoupleView) -> ScopeTotals:
    """
    ours = every expense amount, mine/partner = each person's allocated share.

    When the couple is connected mine + partner == ours to the cent, because
    every expense's shares add up to its amount.
    """
    user1_id, user2_id = _split_users(view)
    ours = ZERO
    mine = ZERO
    partner = ZERO
    records = snapshot(expenses)

    for expense in records:
        shares = shares_for_expense(expense, user1_id, user2_id)
        ours += sum(shares.values())
        mine += shares.get(view.current_user_id, ZERO)
        if view.has_partner:
            partner += shares.get(view.partner_id, ZERO)

    if not view.has_partner:
        return ScopeTotals(ours=ours, mine=mine, partner=None, partner_scope="disabled",
                           expense_count=len(records))
    return ScopeTotals(ours=ours, mine=mine, partner=partner, partner_scope="enabled",
                       expense_count=len(records))


def scope_total(expenses: Iterable[LedgerExpense], view: CoupleView, requested) -> Tuple[Decimal, ScopeResolution]:
    resolution = resolve_scope(requested, view.has_partner)
    totals = aggregate_scopes(expenses, view)
    if resolution.effective == Scope.MINE:
        return totals.mine, resolution
    if resolution.effective == Scope.PARTNER:
        return totals.partner, resolution
    return totals.ours, resolution


def scoped_amounts(
    expenses: Iterable[LedgerExpense],
    view: CoupleView,
    scope: Scope
) -> List[Tuple[LedgerExpense, Decimal]]:
    """
    Pair each expense with the amount it contributes to a scope.

    'ours' keeps every expense at full amount; 'mine'/'partner' keep only
    expenses where the viewer carries a non-zero share, valued at that share.
    """
    user1_id, user2_id = _split_users(view)
    viewer_id = viewer_for_scope(view, scope)
    pairs = []
    for expense in snapshot(expenses):
        shares = shares_for_expense(expense, user1_id, user2_id)
        if scope == Scope.OURS:
            pairs.append((expense, sum(shares.values())))
            continue
        share = shares.get(viewer_id, ZERO)
        if share > ZERO:
            pairs.append((expense, share))
    return pairs
