from decimal import Decimal
from typing import Dict, Iterable, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from coupleledger.app.engine.ledger import LedgerExpense, snapshot
from coupleledger.app.engine.money import ZERO, is_effectively_zero
from coupleledger.app.engine.splits import is_personal, shares_for_expense

SETTLED_MESSAGE = "All settled up!"


class Settlement(BaseModel):
    model_config = ConfigDict(frozen=True)

    debtor_id: Optional[str] = None
    creditor_id: Optional[str] = None
    amount: Decimal = ZERO
    settled: bool = True
    paid: Dict[str, Decimal]
    owed: Dict[str, Decimal]
    net: Dict[str, Decimal]
    total_expenses: Decimal = ZERO
    total_shared_expenses: Decimal = ZERO
    expense_count: int = 0


def compute_settlement(
    expenses: Iterable[LedgerExpense],
    user1_id: str,
    user2_id: Optional[str]
) -> Settlement:
    """
    Net balance between the two users over a set of expenses.

    paid(u) is what u actually paid, owed(u) is u's share from the split
    rules. Whoever ends up with a negative net owes the other one |net|.
    Balances under one cent count as settled.
    """
    user_ids = [user1_id] if user2_id is None else [user1_id, user2_id]
    paid = {user_id: ZERO for user_id in user_ids}
    owed = {user_id: ZERO for user_id in user_ids}
    total = ZERO
    shared_total = ZERO
    records = snapshot(expenses)

    for expense in records:
        shares = shares_for_expense(expense, user1_id, user2_id)
        paid[expense.paid_by_user_id] += sum(shares.values())
        for user_id, share in shares.items():
            owed[user_id] += share
        total += sum(shares.values())
        if not is_personal(expense):
            shared_total += sum(shares.values())

    net = {user_id: paid[user_id] - owed[user_id] for user_id in user_ids}

    base = dict(
        paid=paid,
        owed=owed,
        net=net,
        total_expenses=total,
        total_shared_expenses=shared_total,
        expense_count=len(records),
    )

    if user2_id is None or is_effectively_zero(net[user1_id]):
        return Settlement(settled=True, **base)

    if net[user1_id] < ZERO:
        debtor_id, creditor_id = user1_id, user2_id
    else:
        debtor_id, creditor_id = user2_id, user1_id

    return Settlement(
        debtor_id=debtor_id,
        creditor_id=creditor_id,
        amount=abs(net[debtor_id]),
        settled=False,
        **base
    )


def settlement_message(settlement: Settlement, names: Mapping[str, str], currency: str = "SEK") -> str:
    if settlement.settled:
        return SETTLED_MESSAGE
    debtor = names.get(settlement.debtor_id, settlement.debtor_id)
    creditor = names.get(settlement.creditor_id, settlement.creditor_id)
    return f"{debtor} owes {creditor} {settlement.amount:.2f} {currency}"
