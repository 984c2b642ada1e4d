from datetime import date
from decimal import Decimal
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict


class LedgerExpense(BaseModel):
    """
    Immutable view of one expense row as the engine sees it.

    Services build these from ORM rows so every reducer works on a detached
    snapshot and never touches the session.
    """
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str
    amount: Decimal
    date: date
    category_id: Optional[str] = None
    paid_by_user_id: str
    split_type: Optional[str] = "50/50"
    split_ratio_user1: Optional[Decimal] = None
    split_ratio_user2: Optional[Decimal] = None


class CoupleView(BaseModel):
    """Who is asking, and who they are linked to"""
    model_config = ConfigDict(frozen=True)

    user1_id: str
    user2_id: Optional[str] = None
    current_user_id: str
    connected: bool = False

    @property
    def partner_id(self) -> Optional[str]:
        if self.current_user_id == self.user1_id:
            return self.user2_id
        return self.user1_id

    @property
    def has_partner(self) -> bool:
        return self.connected and self.partner_id is not None


def snapshot(rows: Iterable[Any]) -> List[LedgerExpense]:
    """Detach ORM rows (or dicts) into LedgerExpense records, ordered by id"""
    records = []
    for row in rows:
        if isinstance(row, LedgerExpense):
            records.append(row)
        elif isinstance(row, dict):
            records.append(LedgerExpense(**row))
        else:
            records.append(LedgerExpense.model_validate(row))
    # Fixed ordering keeps every reduction independent of fetch order
    return sorted(records, key=lambda record: record.id)
