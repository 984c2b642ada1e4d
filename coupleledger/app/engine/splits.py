from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, model_validator

from coupleledger.app.engine.ledger import LedgerExpense
from coupleledger.app.engine.money import (
    HUNDRED, ZERO, floor_cents, quantize_cents, require_positive, to_decimal
)
from coupleledger.app.errors import ValidationError

# Custom ratios may drift from 100 by at most this much (percentage points)
RATIO_TOLERANCE = Decimal("0.01")


class SplitType(str, Enum):
    FIFTY_FIFTY = "50/50"
    CUSTOM = "custom"
    PERSONAL = "personal"


SPLIT_TYPE_ALIASES = {
    "50/50": SplitType.FIFTY_FIFTY,
    "custom": SplitType.CUSTOM,
    "personal": SplitType.PERSONAL,
    "personal_only": SplitType.PERSONAL,
}


class FiftyFifty(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["50/50"] = "50/50"


class Personal(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["personal"] = "personal"
    payer_id: str


class Custom(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal["custom"] = "custom"
    ratio_user1: Decimal
    ratio_user2: Decimal

    @model_validator(mode="after")
    def check_ratios(self):
        check_custom_ratios(self.ratio_user1, self.ratio_user2)
        return self


SplitConfig = Union[FiftyFifty, Personal, Custom]


def check_custom_ratios(ratio_user1: Any, ratio_user2: Any) -> Tuple[Decimal, Decimal]:
    """
    Ratios rounded to the stored two decimals, rejected unless they add up
    to 100 after rounding.
    """
    if ratio_user1 is None or ratio_user2 is None:
        raise ValidationError("split_ratio_user1", "Custom splits need both ratios")
    first = quantize_cents(to_decimal(ratio_user1, "split_ratio_user1"))
    second = quantize_cents(to_decimal(ratio_user2, "split_ratio_user2"))
    if first < ZERO:
        raise ValidationError("split_ratio_user1", "Must not be negative", ratio_user1)
    if second < ZERO:
        raise ValidationError("split_ratio_user2", "Must not be negative", ratio_user2)
    total = first + second
    if abs(total - HUNDRED) > RATIO_TOLERANCE:
        raise ValidationError(
            "split_ratio_user1",
            f"Split ratios must add up to 100 (got {total})"
        )
    return first, second


def parse_split_type(value: Optional[str]) -> SplitType:
    if isinstance(value, SplitType):
        return value
    if value is None or str(value).strip() == "":
        return SplitType.FIFTY_FIFTY
    normalized = str(value).strip().lower()
    if normalized not in SPLIT_TYPE_ALIASES:
        raise ValidationError(
            "split_type",
            "Split type must be one of 50/50, custom or personal",
            value
        )
    return SPLIT_TYPE_ALIASES[normalized]


def split_config_from_fields(
    split_type: Optional[str],
    ratio_user1: Any,
    ratio_user2: Any,
    payer_id: str
) -> SplitConfig:
    """Build the split variant from loosely typed row/request fields"""
    kind = parse_split_type(split_type)

    if kind == SplitType.FIFTY_FIFTY:
        return FiftyFifty()
    if kind == SplitType.PERSONAL:
        return Personal(payer_id=payer_id)

    first, second = check_custom_ratios(ratio_user1, ratio_user2)
    return Custom(ratio_user1=first, ratio_user2=second)


def split_config_for(expense: LedgerExpense) -> SplitConfig:
    return split_config_from_fields(
        expense.split_type,
        expense.split_ratio_user1,
        expense.split_ratio_user2,
        expense.paid_by_user_id
    )


def _check_payer(payer_id: str, user1_id: str, user2_id: Optional[str]):
    if payer_id is None or payer_id not in (user1_id, user2_id):
        raise ValidationError("paid_by_user_id", "Payer must be one of the couple's users", payer_id)


def _ratio_for(config: SplitConfig, user_id: str, user1_id: str) -> Decimal:
    if isinstance(config, FiftyFifty):
        return Decimal("50")
    if isinstance(config, Personal):
        return HUNDRED if user_id == config.payer_id else ZERO
    return config.ratio_user1 if user_id == user1_id else config.ratio_user2


def calculate_shares(
    amount: Any,
    config: SplitConfig,
    user1_id: str,
    user2_id: Optional[str],
    payer_id: str
) -> Dict[str, Decimal]:
    """
    Split one expense into owed shares per user.

    The non-payer's share is rounded down to the cent and the payer takes
    whatever is left, so the shares always add up to the amount exactly.
    Without a second user the single user owes everything.
    """
    total = quantize_cents(require_positive(amount))
    _check_payer(payer_id, user1_id, user2_id)

    if isinstance(config, Personal) and config.payer_id != payer_id:
        raise ValidationError("split_type", "A personal expense belongs to the payer", config.payer_id)

    if user2_id is None:
        return {user1_id: total}

    other_id = user2_id if payer_id == user1_id else user1_id
    other_share = floor_cents(total * _ratio_for(config, other_id, user1_id) / HUNDRED)
    return {
        payer_id: total - other_share,
        other_id: other_share,
    }


def shares_for_expense(expense: LedgerExpense, user1_id: str, user2_id: Optional[str]) -> Dict[str, Decimal]:
    return calculate_shares(
        expense.amount,
        split_config_for(expense),
        user1_id,
        user2_id,
        expense.paid_by_user_id
    )


def normalized_ratios(config: SplitConfig, user1_id: str, payer_id: str) -> Tuple[Decimal, Decimal]:
    """Ratio pair as stored on the expense row (user1, user2)"""
    if isinstance(config, FiftyFifty):
        return Decimal("50"), Decimal("50")
    if isinstance(config, Personal):
        if payer_id == user1_id:
            return HUNDRED, ZERO
        return ZERO, HUNDRED
    return config.ratio_user1, config.ratio_user2


def is_personal(expense: LedgerExpense) -> bool:
    return parse_split_type(expense.split_type) == SplitType.PERSONAL
