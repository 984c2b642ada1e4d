from pydantic import BaseModel, ConfigDict
from typing import Optional
import datetime as dt
from datetime import date, datetime

class ExpenseCreate(BaseModel):
    # Amount and split fields are validated by the split engine
    amount: float
    date: Optional[dt.date] = None
    category_id: str
    paid_by_user_id: Optional[str] = None
    split_type: Optional[str] = "50/50"
    split_ratio_user1: Optional[float] = None
    split_ratio_user2: Optional[float] = None
    description: str = ""
    notes: Optional[str] = None

class ExpenseUpdate(BaseModel):
    amount: Optional[float] = None
    date: Optional[dt.date] = None
    category_id: Optional[str] = None
    paid_by_user_id: Optional[str] = None
    split_type: Optional[str] = None
    split_ratio_user1: Optional[float] = None
    split_ratio_user2: Optional[float] = None
    description: Optional[str] = None
    notes: Optional[str] = None

class ExpenseResponse(BaseModel):
    id: str
    couple_id: str
    amount: float
    date: date
    category_id: str
    category_name: Optional[str] = None
    paid_by_user_id: str
    paid_by_name: Optional[str] = None
    split_type: str
    split_ratio_user1: float
    split_ratio_user2: float
    description: str
    notes: Optional[str] = None
    recurring_expense_id: Optional[str] = None
    owed_share: Optional[float] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
