from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime

class RecurringExpenseCreate(BaseModel):
    description: str
    default_amount: float
    category_id: str
    paid_by_user_id: Optional[str] = None
    split_type: Optional[str] = "50/50"
    split_ratio_user1: Optional[float] = None
    split_ratio_user2: Optional[float] = None

class RecurringExpenseResponse(BaseModel):
    id: str
    couple_id: str
    description: str
    default_amount: float
    category_id: str
    paid_by_user_id: str
    split_type: str
    split_ratio_user1: Optional[float] = None
    split_ratio_user2: Optional[float] = None
    is_active: bool
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

class RecurringExpenseUpdate(BaseModel):
    description: Optional[str] = None
    default_amount: Optional[float] = None
    category_id: Optional[str] = None
    paid_by_user_id: Optional[str] = None
    split_type: Optional[str] = None
    split_ratio_user1: Optional[float] = None
    split_ratio_user2: Optional[float] = None

class GenerateRequest(BaseModel):
    year: int
    month: int

class GenerateResponse(BaseModel):
    generatedCount: int
    generatedAmount: float
    year: int
    month: int
