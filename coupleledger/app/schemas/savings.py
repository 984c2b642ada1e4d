from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
import datetime as dt
from datetime import date, datetime

class SavingsGoalCreate(BaseModel):
    goal_name: str = Field(..., min_length=1)
    target_amount: float
    category: Optional[str] = None
    target_date: Optional[date] = None
    color_index: int = 0
    is_pinned: bool = False

class SavingsGoalUpdate(BaseModel):
    goal_name: Optional[str] = Field(None, min_length=1)
    target_amount: Optional[float] = None
    category: Optional[str] = None
    target_date: Optional[date] = None
    color_index: Optional[int] = None
    is_pinned: Optional[bool] = None

class SavingsGoalResponse(BaseModel):
    id: str
    couple_id: str
    user_id: str
    goal_name: str
    target_amount: float
    current_amount: float
    category: Optional[str] = None
    target_date: Optional[date] = None
    color_index: int
    is_pinned: bool
    progress_percent: Optional[float] = None
    remaining_amount: Optional[float] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class ContributionCreate(BaseModel):
    amount: float
    date: Optional[dt.date] = None  # defaults to today
    note: Optional[str] = None

class QuickAddRequest(BaseModel):
    increment: int
    note: Optional[str] = None

class ContributionResponse(BaseModel):
    id: str
    goal_id: str
    user_id: str
    amount: float
    requested_amount: float
    capped: bool
    date: date
    note: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class ContributionResult(BaseModel):
    goal: SavingsGoalResponse
    contribution: ContributionResponse
