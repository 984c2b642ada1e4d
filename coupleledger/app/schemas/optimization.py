from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime

class TipUpdate(BaseModel):
    is_dismissed: bool

class TipResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    scope: str
    tip_type: str
    category: Optional[str] = None
    title: str
    description: str
    impact_amount: Optional[float] = None
    confidence_score: float
    goal_id: Optional[str] = None
    is_dismissed: bool
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
