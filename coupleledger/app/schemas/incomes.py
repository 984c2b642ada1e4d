from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime

class IncomeCreate(BaseModel):
    source: str = Field(..., min_length=1)
    amount: float = Field(gt=0)
    date: date

class IncomeResponse(BaseModel):
    id: str
    user_id: str
    source: str
    amount: float
    date: date
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
