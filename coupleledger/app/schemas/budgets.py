from typing import Optional, List, Dict
from datetime import date, datetime
from pydantic import BaseModel, ConfigDict, Field

class BudgetUpsert(BaseModel):
    category_id: str
    amount: float
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1970)

class BudgetResponse(BaseModel):
    id: str
    couple_id: str
    category_id: str
    category_name: Optional[str] = None
    month: int
    year: int
    amount: float
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class CategoryEvaluationResponse(BaseModel):
    category_id: str
    category_name: Optional[str] = None
    spend: float
    budgeted: float
    remaining: float
    variance: Optional[float] = None
    status: str
    months_in_period: int
    months_with_budget: int
    budget_coverage: float
    low_confidence: bool

class BudgetEvaluationResponse(BaseModel):
    start_date: date
    end_date: date
    scope: str
    months_in_period: int
    categories: List[CategoryEvaluationResponse]
    total_spend: float
    total_budgeted: float
    status_counts: Dict[str, int]
