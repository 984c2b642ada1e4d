from pydantic import BaseModel, ConfigDict, EmailStr
from typing import Optional, Dict, Any
from datetime import datetime

class CoupleLink(BaseModel):
    partner_email: EmailStr

class CoupleResponse(BaseModel):
    id: str
    partner_1_id: str
    partner_2_id: Optional[str] = None
    connected: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class CoupleMember(BaseModel):
    id: str
    name: Optional[str] = None
    email: str
    color: Optional[str] = None

class CoupleInfo(BaseModel):
    connected: bool
    user: CoupleMember
    partner: Optional[CoupleMember] = None

class ScopeTotalsResponse(BaseModel):
    ours: float
    mine: float
    partner: Optional[float] = None

class CoupleSummaryResponse(BaseModel):
    totals: ScopeTotalsResponse
    couple: CoupleInfo
    metadata: Dict[str, Any]
