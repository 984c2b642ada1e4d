from datetime import datetime
from pydantic import BaseModel, EmailStr, ConfigDict, Field
from typing import Optional

class UserCreate(BaseModel):
    email: EmailStr
    display_name: Optional[str] = Field(None, min_length=1)  # empty names are rejected, missing ones allowed
    color: Optional[str] = Field(None, max_length=32)

class UserUpdate(BaseModel):
    display_name: Optional[str] = Field(None, min_length=1)
    color: Optional[str] = Field(None, max_length=32)

class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    display_name: Optional[str] = None
    color: Optional[str] = None
    created_at: Optional[datetime] = None
