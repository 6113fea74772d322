from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class OtherExpenseRead(BaseModel):
    id: UUID
    moderator_id: UUID
    amount: int
    description: str
    refilled_bottles: int
    date: datetime
    created_at: Optional[datetime] = None
    moderator_name: Optional[str] = None

    class Config:
        from_attributes = True


class OtherExpenseCreate(BaseModel):
    amount: int = Field(..., ge=0)
    description: str = ""
    refilled_bottles: int = Field(0, ge=0)


class OtherExpenseUpdate(BaseModel):
    amount: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None
    refilled_bottles: Optional[int] = Field(None, ge=0)
