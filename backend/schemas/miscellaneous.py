from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class MiscellaneousRead(BaseModel):
    id: UUID
    moderator_id: UUID
    customer_name: str
    description: str
    is_paid: bool
    payment: int
    filled_bottles: int
    empty_bottles: int
    damaged_bottles: int
    delivery_date: datetime
    created_at: Optional[datetime] = None
    moderator_name: Optional[str] = None

    class Config:
        from_attributes = True


class MiscellaneousCreate(BaseModel):
    customer_name: str
    description: str = ""
    is_paid: bool = False
    payment: int = Field(0, ge=0)
    filled_bottles: int = Field(0, ge=0)
    empty_bottles: int = Field(0, ge=0)
    damaged_bottles: int = Field(0, ge=0)

    @model_validator(mode="after")
    def unpaid_means_zero(self):
        if not self.is_paid:
            self.payment = 0
        return self


class MiscellaneousUpdate(BaseModel):
    customer_name: Optional[str] = None
    description: Optional[str] = None
    is_paid: Optional[bool] = None
    payment: Optional[int] = Field(None, ge=0)
    filled_bottles: Optional[int] = Field(None, ge=0)
    empty_bottles: Optional[int] = Field(None, ge=0)
    damaged_bottles: Optional[int] = Field(None, ge=0)


class MiscBottleUsageCreate(BaseModel):
    """Empties collected or bottles damaged outside any delivery."""
    empty_bottles: int = Field(0, ge=0)
    damaged_bottles: int = Field(0, ge=0)

    @model_validator(mode="after")
    def require_some(self):
        if self.empty_bottles == 0 and self.damaged_bottles == 0:
            raise ValueError("empty_bottles or damaged_bottles must be greater than 0")
        return self
