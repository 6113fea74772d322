from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator


class DeliveryRead(BaseModel):
    id: UUID
    customer_id: UUID
    moderator_id: UUID
    delivery_date: datetime
    payment: int
    filled_bottles: int
    empty_bottles: int
    foc: int
    damaged_bottles: int
    is_online: bool
    created_at: Optional[datetime] = None
    customer_code: Optional[str] = None
    customer_name: Optional[str] = None
    moderator_name: Optional[str] = None

    class Config:
        from_attributes = True


class DeliveryCreate(BaseModel):
    customer_id: str  # business code, e.g. "c-101"
    filled_bottles: int = Field(0, ge=0)
    empty_bottles: int = Field(0, ge=0)
    foc: int = Field(0, ge=0)
    damaged_bottles: int = Field(0, ge=0)
    payment: int = Field(0, ge=0)
    is_online: bool = False

    @field_validator("customer_id")
    @classmethod
    def normalize_customer_id(cls, v: str) -> str:
        return (v or "").strip().lower()

    @model_validator(mode="after")
    def foc_within_filled(self):
        if self.foc > self.filled_bottles:
            raise ValueError("foc cannot exceed filled_bottles")
        return self


class DeliveryUpdate(BaseModel):
    """Admin correction; omitted fields keep their stored value."""
    filled_bottles: Optional[int] = Field(None, ge=0)
    empty_bottles: Optional[int] = Field(None, ge=0)
    foc: Optional[int] = Field(None, ge=0)
    damaged_bottles: Optional[int] = Field(None, ge=0)
    payment: Optional[int] = Field(None, ge=0)
    is_online: Optional[bool] = None
