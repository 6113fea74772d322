from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class CustomerRead(BaseModel):
    id: UUID
    customer_id: str
    name: str
    address: str
    area: str
    phone: str
    mobile_number: Optional[str] = None
    bottle_price: int
    bottles: int
    deposit: int
    deposit_price: int
    balance: int
    is_active: bool
    customer_since: Optional[datetime] = None

    class Config:
        from_attributes = True


class CustomerCreate(BaseModel):
    customer_id: str
    name: str
    address: str
    area: str
    phone: str
    mobile_number: Optional[str] = None
    bottle_price: int = Field(..., ge=0)
    bottles: int = Field(0, ge=0)
    deposit: int = Field(0, ge=0)
    deposit_price: int = Field(1000, ge=0)
    balance: int = 0
    is_active: bool = True

    @field_validator("customer_id")
    @classmethod
    def normalize_customer_id(cls, v: str) -> str:
        v = (v or "").strip().lower()
        if not v:
            raise ValueError("customer_id is required")
        return v

    @field_validator("name", "area", "phone")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("must not be empty")
        return v


class CustomerUpdate(BaseModel):
    customer_id: Optional[str] = None
    name: Optional[str] = None
    address: Optional[str] = None
    area: Optional[str] = None
    phone: Optional[str] = None
    mobile_number: Optional[str] = None
    bottle_price: Optional[int] = Field(None, ge=0)
    bottles: Optional[int] = Field(None, ge=0)
    deposit: Optional[int] = Field(None, ge=0)
    deposit_price: Optional[int] = Field(None, ge=0)
    balance: Optional[int] = None
    is_active: Optional[bool] = None

    @field_validator("customer_id")
    @classmethod
    def normalize_customer_id(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().lower()
        if not v:
            raise ValueError("customer_id must not be empty")
        return v
