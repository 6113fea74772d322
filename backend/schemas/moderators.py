from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class ModeratorRead(BaseModel):
    id: UUID
    name: str
    areas: List[str]
    is_working: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ModeratorCreate(BaseModel):
    name: str
    password: str = Field(..., min_length=4)
    areas: List[str] = []
    is_working: bool = True

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        v = (v or "").strip().lower()
        if not v:
            raise ValueError("name is required")
        return v

    @field_validator("areas")
    @classmethod
    def clean_areas(cls, v: List[str]) -> List[str]:
        areas = [(a or "").strip() for a in (v or [])]
        return list(dict.fromkeys(a for a in areas if a))


class ModeratorUpdate(BaseModel):
    name: Optional[str] = None
    password: Optional[str] = Field(None, min_length=4)
    areas: Optional[List[str]] = None
    is_working: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().lower()
        if not v:
            raise ValueError("name must not be empty")
        return v

    @field_validator("areas")
    @classmethod
    def clean_areas(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        areas = [(a or "").strip() for a in v]
        return list(dict.fromkeys(a for a in areas if a))


class ModeratorLogin(BaseModel):
    name: str
    password: str


class ModeratorSession(BaseModel):
    success: bool
    message: str
    moderator: Optional[ModeratorRead] = None
