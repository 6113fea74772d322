from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class TotalBottlesRead(BaseModel):
    total_bottles: int
    available_bottles: int
    used_bottles: int
    damaged_bottles: int
    deposit_bottles: int
    version: int
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TotalBottlesUpdate(BaseModel):
    """Manual adjustment. Only the provided fields are applied, as diffs."""
    total_bottles: Optional[int] = Field(None, ge=0)
    available_bottles: Optional[int] = Field(None, ge=0)
    used_bottles: Optional[int] = Field(None, ge=0)
    damaged_bottles: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def require_some_field(self):
        if all(
            v is None
            for v in (self.total_bottles, self.available_bottles, self.used_bottles, self.damaged_bottles)
        ):
            raise ValueError("At least one field must be provided")
        return self
