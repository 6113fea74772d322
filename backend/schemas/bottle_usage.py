from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from core.lifecycle import state_of
from schemas.total_bottles import TotalBottlesRead


class BottleUsageRead(BaseModel):
    id: UUID
    moderator_id: UUID
    usage_date: date
    filled_bottles: int
    sales: int
    empty_bottles: int
    remaining_bottles: int
    returned_bottles: int
    empty_returned: int
    remaining_returned: int
    damaged_bottles: int
    refilled_bottles: int
    caps: int
    revenue: int
    expense: int
    done: bool
    state: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class IssueRequest(BaseModel):
    """First call of the day issues `filled_bottles`; later calls refill up to that many empties."""
    filled_bottles: int = Field(..., ge=0)
    caps: int = Field(0, ge=0)


class IssueResult(BaseModel):
    action: str  # "issued" | "refilled" | "noop"
    requested: int
    actual: int
    usage: BottleUsageRead
    total_bottles: TotalBottlesRead


class MarkDoneRequest(BaseModel):
    done: bool = True
    day: Optional[date] = None


class ReturnRequest(BaseModel):
    empty_bottles: int = Field(0, ge=0)
    remaining_bottles: int = Field(0, ge=0)
    caps: int = Field(0, ge=0)


class BottleUsageWithTotals(BaseModel):
    usage: BottleUsageRead
    total_bottles: TotalBottlesRead


class BottleUsageDeleted(BaseModel):
    deleted: bool
    bottles_returned: int
    miscellaneous_deleted: int
    expenses_deleted: int
    total_bottles: TotalBottlesRead


class BottleUsageEdit(BaseModel):
    """Admin correction: absolute values for the day row."""
    filled_bottles: int = Field(..., ge=0)
    sales: int = Field(..., ge=0)
    empty_bottles: int = Field(..., ge=0)
    remaining_bottles: int = Field(..., ge=0)
    empty_returned: int = Field(0, ge=0)
    remaining_returned: int = Field(0, ge=0)
    damaged_bottles: int = Field(0, ge=0)
    refilled_bottles: int = Field(0, ge=0)
    caps: int = Field(0, ge=0)
    revenue: int = Field(0, ge=0)
    expense: int = Field(0, ge=0)
    done: bool = False

    @property
    def returned_bottles(self) -> int:
        return self.empty_returned + self.remaining_returned

    def counters(self) -> dict:
        data = self.model_dump(exclude={"done"})
        data["returned_bottles"] = self.returned_bottles
        return data


def serialize_usage(usage) -> BottleUsageRead:
    return BottleUsageRead(**usage.to_schema, state=state_of(usage).value)
