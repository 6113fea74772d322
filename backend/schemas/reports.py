from datetime import date
from typing import Optional

from pydantic import BaseModel

from schemas.bottle_usage import BottleUsageRead
from schemas.total_bottles import TotalBottlesRead


class DashboardRead(BaseModel):
    customers: int
    active_customers: int
    moderators: int
    working_moderators: int
    revenue_30d: int
    expenses_30d: int
    deposit_bottles_active: int
    total_bottles: Optional[TotalBottlesRead] = None
    ledger_consistent: bool


class SalesAndExpenses(BaseModel):
    moderator_name: str
    from_day: date
    to_day: date
    delivery_payments: int
    misc_payments: int
    sales: int
    expenses: int
    net: int


class BottleUsageReport(BottleUsageRead):
    moderator_name: Optional[str] = None
