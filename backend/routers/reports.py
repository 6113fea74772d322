from datetime import date, timedelta
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core import ledger
from core.auth import current_active_superuser
from core.dates import day_window, last_n_days_window, local_day
from core.lifecycle import state_of
from db.bottle_usage import BottleUsage as BottleUsageModel
from db.customer import Customer as CustomerModel
from db.database import get_async_session
from db.delivery import Delivery as DeliveryModel
from db.miscellaneous import Miscellaneous as MiscellaneousModel
from db.moderator import Moderator as ModeratorModel
from db.other_expense import OtherExpense as OtherExpenseModel
from db.store import get_total_bottles
from db.users import User
from schemas.deliveries import DeliveryRead
from schemas.miscellaneous import MiscellaneousRead
from schemas.other_expenses import OtherExpenseRead
from schemas.reports import BottleUsageReport, DashboardRead, SalesAndExpenses
from schemas.total_bottles import TotalBottlesRead

router = APIRouter()

REPORT_DAYS = 30


async def _sum(db: AsyncSession, column, *where) -> int:
    res = await db.execute(select(func.coalesce(func.sum(column), 0)).where(*where))
    return int(res.scalar_one() or 0)


async def _count(db: AsyncSession, model, *where) -> int:
    res = await db.execute(select(func.count()).select_from(model).where(*where))
    return int(res.scalar_one() or 0)


async def sales_and_expenses(
    db: AsyncSession,
    moderator: ModeratorModel,
    from_day: Optional[date] = None,
    to_day: Optional[date] = None,
) -> SalesAndExpenses:
    """Payments collected and expenses booked by one moderator over local days `from_day`..`to_day`."""
    from_day = from_day or local_day()
    to_day = to_day or from_day
    start, end = day_window(from_day, to_day)

    delivery_payments = await _sum(
        db, DeliveryModel.payment,
        DeliveryModel.moderator_id == moderator.id,
        DeliveryModel.created_at >= start,
        DeliveryModel.created_at <= end,
    )
    misc_payments = await _sum(
        db, MiscellaneousModel.payment,
        MiscellaneousModel.moderator_id == moderator.id,
        MiscellaneousModel.created_at >= start,
        MiscellaneousModel.created_at <= end,
    )
    expenses = await _sum(
        db, OtherExpenseModel.amount,
        OtherExpenseModel.moderator_id == moderator.id,
        OtherExpenseModel.date >= start,
        OtherExpenseModel.date <= end,
    )
    sales = delivery_payments + misc_payments
    return SalesAndExpenses(
        moderator_name=moderator.name,
        from_day=min(from_day, to_day),
        to_day=max(from_day, to_day),
        delivery_payments=delivery_payments,
        misc_payments=misc_payments,
        sales=sales,
        expenses=expenses,
        net=sales - expenses,
    )


@router.get("/dashboard", response_model=DashboardRead)
async def dashboard(
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    start, end = last_n_days_window(REPORT_DAYS)

    revenue = await _sum(
        db, DeliveryModel.payment, DeliveryModel.created_at >= start, DeliveryModel.created_at <= end
    ) + await _sum(
        db, MiscellaneousModel.payment, MiscellaneousModel.created_at >= start, MiscellaneousModel.created_at <= end
    )
    expenses = await _sum(
        db, OtherExpenseModel.amount, OtherExpenseModel.date >= start, OtherExpenseModel.date <= end
    )

    tb = await get_total_bottles(db, for_update=False, required=False)
    return DashboardRead(
        customers=await _count(db, CustomerModel),
        active_customers=await _count(db, CustomerModel, CustomerModel.is_active.is_(True)),
        moderators=await _count(db, ModeratorModel),
        working_moderators=await _count(db, ModeratorModel, ModeratorModel.is_working.is_(True)),
        revenue_30d=revenue,
        expenses_30d=expenses,
        deposit_bottles_active=await _sum(db, CustomerModel.deposit, CustomerModel.is_active.is_(True)),
        total_bottles=TotalBottlesRead(**tb.to_schema) if tb else None,
        ledger_consistent=ledger.is_conserved(ledger.snapshot(tb, ledger.TOTAL_FIELDS)) if tb else True,
    )


@router.get("/deliveries-30d", response_model=List[DeliveryRead])
async def deliveries_30d(
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    start, end = last_n_days_window(REPORT_DAYS)
    res = await db.execute(
        select(DeliveryModel, CustomerModel, ModeratorModel.name)
        .join(CustomerModel, CustomerModel.id == DeliveryModel.customer_id)
        .join(ModeratorModel, ModeratorModel.id == DeliveryModel.moderator_id)
        .where(DeliveryModel.created_at >= start, DeliveryModel.created_at <= end)
        .order_by(DeliveryModel.created_at.desc())
    )
    return [
        DeliveryRead(**d.to_schema, customer_code=c.customer_id, customer_name=c.name, moderator_name=mod_name)
        for d, c, mod_name in res.all()
    ]


@router.get("/miscellaneous-30d", response_model=List[MiscellaneousRead])
async def miscellaneous_30d(
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    start, end = last_n_days_window(REPORT_DAYS)
    res = await db.execute(
        select(MiscellaneousModel, ModeratorModel.name)
        .join(ModeratorModel, ModeratorModel.id == MiscellaneousModel.moderator_id)
        .where(MiscellaneousModel.created_at >= start, MiscellaneousModel.created_at <= end)
        .order_by(MiscellaneousModel.created_at.desc())
    )
    return [MiscellaneousRead(**m.to_schema, moderator_name=mod_name) for m, mod_name in res.all()]


@router.get("/other-expenses-30d", response_model=List[OtherExpenseRead])
async def other_expenses_30d(
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    start, end = last_n_days_window(REPORT_DAYS)
    res = await db.execute(
        select(OtherExpenseModel, ModeratorModel.name)
        .join(ModeratorModel, ModeratorModel.id == OtherExpenseModel.moderator_id)
        .where(OtherExpenseModel.created_at >= start, OtherExpenseModel.created_at <= end)
        .order_by(OtherExpenseModel.created_at.desc())
    )
    return [OtherExpenseRead(**e.to_schema, moderator_name=mod_name) for e, mod_name in res.all()]


@router.get("/bottle-usage-30d", response_model=List[BottleUsageReport])
async def bottle_usage_30d(
    moderator_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    today = local_day()
    stmt = (
        select(BottleUsageModel, ModeratorModel.name)
        .join(ModeratorModel, ModeratorModel.id == BottleUsageModel.moderator_id)
        .where(
            BottleUsageModel.usage_date >= today - timedelta(days=REPORT_DAYS),
            BottleUsageModel.usage_date <= today,
        )
        .order_by(BottleUsageModel.created_at.desc())
    )
    if moderator_id:
        stmt = stmt.where(BottleUsageModel.moderator_id == moderator_id)
    res = await db.execute(stmt)
    rows = res.all()
    return [
        BottleUsageReport(**u.to_schema, state=state_of(u).value, moderator_name=name)
        for u, name in rows
    ]
