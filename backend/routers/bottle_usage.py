import logging
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core import ledger
from core.auth import current_active_superuser, current_moderator
from core.dates import day_window, local_day
from core.errors import InvariantViolation
from core.lifecycle import DayState, can_delete, next_done_state, require_open, require_refillable
from db.bottle_usage import BottleUsage as BottleUsageModel
from db.database import get_async_session
from db.miscellaneous import Miscellaneous as MiscellaneousModel
from db.moderator import Moderator
from db.other_expense import OtherExpense as OtherExpenseModel
from db.store import atomic, get_or_404, get_total_bottles, get_usage_for_day
from db.users import User
from routers.miscellaneous import reverse_miscellaneous
from routers.other_expenses import reverse_other_expense
from schemas.bottle_usage import (
    BottleUsageDeleted,
    BottleUsageEdit,
    BottleUsageRead,
    BottleUsageWithTotals,
    IssueRequest,
    IssueResult,
    MarkDoneRequest,
    ReturnRequest,
    serialize_usage,
)
from schemas.total_bottles import TotalBottlesRead

logger = logging.getLogger(__name__)

router = APIRouter()
admin_router = APIRouter()


def _with_totals(usage: BottleUsageModel, tb) -> BottleUsageWithTotals:
    return BottleUsageWithTotals(usage=serialize_usage(usage), total_bottles=TotalBottlesRead(**tb.to_schema))


async def _delete_day(db: AsyncSession, usage: BottleUsageModel):
    """
    Roll back a whole day: reverse and delete the day's misc deliveries and
    expenses, hand the bottles still out back to the warehouse, drop the row.
    Deliveries recorded that day are kept.
    """
    can_delete(usage)
    start, end = day_window(usage.usage_date)

    res = await db.execute(
        select(MiscellaneousModel).where(
            MiscellaneousModel.moderator_id == usage.moderator_id,
            MiscellaneousModel.created_at >= start,
            MiscellaneousModel.created_at <= end,
        )
    )
    misc_rows = res.scalars().all()
    for m in misc_rows:
        await reverse_miscellaneous(db, usage, m, strict=False)

    res = await db.execute(
        select(OtherExpenseModel).where(
            OtherExpenseModel.moderator_id == usage.moderator_id,
            OtherExpenseModel.date >= start,
            OtherExpenseModel.date <= end,
        )
    )
    expense_rows = res.scalars().all()
    for e in expense_rows:
        await reverse_other_expense(db, usage, e, strict=False)

    # expense refills were reversed above, what is left of refilled came from the pool
    tb = await get_total_bottles(db)
    total = ledger.snapshot(tb, ledger.TOTAL_FIELDS)
    outstanding = max(0, usage.filled_bottles + usage.refilled_bottles - usage.returned_bottles)
    n = min(outstanding, total["used_bottles"])
    ledger.write_back(tb, ledger.apply_total_delta(total, ledger.return_delta(n)))

    await db.delete(usage)
    return tb, n, len(misc_rows), len(expense_rows)


async def _pool_refills(db: AsyncSession, usage: BottleUsageModel) -> int:
    """Bottles refilled through issue-or-refill, i.e. refills not booked by an expense."""
    start, end = day_window(usage.usage_date)
    res = await db.execute(
        select(func.coalesce(func.sum(OtherExpenseModel.refilled_bottles), 0)).where(
            OtherExpenseModel.moderator_id == usage.moderator_id,
            OtherExpenseModel.date >= start,
            OtherExpenseModel.date <= end,
        )
    )
    return max(0, usage.refilled_bottles - int(res.scalar_one()))


async def _deleted_result(db: AsyncSession, tb, n: int, misc_count: int, expense_count: int) -> BottleUsageDeleted:
    await db.refresh(tb)
    return BottleUsageDeleted(
        deleted=True,
        bottles_returned=n,
        miscellaneous_deleted=misc_count,
        expenses_deleted=expense_count,
        total_bottles=TotalBottlesRead(**tb.to_schema),
    )


# ---- moderator ---------------------------------------------------------------


@router.post("/issue", response_model=IssueResult)
async def issue_or_refill(
    payload: IssueRequest,
    db: AsyncSession = Depends(get_async_session),
    moderator: Moderator = Depends(current_moderator),
):
    """
    First call of the day issues filled bottles from the warehouse. Later
    calls refill empties with caps, drawing the refilled bottles from the
    warehouse pool the same way an issue does.
    """
    day = local_day()
    requested = payload.filled_bottles
    async with atomic(db, "issue bottles"):
        tb = await get_total_bottles(db)
        total = ledger.snapshot(tb, ledger.TOTAL_FIELDS)
        usage = await get_usage_for_day(db, moderator.id, day, required=False)

        if usage is None:
            ledger.require_available(total, requested)
            ledger.write_back(tb, ledger.apply_total_delta(total, ledger.issue_delta(requested)))
            usage = BottleUsageModel(
                moderator_id=moderator.id,
                usage_date=day,
                filled_bottles=requested,
                remaining_bottles=requested,
                caps=payload.caps,
            )
            db.add(usage)
            action, actual = "issued", requested
        else:
            require_refillable(usage)
            actual = ledger.refill_amount(usage.empty_bottles, usage.caps + payload.caps, requested)
            if actual == 0:
                action = "noop"
            else:
                ledger.require_available(total, actual)
                usage_after = ledger.apply_delta(
                    ledger.snapshot(usage, ledger.USAGE_FIELDS),
                    ledger.combine({"caps": payload.caps}, ledger.refill_delta(actual)),
                    entity="BottleUsage",
                )
                ledger.write_back(usage, usage_after)
                ledger.write_back(tb, ledger.apply_total_delta(total, ledger.issue_delta(actual)))
                action = "refilled"

    await db.refresh(usage)
    await db.refresh(tb)
    logger.info("%s %s bottles for %s: requested %d, actual %d", moderator.name, action, day, requested, actual)
    return IssueResult(
        action=action,
        requested=requested,
        actual=actual,
        usage=serialize_usage(usage),
        total_bottles=TotalBottlesRead(**tb.to_schema),
    )


@router.get("", response_model=BottleUsageRead)
async def get_my_bottle_usage(
    day: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_async_session),
    moderator: Moderator = Depends(current_moderator),
):
    day = day or local_day()
    usage = await get_usage_for_day(db, moderator.id, day, for_update=False)
    return serialize_usage(usage)


@router.post("/done", response_model=BottleUsageRead)
async def mark_done(
    payload: MarkDoneRequest,
    db: AsyncSession = Depends(get_async_session),
    moderator: Moderator = Depends(current_moderator),
):
    day = payload.day or local_day()
    async with atomic(db, "mark bottle usage done"):
        usage = await get_usage_for_day(db, moderator.id, day, required=False)
        target = next_done_state(usage, payload.done, day)
        usage.done = target is DayState.DONE

    await db.refresh(usage)
    logger.info("%s marked %s as %s", moderator.name, day, target.value)
    return serialize_usage(usage)


@router.post("/return", response_model=BottleUsageWithTotals)
async def return_bottles(
    payload: ReturnRequest,
    db: AsyncSession = Depends(get_async_session),
    moderator: Moderator = Depends(current_moderator),
):
    day = local_day()
    async with atomic(db, "return bottles"):
        usage = require_open(await get_usage_for_day(db, moderator.id, day, required=False), day)
        if payload.empty_bottles > usage.empty_bottles or payload.remaining_bottles > usage.remaining_bottles:
            raise InvariantViolation(
                "Insufficient bottles to return "
                f"(holding {usage.empty_bottles} empty, {usage.remaining_bottles} filled)",
                code="INSUFFICIENT_BOTTLES",
                field="BottleUsage.empty_bottles" if payload.empty_bottles > usage.empty_bottles else "BottleUsage.remaining_bottles",
                bound="<= held",
            )
        if payload.caps > usage.caps:
            raise InvariantViolation(
                f"Insufficient caps to return (holding {usage.caps})",
                code="INSUFFICIENT_CAPS",
                field="BottleUsage.caps",
                bound=f"<= {usage.caps}",
            )

        returned = payload.empty_bottles + payload.remaining_bottles
        tb = await get_total_bottles(db)
        ledger.write_back(
            tb,
            ledger.apply_total_delta(ledger.snapshot(tb, ledger.TOTAL_FIELDS), ledger.return_delta(returned)),
        )
        usage_after = ledger.apply_delta(
            ledger.snapshot(usage, ledger.USAGE_FIELDS),
            {
                "empty_bottles": -payload.empty_bottles,
                "remaining_bottles": -payload.remaining_bottles,
                "caps": -payload.caps,
                "returned_bottles": returned,
                "empty_returned": payload.empty_bottles,
                "remaining_returned": payload.remaining_bottles,
            },
            entity="BottleUsage",
        )
        ledger.write_back(usage, usage_after)

    await db.refresh(usage)
    await db.refresh(tb)
    logger.info(
        "%s returned %d empty / %d filled bottles and %d caps",
        moderator.name, payload.empty_bottles, payload.remaining_bottles, payload.caps,
    )
    return _with_totals(usage, tb)


@router.delete("", response_model=BottleUsageDeleted)
async def delete_my_bottle_usage(
    day: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_async_session),
    moderator: Moderator = Depends(current_moderator),
):
    day = day or local_day()
    async with atomic(db, "delete bottle usage"):
        usage = await get_usage_for_day(db, moderator.id, day)
        tb, n, misc_count, expense_count = await _delete_day(db, usage)

    logger.info("%s deleted bottle usage for %s, %d bottles back in stock", moderator.name, day, n)
    return await _deleted_result(db, tb, n, misc_count, expense_count)


# ---- admin -------------------------------------------------------------------


@admin_router.get("/{moderator_id}", response_model=BottleUsageRead)
async def get_bottle_usage_for_moderator(
    moderator_id: UUID,
    day: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    day = day or local_day()
    usage = await get_usage_for_day(db, moderator_id, day, for_update=False)
    return serialize_usage(usage)


@admin_router.patch("/{usage_id}", response_model=BottleUsageWithTotals)
async def edit_bottle_usage(
    usage_id: UUID,
    payload: BottleUsageEdit,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    """
    Absolute correction of a day row. Changes to filled, damaged and returned
    bottles are mirrored onto the warehouse pool as diffs.
    """
    async with atomic(db, "edit bottle usage"):
        usage = await get_or_404(db, BottleUsageModel, usage_id, code="BOTTLE_USAGE_404", label="Bottle usage", for_update=True)
        tb = await get_total_bottles(db)

        old = ledger.snapshot(usage, ledger.USAGE_FIELDS)
        new = payload.counters()
        ledger.check_usage_bounds(new)

        change = ledger.diff(new, old, ledger.USAGE_FIELDS)
        total = ledger.snapshot(tb, ledger.TOTAL_FIELDS)
        if change["filled_bottles"] > 0:
            ledger.require_available(total, change["filled_bottles"])
        total_after = ledger.apply_total_delta(
            total,
            ledger.combine(
                ledger.issue_delta(change["filled_bottles"]),
                ledger.damage_delta(change["damaged_bottles"]),
                ledger.return_delta(change["returned_bottles"]),
            ),
        )

        ledger.write_back(tb, total_after)
        ledger.write_back(usage, new)
        usage.done = payload.done

    await db.refresh(usage)
    await db.refresh(tb)
    logger.info("%s edited bottle usage %s: %s -> %s", user.email, usage_id, old, new)
    return _with_totals(usage, tb)


@admin_router.post("/{usage_id}/reset", response_model=BottleUsageWithTotals)
async def reset_bottle_usage(
    usage_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    """
    Hand the bottles the moderator still holds back to the warehouse, plus the
    ones refilled from the pool, and zero the row.
    """
    async with atomic(db, "reset bottle usage"):
        usage = await get_or_404(db, BottleUsageModel, usage_id, code="BOTTLE_USAGE_404", label="Bottle usage", for_update=True)
        tb = await get_total_bottles(db)
        total = ledger.snapshot(tb, ledger.TOTAL_FIELDS)

        held = usage.empty_bottles + usage.remaining_bottles + await _pool_refills(db, usage)
        n = min(held, total["used_bottles"])
        ledger.write_back(tb, ledger.apply_total_delta(total, ledger.return_delta(n)))
        ledger.write_back(usage, {f: 0 for f in ledger.USAGE_FIELDS})

    await db.refresh(usage)
    await db.refresh(tb)
    logger.info("%s reset bottle usage %s, %d bottles back in stock", user.email, usage_id, n)
    return _with_totals(usage, tb)


@admin_router.delete("/{usage_id}", response_model=BottleUsageDeleted)
async def delete_bottle_usage(
    usage_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    async with atomic(db, "delete bottle usage"):
        usage = await get_or_404(db, BottleUsageModel, usage_id, code="BOTTLE_USAGE_404", label="Bottle usage", for_update=True)
        tb, n, misc_count, expense_count = await _delete_day(db, usage)

    logger.info("%s deleted bottle usage %s, %d bottles back in stock", user.email, usage_id, n)
    return await _deleted_result(db, tb, n, misc_count, expense_count)
