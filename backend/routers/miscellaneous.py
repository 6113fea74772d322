import logging
from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core import ledger
from core.auth import current_active_superuser, current_moderator
from core.dates import day_window, local_day
from core.lifecycle import require_open
from db.bottle_usage import BottleUsage as BottleUsageModel
from db.database import get_async_session
from db.miscellaneous import Miscellaneous as MiscellaneousModel
from db.moderator import Moderator
from db.store import atomic, get_or_404, get_total_bottles, get_usage_for_day
from db.users import User
from schemas.bottle_usage import BottleUsageRead, serialize_usage
from schemas.miscellaneous import (
    MiscBottleUsageCreate,
    MiscellaneousCreate,
    MiscellaneousRead,
    MiscellaneousUpdate,
)


logger = logging.getLogger(__name__)

router = APIRouter()
admin_router = APIRouter()


async def apply_misc_change(db: AsyncSession, usage: BottleUsageModel, change: dict, *, strict: bool = True) -> None:
    """
    Apply a signed misc-delivery change to the day row and the warehouse pool.
    With `strict=False` the day row is not validated (it is about to be deleted).
    """
    usage_after = ledger.apply_delta(
        ledger.snapshot(usage, ledger.USAGE_FIELDS),
        ledger.delivery_usage_delta(change),
        entity="BottleUsage",
        allow_negative=() if strict else ledger.USAGE_FIELDS,
    )
    if strict:
        ledger.check_usage_bounds(usage_after)

    damaged = change.get("damaged_bottles", 0)
    if damaged:
        tb = await get_total_bottles(db)
        ledger.write_back(
            tb,
            ledger.apply_total_delta(ledger.snapshot(tb, ledger.TOTAL_FIELDS), ledger.damage_delta(damaged)),
        )
    ledger.write_back(usage, usage_after)


async def reverse_miscellaneous(
    db: AsyncSession, usage: BottleUsageModel, misc: MiscellaneousModel, *, strict: bool = True
) -> None:
    await apply_misc_change(db, usage, ledger.negate(ledger.snapshot(misc, ledger.MISC_FIELDS)), strict=strict)
    await db.delete(misc)


def _serialize_misc(m: MiscellaneousModel, moderator_name: Optional[str] = None) -> MiscellaneousRead:
    return MiscellaneousRead(**m.to_schema, moderator_name=moderator_name)


@router.post("", response_model=MiscellaneousRead, status_code=status.HTTP_201_CREATED)
async def create_miscellaneous(
    payload: MiscellaneousCreate,
    db: AsyncSession = Depends(get_async_session),
    moderator: Moderator = Depends(current_moderator),
):
    day = local_day()
    async with atomic(db, "record miscellaneous delivery"):
        usage = require_open(await get_usage_for_day(db, moderator.id, day, required=False), day)
        ledger.require_stock(ledger.snapshot(usage, ledger.USAGE_FIELDS), payload.filled_bottles)

        misc = MiscellaneousModel(moderator_id=moderator.id, **payload.model_dump())
        await apply_misc_change(db, usage, ledger.diff(payload.model_dump(), {}, ledger.MISC_FIELDS))
        db.add(misc)

    await db.refresh(misc)
    logger.info("%s recorded misc delivery %s for %s", moderator.name, misc.id, misc.customer_name)
    return _serialize_misc(misc, moderator.name)


@router.post("/bottle-usage", response_model=BottleUsageRead)
async def add_misc_bottle_usage(
    payload: MiscBottleUsageCreate,
    db: AsyncSession = Depends(get_async_session),
    moderator: Moderator = Depends(current_moderator),
):
    """Empties collected or bottles damaged outside any recorded delivery."""
    day = local_day()
    async with atomic(db, "record miscellaneous bottle usage"):
        usage = require_open(await get_usage_for_day(db, moderator.id, day, required=False), day)
        usage_after = ledger.apply_delta(
            ledger.snapshot(usage, ledger.USAGE_FIELDS),
            {"empty_bottles": payload.empty_bottles, "damaged_bottles": payload.damaged_bottles},
            entity="BottleUsage",
        )
        ledger.check_usage_bounds(usage_after)
        if payload.damaged_bottles:
            tb = await get_total_bottles(db)
            ledger.write_back(
                tb,
                ledger.apply_total_delta(
                    ledger.snapshot(tb, ledger.TOTAL_FIELDS),
                    ledger.damage_delta(payload.damaged_bottles),
                ),
            )
        ledger.write_back(usage, usage_after)

    await db.refresh(usage)
    logger.info(
        "%s added %d empty / %d damaged bottles outside deliveries",
        moderator.name, payload.empty_bottles, payload.damaged_bottles,
    )
    return serialize_usage(usage)


@router.get("", response_model=List[MiscellaneousRead])
async def list_my_miscellaneous(
    day: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_async_session),
    moderator: Moderator = Depends(current_moderator),
):
    start, end = day_window(day or local_day())
    res = await db.execute(
        select(MiscellaneousModel)
        .where(
            MiscellaneousModel.moderator_id == moderator.id,
            MiscellaneousModel.created_at >= start,
            MiscellaneousModel.created_at <= end,
        )
        .order_by(MiscellaneousModel.created_at.desc())
    )
    return [_serialize_misc(m, moderator.name) for m in res.scalars().all()]


@admin_router.patch("/{misc_id}", response_model=MiscellaneousRead)
async def update_miscellaneous(
    misc_id: UUID,
    payload: MiscellaneousUpdate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    async with atomic(db, "update miscellaneous delivery"):
        misc = await get_or_404(db, MiscellaneousModel, misc_id, code="MISC_404", label="Miscellaneous delivery", for_update=True)
        usage = await get_usage_for_day(db, misc.moderator_id, local_day(misc.created_at))

        old = ledger.snapshot(misc, ledger.MISC_FIELDS)
        data = payload.model_dump(exclude_unset=True)
        is_paid = data.get("is_paid", misc.is_paid)
        new = {**old, **{k: v for k, v in data.items() if k in ledger.MISC_FIELDS and v is not None}}
        if not is_paid:
            new["payment"] = 0

        await apply_misc_change(db, usage, ledger.diff(new, old, ledger.MISC_FIELDS))

        ledger.write_back(misc, new)
        misc.is_paid = is_paid
        if data.get("customer_name") is not None:
            misc.customer_name = data["customer_name"]
        if data.get("description") is not None:
            misc.description = data["description"]

    await db.refresh(misc)
    logger.info("%s updated misc delivery %s", user.email, misc.id)
    return _serialize_misc(misc)


@admin_router.delete("/{misc_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_miscellaneous(
    misc_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    async with atomic(db, "delete miscellaneous delivery"):
        misc = await get_or_404(db, MiscellaneousModel, misc_id, code="MISC_404", label="Miscellaneous delivery", for_update=True)
        usage = await get_usage_for_day(db, misc.moderator_id, local_day(misc.created_at))
        await reverse_miscellaneous(db, usage, misc)

    logger.info("%s deleted misc delivery %s", user.email, misc_id)
    return None
