import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core import ledger
from core.auth import current_active_superuser, current_reader
from core.errors import InvariantViolation
from db.database import get_async_session
from db.store import atomic, get_total_bottles
from db.total_bottles import TotalBottles as TotalBottlesModel
from db.users import User
from schemas.total_bottles import TotalBottlesRead, TotalBottlesUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


def _initial_counters(payload: TotalBottlesUpdate) -> dict:
    total = payload.total_bottles or 0
    used = payload.used_bottles or 0
    available = payload.available_bottles if payload.available_bottles is not None else total - used
    if available + used != total:
        raise InvariantViolation(
            "Total bottles must equal available + used bottles",
            field="TotalBottles.total_bottles",
            bound="== available_bottles + used_bottles",
        )
    counters = {
        "total_bottles": total,
        "available_bottles": available,
        "used_bottles": used,
        "damaged_bottles": payload.damaged_bottles or 0,
        "deposit_bottles": 0,
    }
    ledger.check_total_bottles(counters)
    return counters


def _manual_adjustment(current: dict, payload: TotalBottlesUpdate) -> dict:
    """
    Each provided field is applied as a diff against the stored value, in
    order: total, available, used, damaged.
    """
    out = dict(current)

    if payload.total_bottles is not None:
        change = payload.total_bottles - out["total_bottles"]
        out = ledger.apply_total_delta(out, {"total_bottles": change, "available_bottles": change})

    if payload.available_bottles is not None:
        if payload.available_bottles > out["total_bottles"]:
            raise InvariantViolation(
                "Available bottles cannot be greater than total bottles",
                field="TotalBottles.available_bottles",
                bound="<= total_bottles",
            )
        change = payload.available_bottles - out["available_bottles"]
        out = ledger.apply_total_delta(out, {"available_bottles": change, "used_bottles": -change})

    if payload.used_bottles is not None:
        if payload.used_bottles > out["total_bottles"]:
            raise InvariantViolation(
                "Used bottles cannot be greater than total bottles",
                field="TotalBottles.used_bottles",
                bound="<= total_bottles",
            )
        change = payload.used_bottles - out["used_bottles"]
        out = ledger.apply_total_delta(out, {"used_bottles": change, "available_bottles": -change})

    if payload.damaged_bottles is not None:
        change = payload.damaged_bottles - out["damaged_bottles"]
        out = ledger.apply_total_delta(out, ledger.damage_delta(change))

    return out


@router.get("", response_model=TotalBottlesRead)
async def read_total_bottles(
    db: AsyncSession = Depends(get_async_session),
    reader=Depends(current_reader),
):
    tb = await get_total_bottles(db, for_update=False)
    return TotalBottlesRead(**tb.to_schema)


@router.put("", response_model=TotalBottlesRead)
async def update_total_bottles(
    payload: TotalBottlesUpdate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    async with atomic(db, "update total bottles"):
        tb = await get_total_bottles(db, required=False)
        if tb is None:
            counters = _initial_counters(payload)
            tb = TotalBottlesModel(**counters)
            db.add(tb)
            logger.info("%s created the total bottles record: %s", user.email, counters)
        else:
            before = ledger.snapshot(tb, ledger.TOTAL_FIELDS)
            after = _manual_adjustment(before, payload)
            ledger.write_back(tb, after)
            logger.info("%s adjusted total bottles %s -> %s", user.email, before, after)

    await db.refresh(tb)
    return TotalBottlesRead(**tb.to_schema)
