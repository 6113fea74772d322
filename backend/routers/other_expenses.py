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
from core.errors import InvariantViolation, NotFoundError
from core.lifecycle import require_open
from db.bottle_usage import BottleUsage as BottleUsageModel
from db.database import get_async_session
from db.moderator import Moderator
from db.other_expense import OtherExpense as OtherExpenseModel
from db.store import atomic, get_or_404, get_usage_for_day
from db.users import User
from schemas.other_expenses import OtherExpenseCreate, OtherExpenseRead, OtherExpenseUpdate

logger = logging.getLogger(__name__)

router = APIRouter()
admin_router = APIRouter()


def apply_expense_change(usage: BottleUsageModel, change: dict, *, strict: bool = True) -> None:
    """Signed expense change: amount goes to `expense`, refills consume empties and caps."""
    refilled = change.get("refilled_bottles", 0)
    if strict and refilled > 0 and refilled > usage.caps:
        raise InvariantViolation(
            f"Refilling {refilled} bottles needs {refilled} caps, only {usage.caps} held",
            code="INSUFFICIENT_CAPS",
            field="BottleUsage.caps",
            bound=f">= {refilled}",
        )
    usage_after = ledger.apply_delta(
        ledger.snapshot(usage, ledger.USAGE_FIELDS),
        ledger.expense_usage_delta(change),
        entity="BottleUsage",
        allow_negative=() if strict else ledger.USAGE_FIELDS,
    )
    if strict:
        ledger.check_usage_bounds(usage_after)
    ledger.write_back(usage, usage_after)


async def reverse_other_expense(
    db: AsyncSession, usage: BottleUsageModel, expense: OtherExpenseModel, *, strict: bool = True
) -> None:
    apply_expense_change(usage, ledger.negate(ledger.snapshot(expense, ledger.EXPENSE_FIELDS)), strict=strict)
    await db.delete(expense)


def _serialize_expense(e: OtherExpenseModel, moderator_name: Optional[str] = None) -> OtherExpenseRead:
    return OtherExpenseRead(**e.to_schema, moderator_name=moderator_name)


@router.post("", response_model=OtherExpenseRead, status_code=status.HTTP_201_CREATED)
async def create_other_expense(
    payload: OtherExpenseCreate,
    db: AsyncSession = Depends(get_async_session),
    moderator: Moderator = Depends(current_moderator),
):
    day = local_day()
    async with atomic(db, "record other expense"):
        usage = require_open(await get_usage_for_day(db, moderator.id, day, required=False), day)

        # the stored refill is what could actually be refilled
        refilled = ledger.refill_amount(usage.empty_bottles, usage.caps, payload.refilled_bottles)
        apply_expense_change(usage, {"amount": payload.amount, "refilled_bottles": refilled})

        expense = OtherExpenseModel(
            moderator_id=moderator.id,
            amount=payload.amount,
            description=payload.description,
            refilled_bottles=refilled,
        )
        db.add(expense)

    await db.refresh(expense)
    logger.info(
        "%s recorded expense %s (amount %d, refilled %d of %d requested)",
        moderator.name, expense.id, expense.amount, refilled, payload.refilled_bottles,
    )
    return _serialize_expense(expense, moderator.name)


@router.get("", response_model=List[OtherExpenseRead])
async def list_my_other_expenses(
    day: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_async_session),
    moderator: Moderator = Depends(current_moderator),
):
    start, end = day_window(day or local_day())
    res = await db.execute(
        select(OtherExpenseModel)
        .where(
            OtherExpenseModel.moderator_id == moderator.id,
            OtherExpenseModel.date >= start,
            OtherExpenseModel.date <= end,
        )
        .order_by(OtherExpenseModel.date.desc())
    )
    return [_serialize_expense(e, moderator.name) for e in res.scalars().all()]


@router.delete("/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_my_other_expense(
    expense_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    moderator: Moderator = Depends(current_moderator),
):
    async with atomic(db, "delete other expense"):
        expense = await get_or_404(db, OtherExpenseModel, expense_id, code="EXPENSE_404", label="Expense", for_update=True)
        if expense.moderator_id != moderator.id:
            raise NotFoundError("Expense not found", code="EXPENSE_404")
        day = local_day(expense.date)
        usage = require_open(await get_usage_for_day(db, moderator.id, day, required=False), day)
        await reverse_other_expense(db, usage, expense)

    logger.info("%s deleted expense %s", moderator.name, expense_id)
    return None


@admin_router.patch("/{expense_id}", response_model=OtherExpenseRead)
async def update_other_expense(
    expense_id: UUID,
    payload: OtherExpenseUpdate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    async with atomic(db, "update other expense"):
        expense = await get_or_404(db, OtherExpenseModel, expense_id, code="EXPENSE_404", label="Expense", for_update=True)
        usage = await get_usage_for_day(db, expense.moderator_id, local_day(expense.date))

        old = ledger.snapshot(expense, ledger.EXPENSE_FIELDS)
        data = payload.model_dump(exclude_unset=True)
        new = {**old, **{k: v for k, v in data.items() if k in ledger.EXPENSE_FIELDS and v is not None}}
        apply_expense_change(usage, ledger.diff(new, old, ledger.EXPENSE_FIELDS))

        ledger.write_back(expense, new)
        if data.get("description") is not None:
            expense.description = data["description"]

    await db.refresh(expense)
    logger.info("%s updated expense %s: %s -> %s", user.email, expense.id, old, new)
    return _serialize_expense(expense)


@admin_router.delete("/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_other_expense(
    expense_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    async with atomic(db, "delete other expense"):
        expense = await get_or_404(db, OtherExpenseModel, expense_id, code="EXPENSE_404", label="Expense", for_update=True)
        usage = await get_usage_for_day(db, expense.moderator_id, local_day(expense.date))
        await reverse_other_expense(db, usage, expense)

    logger.info("%s deleted expense %s", user.email, expense_id)
    return None
