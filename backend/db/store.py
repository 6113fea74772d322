"""
Ledger store helpers: locked lookups and the unit-of-work wrapper every
mutating endpoint runs inside.
"""

import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Optional, Type, TypeVar
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from core.errors import (
    ConflictError,
    InternalError,
    LedgerError,
    NotFoundError,
    bottle_usage_not_found,
    total_bottles_not_found,
)
from .bottle_usage import BottleUsage
from .total_bottles import TOTAL_BOTTLES_ID, TotalBottles

logger = logging.getLogger(__name__)

M = TypeVar("M")


@asynccontextmanager
async def atomic(db: AsyncSession, label: str):
    """
    Commit everything done inside the block, or nothing.

    Ledger errors and HTTP errors pass through unchanged; optimistic-lock and
    uniqueness failures become 409; anything else is logged and becomes 500.
    """
    try:
        yield db
        await db.commit()
    except (LedgerError, HTTPException):
        await db.rollback()
        raise
    except StaleDataError:
        await db.rollback()
        logger.info("%s: lost a concurrent update, rolled back", label)
        raise ConflictError(
            "The record was changed by another request, please retry",
            code="CONCURRENT_UPDATE",
        )
    except IntegrityError as e:
        await db.rollback()
        logger.info("%s: integrity error, rolled back: %s", label, e.orig)
        raise ConflictError("A conflicting record already exists", code="DUPLICATE")
    except Exception:
        await db.rollback()
        logger.exception("%s failed", label)
        raise InternalError(f"Failed to {label}")


async def get_total_bottles(db: AsyncSession, *, for_update: bool = True, required: bool = True) -> Optional[TotalBottles]:
    stmt = select(TotalBottles).where(TotalBottles.id == TOTAL_BOTTLES_ID)
    if for_update:
        stmt = stmt.with_for_update()
    res = await db.execute(stmt)
    tb = res.scalar_one_or_none()
    if tb is None and required:
        raise total_bottles_not_found()
    return tb


async def get_usage_for_day(
    db: AsyncSession,
    moderator_id: UUID,
    day: date,
    *,
    for_update: bool = True,
    required: bool = True,
) -> Optional[BottleUsage]:
    stmt = select(BottleUsage).where(
        BottleUsage.moderator_id == moderator_id,
        BottleUsage.usage_date == day,
    )
    if for_update:
        stmt = stmt.with_for_update()
    res = await db.execute(stmt)
    usage = res.scalar_one_or_none()
    if usage is None and required:
        raise bottle_usage_not_found(day)
    return usage


async def get_or_404(
    db: AsyncSession,
    model: Type[M],
    obj_id,
    *,
    code: str,
    label: str,
    for_update: bool = False,
) -> M:
    stmt = select(model).where(model.id == obj_id)
    if for_update:
        stmt = stmt.with_for_update()
    res = await db.execute(stmt)
    obj = res.scalar_one_or_none()
    if obj is None:
        raise NotFoundError(f"{label} not found", code=code)
    return obj
