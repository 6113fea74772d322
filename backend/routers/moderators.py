import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import (
    authenticate_moderator,
    clear_moderator_cookie,
    current_active_superuser,
    current_moderator,
    hash_password,
    set_moderator_cookie,
)
from core.errors import ConflictError, NotFoundError
from db.bottle_usage import BottleUsage as BottleUsageModel
from db.database import get_async_session
from db.delivery import Delivery as DeliveryModel
from db.miscellaneous import Miscellaneous as MiscellaneousModel
from db.moderator import Moderator as ModeratorModel
from db.other_expense import OtherExpense as OtherExpenseModel
from db.store import atomic
from db.users import User
from routers.reports import sales_and_expenses
from schemas.moderators import (
    ModeratorCreate,
    ModeratorLogin,
    ModeratorRead,
    ModeratorSession,
    ModeratorUpdate,
)
from schemas.reports import SalesAndExpenses

logger = logging.getLogger(__name__)

# moderator-facing session endpoints
moderator_router = APIRouter()
# admin management of moderators
router = APIRouter()


async def _get_by_name(db: AsyncSession, name: str, *, for_update: bool = False) -> ModeratorModel:
    stmt = select(ModeratorModel).where(ModeratorModel.name == name.strip().lower())
    if for_update:
        stmt = stmt.with_for_update()
    res = await db.execute(stmt)
    moderator = res.scalar_one_or_none()
    if not moderator:
        raise NotFoundError(f"Moderator {name} not found", code="MODERATOR_404")
    return moderator


async def _ensure_unique_name(db: AsyncSession, name: str) -> None:
    res = await db.execute(select(ModeratorModel.id).where(ModeratorModel.name == name))
    if res.first():
        raise ConflictError(f"Moderator {name} already exists", code="DUPLICATE")


@moderator_router.post("/login", response_model=ModeratorSession)
async def login(
    payload: ModeratorLogin,
    response: Response,
    db: AsyncSession = Depends(get_async_session),
):
    moderator = await authenticate_moderator(db, payload.name, payload.password)
    set_moderator_cookie(response, moderator)
    logger.info("Moderator %s logged in", moderator.name)
    return ModeratorSession(
        success=True,
        message="Login successful",
        moderator=ModeratorRead(**moderator.to_schema),
    )


@moderator_router.post("/logout", response_model=ModeratorSession)
async def logout(response: Response):
    clear_moderator_cookie(response)
    return ModeratorSession(success=True, message="Logged out")


@moderator_router.get("/me", response_model=ModeratorRead)
async def me(moderator: ModeratorModel = Depends(current_moderator)):
    return ModeratorRead(**moderator.to_schema)


@moderator_router.get("/sales-and-expenses", response_model=SalesAndExpenses)
async def my_sales_and_expenses(
    from_day: Optional[date] = Query(None),
    to_day: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_async_session),
    moderator: ModeratorModel = Depends(current_moderator),
):
    return await sales_and_expenses(db, moderator, from_day, to_day)


@router.get("", response_model=List[ModeratorRead])
async def list_moderators(
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    res = await db.execute(select(ModeratorModel).order_by(ModeratorModel.name.asc()))
    return [ModeratorRead(**m.to_schema) for m in res.scalars().all()]


@router.post("", response_model=ModeratorRead, status_code=status.HTTP_201_CREATED)
async def create_moderator(
    payload: ModeratorCreate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    async with atomic(db, "create moderator"):
        await _ensure_unique_name(db, payload.name)
        moderator = ModeratorModel(
            name=payload.name,
            password_hash=hash_password(payload.password),
            areas=payload.areas,
            is_working=payload.is_working,
        )
        db.add(moderator)

    await db.refresh(moderator)
    logger.info("%s created moderator %s", user.email, moderator.name)
    return ModeratorRead(**moderator.to_schema)


@router.patch("/{name}", response_model=ModeratorRead)
async def update_moderator(
    name: str,
    payload: ModeratorUpdate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    async with atomic(db, "update moderator"):
        moderator = await _get_by_name(db, name, for_update=True)
        data = payload.model_dump(exclude_unset=True)

        if data.get("name") and data["name"] != moderator.name:
            await _ensure_unique_name(db, data["name"])
            moderator.name = data["name"]
        if data.get("password"):
            moderator.password_hash = hash_password(data["password"])
        if data.get("areas") is not None:
            moderator.areas = data["areas"]
        if data.get("is_working") is not None:
            moderator.is_working = data["is_working"]

    await db.refresh(moderator)
    logger.info("%s updated moderator %s", user.email, moderator.name)
    return ModeratorRead(**moderator.to_schema)


@router.post("/{name}/toggle-status", response_model=ModeratorRead)
async def toggle_status(
    name: str,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    async with atomic(db, "toggle moderator status"):
        moderator = await _get_by_name(db, name, for_update=True)
        moderator.is_working = not moderator.is_working

    await db.refresh(moderator)
    logger.info("%s set moderator %s working=%s", user.email, moderator.name, moderator.is_working)
    return ModeratorRead(**moderator.to_schema)


@router.delete("/{name}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_moderator(
    name: str,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    """
    Remove a moderator and every record they own. Ledger counters are not
    replayed; an admin reconciles TotalBottles by hand afterwards.
    """
    async with atomic(db, "delete moderator"):
        moderator = await _get_by_name(db, name, for_update=True)
        for model in (DeliveryModel, MiscellaneousModel, OtherExpenseModel, BottleUsageModel):
            await db.execute(delete(model).where(model.moderator_id == moderator.id))
        await db.delete(moderator)

    logger.info("%s deleted moderator %s", user.email, name)
    return None


@router.get("/{name}/sales-and-expenses", response_model=SalesAndExpenses)
async def moderator_sales_and_expenses(
    name: str,
    from_day: Optional[date] = Query(None),
    to_day: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    moderator = await _get_by_name(db, name)
    return await sales_and_expenses(db, moderator, from_day, to_day)
