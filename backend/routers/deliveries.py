import logging
from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core import ledger
from core.auth import current_active_superuser, current_moderator
from core.dates import day_window, local_day
from core.errors import ConflictError, InvariantViolation, NotFoundError
from core.lifecycle import require_open
from core.notifier import WhatsAppNotifier, delivery_deleted_message, get_notifier
from db.bottle_usage import BottleUsage as BottleUsageModel
from db.customer import Customer as CustomerModel
from db.database import get_async_session
from db.delivery import Delivery as DeliveryModel
from db.moderator import Moderator
from db.store import atomic, get_or_404, get_total_bottles, get_usage_for_day
from db.users import User
from schemas.deliveries import DeliveryCreate, DeliveryRead, DeliveryUpdate

logger = logging.getLogger(__name__)

router = APIRouter()
admin_router = APIRouter()

CUSTOMER_FIELDS = ("bottles", "balance")


async def apply_delivery_change(
    db: AsyncSession,
    *,
    usage: Optional[BottleUsageModel],
    customer: CustomerModel,
    change: dict,
    strict: bool = True,
) -> None:
    """
    Apply a signed delivery change (new - old) to the moderator's day row,
    the warehouse pool and the customer's account, all in the caller's
    transaction.

    With strict=False counters may go negative and the day row bounds are
    not checked. A missing day row (already deleted) is skipped.
    """
    usage_after = None
    if usage is not None:
        usage_after = ledger.apply_delta(
            ledger.snapshot(usage, ledger.USAGE_FIELDS),
            ledger.delivery_usage_delta(change),
            entity="BottleUsage",
            allow_negative=() if strict else ledger.USAGE_FIELDS,
        )
        if strict:
            ledger.check_usage_bounds(usage_after)

    customer_after = ledger.apply_delta(
        ledger.snapshot(customer, CUSTOMER_FIELDS),
        ledger.customer_delta(change, customer.bottle_price),
        entity="Customer",
        allow_negative=("balance",) if strict else CUSTOMER_FIELDS,
    )

    damaged = change.get("damaged_bottles", 0)
    if damaged:
        tb = await get_total_bottles(db)
        ledger.write_back(
            tb,
            ledger.apply_total_delta(ledger.snapshot(tb, ledger.TOTAL_FIELDS), ledger.damage_delta(damaged)),
        )

    if usage_after is not None:
        ledger.write_back(usage, usage_after)
    ledger.write_back(customer, customer_after)


async def reverse_customer_deliveries(db: AsyncSession, customer: CustomerModel) -> int:
    """
    Reverse and delete every delivery of a customer against the day row it
    was booked on. Returns how many deliveries were removed.
    """
    res = await db.execute(
        select(DeliveryModel)
        .where(DeliveryModel.customer_id == customer.id)
        .order_by(DeliveryModel.created_at)
        .with_for_update()
    )
    deliveries = res.scalars().all()
    for d in deliveries:
        usage = await get_usage_for_day(db, d.moderator_id, local_day(d.created_at), required=False)
        change = ledger.negate(ledger.snapshot(d, ledger.DELIVERY_FIELDS))
        await apply_delivery_change(db, usage=usage, customer=customer, change=change, strict=False)
        await db.delete(d)
    return len(deliveries)


def _serialize_delivery(
    d: DeliveryModel,
    customer: Optional[CustomerModel] = None,
    moderator_name: Optional[str] = None,
) -> DeliveryRead:
    return DeliveryRead(
        **d.to_schema,
        customer_code=customer.customer_id if customer else None,
        customer_name=customer.name if customer else None,
        moderator_name=moderator_name,
    )


async def _load_delivery_context(db: AsyncSession, delivery_id: UUID):
    delivery = await get_or_404(db, DeliveryModel, delivery_id, code="DELIVERY_404", label="Delivery", for_update=True)
    customer = await get_or_404(db, CustomerModel, delivery.customer_id, code="CUSTOMER_404", label="Customer", for_update=True)
    usage = await get_usage_for_day(db, delivery.moderator_id, local_day(delivery.created_at))
    return delivery, customer, usage


async def _delete_delivery(db: AsyncSession, delivery: DeliveryModel, customer: CustomerModel, usage: BottleUsageModel) -> str:
    """Reverse the delivery and delete it. Returns the customer notification text."""
    snapshot = ledger.snapshot(delivery, ledger.DELIVERY_FIELDS)
    await apply_delivery_change(db, usage=usage, customer=customer, change=ledger.negate(snapshot))
    message = delivery_deleted_message(
        customer_name=customer.name,
        created_at=delivery.created_at,
        filled_bottles=snapshot["filled_bottles"],
        empty_bottles=snapshot["empty_bottles"],
        payment=snapshot["payment"],
    )
    await db.delete(delivery)
    return message


@router.post("", response_model=DeliveryRead, status_code=status.HTTP_201_CREATED)
async def create_delivery(
    payload: DeliveryCreate,
    db: AsyncSession = Depends(get_async_session),
    moderator: Moderator = Depends(current_moderator),
):
    day = local_day()
    async with atomic(db, "record delivery"):
        res = await db.execute(
            select(CustomerModel).where(CustomerModel.customer_id == payload.customer_id).with_for_update()
        )
        customer = res.scalar_one_or_none()
        if not customer:
            raise NotFoundError(f"Customer {payload.customer_id} not found", code="CUSTOMER_404")
        if not customer.is_active:
            raise ConflictError("Customer is not active", code="CUSTOMER_INACTIVE")

        usage = require_open(await get_usage_for_day(db, moderator.id, day, required=False), day)
        ledger.require_stock(ledger.snapshot(usage, ledger.USAGE_FIELDS), payload.filled_bottles)

        values = payload.model_dump(exclude={"customer_id"})
        await apply_delivery_change(
            db,
            usage=usage,
            customer=customer,
            change=ledger.diff(values, {}, ledger.DELIVERY_FIELDS),
        )
        delivery = DeliveryModel(customer_id=customer.id, moderator_id=moderator.id, **values)
        db.add(delivery)

    await db.refresh(delivery)
    logger.info(
        "%s delivered %d filled / %d empty to %s (payment %d)",
        moderator.name, delivery.filled_bottles, delivery.empty_bottles, customer.customer_id, delivery.payment,
    )
    return _serialize_delivery(delivery, customer, moderator.name)


@router.get("", response_model=List[DeliveryRead])
async def list_my_deliveries(
    day: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_async_session),
    moderator: Moderator = Depends(current_moderator),
):
    start, end = day_window(day or local_day())
    res = await db.execute(
        select(DeliveryModel, CustomerModel)
        .join(CustomerModel, CustomerModel.id == DeliveryModel.customer_id)
        .where(
            DeliveryModel.moderator_id == moderator.id,
            DeliveryModel.created_at >= start,
            DeliveryModel.created_at <= end,
        )
        .order_by(DeliveryModel.created_at.desc())
    )
    return [_serialize_delivery(d, c, moderator.name) for d, c in res.all()]


@router.delete("/{delivery_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_my_delivery(
    delivery_id: UUID,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_async_session),
    moderator: Moderator = Depends(current_moderator),
    notifier: WhatsAppNotifier = Depends(get_notifier),
):
    async with atomic(db, "delete delivery"):
        delivery, customer, usage = await _load_delivery_context(db, delivery_id)
        if delivery.moderator_id != moderator.id:
            raise NotFoundError("Delivery not found", code="DELIVERY_404")
        require_open(usage)
        message = await _delete_delivery(db, delivery, customer, usage)
        phone = customer.phone

    background_tasks.add_task(notifier.send, phone, message)
    logger.info("%s deleted delivery %s", moderator.name, delivery_id)
    return None


@admin_router.patch("/{delivery_id}", response_model=DeliveryRead)
async def update_delivery(
    delivery_id: UUID,
    payload: DeliveryUpdate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    async with atomic(db, "update delivery"):
        delivery, customer, usage = await _load_delivery_context(db, delivery_id)

        old = ledger.snapshot(delivery, ledger.DELIVERY_FIELDS)
        data = payload.model_dump(exclude_unset=True)
        new = {**old, **{k: v for k, v in data.items() if k in ledger.DELIVERY_FIELDS and v is not None}}
        if new["foc"] > new["filled_bottles"]:
            raise InvariantViolation(
                "FOC bottles cannot exceed filled bottles",
                field="Delivery.foc",
                bound="<= filled_bottles",
            )

        change = ledger.diff(new, old, ledger.DELIVERY_FIELDS)
        if not ledger.is_zero(change):
            await apply_delivery_change(db, usage=usage, customer=customer, change=change)

        ledger.write_back(delivery, new)
        if data.get("is_online") is not None:
            delivery.is_online = data["is_online"]

    await db.refresh(delivery)
    logger.info("%s updated delivery %s: %s -> %s", user.email, delivery.id, old, new)
    return _serialize_delivery(delivery, customer)


@admin_router.delete("/{delivery_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_delivery(
    delivery_id: UUID,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
    notifier: WhatsAppNotifier = Depends(get_notifier),
):
    async with atomic(db, "delete delivery"):
        delivery, customer, usage = await _load_delivery_context(db, delivery_id)
        message = await _delete_delivery(db, delivery, customer, usage)
        phone = customer.phone

    background_tasks.add_task(notifier.send, phone, message)
    logger.info("%s deleted delivery %s", user.email, delivery_id)
    return None
