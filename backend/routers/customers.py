import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core import ledger
from core.auth import current_active_superuser, current_moderator
from core.errors import ConflictError
from db.customer import Customer as CustomerModel
from db.database import get_async_session
from db.moderator import Moderator
from db.store import atomic, get_or_404, get_total_bottles
from db.users import User
from routers.deliveries import reverse_customer_deliveries
from schemas.customers import CustomerCreate, CustomerRead, CustomerUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


async def _ensure_unique_code(db: AsyncSession, code: str, exclude_id: UUID = None) -> None:
    stmt = select(CustomerModel.id).where(CustomerModel.customer_id == code)
    if exclude_id is not None:
        stmt = stmt.where(CustomerModel.id != exclude_id)
    res = await db.execute(stmt)
    if res.first():
        raise ConflictError(f"Customer {code} already exists", code="DUPLICATE")


@router.get("", response_model=List[CustomerRead])
async def list_customers(
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    res = await db.execute(select(CustomerModel).order_by(CustomerModel.created_at.desc()))
    return [CustomerRead(**c.to_schema) for c in res.scalars().all()]


@router.get("/by-area/{area}", response_model=List[CustomerRead])
async def list_customers_by_area(
    area: str,
    db: AsyncSession = Depends(get_async_session),
    moderator: Moderator = Depends(current_moderator),
):
    res = await db.execute(
        select(CustomerModel)
        .where(CustomerModel.area == area, CustomerModel.is_active.is_(True))
        .order_by(CustomerModel.name.asc())
    )
    return [CustomerRead(**c.to_schema) for c in res.scalars().all()]


@router.post("", response_model=CustomerRead, status_code=status.HTTP_201_CREATED)
async def create_customer(
    payload: CustomerCreate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    async with atomic(db, "create customer"):
        await _ensure_unique_code(db, payload.customer_id)

        # bottles placed on deposit leave the warehouse pool
        tb = await get_total_bottles(db)
        total = ledger.snapshot(tb, ledger.TOTAL_FIELDS)
        ledger.require_available(total, payload.deposit)
        ledger.write_back(tb, ledger.apply_total_delta(total, ledger.deposit_delta(payload.deposit)))

        customer = CustomerModel(**payload.model_dump())
        db.add(customer)

    await db.refresh(customer)
    logger.info("%s created customer %s (deposit %d)", user.email, customer.customer_id, customer.deposit)
    return CustomerRead(**customer.to_schema)


@router.patch("/{customer_id}", response_model=CustomerRead)
async def update_customer(
    customer_id: UUID,
    payload: CustomerUpdate,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    async with atomic(db, "update customer"):
        customer = await get_or_404(db, CustomerModel, customer_id, code="CUSTOMER_404", label="Customer", for_update=True)
        data = payload.model_dump(exclude_unset=True)
        if data.get("customer_id") and data["customer_id"] != customer.customer_id:
            await _ensure_unique_code(db, data["customer_id"], exclude_id=customer.id)

        bottles_diff = (data["bottles"] - customer.bottles) if data.get("bottles") is not None else 0
        deposit_diff = (data["deposit"] - customer.deposit) if data.get("deposit") is not None else 0
        if bottles_diff or deposit_diff:
            tb = await get_total_bottles(db)
            total = ledger.snapshot(tb, ledger.TOTAL_FIELDS)
            ledger.require_available(total, bottles_diff + deposit_diff)
            ledger.write_back(
                tb,
                ledger.apply_total_delta(
                    total,
                    ledger.combine(ledger.issue_delta(bottles_diff), ledger.deposit_delta(deposit_diff)),
                ),
            )

        for key, value in data.items():
            if value is None and key != "mobile_number":
                continue
            setattr(customer, key, value)

    await db.refresh(customer)
    logger.info(
        "%s updated customer %s (bottles %+d, deposit %+d)",
        user.email, customer.customer_id, bottles_diff, deposit_diff,
    )
    return CustomerRead(**customer.to_schema)


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_customer(
    customer_id: UUID,
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_superuser),
):
    async with atomic(db, "delete customer"):
        customer = await get_or_404(db, CustomerModel, customer_id, code="CUSTOMER_404", label="Customer", for_update=True)
        delivery_count = await reverse_customer_deliveries(db, customer)

        tb = await get_total_bottles(db)
        total = ledger.snapshot(tb, ledger.TOTAL_FIELDS)
        # bottles still at the customer go back to the warehouse
        held = min(max(0, customer.bottles), total["used_bottles"])
        ledger.write_back(
            tb,
            ledger.apply_total_delta(
                total,
                ledger.combine(ledger.return_delta(held), ledger.deposit_delta(-customer.deposit)),
            ),
        )
        await db.delete(customer)

    logger.info(
        "%s deleted customer %s (%d deliveries reversed, %d bottles returned)",
        user.email, customer.customer_id, delivery_count, held,
    )
    return None
