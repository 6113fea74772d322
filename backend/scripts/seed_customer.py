"""
Create a sample customer. Deposit bottles are taken out of the available
pool exactly as the admin endpoint does.

Run locally:
  python backend/scripts/seed_customer.py
"""

from __future__ import annotations

import asyncio

from sqlalchemy import select

from core import ledger
from core.config import settings
from core.logging_config import configure_logging
from db.customer import Customer
from db.database import async_session_maker, create_db_and_tables
from db.store import get_total_bottles
from schemas.customers import CustomerCreate

SAMPLE = CustomerCreate(
    customer_id="c001",
    name="Sample Customer",
    address="House 1, Street 1",
    area="north",
    phone="03000000000",
    bottle_price=100,
    deposit=2,
)


async def main() -> None:
    await create_db_and_tables()
    async with async_session_maker() as db:
        res = await db.execute(select(Customer).where(Customer.customer_id == SAMPLE.customer_id))
        if res.scalar_one_or_none():
            print(f"Customer {SAMPLE.customer_id} already exists.")
            return

        tb = await get_total_bottles(db)
        total = ledger.snapshot(tb, ledger.TOTAL_FIELDS)
        ledger.require_available(total, SAMPLE.deposit)
        ledger.write_back(tb, ledger.apply_total_delta(total, ledger.deposit_delta(SAMPLE.deposit)))

        db.add(Customer(**SAMPLE.model_dump()))
        await db.commit()
        print(f"Done. Customer {SAMPLE.customer_id} created (deposit {SAMPLE.deposit}).")


if __name__ == "__main__":
    configure_logging(settings.log_level)
    asyncio.run(main())
