"""
Create the TotalBottles row (or leave it alone if it already exists).

Run locally:
  python backend/scripts/seed_total_bottles.py [total]

Uses the same DATABASE_URL env var as the backend (dotenv supported by core.config).
"""

from __future__ import annotations

import asyncio
import sys

from core.config import settings
from core.logging_config import configure_logging
from db.database import async_session_maker, create_db_and_tables
from db.store import get_total_bottles
from db.total_bottles import TOTAL_BOTTLES_ID, TotalBottles

DEFAULT_TOTAL = 500


async def main(total: int = DEFAULT_TOTAL) -> None:
    await create_db_and_tables()
    async with async_session_maker() as db:
        existing = await get_total_bottles(db, for_update=False, required=False)
        if existing:
            print(
                f"TotalBottles already exists: total={existing.total_bottles} "
                f"available={existing.available_bottles}."
            )
            return

        db.add(
            TotalBottles(
                id=TOTAL_BOTTLES_ID,
                total_bottles=total,
                available_bottles=total,
                used_bottles=0,
                damaged_bottles=0,
                deposit_bottles=0,
            )
        )
        await db.commit()
        print(f"Done. TotalBottles created with {total} bottles available.")


if __name__ == "__main__":
    configure_logging(settings.log_level)
    asyncio.run(main(int(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_TOTAL))
