"""
Create a moderator with a password and the areas they serve.

Run locally:
  python backend/scripts/seed_moderator.py <name> <password> [area ...]
"""

from __future__ import annotations

import asyncio
import sys

from sqlalchemy import select

from core.auth import hash_password
from core.config import settings
from core.logging_config import configure_logging
from db.database import async_session_maker, create_db_and_tables
from db.moderator import Moderator
from schemas.moderators import ModeratorCreate


async def main(name: str, password: str, areas: list[str]) -> None:
    payload = ModeratorCreate(name=name, password=password, areas=areas)

    await create_db_and_tables()
    async with async_session_maker() as db:
        res = await db.execute(select(Moderator).where(Moderator.name == payload.name))
        if res.scalar_one_or_none():
            print(f"Moderator {payload.name} already exists.")
            return

        db.add(
            Moderator(
                name=payload.name,
                password_hash=hash_password(payload.password),
                areas=payload.areas,
                is_working=True,
            )
        )
        await db.commit()
        print(f"Done. Moderator {payload.name} created for areas: {', '.join(payload.areas) or '-'}.")


if __name__ == "__main__":
    if len(sys.argv) < 3:
        print("usage: seed_moderator.py <name> <password> [area ...]")
        sys.exit(1)
    configure_logging(settings.log_level)
    asyncio.run(main(sys.argv[1], sys.argv[2], sys.argv[3:]))
