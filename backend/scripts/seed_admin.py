"""
Create an admin (superuser) account through the fastapi-users user manager.

Run locally:
  ADMIN_EMAIL=admin@example.com ADMIN_PASSWORD=secret python backend/scripts/seed_admin.py
"""

from __future__ import annotations

import asyncio
import contextlib
import os

from fastapi_users.exceptions import UserAlreadyExists

from core.auth import get_user_db, get_user_manager
from core.config import settings
from core.logging_config import configure_logging
from db.database import create_db_and_tables, get_async_session
from schemas.users import UserCreate

get_async_session_context = contextlib.asynccontextmanager(get_async_session)
get_user_db_context = contextlib.asynccontextmanager(get_user_db)
get_user_manager_context = contextlib.asynccontextmanager(get_user_manager)


async def main() -> None:
    email = os.getenv("ADMIN_EMAIL", "admin@example.com")
    password = os.getenv("ADMIN_PASSWORD", "admin")
    name = os.getenv("ADMIN_NAME", "Admin")

    await create_db_and_tables()
    async with get_async_session_context() as session:
        async with get_user_db_context(session) as user_db:
            async with get_user_manager_context(user_db) as user_manager:
                try:
                    user = await user_manager.create(
                        UserCreate(email=email, password=password, name=name, is_superuser=True, is_verified=True)
                    )
                except UserAlreadyExists:
                    print(f"Admin {email} already exists.")
                    return

    print(f"Done. Admin {user.email} created.")


if __name__ == "__main__":
    configure_logging(settings.log_level)
    asyncio.run(main())
