import logging
import uuid
from datetime import timedelta
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, Response, status
from fastapi_users import BaseUserManager, FastAPIUsers, UUIDIDMixin
from fastapi_users.authentication import AuthenticationBackend, BearerTransport, JWTStrategy
from fastapi_users.db import SQLAlchemyUserDatabase
from fastapi_users.jwt import decode_jwt, generate_jwt
from fastapi_users.password import PasswordHelper
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from db.database import get_async_session
from db.moderator import Moderator
from db.users import User

logger = logging.getLogger(__name__)

SECRET = settings.jwt_secret

MODERATOR_COOKIE = "moderator_session"
MODERATOR_AUDIENCE = "bottle-ledger:moderator"

password_helper = PasswordHelper()


# ---- admins (fastapi-users) --------------------------------------------------


class UserManager(UUIDIDMixin, BaseUserManager[User, uuid.UUID]):
    reset_password_token_secret = SECRET
    verification_token_secret = SECRET

    async def on_after_register(self, user: User, request: Optional[Request] = None):
        logger.info("Admin %s registered", user.email)


async def get_user_db(session: AsyncSession = Depends(get_async_session)):
    yield SQLAlchemyUserDatabase(session, User)


async def get_user_manager(user_db: SQLAlchemyUserDatabase = Depends(get_user_db)):
    yield UserManager(user_db)


bearer_transport = BearerTransport(tokenUrl="auth/jwt/login")


def get_jwt_strategy() -> JWTStrategy:
    return JWTStrategy(secret=SECRET, lifetime_seconds=settings.admin_token_lifetime_seconds)


auth_backend = AuthenticationBackend(
    name="jwt",
    transport=bearer_transport,
    get_strategy=get_jwt_strategy,
)

fastapi_users = FastAPIUsers[User, uuid.UUID](get_user_manager, [auth_backend])

current_active_superuser = fastapi_users.current_user(active=True, superuser=True)
optional_active_user = fastapi_users.current_user(active=True, optional=True)


# ---- moderators (cookie session) ---------------------------------------------


def hash_password(password: str) -> str:
    return password_helper.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    verified, _ = password_helper.verify_and_update(password, password_hash)
    return verified


def create_moderator_token(moderator: Moderator) -> str:
    lifetime = int(timedelta(days=settings.moderator_session_days).total_seconds())
    data = {"sub": str(moderator.id), "aud": MODERATOR_AUDIENCE}
    return generate_jwt(data, SECRET, lifetime)


def read_moderator_token(token: str) -> Optional[uuid.UUID]:
    try:
        data = decode_jwt(token, SECRET, [MODERATOR_AUDIENCE])
        return uuid.UUID(data["sub"])
    except (jwt.PyJWTError, KeyError, ValueError):
        return None


def set_moderator_cookie(response: Response, moderator: Moderator) -> None:
    response.set_cookie(
        MODERATOR_COOKIE,
        create_moderator_token(moderator),
        max_age=int(timedelta(days=settings.moderator_session_days).total_seconds()),
        httponly=True,
        secure=settings.secure_cookies,
        samesite="lax",
        path="/",
    )


def clear_moderator_cookie(response: Response) -> None:
    response.delete_cookie(MODERATOR_COOKIE, path="/")


async def authenticate_moderator(db: AsyncSession, name: str, password: str) -> Moderator:
    res = await db.execute(select(Moderator).where(Moderator.name == name.strip().lower()))
    moderator = res.scalar_one_or_none()
    if not moderator or not verify_password(password, moderator.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not moderator.is_working:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You are not a working moderator")
    return moderator


async def current_moderator_optional(
    request: Request,
    db: AsyncSession = Depends(get_async_session),
) -> Optional[Moderator]:
    token = request.cookies.get(MODERATOR_COOKIE)
    if not token:
        return None
    moderator_id = read_moderator_token(token)
    if moderator_id is None:
        return None
    res = await db.execute(select(Moderator).where(Moderator.id == moderator_id))
    return res.scalar_one_or_none()


async def current_moderator(moderator: Optional[Moderator] = Depends(current_moderator_optional)) -> Moderator:
    if moderator is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not logged in")
    if not moderator.is_working:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Moderator is not working")
    return moderator


async def current_reader(
    user: Optional[User] = Depends(optional_active_user),
    moderator: Optional[Moderator] = Depends(current_moderator_optional),
):
    """Either an admin or a working moderator."""
    if user is not None:
        return user
    if moderator is not None and moderator.is_working:
        return moderator
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
