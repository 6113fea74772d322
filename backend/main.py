from fastapi import FastAPI
import uvicorn
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from core.config import settings
from core.logging_config import configure_logging
from db.database import create_db_and_tables
from routers.bottle_usage import router as bottle_usage_router, admin_router as bottle_usage_admin_router
from routers.total_bottles import router as total_bottles_router
from routers.customers import router as customers_router
from routers.deliveries import router as deliveries_router, admin_router as deliveries_admin_router
from routers.miscellaneous import router as miscellaneous_router, admin_router as miscellaneous_admin_router
from routers.other_expenses import router as other_expenses_router, admin_router as other_expenses_admin_router
from routers.moderators import router as moderators_router, moderator_router
from routers.reports import router as reports_router
from core.auth import fastapi_users, auth_backend
from schemas.users import UserRead, UserCreate, UserUpdate


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    await create_db_and_tables()
    yield


app = FastAPI(
    title="Bottle Ledger API",
    description="Inventory and daily usage ledger for a bottled water delivery business",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Admin authentication routes (fastapi-users)
app.include_router(fastapi_users.get_auth_router(auth_backend), prefix="/auth/jwt", tags=["auth"],)
app.include_router(fastapi_users.get_register_router(UserRead, UserCreate), prefix="/auth", tags=["auth"])
app.include_router(fastapi_users.get_reset_password_router(), prefix="/auth", tags=["auth"])
app.include_router(fastapi_users.get_verify_router(UserRead), prefix="/auth", tags=["auth"])
app.include_router(fastapi_users.get_users_router(UserRead, UserUpdate), prefix="/users", tags=["users"])

# Moderator session and moderator management
app.include_router(moderator_router, prefix="/moderator", tags=["moderator"])
app.include_router(moderators_router, prefix="/moderators", tags=["moderators"])

# Ledger routes
app.include_router(total_bottles_router, prefix="/total-bottles", tags=["total-bottles"])
app.include_router(bottle_usage_router, prefix="/bottle-usage", tags=["bottle-usage"])
app.include_router(bottle_usage_admin_router, prefix="/admin/bottle-usage", tags=["admin"])
app.include_router(customers_router, prefix="/customers", tags=["customers"])
app.include_router(deliveries_router, prefix="/deliveries", tags=["deliveries"])
app.include_router(deliveries_admin_router, prefix="/admin/deliveries", tags=["admin"])
app.include_router(miscellaneous_router, prefix="/miscellaneous", tags=["miscellaneous"])
app.include_router(miscellaneous_admin_router, prefix="/admin/miscellaneous", tags=["admin"])
app.include_router(other_expenses_router, prefix="/other-expenses", tags=["other-expenses"])
app.include_router(other_expenses_admin_router, prefix="/admin/other-expenses", tags=["admin"])
app.include_router(reports_router, prefix="/reports", tags=["reports"])

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
