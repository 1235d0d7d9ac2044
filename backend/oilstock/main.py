from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import select, func

from oilstock import __version__
from oilstock.config import settings
from oilstock.core.database import engine, async_session_maker, create_db_and_tables
from oilstock.core.exceptions import LedgerError
from oilstock.core.logging_config import setup_logging, get_logger
from oilstock.core.permissions import apply_capabilities
from oilstock.models import Staff, StaffRole
from oilstock.api.auth import router as auth_router
from oilstock.api.stock import router as stock_router
from oilstock.api.usage import router as usage_router
from oilstock.api.reference import router as reference_router
from oilstock.api.staff import router as staff_router
from oilstock.services.auth_service import hash_password

setup_logging()
logger = get_logger(__name__)


async def ensure_superuser():
    """Create the admin account from settings if its login does not exist yet."""
    login = settings.superuser_login.strip().lower()
    async with async_session_maker() as session:
        r = await session.execute(select(Staff).where(func.lower(Staff.login) == login))
        if r.scalar_one_or_none() is not None:
            return
        staff = Staff(
            name=settings.superuser_name,
            role=StaffRole.ADMIN,
            login=login,
            password_hash=hash_password(settings.superuser_password),
            is_active=True,
        )
        apply_capabilities(staff, [])
        session.add(staff)
        await session.commit()
        logger.info("Superuser created: %s", login)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_db_and_tables()
    logger.info("Database tables checked/created")
    try:
        await ensure_superuser()
    except Exception as e:
        logger.warning("Superuser: %s", e)
    yield
    await engine.dispose()


app = FastAPI(title="Oil Stock Ledger", version=__version__, lifespan=lifespan)


@app.exception_handler(LedgerError)
async def ledger_exception_handler(request: Request, exc: LedgerError):
    logger.warning("%s %s rejected: %s (%s)", request.method, request.url.path, exc.detail, exc.code)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.code, **exc.extra()},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error: %s", exc)
    detail = "Internal server error"
    err_str = str(exc).lower()
    if "duplicate key" in err_str or "unique constraint" in err_str:
        detail = "Data conflict (duplicate). Refresh and try again."
    elif "foreign key" in err_str:
        detail = "Referenced record does not exist or is still in use."
    elif "check constraint" in err_str:
        detail = "Stock quantities out of range; the change was not saved."
    return JSONResponse(
        status_code=500,
        content={"detail": detail},
    )


_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(auth_router)
app.include_router(stock_router)
app.include_router(usage_router)
app.include_router(reference_router)
app.include_router(staff_router)


@app.get("/health")
def health():
    return {"status": "ok"}
