"""
Back-office API — application entry point.

This is the **only** file that assembles the app.  All business logic
lives in the `api/`, `services/`, `models/`, and `core/` packages.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import select
from starlette.middleware.sessions import SessionMiddleware

# Importing the package registers every model on Base.metadata
import backoffice.models  # noqa: F401
from backoffice.api.v1.api import api_router
from backoffice.core.config import settings
from backoffice.core.exceptions import register_exception_handlers
from backoffice.core.rate_limit import limiter
from backoffice.core.security import get_password_hash
from backoffice.db.base import Base
from backoffice.db.session import async_session_factory, engine
from backoffice.models.account import Account

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


async def seed_admin() -> None:
    """Create the first admin account if it does not exist yet."""
    email = settings.FIRST_ADMIN_EMAIL.strip().lower()
    async with async_session_factory() as session:
        result = await session.execute(select(Account).where(Account.email == email))
        if result.scalar_one_or_none() is not None:
            return
        session.add(
            Account(
                email=email,
                hashed_password=get_password_hash(settings.FIRST_ADMIN_PASSWORD),
                name="System Administrator",
                role="admin",
                is_verified=True,
                verification_status="verified",
            )
        )
        await session.commit()
        logger.info("Default admin created: %s (password: <redacted>)", email)


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(_app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")

    await seed_admin()

    logger.info("Back-office API v%s started", settings.VERSION)
    yield
    await engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Staff onboarding, HR, accounts and checkout API",
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Signed-cookie session, only used to carry the Google sign-in handshake
    application.add_middleware(
        SessionMiddleware,
        secret_key=settings.SESSION_SECRET,
        https_only=settings.COOKIE_SECURE,
        same_site="lax",
    )

    # Rate limiting (slowapi reads the limiter from app.state)
    application.state.limiter = limiter

    # Global exception handlers (prevent stack-trace leakage)
    register_exception_handlers(application)

    # Mount API v1
    application.include_router(api_router, prefix=settings.API_V1_PREFIX)

    return application


app = create_app()
