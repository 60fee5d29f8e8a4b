"""
Shared test fixtures for the back-office API test suite.

Async throughout (aiosqlite + AsyncSession). External collaborators
(mail, payment gateway, Google) are replaced with in-memory fakes.
"""

import os
from decimal import Decimal
from typing import AsyncGenerator

import pytest

# Override environment BEFORE importing application modules
os.environ["SECRET_KEY"] = "test-secret-key-for-the-suite"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["RAZORPAY_SECRET"] = "s3cret"
os.environ["CLIENT_URL"] = "http://client.test"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from backoffice.api.v1.deps import (get_db, get_notifier, get_oauth_client,
                                    get_payment_gateway)
from backoffice.core.exceptions import PaymentGatewayError, UpstreamError
from backoffice.core.security import get_password_hash, token_service
from backoffice.db.base import Base
from backoffice.main import app
from backoffice.models.account import Account
from backoffice.models.catalog import Product
from backoffice.models.staff import STAFF_ACTIVE, Staff
from backoffice.schemas.order import GatewayOrder
from backoffice.services.identity import ExternalProfile
from backoffice.services.notifications import Notifier
from backoffice.services.oauth import OAuthClient
from backoffice.services.payments import PaymentGateway

PASSWORD = "Str0ng!Pass"

test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def setup_db():
    """Create all tables before usage and drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestingSessionLocal() as session:
        yield session


app.dependency_overrides[get_db] = _override_get_db


# ── Fake collaborators ──────────────────────────────────────────────
class FakeNotifier(Notifier):
    def __init__(self):
        self.sent: list[tuple[str, str, str]] = []
        self.fail = False

    async def send(self, to: str, subject: str, html: str) -> None:
        if self.fail:
            raise UpstreamError("mail service down")
        self.sent.append((to, subject, html))

    def to(self, address: str) -> list[tuple[str, str, str]]:
        return [m for m in self.sent if m[0] == address]


class FakeGateway(PaymentGateway):
    def __init__(self):
        self.calls: list[tuple[int, str, str]] = []
        self.fail = False

    async def create_order(self, amount: int, currency: str, receipt: str) -> GatewayOrder:
        if self.fail:
            raise PaymentGatewayError()
        self.calls.append((amount, currency, receipt))
        return GatewayOrder(
            id=f"order_test_{len(self.calls)}",
            amount=amount,
            currency=currency,
            receipt=receipt,
            status="created",
        )


class FakeOAuth(OAuthClient):
    provider = "google"

    def __init__(self):
        self.profile = ExternalProfile("google", "g-123", "guser@example.com", "Gee User")
        self.fail = False

    def authorization_url(self, state: str) -> str:
        return f"https://accounts.example.test/auth?state={state}"

    async def fetch_profile(self, code: str) -> ExternalProfile:
        if self.fail:
            raise UpstreamError("token exchange failed")
        return self.profile


@pytest.fixture(autouse=True)
def notifier() -> FakeNotifier:
    fake = FakeNotifier()
    app.dependency_overrides[get_notifier] = lambda: fake
    return fake


@pytest.fixture(autouse=True)
def gateway() -> FakeGateway:
    fake = FakeGateway()
    app.dependency_overrides[get_payment_gateway] = lambda: fake
    return fake


@pytest.fixture(autouse=True)
def oauth() -> FakeOAuth:
    fake = FakeOAuth()
    app.dependency_overrides[get_oauth_client] = lambda: fake
    return fake


# ── Clients & sessions ──────────────────────────────────────────────
@pytest.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with TestingSessionLocal() as session:
        yield session


# ── Principals ──────────────────────────────────────────────────────
def bearer(principal_id: str, role: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token_service.issue(principal_id, role)}"}


async def create_account(
    db: AsyncSession, email: str, password: str = PASSWORD, role: str = "user", **extra
) -> Account:
    account = Account(
        email=email, hashed_password=get_password_hash(password), role=role, **extra
    )
    db.add(account)
    await db.commit()
    await db.refresh(account)
    return account


async def create_staff(
    db: AsyncSession, email: str, password: str = PASSWORD, status: str = STAFF_ACTIVE, **extra
) -> Staff:
    staff = Staff(
        email=email,
        hashed_password=get_password_hash(password),
        role="staff" if status == STAFF_ACTIVE else None,
        status=status,
        is_registered=True,
        name=extra.pop("name", "Worker Bee"),
        **extra,
    )
    db.add(staff)
    await db.commit()
    await db.refresh(staff)
    return staff


async def create_product(db: AsyncSession, name: str, price: str, **extra) -> Product:
    product = Product(name=name, price=Decimal(price), **extra)
    db.add(product)
    await db.commit()
    await db.refresh(product)
    return product


@pytest.fixture
async def admin(db_session: AsyncSession) -> Account:
    return await create_account(db_session, "admin@example.com", role="admin")


@pytest.fixture
async def admin_headers(admin: Account) -> dict[str, str]:
    return bearer(admin.id, admin.role)


@pytest.fixture
async def user(db_session: AsyncSession) -> Account:
    return await create_account(db_session, "shopper@example.com", name="Shopper")


@pytest.fixture
async def user_headers(user: Account) -> dict[str, str]:
    return bearer(user.id, user.role)


@pytest.fixture
async def worker(db_session: AsyncSession) -> Staff:
    return await create_staff(db_session, "worker@example.com")


@pytest.fixture
async def worker_headers(worker: Staff) -> dict[str, str]:
    return bearer(worker.id, "staff")
