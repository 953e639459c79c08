# Shared pytest configuration and fixtures for all test types
import os

# Settings are read at import time; provide the required Stripe values first
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("STRIPE_PRICE_ID_BASIC", "price_basic")
os.environ.setdefault("STRIPE_PRICE_ID_PREMIUM", "price_premium")

import pytest_asyncio  # noqa: E402
from httpx import AsyncClient, ASGITransport  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from slowapi import Limiter  # noqa: E402
from slowapi.util import get_remote_address  # noqa: E402
from unittest.mock import patch  # noqa: E402
from datetime import datetime, timezone, timedelta  # noqa: E402

# Create test limiter with no limits and in-memory storage
test_limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],
    storage_uri="memory://",
)

# Patch the limiter before importing the app so decorators use test limiter
with patch("common.providers.rate_limiter.limiter.limiter", test_limiter):
    from api.main import app

from common.db.session import get_db  # noqa: E402
from common.db.base import Base  # noqa: E402
from packages.auth.dependencies import (  # noqa: E402
    get_current_account,
    get_current_admin_account,
)
from packages.auth.models.domain.authenticated_account import (  # noqa: E402
    AuthenticatedAccount,
)
from packages.billing.models.database.subscription import SubscriptionEntity  # noqa: E402
from packages.billing.models.database.webhook_event import (  # noqa: E402, F401
    ProcessedWebhookEventEntity,
)
from packages.billing.models.domain.enums import (  # noqa: E402
    SubscriptionStatus,
    SubscriptionPlan,
)
from packages.billing.models.domain.subscription import Subscription  # noqa: E402

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine and initialize schema."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_connection(test_engine):
    """Create test connection with outer transaction for rollback isolation."""
    async with test_engine.connect() as connection:
        trans = await connection.begin()
        yield connection
        await trans.rollback()


@pytest_asyncio.fixture(scope="function")
async def test_session_factory(test_connection):
    """Create session factory bound to test connection.

    Using join_transaction_mode="create_savepoint" so nested transaction()
    calls create savepoints instead of real nested transactions.
    """
    return async_sessionmaker(
        bind=test_connection,
        class_=AsyncSession,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )


@pytest_asyncio.fixture(scope="function")
async def test_db(test_session_factory):
    """Create a test database session."""
    async with test_session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function", autouse=True)
async def patch_lazy_sessions(test_session_factory, monkeypatch):
    """
    Patch session factories to use test database.

    This allows real transaction() and get_session() to run with proper
    commit/rollback/ContextVar semantics while using the test database.
    """
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocal", test_session_factory)
    monkeypatch.setattr(
        "common.db.scoped.AsyncSessionLocalReadonly", test_session_factory
    )


@pytest_asyncio.fixture(scope="function")
async def test_account():
    """Create a test authenticated account."""
    return AuthenticatedAccount(account_id="acct_test_1", is_admin=False)


@pytest_asyncio.fixture(scope="function")
async def admin_account():
    """Create a test admin account."""
    return AuthenticatedAccount(account_id="acct_admin", is_admin=True)


def _override_db(test_db):
    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    return override_get_db


@pytest_asyncio.fixture(scope="function")
async def client(test_db: AsyncSession, test_account):
    """Create a test client authenticated as a regular account."""
    app.dependency_overrides[get_db] = _override_db(test_db)
    app.dependency_overrides[get_current_account] = lambda: test_account

    try:
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def admin_client(test_db: AsyncSession, admin_account):
    """Create a test client authenticated as an admin."""
    app.dependency_overrides[get_db] = _override_db(test_db)
    app.dependency_overrides[get_current_account] = lambda: admin_account
    app.dependency_overrides[get_current_admin_account] = lambda: admin_account

    try:
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def anonymous_client(test_db: AsyncSession):
    """Create a test client with no auth overrides (gateway headers apply)."""
    app.dependency_overrides[get_db] = _override_db(test_db)

    try:
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


async def _add_subscription(test_db: AsyncSession, **fields) -> Subscription:
    entity = SubscriptionEntity(**fields)
    test_db.add(entity)
    await test_db.commit()
    await test_db.refresh(entity)
    return Subscription.model_validate(entity)


@pytest_asyncio.fixture(scope="function")
async def free_subscription(test_db: AsyncSession, test_account):
    """A free, never-upgraded subscription for the test account."""
    return await _add_subscription(
        test_db,
        account_id=test_account.account_id,
        plan=SubscriptionPlan.FREE.value,
        status=SubscriptionStatus.INACTIVE.value,
        profiles_used=0,
        proposals_used=0,
        **SubscriptionPlan.FREE.get_quota_limits(),
        version=0,
    )


@pytest_asyncio.fixture(scope="function")
async def linked_subscription(test_db: AsyncSession, test_account):
    """A free subscription already linked to a Stripe customer, with usage."""
    return await _add_subscription(
        test_db,
        account_id=test_account.account_id,
        plan=SubscriptionPlan.FREE.value,
        status=SubscriptionStatus.INACTIVE.value,
        stripe_customer_id="cus_test123",
        profiles_used=2,
        proposals_used=3,
        **SubscriptionPlan.FREE.get_quota_limits(),
        version=0,
    )


@pytest_asyncio.fixture(scope="function")
async def basic_subscription(test_db: AsyncSession, test_account):
    """An active basic subscription."""
    now = datetime.now(timezone.utc)
    return await _add_subscription(
        test_db,
        account_id=test_account.account_id,
        plan=SubscriptionPlan.BASIC.value,
        status=SubscriptionStatus.ACTIVE.value,
        stripe_customer_id="cus_basic123",
        stripe_subscription_id="sub_basic123",
        stripe_price_id="price_basic",
        current_period_start=now,
        current_period_end=now + timedelta(days=30),
        profiles_used=1,
        proposals_used=4,
        **SubscriptionPlan.BASIC.get_quota_limits(),
        version=0,
    )
