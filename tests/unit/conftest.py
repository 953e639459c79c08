import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, patch
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from common.db.base import Base
from packages.billing.models.domain.checkout import CheckoutSession


@pytest.fixture
def mock_payment_provider():
    """Create a mocked payment provider (Stripe)."""
    provider = AsyncMock()
    provider.create_customer = AsyncMock(return_value="cus_new123")
    provider.create_checkout_session = AsyncMock(
        return_value=CheckoutSession(
            session_id="cs_test_123", url="https://checkout.stripe.com/c/cs_test_123"
        )
    )
    provider.health_check = AsyncMock(return_value=True)
    return provider


@pytest.fixture
def patch_payment_provider(mock_payment_provider):
    """Route every SubscriptionService to the mocked payment provider."""
    with patch(
        "packages.billing.services.subscription_service.get_payment_provider",
        return_value=mock_payment_provider,
    ):
        yield mock_payment_provider


@pytest_asyncio.fixture(scope="function")
async def file_session_factory(tmp_path, patch_lazy_sessions, monkeypatch):
    """
    Session factory on a file-backed SQLite database.

    Each session gets its own connection, so concurrent tasks really contend
    on the database instead of sharing one in-memory connection.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path}/concurrency.db",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocal", factory)
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocalReadonly", factory)
    yield factory
    await engine.dispose()
