"""
Repository for subscription management.
"""

from typing import Optional
from sqlalchemy import update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from common.core.constants import ACCOUNT_ID_MAX_LENGTH
from common.core.exceptions import ValidationError
from common.repositories.base import BaseRepository
from packages.billing.models.database.subscription import SubscriptionEntity
from packages.billing.models.domain.subscription import (
    Subscription,
    SubscriptionCreateModel,
)
from packages.billing.models.domain.enums import UsageKind
from common.core.otel_axiom_exporter import trace_span


class SubscriptionRepository(BaseRepository[SubscriptionEntity, Subscription]):
    """Repository for managing account subscriptions."""

    def __init__(self):
        super().__init__(SubscriptionEntity, Subscription)

    @trace_span
    async def get_by_account_id(self, account_id: str) -> Optional[Subscription]:
        return await self._get_one_by(SubscriptionEntity.account_id, account_id)

    @trace_span
    async def get_by_stripe_customer_id(
        self, stripe_customer_id: str
    ) -> Optional[Subscription]:
        return await self._get_one_by(
            SubscriptionEntity.stripe_customer_id, stripe_customer_id
        )

    @trace_span
    async def get_or_create(self, account_id: str) -> Subscription:
        """
        Return the account's subscription, creating a free one if missing.

        INSERT ... ON CONFLICT (account_id) DO NOTHING followed by a select, so
        concurrent first requests converge on a single row.

        Raises:
            ValidationError: account_id does not fit the column
        """
        if len(account_id) > ACCOUNT_ID_MAX_LENGTH:
            raise ValidationError(
                f"account_id longer than {ACCOUNT_ID_MAX_LENGTH} characters"
            )

        existing = await self.get_by_account_id(account_id)
        if existing:
            return existing

        data = SubscriptionCreateModel(account_id=account_id).model_dump()
        async with self._get_session() as session:
            dialect = session.get_bind().dialect.name
            insert = pg_insert if dialect == "postgresql" else sqlite_insert
            await session.execute(
                insert(SubscriptionEntity)
                .values(**data)
                .on_conflict_do_nothing(index_elements=["account_id"])
            )
            await session.flush()

        subscription = await self.get_by_account_id(account_id)
        if subscription is None:
            # Only reachable if the row was deleted between insert and select
            raise RuntimeError(f"Subscription for account {account_id} vanished")
        return subscription

    @trace_span
    async def increment_usage(
        self, account_id: str, kind: UsageKind
    ) -> Optional[Subscription]:
        """
        Atomically add one to the counter for ``kind`` if it is below its limit.

        The limit check and the increment are one guarded UPDATE, so concurrent
        callers can never push the counter past the limit. Returns None when no
        row matched (missing subscription or limit reached).
        """
        used_col = getattr(SubscriptionEntity, kind.used_field)
        limit_col = getattr(SubscriptionEntity, kind.limit_field)

        async with self._get_session() as session:
            result = await session.execute(
                update(SubscriptionEntity)
                .where(
                    SubscriptionEntity.account_id == account_id,
                    used_col < limit_col,
                )
                .values(
                    {
                        kind.used_field: used_col + 1,
                        "version": SubscriptionEntity.version + 1,
                    }
                )
                .execution_options(synchronize_session=False)
            )
            await session.flush()
            if result.rowcount == 0:
                return None

        return await self.get_by_account_id(account_id)

    @trace_span
    async def set_stripe_customer_id_if_missing(
        self, account_id: str, stripe_customer_id: str
    ) -> bool:
        """Link a Stripe customer unless one is already linked. True if we won."""
        async with self._get_session() as session:
            result = await session.execute(
                update(SubscriptionEntity)
                .where(
                    SubscriptionEntity.account_id == account_id,
                    SubscriptionEntity.stripe_customer_id.is_(None),
                )
                .values(
                    stripe_customer_id=stripe_customer_id,
                    version=SubscriptionEntity.version + 1,
                )
                .execution_options(synchronize_session=False)
            )
            await session.flush()
            return result.rowcount == 1
