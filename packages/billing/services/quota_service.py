"""
Service for quota enforcement and checking.

This is the critical service that prevents usage beyond plan limits.

Intended call pattern around a business operation:

    await quota_service.enforce_quota(account_id, UsageKind.PROFILE)
    profile = await create_profile(...)
    await quota_service.record_usage(account_id, UsageKind.PROFILE)

record_usage re-checks the limit atomically, so a burst of concurrent callers
that all passed enforce_quota still cannot push the counter past the limit.
The resource write and the counter write are separate commits: a crash in
between leaves one resource uncounted.
"""

from common.core.exceptions import NotFoundError, QuotaExceededError, ValidationError
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.billing.models.domain.subscription import Subscription
from packages.billing.models.domain.usage import QuotaCheck
from packages.billing.models.domain.enums import SubscriptionPlan, UsageKind

logger = get_logger(__name__)


class QuotaService:
    """Service for quota enforcement."""

    def __init__(self):
        self.subscription_repo = SubscriptionRepository()

    def _build_quota_check(
        self, subscription: Subscription, kind: UsageKind
    ) -> QuotaCheck:
        current = subscription.usage_for(kind)
        limit = subscription.limit_for(kind)
        allowed = current < limit

        return QuotaCheck(
            allowed=allowed,
            kind=kind,
            current_usage=current,
            limit=limit,
            remaining=max(0, limit - current),
            needs_upgrade=not allowed and subscription.plan == SubscriptionPlan.FREE,
            plan=subscription.plan,
        )

    @trace_span
    async def check_quota(self, account_id: str, kind: UsageKind) -> QuotaCheck:
        """
        Report whether the account may create one more ``kind``.

        Creates the free subscription on first use. Read-only otherwise.
        """
        if not account_id:
            raise ValidationError("account_id is required")

        subscription = await self.subscription_repo.get_or_create(account_id)
        return self._build_quota_check(subscription, kind)

    @trace_span
    async def enforce_quota(self, account_id: str, kind: UsageKind) -> QuotaCheck:
        """
        Check quota and raise if the account is at its limit.

        Raises:
            QuotaExceededError: carrying usage, limit and needs_upgrade
        """
        check = await self.check_quota(account_id, kind)
        if not check.allowed:
            logger.info(
                f"Account {account_id} reached {kind.value} quota",
                extra={
                    "account_id": account_id,
                    "kind": kind.value,
                    "current": check.current_usage,
                    "limit": check.limit,
                },
            )
            raise QuotaExceededError(
                kind=kind.value,
                current_usage=check.current_usage,
                limit=check.limit,
                needs_upgrade=check.needs_upgrade,
                message=check.get_user_message(),
            )
        return check

    @trace_span
    async def record_usage(self, account_id: str, kind: UsageKind) -> Subscription:
        """
        Count one successfully created ``kind`` against the account.

        Raises:
            NotFoundError: the account has no subscription row
            QuotaExceededError: the counter is already at its limit
        """
        updated = await self.subscription_repo.increment_usage(account_id, kind)
        if updated is not None:
            logger.debug(
                f"Recorded {kind.value} usage for account {account_id}",
                extra={"account_id": account_id, "used": updated.usage_for(kind)},
            )
            return updated

        subscription = await self.subscription_repo.get_by_account_id(account_id)
        if subscription is None:
            raise NotFoundError(f"No subscription for account {account_id}")

        logger.warning(
            f"Rejected {kind.value} increment at limit for account {account_id}",
            extra={
                "account_id": account_id,
                "current": subscription.usage_for(kind),
                "limit": subscription.limit_for(kind),
            },
        )
        check = self._build_quota_check(subscription, kind)
        raise QuotaExceededError(
            kind=kind.value,
            current_usage=check.current_usage,
            limit=check.limit,
            needs_upgrade=check.needs_upgrade,
            message=check.get_user_message(),
        )
