"""
Service for managing subscriptions.

Covers the caller-facing operations: hosted checkout, the status query and
admin overrides. Status and plan changes driven by Stripe live in the webhook
reconciler.
"""

from typing import Optional

from common.core.config import settings
from common.core.exceptions import NotFoundError, ValidationError
from common.core.otel_axiom_exporter import trace_span, get_logger
from common.db.context import readonly
from common.db.scoped import transaction
from common.db.transaction_utils import retry_on_conflict
from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.billing.models.domain.checkout import CheckoutSession
from packages.billing.models.domain.subscription import (
    Subscription,
    SubscriptionStatusView,
    LimitsOverrideUpdate,
    StatusOverrideUpdate,
)
from packages.billing.models.domain.enums import SubscriptionStatus
from packages.billing.providers.payment.factory import get_payment_provider
from packages.billing.services.plans_service import get_plan_catalog

logger = get_logger(__name__)


class SubscriptionService:
    """Service for subscription management."""

    def __init__(self):
        self.subscription_repo = SubscriptionRepository()
        self.payment = get_payment_provider()
        self.catalog = get_plan_catalog()

    @trace_span
    async def start_checkout(
        self,
        account_id: str,
        price_id: str,
        customer_email: Optional[str] = None,
    ) -> CheckoutSession:
        """
        Start a hosted checkout for a paid plan.

        Plan, status and limits are not touched here; they change only when
        Stripe confirms the subscription via webhook.

        Raises:
            ValidationError: price_id is not one of the paid plans
            ExternalProviderError: Stripe call failed
        """
        plan = self.catalog.plan_for_price_id(price_id)
        if not plan.is_paid():
            raise ValidationError(f"Price {price_id} is not a purchasable plan")

        subscription = await self.subscription_repo.get_or_create(account_id)
        customer_id = await self._ensure_customer(subscription, customer_email)

        session = await self.payment.create_checkout_session(
            account_id=account_id,
            customer_id=customer_id,
            price_id=price_id,
            success_url=f"{settings.frontend_url}/payment/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{settings.frontend_url}/payment/cancel",
        )

        logger.info(
            f"Created checkout session for account {account_id}",
            extra={
                "account_id": account_id,
                "plan": plan.value,
                "session_id": session.session_id,
            },
        )
        return session

    async def _ensure_customer(
        self, subscription: Subscription, email: Optional[str]
    ) -> str:
        """Return the linked Stripe customer, creating and linking one if needed."""
        if subscription.stripe_customer_id:
            logger.info(
                "Reusing existing Stripe customer",
                extra={
                    "account_id": subscription.account_id,
                    "customer_id": subscription.stripe_customer_id,
                },
            )
            return subscription.stripe_customer_id

        customer_id = await self.payment.create_customer(
            account_id=subscription.account_id, email=email
        )
        linked = await self.subscription_repo.set_stripe_customer_id_if_missing(
            subscription.account_id, customer_id
        )
        if linked:
            return customer_id

        # A concurrent checkout linked its customer first; use theirs
        current = await self.subscription_repo.get_by_account_id(
            subscription.account_id
        )
        logger.warning(
            "Lost customer link race, discarding new Stripe customer",
            extra={
                "account_id": subscription.account_id,
                "discarded_customer_id": customer_id,
                "customer_id": current.stripe_customer_id,
            },
        )
        return current.stripe_customer_id

    @trace_span
    @readonly
    async def get_status(self, account_id: str) -> SubscriptionStatusView:
        """
        Current plan, status and usage for an account.

        Pure read: accounts without a row get free defaults and no row is created.
        """
        subscription = await self.subscription_repo.get_by_account_id(account_id)
        if subscription is None:
            return SubscriptionStatusView.free_defaults()
        return SubscriptionStatusView.from_subscription(subscription)

    @trace_span
    async def override_limits(
        self,
        account_id: str,
        profiles_limit: Optional[int] = None,
        proposals_limit: Optional[int] = None,
    ) -> Subscription:
        """Admin: replace one or both quota limits. Usage counters are untouched."""
        if profiles_limit is None and proposals_limit is None:
            raise ValidationError("At least one limit must be provided")

        # Only pass what was given so exclude_unset leaves the other limit alone
        values = {}
        if profiles_limit is not None:
            values["profiles_limit"] = profiles_limit
        if proposals_limit is not None:
            values["proposals_limit"] = proposals_limit
        update_model = LimitsOverrideUpdate(**values)
        updated = await self._apply_admin_update(account_id, update_model)
        logger.info(
            f"Admin overrode limits for account {account_id}",
            extra={"account_id": account_id, **update_model.model_dump(exclude_unset=True)},
        )
        return updated

    @trace_span
    async def override_status(
        self, account_id: str, status: SubscriptionStatus
    ) -> Subscription:
        """Admin: force the subscription status."""
        updated = await self._apply_admin_update(
            account_id, StatusOverrideUpdate(status=status)
        )
        logger.info(
            f"Admin set status {status.value} for account {account_id}",
            extra={"account_id": account_id, "status": status.value},
        )
        return updated

    @retry_on_conflict(max_attempts=settings.webhook_max_conflict_retries)
    async def _apply_admin_update(self, account_id: str, update_model) -> Subscription:
        async with transaction():
            subscription = await self.subscription_repo.get_by_account_id(account_id)
            if subscription is None:
                raise NotFoundError(f"No subscription for account {account_id}")
            return await self.subscription_repo.compare_and_swap(
                subscription.id, subscription.version, update_model
            )
