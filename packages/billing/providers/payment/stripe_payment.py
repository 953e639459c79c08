"""
Stripe implementation of payment provider.

The stripe SDK is synchronous; calls are short and made outside any open
database transaction.
"""

from typing import Optional
import stripe

from common.core.config import settings
from common.core.exceptions import ExternalProviderError
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.billing.models.domain.checkout import CheckoutSession
from packages.billing.providers.payment.interface import PaymentProviderInterface

logger = get_logger(__name__)


class StripePaymentProvider(PaymentProviderInterface):
    """Stripe-based payment implementation."""

    def __init__(self):
        """Initialize Stripe with API credentials."""
        stripe.api_key = settings.stripe_secret_key

    @trace_span
    async def create_customer(
        self,
        account_id: str,
        email: Optional[str] = None,
    ) -> str:
        """Create a Stripe customer."""
        try:
            customer = stripe.Customer.create(
                email=email,
                metadata={"account_id": account_id},
            )
        except stripe.StripeError as e:
            logger.error(
                f"Failed to create Stripe customer: {str(e)}",
                extra={"account_id": account_id, "error": str(e)},
            )
            raise ExternalProviderError(f"Stripe customer creation failed: {e}") from e

        logger.info(
            "Created Stripe customer",
            extra={"account_id": account_id, "customer_id": customer.id},
        )
        return customer.id

    @trace_span
    async def create_checkout_session(
        self,
        account_id: str,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        """Create Stripe checkout session in subscription mode."""
        try:
            session = stripe.checkout.Session.create(
                customer=customer_id,
                payment_method_types=["card"],
                line_items=[
                    {
                        "price": price_id,
                        "quantity": 1,
                    }
                ],
                mode="subscription",
                success_url=success_url,
                cancel_url=cancel_url,
                metadata={"account_id": account_id},
                subscription_data={"metadata": {"account_id": account_id}},
            )
        except stripe.StripeError as e:
            logger.error(
                f"Failed to create checkout session: {str(e)}",
                extra={"account_id": account_id, "error": str(e)},
            )
            raise ExternalProviderError(f"Stripe checkout failed: {e}") from e

        logger.info(
            "Created Stripe checkout session",
            extra={
                "account_id": account_id,
                "price_id": price_id,
                "session_id": session.id,
            },
        )
        return CheckoutSession(session_id=session.id, url=session.url)

    @trace_span
    async def health_check(self) -> bool:
        """Check Stripe API connectivity."""
        try:
            # Verifies the API key works
            stripe.Account.retrieve()
            return True
        except stripe.StripeError as e:
            logger.error(f"Stripe health check failed: {str(e)}")
            return False
