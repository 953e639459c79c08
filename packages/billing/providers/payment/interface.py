"""
Interface for payment providers.

Abstracts payment processing away from specific platforms (Stripe, Paddle, etc.)
"""

from abc import ABC, abstractmethod
from typing import Optional

from packages.billing.models.domain.checkout import CheckoutSession


class PaymentProviderInterface(ABC):
    """Abstract interface for payment providers."""

    @abstractmethod
    async def create_customer(
        self,
        account_id: str,
        email: Optional[str] = None,
    ) -> str:
        """
        Create a customer in the payment provider.

        Args:
            account_id: Internal account ID, stored in customer metadata
            email: Customer email

        Returns:
            customer_id: Payment provider customer ID

        Raises:
            ExternalProviderError: provider call failed
        """
        pass

    @abstractmethod
    async def create_checkout_session(
        self,
        account_id: str,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        """
        Create a hosted checkout session for a recurring subscription.

        The account ID is attached as metadata to both the session and the
        subscription it creates, so webhooks can be correlated back.

        Raises:
            ExternalProviderError: provider call failed
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the payment backend is available and healthy.

        Returns:
            True if healthy, False otherwise
        """
        pass
