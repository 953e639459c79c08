"""Domain models for billing."""

from packages.billing.models.domain.enums import (
    SubscriptionStatus,
    SubscriptionPlan,
    UsageKind,
    WebhookOutcome,
)
from packages.billing.models.domain.subscription import (
    Subscription,
    SubscriptionCreateModel,
    SubscriptionStatusView,
)
from packages.billing.models.domain.usage import QuotaCheck
from packages.billing.models.domain.checkout import CheckoutSession

__all__ = [
    # Enums
    "SubscriptionStatus",
    "SubscriptionPlan",
    "UsageKind",
    "WebhookOutcome",
    # Subscription
    "Subscription",
    "SubscriptionCreateModel",
    "SubscriptionStatusView",
    # Usage
    "QuotaCheck",
    # Checkout
    "CheckoutSession",
]
