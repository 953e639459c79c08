"""
Billing enums - strongly typed enumerations for subscription and billing states.
"""

from enum import Enum


class SubscriptionStatus(str, Enum):
    """
    Local subscription status.

    Written only by webhook reconciliation and admin overrides.
    Flow: inactive -> active <-> past_due -> cancelled
    """

    INACTIVE = "inactive"  # No paid subscription (new account or unknown provider state)
    ACTIVE = "active"  # Subscription is active and paid
    PAST_DUE = "past_due"  # Latest invoice payment failed
    CANCELLED = "cancelled"  # Subscription deleted at the provider (terminal)

    @classmethod
    def from_stripe(cls, stripe_status: str) -> "SubscriptionStatus":
        """Map a Stripe subscription status onto the local vocabulary."""
        mapping = {
            "active": cls.ACTIVE,
            "canceled": cls.CANCELLED,
            "past_due": cls.PAST_DUE,
        }
        return mapping.get(stripe_status, cls.INACTIVE)


class SubscriptionPlan(str, Enum):
    """
    Subscription plans.

    Paid plans map to Stripe price IDs configured in settings.
    """

    FREE = "free"  # $0/mo
    BASIC = "basic"  # $29.99/mo
    PREMIUM = "premium"  # $99.99/mo

    def get_price_cents(self) -> int:
        """Get monthly price in cents."""
        prices = {
            SubscriptionPlan.FREE: 0,
            SubscriptionPlan.BASIC: 2999,
            SubscriptionPlan.PREMIUM: 9999,
        }
        return prices[self]

    def get_quota_limits(self) -> dict[str, int]:
        """
        Get usage quota limits for this plan.

        Quotas are lifetime counters (not reset per billing period):
        - profiles_limit: Number of profiles the account may create
        - proposals_limit: Number of proposals the account may create
        """
        limits = {
            SubscriptionPlan.FREE: {"profiles_limit": 2, "proposals_limit": 5},
            SubscriptionPlan.BASIC: {"profiles_limit": 5, "proposals_limit": 15},
            SubscriptionPlan.PREMIUM: {"profiles_limit": 10, "proposals_limit": 50},
        }
        return limits[self]

    def is_paid(self) -> bool:
        return self != SubscriptionPlan.FREE


class UsageKind(str, Enum):
    """Metered resource kinds."""

    PROFILE = "profile"
    PROPOSAL = "proposal"

    @property
    def used_field(self) -> str:
        return f"{self.value}s_used"

    @property
    def limit_field(self) -> str:
        return f"{self.value}s_limit"


class WebhookOutcome(str, Enum):
    """What happened to an inbound webhook event."""

    APPLIED = "applied"  # State change (or explicit no-op) committed
    IGNORED = "ignored"  # Unknown type, no matching account, or guarded transition
    DUPLICATE = "duplicate"  # Event id already processed
    STALE = "stale"  # Older than the newest event already applied
