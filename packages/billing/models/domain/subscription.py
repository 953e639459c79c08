"""
Domain models for subscriptions.
"""

from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from packages.billing.models.domain.enums import (
    SubscriptionStatus,
    SubscriptionPlan,
    UsageKind,
)


def _as_utc(v):
    # SQLite drops tzinfo on round-trip; treat naive values as UTC
    if isinstance(v, datetime) and v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


class Subscription(BaseModel):
    """
    Account subscription domain model.

    One row per account, holding:
    - Plan (Free/Basic/Premium) and status
    - Usage counters and the limits they are checked against
    - External IDs for Stripe
    - Ordering/concurrency bookkeeping (last_event_at, version)
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    account_id: str

    plan: SubscriptionPlan
    status: SubscriptionStatus

    # External platform IDs
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    stripe_price_id: Optional[str] = None

    # Billing cycle
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: Optional[datetime] = None

    # Usage
    profiles_used: int = 0
    proposals_used: int = 0
    profiles_limit: int
    proposals_limit: int

    # Provider timestamp of the newest applied webhook event
    last_event_at: Optional[datetime] = None
    version: int = 0

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator(
        "current_period_start",
        "current_period_end",
        "cancel_at_period_end",
        "last_event_at",
        "created_at",
        "updated_at",
        mode="after",
    )
    @classmethod
    def ensure_utc(cls, v):
        return _as_utc(v)

    def usage_for(self, kind: UsageKind) -> int:
        return getattr(self, kind.used_field)

    def limit_for(self, kind: UsageKind) -> int:
        return getattr(self, kind.limit_field)


class SubscriptionCreateModel(BaseModel):
    """Model for lazily creating a free subscription row."""

    model_config = ConfigDict(use_enum_values=True)

    account_id: str
    plan: SubscriptionPlan = SubscriptionPlan.FREE
    status: SubscriptionStatus = SubscriptionStatus.INACTIVE
    profiles_used: int = 0
    proposals_used: int = 0
    profiles_limit: int = Field(
        default_factory=lambda: SubscriptionPlan.FREE.get_quota_limits()[
            "profiles_limit"
        ]
    )
    proposals_limit: int = Field(
        default_factory=lambda: SubscriptionPlan.FREE.get_quota_limits()[
            "proposals_limit"
        ]
    )
    version: int = 0


# ============================================================================
# Update models - one per write path, each enumerating the columns it owns.
# Usage counters appear in none of them. Writes dump with exclude_unset,
# so only explicitly passed fields reach the UPDATE.
# ============================================================================


class SubscriptionSyncUpdate(BaseModel):
    """customer.subscription.created / customer.subscription.updated."""

    model_config = ConfigDict(use_enum_values=True)

    plan: SubscriptionPlan
    status: SubscriptionStatus
    stripe_subscription_id: str
    stripe_price_id: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: Optional[datetime] = None
    profiles_limit: int
    proposals_limit: int
    last_event_at: datetime
    # Only set when the row was correlated through metadata
    stripe_customer_id: Optional[str] = None


class SubscriptionCancelUpdate(BaseModel):
    """customer.subscription.deleted."""

    model_config = ConfigDict(use_enum_values=True)

    status: SubscriptionStatus
    plan: SubscriptionPlan
    profiles_limit: int
    proposals_limit: int
    last_event_at: datetime
    stripe_customer_id: Optional[str] = None


class SubscriptionPaymentUpdate(BaseModel):
    """invoice.payment_failed. Leaves last_event_at to subscription events."""

    model_config = ConfigDict(use_enum_values=True)

    status: SubscriptionStatus


class LimitsOverrideUpdate(BaseModel):
    """Admin override of quota limits."""

    profiles_limit: Optional[int] = Field(default=None, ge=0)
    proposals_limit: Optional[int] = Field(default=None, ge=0)


class StatusOverrideUpdate(BaseModel):
    """Admin override of subscription status."""

    model_config = ConfigDict(use_enum_values=True)

    status: SubscriptionStatus


class SubscriptionStatusView(BaseModel):
    """Read-only projection returned by the status query."""

    status: SubscriptionStatus
    plan: SubscriptionPlan
    profiles_used: int
    profiles_limit: int
    proposals_used: int
    proposals_limit: int
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: Optional[datetime] = None

    @classmethod
    def free_defaults(cls) -> "SubscriptionStatusView":
        limits = SubscriptionPlan.FREE.get_quota_limits()
        return cls(
            status=SubscriptionStatus.INACTIVE,
            plan=SubscriptionPlan.FREE,
            profiles_used=0,
            proposals_used=0,
            **limits,
        )

    @classmethod
    def from_subscription(cls, subscription: Subscription) -> "SubscriptionStatusView":
        return cls(
            status=subscription.status,
            plan=subscription.plan,
            profiles_used=subscription.profiles_used,
            profiles_limit=subscription.profiles_limit,
            proposals_used=subscription.proposals_used,
            proposals_limit=subscription.proposals_limit,
            current_period_end=subscription.current_period_end,
            cancel_at_period_end=subscription.cancel_at_period_end,
        )
