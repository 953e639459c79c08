"""
API schemas for billing operations.

Request and response models for billing endpoints.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, model_validator

from packages.billing.models.domain.enums import (
    SubscriptionPlan,
    SubscriptionStatus,
    UsageKind,
    WebhookOutcome,
)


# ============================================================================
# Checkout Schemas
# ============================================================================


class CheckoutSessionRequest(BaseModel):
    """Request to create a checkout session."""

    price_id: str = Field(..., min_length=1, description="Stripe price ID of a paid plan")
    customer_email: Optional[str] = None


class CheckoutSessionResponse(BaseModel):
    """Response with checkout URL."""

    session_id: str
    url: str = Field(..., description="Stripe checkout session URL")


# ============================================================================
# Subscription Schemas
# ============================================================================


class SubscriptionStatusResponse(BaseModel):
    """Current subscription status and usage."""

    status: SubscriptionStatus
    plan: SubscriptionPlan
    profiles_used: int
    profiles_limit: int
    proposals_used: int
    proposals_limit: int
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: Optional[datetime] = None


# ============================================================================
# Usage Schemas
# ============================================================================


class QuotaStatusResponse(BaseModel):
    """Quota status for one resource kind."""

    allowed: bool
    kind: UsageKind
    current_usage: int
    limit: int
    remaining: int
    needs_upgrade: bool
    plan: SubscriptionPlan
    message: Optional[str] = None


# ============================================================================
# Webhook Schemas
# ============================================================================


class WebhookResponse(BaseModel):
    """Acknowledgement returned to Stripe."""

    received: bool = True
    outcome: WebhookOutcome


# ============================================================================
# Admin Schemas
# ============================================================================


class OverrideLimitsRequest(BaseModel):
    """Request to override quota limits."""

    profiles_limit: Optional[int] = Field(default=None, ge=0)
    proposals_limit: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def require_one_limit(self):
        if self.profiles_limit is None and self.proposals_limit is None:
            raise ValueError("profiles_limit or proposals_limit is required")
        return self


class OverrideStatusRequest(BaseModel):
    """Request to override subscription status."""

    status: SubscriptionStatus


class AdminSubscriptionResponse(BaseModel):
    """Subscription as seen by admins."""

    account_id: str
    plan: SubscriptionPlan
    status: SubscriptionStatus
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    profiles_used: int
    profiles_limit: int
    proposals_used: int
    proposals_limit: int
    current_period_end: Optional[datetime] = None
    updated_at: Optional[datetime] = None
