"""
Domain models for Stripe webhook payloads.

Strongly-typed Pydantic models for the parts of Stripe events we reconcile.
Unknown fields are ignored so new API versions don't break parsing.
"""

from datetime import datetime, timezone
from typing import Optional, Any
from enum import Enum
from pydantic import BaseModel, Field

from packages.billing.models.domain.enums import WebhookOutcome


class StripeWebhookType(str, Enum):
    """Stripe webhook event types we act on."""

    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"

    INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
    INVOICE_PAID = "invoice.paid"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"


class StripeMetadata(BaseModel):
    """Stripe metadata (we store account_id here at checkout)."""

    account_id: Optional[str] = None


class StripePrice(BaseModel):
    id: str


class StripeSubscriptionItem(BaseModel):
    """Subscription item. Newer API versions carry the period here."""

    price: StripePrice
    current_period_start: Optional[int] = None
    current_period_end: Optional[int] = None


class StripeSubscriptionItems(BaseModel):
    data: list[StripeSubscriptionItem] = Field(default_factory=list)


class StripeSubscriptionData(BaseModel):
    """Stripe subscription object."""

    id: str
    customer: str
    status: str
    current_period_start: Optional[int] = None
    current_period_end: Optional[int] = None
    cancel_at_period_end: bool = False
    items: StripeSubscriptionItems = Field(default_factory=StripeSubscriptionItems)
    metadata: StripeMetadata = Field(default_factory=StripeMetadata)

    def _first_item(self) -> Optional[StripeSubscriptionItem]:
        return self.items.data[0] if self.items.data else None

    def price_id(self) -> Optional[str]:
        item = self._first_item()
        return item.price.id if item else None

    def period_start(self) -> Optional[datetime]:
        item = self._first_item()
        value = self.current_period_start
        if value is None and item:
            value = item.current_period_start
        return from_unix(value)

    def period_end(self) -> Optional[datetime]:
        item = self._first_item()
        value = self.current_period_end
        if value is None and item:
            value = item.current_period_end
        return from_unix(value)


class StripeInvoiceData(BaseModel):
    """Stripe invoice object."""

    id: str
    customer: Optional[str] = None
    subscription: Optional[str] = None
    metadata: StripeMetadata = Field(default_factory=StripeMetadata)


class StripeEventData(BaseModel):
    """Stripe event data wrapper."""

    object: dict[str, Any]  # The actual object (subscription, invoice, etc.)


class StripeWebhookPayload(BaseModel):
    """Complete Stripe webhook payload."""

    id: str
    type: str
    data: StripeEventData
    created: int
    livemode: bool = False

    @property
    def created_at(self) -> datetime:
        return from_unix(self.created)


class WebhookResult(BaseModel):
    """Outcome of handling one webhook delivery."""

    event_id: str
    event_type: str
    outcome: WebhookOutcome
    account_id: Optional[str] = None


def from_unix(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)
