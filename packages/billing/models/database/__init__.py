"""Database models for billing."""

from packages.billing.models.database.subscription import SubscriptionEntity
from packages.billing.models.database.webhook_event import ProcessedWebhookEventEntity

__all__ = [
    "SubscriptionEntity",
    "ProcessedWebhookEventEntity",
]
