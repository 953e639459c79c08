"""
Domain models for processed webhook events (dedup tracking).
"""

from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, ConfigDict, field_validator

from packages.billing.models.domain.enums import WebhookOutcome


class ProcessedWebhookEvent(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    event_id: str
    event_type: str
    outcome: WebhookOutcome
    account_id: Optional[str] = None
    processed_at: Optional[datetime] = None

    @field_validator("processed_at", mode="after")
    @classmethod
    def ensure_utc(cls, v):
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class ProcessedWebhookEventCreateModel(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    event_id: str
    event_type: str
    outcome: WebhookOutcome
    account_id: Optional[str] = None
