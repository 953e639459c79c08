"""
Database entity for processed webhook events.
"""

from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func

from common.core.constants import ACCOUNT_ID_MAX_LENGTH
from common.db.base import Base, BigIntegerType


class ProcessedWebhookEventEntity(Base):
    """
    Dedup log for inbound webhooks.

    The unique event_id makes a redelivered event a no-op. Only tracking
    fields are stored, never the payload.
    """

    __tablename__ = "processed_webhook_events"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    event_id = Column(String(255), nullable=False, unique=True, index=True)
    event_type = Column(String(100), nullable=False)
    outcome = Column(String(20), nullable=False)  # applied, ignored, stale
    account_id = Column(String(ACCOUNT_ID_MAX_LENGTH), nullable=True, index=True)
    processed_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
