"""
Database entity for subscriptions.
"""

from sqlalchemy import Column, String, DateTime, Integer, Index, CheckConstraint
from sqlalchemy.sql import func

from common.core.constants import ACCOUNT_ID_MAX_LENGTH
from common.db.base import Base, BigIntegerType


class SubscriptionEntity(Base):
    """
    Account subscription database entity.

    Stores plan, status, usage counters and external platform IDs.
    Exactly one row per account, created lazily on first need.
    """

    __tablename__ = "subscriptions"

    id = Column(BigIntegerType, primary_key=True, index=True, autoincrement=True)
    # Opaque owning key from the auth gateway
    account_id = Column(
        String(ACCOUNT_ID_MAX_LENGTH), nullable=False, unique=True, index=True
    )

    # Subscription details
    plan = Column(
        String(20), nullable=False, server_default="free", index=True
    )  # free, basic, premium
    status = Column(
        String(20), nullable=False, server_default="inactive", index=True
    )  # inactive, active, cancelled, past_due

    # External platform IDs
    stripe_customer_id = Column(String(255), nullable=True, unique=True, index=True)
    stripe_subscription_id = Column(String(255), nullable=True, index=True)
    stripe_price_id = Column(String(255), nullable=True)

    # Billing cycle
    current_period_start = Column(DateTime(timezone=True), nullable=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)
    cancel_at_period_end = Column(DateTime(timezone=True), nullable=True)

    # Usage counters and limits
    profiles_used = Column(Integer, nullable=False, server_default="0")
    proposals_used = Column(Integer, nullable=False, server_default="0")
    profiles_limit = Column(Integer, nullable=False)
    proposals_limit = Column(Integer, nullable=False)

    # Webhook ordering and optimistic concurrency
    last_event_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False, server_default="0")

    # Standard timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("profiles_used >= 0", name="ck_subscription_profiles_used"),
        CheckConstraint("proposals_used >= 0", name="ck_subscription_proposals_used"),
        Index("idx_subscription_status_plan", "status", "plan"),
    )
