"""
Domain models for usage tracking and quotas.
"""

from typing import Optional
from pydantic import BaseModel

from packages.billing.models.domain.enums import SubscriptionPlan, UsageKind


class QuotaCheck(BaseModel):
    """
    Result of a quota check.

    Used to determine if an operation is allowed and provide
    user-friendly feedback about usage limits.
    """

    allowed: bool
    kind: UsageKind
    current_usage: int
    limit: int
    remaining: int
    # Only free accounts are told to upgrade; paid accounts at their limit
    # can tell the two cases apart through ``plan``
    needs_upgrade: bool
    plan: SubscriptionPlan

    def get_user_message(self) -> Optional[str]:
        """Get user-friendly message about quota status."""
        if self.allowed:
            return None
        message = f"{self.kind.value.capitalize()} limit reached ({self.current_usage}/{self.limit})."
        if self.needs_upgrade:
            message += " Upgrade your plan to continue."
        return message
