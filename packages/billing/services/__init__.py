"""Billing services."""

from packages.billing.services.subscription_service import SubscriptionService
from packages.billing.services.quota_service import QuotaService
from packages.billing.services.plans_service import PlanCatalog, get_plan_catalog

__all__ = [
    "SubscriptionService",
    "QuotaService",
    "PlanCatalog",
    "get_plan_catalog",
]
