"""Plan catalog: limits, pricing and Stripe price mapping for each plan."""

from functools import lru_cache
from typing import Optional

from common.core.config import settings
from common.core.otel_axiom_exporter import trace_span, get_logger
from packages.billing.models.domain.enums import SubscriptionPlan
from packages.billing.models.domain.plans import PlanInfo, PlanLimits, PlansResponse

logger = get_logger(__name__)

# Plan metadata that doesn't come from Stripe or the enum
PLAN_METADATA = {
    SubscriptionPlan.FREE: {
        "name": "Free",
        "description": "Try it out",
    },
    SubscriptionPlan.BASIC: {
        "name": "Basic",
        "description": "For active freelancers",
    },
    SubscriptionPlan.PREMIUM: {
        "name": "Premium",
        "description": "For agencies and power users",
    },
}


class PlanCatalog:
    """
    Static mapping between plans, their limits and Stripe price IDs.

    Pure lookups, no I/O. Unknown or missing price IDs resolve to the free
    plan so a misconfigured price can never grant paid limits.
    """

    def __init__(self, basic_price_id: str, premium_price_id: str):
        self._price_ids = {
            SubscriptionPlan.BASIC: basic_price_id,
            SubscriptionPlan.PREMIUM: premium_price_id,
        }
        self._plans_by_price = {
            price_id: plan for plan, price_id in self._price_ids.items()
        }

    def limits_for(self, plan: SubscriptionPlan) -> PlanLimits:
        return PlanLimits(**plan.get_quota_limits())

    def price_id_for(self, plan: SubscriptionPlan) -> Optional[str]:
        return self._price_ids.get(plan)

    def plan_for_price_id(self, price_id: Optional[str]) -> SubscriptionPlan:
        if price_id is None:
            return SubscriptionPlan.FREE
        plan = self._plans_by_price.get(price_id)
        if plan is None:
            logger.warning(
                f"Unknown Stripe price {price_id}, treating as free",
                extra={"price_id": price_id},
            )
            return SubscriptionPlan.FREE
        return plan

    @trace_span
    def get_all_plans(self) -> PlansResponse:
        """Get all available plans with pricing and limits."""
        return PlansResponse(plans=[self._build_plan_info(p) for p in SubscriptionPlan])

    def _build_plan_info(self, plan: SubscriptionPlan) -> PlanInfo:
        limits = self.limits_for(plan)
        metadata = PLAN_METADATA[plan]
        price_cents = plan.get_price_cents()

        price_dollars = price_cents / 100
        if price_cents == 0:
            price_formatted = "$0"
        elif price_dollars == int(price_dollars):
            price_formatted = f"${int(price_dollars)}"
        else:
            price_formatted = f"${price_dollars:.2f}"

        return PlanInfo(
            plan=plan.value,
            name=metadata["name"],
            description=metadata["description"],
            price_cents=price_cents,
            price_formatted=price_formatted,
            billing_period="month",
            stripe_price_id=self.price_id_for(plan),
            limits=limits,
            features=[
                f"{limits.profiles_limit} profile{'s' if limits.profiles_limit != 1 else ''}",
                f"{limits.proposals_limit} proposal{'s' if limits.proposals_limit != 1 else ''}",
            ],
        )


@lru_cache
def get_plan_catalog() -> PlanCatalog:
    return PlanCatalog(
        basic_price_id=settings.stripe_price_id_basic,
        premium_price_id=settings.stripe_price_id_premium,
    )
