"""
Plans API routes.

Public endpoint for retrieving available subscription plans.
"""

from fastapi import APIRouter

from packages.billing.services.plans_service import get_plan_catalog
from packages.billing.models.domain.plans import PlansResponse

router = APIRouter()


@router.get("", response_model=PlansResponse)
async def get_plans():
    """
    Get all available subscription plans.

    Returns pricing, limits, and features for each plan.
    This endpoint is public (no auth required) for pricing pages.
    """
    return get_plan_catalog().get_all_plans()
