"""
Admin API routes.

Manual overrides of subscription limits and status, for support staff.
"""

from fastapi import APIRouter, Depends

from packages.auth.dependencies import get_current_admin_account
from packages.auth.models.domain.authenticated_account import AuthenticatedAccount
from packages.billing.services.subscription_service import SubscriptionService
from packages.billing.models.schemas.billing import (
    AdminSubscriptionResponse,
    OverrideLimitsRequest,
    OverrideStatusRequest,
)

router = APIRouter()


@router.post(
    "/subscriptions/{account_id}/override-limits",
    response_model=AdminSubscriptionResponse,
)
async def override_limits(
    account_id: str,
    request: OverrideLimitsRequest,
    admin: AuthenticatedAccount = Depends(get_current_admin_account),
):
    """Replace one or both quota limits. Usage counters are left as they are."""
    subscription_service = SubscriptionService()
    subscription = await subscription_service.override_limits(
        account_id,
        profiles_limit=request.profiles_limit,
        proposals_limit=request.proposals_limit,
    )
    return AdminSubscriptionResponse(**subscription.model_dump())


@router.post(
    "/subscriptions/{account_id}/override-status",
    response_model=AdminSubscriptionResponse,
)
async def override_status(
    account_id: str,
    request: OverrideStatusRequest,
    admin: AuthenticatedAccount = Depends(get_current_admin_account),
):
    """Force the subscription status."""
    subscription_service = SubscriptionService()
    subscription = await subscription_service.override_status(
        account_id, request.status
    )
    return AdminSubscriptionResponse(**subscription.model_dump())
