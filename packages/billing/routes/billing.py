"""
Billing API routes.

Protected endpoints for subscription status, quotas and checkout.
"""

from fastapi import APIRouter, Depends

from packages.auth.dependencies import get_current_account
from packages.auth.models.domain.authenticated_account import AuthenticatedAccount
from packages.billing.models.domain.enums import UsageKind
from packages.billing.services.subscription_service import SubscriptionService
from packages.billing.services.quota_service import QuotaService
from packages.billing.models.schemas.billing import (
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    SubscriptionStatusResponse,
    QuotaStatusResponse,
)

router = APIRouter()


# ============================================================================
# Subscription Status
# ============================================================================


@router.get("/status", response_model=SubscriptionStatusResponse)
async def get_subscription_status(
    current_account: AuthenticatedAccount = Depends(get_current_account),
):
    """
    Get current subscription status and usage for the account.

    Accounts that never subscribed get free-plan defaults.
    """
    subscription_service = SubscriptionService()
    view = await subscription_service.get_status(current_account.account_id)
    return SubscriptionStatusResponse(**view.model_dump())


# ============================================================================
# Usage Limits
# ============================================================================


@router.get("/usage-limits/{kind}", response_model=QuotaStatusResponse)
async def get_usage_limits(
    kind: UsageKind,
    current_account: AuthenticatedAccount = Depends(get_current_account),
):
    """
    Check whether the account can create another profile or proposal.

    Never consumes quota.
    """
    quota_service = QuotaService()
    check = await quota_service.check_quota(current_account.account_id, kind)
    return QuotaStatusResponse(**check.model_dump(), message=check.get_user_message())


# ============================================================================
# Checkout
# ============================================================================


@router.post("/checkout", response_model=CheckoutSessionResponse)
async def create_checkout_session(
    request: CheckoutSessionRequest,
    current_account: AuthenticatedAccount = Depends(get_current_account),
):
    """
    Create a Stripe checkout session for a paid plan.

    The plan only changes once Stripe confirms the subscription via webhook.
    """
    subscription_service = SubscriptionService()
    session = await subscription_service.start_checkout(
        account_id=current_account.account_id,
        price_id=request.price_id,
        customer_email=request.customer_email,
    )
    return CheckoutSessionResponse(session_id=session.session_id, url=session.url)
