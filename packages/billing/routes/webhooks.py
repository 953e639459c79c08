"""
Webhook endpoints for billing events.

Public endpoints (no auth required) for Stripe webhooks.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Header, HTTPException, Request, status

from common.core.exceptions import AppException
from common.core.otel_axiom_exporter import get_logger
from common.providers.rate_limiter.limiter import limiter
from packages.billing.models.schemas.billing import WebhookResponse
from packages.billing.webhooks.stripe_webhook import handle_stripe_webhook

logger = get_logger(__name__)

router = APIRouter()


@router.post("/webhooks/stripe", response_model=WebhookResponse)
@limiter.exempt
async def stripe_webhook(
    request: Request,
    stripe_signature: Annotated[Optional[str], Header()] = None,
):
    """
    Receive webhook events from Stripe payment platform.

    No authentication required - webhook signature validated internally.
    Non-2xx responses make Stripe retry the delivery.
    """
    # Raw body: the signature covers the exact bytes Stripe sent
    payload = await request.body()
    try:
        result = await handle_stripe_webhook(payload, stripe_signature)
    except AppException:
        raise
    except Exception as e:
        logger.error(
            f"Failed to process Stripe webhook: {str(e)}", extra={"error": str(e)}
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed",
        )
    return WebhookResponse(outcome=result.outcome)
