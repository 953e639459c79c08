"""
Stripe webhook reconciler.

Turns at-least-once, possibly out-of-order Stripe deliveries into the local
subscription state:

- Signature is verified before anything is parsed or written
- Each event id is applied at most once (processed_webhook_events)
- Events older than the newest applied subscription event are dropped as stale
- Updates carrying an older billing period than the stored one are ignored
- Writes are compare-and-swap on the row version, retried on conflict

Handled events:
- customer.subscription.created / updated: plan, status, period, limits
- customer.subscription.deleted: back to free, cancelled
- invoice.payment_failed: past_due
- invoice.payment_succeeded / invoice.paid: acknowledged, no state change
"""

from typing import Awaitable, Callable, Optional, Tuple

import stripe
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError

from common.core.config import settings
from common.core.exceptions import ValidationError, WebhookSignatureError
from common.core.otel_axiom_exporter import get_logger, trace_span
from common.db.scoped import transaction
from common.db.transaction_utils import retry_on_conflict
from packages.billing.models.domain.enums import (
    SubscriptionPlan,
    SubscriptionStatus,
    WebhookOutcome,
)
from packages.billing.models.domain.stripe_webhooks import (
    StripeInvoiceData,
    StripeSubscriptionData,
    StripeWebhookPayload,
    StripeWebhookType,
    WebhookResult,
)
from packages.billing.models.domain.subscription import (
    Subscription,
    SubscriptionCancelUpdate,
    SubscriptionPaymentUpdate,
    SubscriptionSyncUpdate,
)
from packages.billing.models.domain.webhook_event import (
    ProcessedWebhookEventCreateModel,
)
from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.billing.repositories.webhook_event_repository import (
    WebhookEventRepository,
)
from packages.billing.services.plans_service import get_plan_catalog

logger = get_logger(__name__)

# (outcome, account_id)
ReconcileResult = Tuple[WebhookOutcome, Optional[str]]


@trace_span
async def handle_stripe_webhook(
    payload: bytes, signature: Optional[str]
) -> WebhookResult:
    """
    Verify, deduplicate and apply one Stripe webhook delivery.

    Raises:
        WebhookSignatureError: missing or invalid Stripe-Signature
        ValidationError: body is not a well-formed Stripe event
        ConflictError: the row kept changing underneath us past the retry budget
    """
    _verify_signature(payload, signature)
    event = _parse_event(payload)

    logger.info(
        f"Received Stripe webhook: {event.type}",
        extra={
            "event_id": event.id,
            "event_type": event.type,
            "livemode": event.livemode,
        },
    )

    try:
        result = await _process_event(event)
    except PydanticValidationError as e:
        # Event envelope parsed but its data.object did not
        logger.error(
            f"Invalid {event.type} object in webhook {event.id}",
            extra={"validation_errors": e.errors()},
        )
        raise ValidationError("Invalid webhook payload") from e
    except IntegrityError:
        # A concurrent delivery of the same event committed its dedup row first
        if await WebhookEventRepository().get_by_event_id(event.id) is None:
            raise
        result = WebhookResult(
            event_id=event.id,
            event_type=event.type,
            outcome=WebhookOutcome.DUPLICATE,
        )

    logger.info(
        f"Stripe webhook {event.id} {result.outcome.value}",
        extra={
            "event_id": event.id,
            "event_type": event.type,
            "outcome": result.outcome.value,
            "account_id": result.account_id,
        },
    )
    return result


def _verify_signature(payload: bytes, signature: Optional[str]) -> None:
    if not signature:
        raise WebhookSignatureError("Missing stripe-signature header")

    try:
        stripe.WebhookSignature.verify_header(
            payload,
            signature,
            settings.stripe_webhook_secret,
            tolerance=settings.stripe_webhook_tolerance_seconds,
        )
    except stripe.SignatureVerificationError as e:
        logger.error(f"Stripe webhook signature verification failed: {str(e)}")
        raise WebhookSignatureError("Invalid signature") from e


def _parse_event(payload: bytes) -> StripeWebhookPayload:
    try:
        return StripeWebhookPayload.model_validate_json(payload)
    except PydanticValidationError as e:
        logger.error(
            "Invalid Stripe webhook payload", extra={"validation_errors": e.errors()}
        )
        raise ValidationError("Invalid webhook payload") from e


@retry_on_conflict(max_attempts=settings.webhook_max_conflict_retries)
async def _process_event(event: StripeWebhookPayload) -> WebhookResult:
    """One attempt: dedup check, reconcile and dedup insert in one transaction."""
    subscription_repo = SubscriptionRepository()
    event_repo = WebhookEventRepository()

    async with transaction():
        if await event_repo.get_by_event_id(event.id) is not None:
            return WebhookResult(
                event_id=event.id,
                event_type=event.type,
                outcome=WebhookOutcome.DUPLICATE,
            )

        handler = _HANDLERS.get(event.type)
        if handler is None:
            logger.info(f"Unhandled Stripe webhook type: {event.type}")
            outcome, account_id = WebhookOutcome.IGNORED, None
        else:
            outcome, account_id = await handler(event, subscription_repo)

        await event_repo.record(
            ProcessedWebhookEventCreateModel(
                event_id=event.id,
                event_type=event.type,
                outcome=outcome,
                account_id=account_id,
            )
        )

    return WebhookResult(
        event_id=event.id,
        event_type=event.type,
        outcome=outcome,
        account_id=account_id,
    )


async def _correlate(
    repo: SubscriptionRepository,
    customer_id: Optional[str],
    metadata_account_id: Optional[str],
) -> Tuple[Optional[Subscription], bool]:
    """
    Find the local subscription an event refers to.

    Returns (subscription, needs_link). needs_link is True when the row was
    found through the checkout metadata and the customer id must be stored.
    """
    if customer_id:
        subscription = await repo.get_by_stripe_customer_id(customer_id)
        if subscription:
            return subscription, False

    if customer_id and metadata_account_id:
        subscription = await repo.get_by_account_id(metadata_account_id)
        if subscription and subscription.stripe_customer_id is None:
            logger.info(
                f"Linking Stripe customer {customer_id} to account {metadata_account_id}",
                extra={"customer_id": customer_id, "account_id": metadata_account_id},
            )
            return subscription, True
        if subscription:
            logger.warning(
                "Metadata account already linked to a different customer",
                extra={
                    "customer_id": customer_id,
                    "account_id": metadata_account_id,
                    "linked_customer_id": subscription.stripe_customer_id,
                },
            )

    return None, False


def _is_stale(subscription: Subscription, event: StripeWebhookPayload) -> bool:
    return (
        subscription.last_event_at is not None
        and event.created_at < subscription.last_event_at
    )


async def _handle_subscription_changed(
    event: StripeWebhookPayload, repo: SubscriptionRepository
) -> ReconcileResult:
    """customer.subscription.created / customer.subscription.updated."""
    data = StripeSubscriptionData.model_validate(event.data.object)
    subscription, needs_link = await _correlate(
        repo, data.customer, data.metadata.account_id
    )
    if subscription is None:
        logger.info(
            f"No subscription for Stripe customer {data.customer}",
            extra={"customer_id": data.customer, "event_id": event.id},
        )
        return WebhookOutcome.IGNORED, None
    if _is_stale(subscription, event):
        return WebhookOutcome.STALE, subscription.account_id

    same_subscription = subscription.stripe_subscription_id == data.id
    if subscription.status == SubscriptionStatus.CANCELLED and same_subscription:
        # Deleted subscriptions stay deleted; only a new checkout re-activates
        logger.info(
            f"Ignoring update for cancelled subscription {data.id}",
            extra={"account_id": subscription.account_id, "event_id": event.id},
        )
        return WebhookOutcome.IGNORED, subscription.account_id

    # An older period is either a replay for the current subscription or a
    # late event for one that has since been replaced
    period_start = data.period_start()
    if (
        period_start is not None
        and subscription.current_period_start is not None
        and period_start < subscription.current_period_start
    ):
        reason = "out-of-order period" if same_subscription else "superseded subscription"
        logger.info(
            f"Ignoring {reason} for subscription {data.id}",
            extra={
                "account_id": subscription.account_id,
                "event_id": event.id,
                "current_subscription_id": subscription.stripe_subscription_id,
            },
        )
        return WebhookOutcome.IGNORED, subscription.account_id

    price_id = data.price_id()
    plan = get_plan_catalog().plan_for_price_id(price_id)
    period_end = data.period_end()
    values = dict(
        plan=plan,
        status=SubscriptionStatus.from_stripe(data.status),
        stripe_subscription_id=data.id,
        stripe_price_id=price_id,
        current_period_start=period_start,
        current_period_end=period_end,
        cancel_at_period_end=period_end if data.cancel_at_period_end else None,
        last_event_at=event.created_at,
        **plan.get_quota_limits(),
    )
    if needs_link:
        values["stripe_customer_id"] = data.customer

    await repo.compare_and_swap(
        subscription.id, subscription.version, SubscriptionSyncUpdate(**values)
    )
    logger.info(
        f"Synced account {subscription.account_id} to {plan.value}/{values['status'].value}",
        extra={
            "account_id": subscription.account_id,
            "subscription_id": data.id,
            "stripe_status": data.status,
        },
    )
    return WebhookOutcome.APPLIED, subscription.account_id


async def _handle_subscription_deleted(
    event: StripeWebhookPayload, repo: SubscriptionRepository
) -> ReconcileResult:
    """customer.subscription.deleted. Usage counters are kept."""
    data = StripeSubscriptionData.model_validate(event.data.object)
    subscription, needs_link = await _correlate(
        repo, data.customer, data.metadata.account_id
    )
    if subscription is None:
        logger.info(
            f"No subscription for Stripe customer {data.customer}",
            extra={"customer_id": data.customer, "event_id": event.id},
        )
        return WebhookOutcome.IGNORED, None
    if _is_stale(subscription, event):
        return WebhookOutcome.STALE, subscription.account_id

    if (
        subscription.stripe_subscription_id is not None
        and subscription.stripe_subscription_id != data.id
    ):
        # A superseded subscription ended; the current one is unaffected
        logger.info(
            f"Ignoring deletion of superseded subscription {data.id}",
            extra={"account_id": subscription.account_id, "event_id": event.id},
        )
        return WebhookOutcome.IGNORED, subscription.account_id

    values = dict(
        status=SubscriptionStatus.CANCELLED,
        plan=SubscriptionPlan.FREE,
        last_event_at=event.created_at,
        **SubscriptionPlan.FREE.get_quota_limits(),
    )
    if needs_link:
        values["stripe_customer_id"] = data.customer

    await repo.compare_and_swap(
        subscription.id, subscription.version, SubscriptionCancelUpdate(**values)
    )
    logger.info(
        f"Subscription {data.id} deleted, account {subscription.account_id} back on free",
        extra={"account_id": subscription.account_id, "subscription_id": data.id},
    )
    return WebhookOutcome.APPLIED, subscription.account_id


async def _handle_invoice(
    event: StripeWebhookPayload, repo: SubscriptionRepository
) -> ReconcileResult:
    """
    invoice.payment_failed marks past_due; paid invoices change nothing.

    Invoices are checked against last_event_at but never move it, so a late
    subscription event is not discarded because an invoice was delivered first.
    """
    invoice = StripeInvoiceData.model_validate(event.data.object)
    subscription, _ = await _correlate(repo, invoice.customer, None)
    if subscription is None:
        logger.info(
            f"No subscription for Stripe customer {invoice.customer}",
            extra={"customer_id": invoice.customer, "event_id": event.id},
        )
        return WebhookOutcome.IGNORED, None
    if _is_stale(subscription, event):
        return WebhookOutcome.STALE, subscription.account_id

    if event.type == StripeWebhookType.INVOICE_PAYMENT_FAILED.value:
        if subscription.status == SubscriptionStatus.CANCELLED:
            return WebhookOutcome.IGNORED, subscription.account_id
        update_model = SubscriptionPaymentUpdate(status=SubscriptionStatus.PAST_DUE)
        logger.warning(
            f"Stripe invoice payment failed: {invoice.id}",
            extra={"invoice_id": invoice.id, "account_id": subscription.account_id},
        )
        await repo.compare_and_swap(subscription.id, subscription.version, update_model)

    # Paid invoices: activation is driven by customer.subscription.updated
    return WebhookOutcome.APPLIED, subscription.account_id


_HANDLERS: dict[
    str,
    Callable[[StripeWebhookPayload, SubscriptionRepository], Awaitable[ReconcileResult]],
] = {
    StripeWebhookType.SUBSCRIPTION_CREATED.value: _handle_subscription_changed,
    StripeWebhookType.SUBSCRIPTION_UPDATED.value: _handle_subscription_changed,
    StripeWebhookType.SUBSCRIPTION_DELETED.value: _handle_subscription_deleted,
    StripeWebhookType.INVOICE_PAYMENT_SUCCEEDED.value: _handle_invoice,
    StripeWebhookType.INVOICE_PAID.value: _handle_invoice,
    StripeWebhookType.INVOICE_PAYMENT_FAILED.value: _handle_invoice,
}
