"""
Unit tests for the Stripe webhook reconciler.

Events are signed with the test webhook secret and applied against a real
(SQLite) database.
"""

import time

import pytest

from common.core.exceptions import ValidationError, WebhookSignatureError
from packages.billing.models.domain.enums import (
    SubscriptionPlan,
    SubscriptionStatus,
    WebhookOutcome,
)
from packages.billing.models.domain.stripe_webhooks import from_unix
from packages.billing.repositories.subscription_repository import SubscriptionRepository
from packages.billing.repositories.webhook_event_repository import (
    WebhookEventRepository,
)
from packages.billing.webhooks.stripe_webhook import handle_stripe_webhook
from tests.fixtures import (
    PERIOD_1_END,
    PERIOD_1_START,
    PERIOD_2_END,
    PERIOD_2_START,
    build_stripe_event,
    build_stripe_invoice,
    build_stripe_subscription,
    sign_stripe_payload,
)


async def _deliver(payload: str):
    return await handle_stripe_webhook(
        payload.encode("utf-8"), sign_stripe_payload(payload)
    )


async def _current(account_id: str):
    return await SubscriptionRepository().get_by_account_id(account_id)


@pytest.mark.asyncio
class TestSignatureAndParsing:
    async def test_invalid_signature_changes_nothing(self, test_db, linked_subscription):
        payload = build_stripe_event(
            "customer.subscription.created", build_stripe_subscription()
        )

        with pytest.raises(WebhookSignatureError):
            await handle_stripe_webhook(
                payload.encode(), sign_stripe_payload(payload, secret="whsec_wrong")
            )

        assert await WebhookEventRepository().get_by_event_id("evt_test_1") is None
        current = await _current(linked_subscription.account_id)
        assert current.plan == SubscriptionPlan.FREE
        assert current.version == linked_subscription.version

    async def test_missing_signature(self, test_db):
        payload = build_stripe_event("invoice.paid", build_stripe_invoice())

        with pytest.raises(WebhookSignatureError):
            await handle_stripe_webhook(payload.encode(), None)

    async def test_expired_signature_rejected(self, test_db):
        payload = build_stripe_event("invoice.paid", build_stripe_invoice())
        header = sign_stripe_payload(payload, timestamp=int(time.time()) - 3600)

        with pytest.raises(WebhookSignatureError):
            await handle_stripe_webhook(payload.encode(), header)

    async def test_tampered_body_rejected(self, test_db):
        payload = build_stripe_event("invoice.paid", build_stripe_invoice())
        header = sign_stripe_payload(payload)

        with pytest.raises(WebhookSignatureError):
            await handle_stripe_webhook(
                payload.replace("cus_test123", "cus_evil").encode(), header
            )

    async def test_malformed_event_rejected(self, test_db):
        with pytest.raises(ValidationError):
            await _deliver('{"id": "evt_bad"}')

    async def test_malformed_object_rejected(self, test_db, linked_subscription):
        payload = build_stripe_event(
            "customer.subscription.updated", {"object": "subscription"}
        )

        with pytest.raises(ValidationError):
            await _deliver(payload)


@pytest.mark.asyncio
class TestSubscriptionEvents:
    async def test_created_activates_paid_plan(self, test_db, linked_subscription):
        payload = build_stripe_event(
            "customer.subscription.created", build_stripe_subscription()
        )

        result = await _deliver(payload)

        assert result.outcome == WebhookOutcome.APPLIED
        assert result.account_id == linked_subscription.account_id
        current = await _current(linked_subscription.account_id)
        assert current.plan == SubscriptionPlan.BASIC
        assert current.status == SubscriptionStatus.ACTIVE
        assert current.stripe_subscription_id == "sub_test123"
        assert current.stripe_price_id == "price_basic"
        assert current.profiles_limit == 5
        assert current.proposals_limit == 15
        # Usage counters survive plan changes
        assert current.profiles_used == 2
        assert current.proposals_used == 3
        assert current.current_period_start == from_unix(PERIOD_1_START)
        assert current.current_period_end == from_unix(PERIOD_1_END)
        assert current.cancel_at_period_end is None

    async def test_duplicate_delivery_applied_once(self, test_db, linked_subscription):
        payload = build_stripe_event(
            "customer.subscription.created", build_stripe_subscription()
        )

        first = await _deliver(payload)
        after_first = await _current(linked_subscription.account_id)
        second = await _deliver(payload)
        after_second = await _current(linked_subscription.account_id)

        assert first.outcome == WebhookOutcome.APPLIED
        assert second.outcome == WebhookOutcome.DUPLICATE
        assert after_second.version == after_first.version

    async def test_upgrade_to_premium_keeps_usage(self, test_db, basic_subscription):
        now = int(time.time())
        payload = build_stripe_event(
            "customer.subscription.updated",
            build_stripe_subscription(
                customer="cus_basic123",
                subscription_id="sub_basic123",
                price_id="price_premium",
                period_start=now + 60,
                period_end=now + 60 + 30 * 86400,
            ),
        )

        result = await _deliver(payload)

        assert result.outcome == WebhookOutcome.APPLIED
        current = await _current(basic_subscription.account_id)
        assert current.plan == SubscriptionPlan.PREMIUM
        assert current.profiles_limit == 10
        assert current.proposals_limit == 50
        assert current.profiles_used == 1
        assert current.proposals_used == 4

    async def test_unknown_price_falls_back_to_free(self, test_db, linked_subscription):
        payload = build_stripe_event(
            "customer.subscription.created",
            build_stripe_subscription(price_id="price_legacy"),
        )

        await _deliver(payload)

        current = await _current(linked_subscription.account_id)
        assert current.plan == SubscriptionPlan.FREE
        assert current.profiles_limit == 2
        assert current.status == SubscriptionStatus.ACTIVE

    async def test_cancel_at_period_end(self, test_db, linked_subscription):
        payload = build_stripe_event(
            "customer.subscription.updated",
            build_stripe_subscription(cancel_at_period_end=True),
        )

        await _deliver(payload)

        current = await _current(linked_subscription.account_id)
        assert current.cancel_at_period_end == from_unix(PERIOD_1_END)
        assert current.status == SubscriptionStatus.ACTIVE

    async def test_period_read_from_items(self, test_db, linked_subscription):
        payload = build_stripe_event(
            "customer.subscription.created",
            build_stripe_subscription(period_on_items=True),
        )

        await _deliver(payload)

        current = await _current(linked_subscription.account_id)
        assert current.current_period_start == from_unix(PERIOD_1_START)
        assert current.current_period_end == from_unix(PERIOD_1_END)

    async def test_older_period_ignored(self, test_db, linked_subscription):
        renewal = build_stripe_event(
            "customer.subscription.updated",
            build_stripe_subscription(
                period_start=PERIOD_2_START, period_end=PERIOD_2_END
            ),
            event_id="evt_renewal",
            created=2_000,
        )
        # Same timestamp, so only the period guard can reject it
        replay = build_stripe_event(
            "customer.subscription.updated",
            build_stripe_subscription(status="past_due"),
            event_id="evt_old_period",
            created=2_000,
        )

        await _deliver(renewal)
        result = await _deliver(replay)

        assert result.outcome == WebhookOutcome.IGNORED
        current = await _current(linked_subscription.account_id)
        assert current.status == SubscriptionStatus.ACTIVE
        assert current.current_period_end == from_unix(PERIOD_2_END)

    async def test_stale_event_dropped(self, test_db, linked_subscription):
        newer = build_stripe_event(
            "customer.subscription.updated",
            build_stripe_subscription(status="active"),
            event_id="evt_newer",
            created=2_000,
        )
        older = build_stripe_event(
            "customer.subscription.updated",
            build_stripe_subscription(status="past_due"),
            event_id="evt_older",
            created=1_000,
        )

        await _deliver(newer)
        result = await _deliver(older)

        assert result.outcome == WebhookOutcome.STALE
        current = await _current(linked_subscription.account_id)
        assert current.status == SubscriptionStatus.ACTIVE
        assert current.last_event_at == from_unix(2_000)
        recorded = await WebhookEventRepository().get_by_event_id("evt_older")
        assert recorded.outcome == WebhookOutcome.STALE

    async def test_unknown_customer_ignored(self, test_db):
        payload = build_stripe_event(
            "customer.subscription.created",
            build_stripe_subscription(customer="cus_nobody"),
        )

        result = await _deliver(payload)

        assert result.outcome == WebhookOutcome.IGNORED
        assert result.account_id is None
        recorded = await WebhookEventRepository().get_by_event_id("evt_test_1")
        assert recorded.outcome == WebhookOutcome.IGNORED

    async def test_links_customer_through_metadata(self, test_db, free_subscription):
        payload = build_stripe_event(
            "customer.subscription.created",
            build_stripe_subscription(
                customer="cus_meta",
                metadata={"account_id": free_subscription.account_id},
            ),
        )

        result = await _deliver(payload)

        assert result.outcome == WebhookOutcome.APPLIED
        current = await _current(free_subscription.account_id)
        assert current.stripe_customer_id == "cus_meta"
        assert current.plan == SubscriptionPlan.BASIC

    async def test_metadata_does_not_relink_other_customer(
        self, test_db, linked_subscription
    ):
        payload = build_stripe_event(
            "customer.subscription.created",
            build_stripe_subscription(
                customer="cus_other",
                metadata={"account_id": linked_subscription.account_id},
            ),
        )

        result = await _deliver(payload)

        assert result.outcome == WebhookOutcome.IGNORED
        current = await _current(linked_subscription.account_id)
        assert current.stripe_customer_id == "cus_test123"
        assert current.plan == SubscriptionPlan.FREE


@pytest.mark.asyncio
class TestSubscriptionDeleted:
    async def test_deletion_reverts_to_free(self, test_db, basic_subscription):
        payload = build_stripe_event(
            "customer.subscription.deleted",
            build_stripe_subscription(
                customer="cus_basic123",
                subscription_id="sub_basic123",
                status="canceled",
            ),
        )

        result = await _deliver(payload)

        assert result.outcome == WebhookOutcome.APPLIED
        current = await _current(basic_subscription.account_id)
        assert current.status == SubscriptionStatus.CANCELLED
        assert current.plan == SubscriptionPlan.FREE
        assert current.profiles_limit == 2
        assert current.proposals_limit == 5
        # Counters are kept even when above the free limits
        assert current.profiles_used == 1
        assert current.proposals_used == 4

    async def test_cancelled_subscription_not_resurrected(
        self, test_db, basic_subscription
    ):
        deleted = build_stripe_event(
            "customer.subscription.deleted",
            build_stripe_subscription(
                customer="cus_basic123",
                subscription_id="sub_basic123",
                status="canceled",
            ),
            event_id="evt_deleted",
            created=int(time.time()),
        )
        late_update = build_stripe_event(
            "customer.subscription.updated",
            build_stripe_subscription(
                customer="cus_basic123",
                subscription_id="sub_basic123",
                status="active",
                period_start=int(time.time()) + 60,
                period_end=int(time.time()) + 86400,
            ),
            event_id="evt_late_update",
            created=int(time.time()) + 5,
        )

        await _deliver(deleted)
        result = await _deliver(late_update)

        assert result.outcome == WebhookOutcome.IGNORED
        current = await _current(basic_subscription.account_id)
        assert current.status == SubscriptionStatus.CANCELLED
        assert current.plan == SubscriptionPlan.FREE

    async def test_new_subscription_after_cancel_activates(
        self, test_db, basic_subscription
    ):
        now = int(time.time())
        deleted = build_stripe_event(
            "customer.subscription.deleted",
            build_stripe_subscription(
                customer="cus_basic123", subscription_id="sub_basic123"
            ),
            event_id="evt_deleted",
            created=now,
        )
        resubscribed = build_stripe_event(
            "customer.subscription.created",
            build_stripe_subscription(
                customer="cus_basic123",
                subscription_id="sub_new456",
                price_id="price_premium",
                period_start=now + 60,
                period_end=now + 60 + 30 * 86400,
            ),
            event_id="evt_resubscribed",
            created=now + 5,
        )

        await _deliver(deleted)
        result = await _deliver(resubscribed)

        assert result.outcome == WebhookOutcome.APPLIED
        current = await _current(basic_subscription.account_id)
        assert current.status == SubscriptionStatus.ACTIVE
        assert current.plan == SubscriptionPlan.PREMIUM
        assert current.stripe_subscription_id == "sub_new456"

    async def test_superseded_subscription_update_ignored(
        self, test_db, basic_subscription
    ):
        # Late update for a subscription the account has since replaced
        payload = build_stripe_event(
            "customer.subscription.updated",
            build_stripe_subscription(
                customer="cus_basic123",
                subscription_id="sub_old000",
                price_id="price_premium",
            ),
            created=int(time.time()) + 5,
        )

        result = await _deliver(payload)

        assert result.outcome == WebhookOutcome.IGNORED
        current = await _current(basic_subscription.account_id)
        assert current.stripe_subscription_id == "sub_basic123"
        assert current.plan == SubscriptionPlan.BASIC
        assert current.profiles_limit == 5
        assert current.version == basic_subscription.version

    async def test_superseded_subscription_deletion_ignored(
        self, test_db, basic_subscription
    ):
        payload = build_stripe_event(
            "customer.subscription.deleted",
            build_stripe_subscription(
                customer="cus_basic123", subscription_id="sub_old000"
            ),
        )

        result = await _deliver(payload)

        assert result.outcome == WebhookOutcome.IGNORED
        current = await _current(basic_subscription.account_id)
        assert current.status == SubscriptionStatus.ACTIVE
        assert current.plan == SubscriptionPlan.BASIC


@pytest.mark.asyncio
class TestInvoiceEvents:
    async def test_payment_failed_marks_past_due(self, test_db, basic_subscription):
        payload = build_stripe_event(
            "invoice.payment_failed",
            build_stripe_invoice(customer="cus_basic123", subscription_id="sub_basic123"),
        )

        result = await _deliver(payload)

        assert result.outcome == WebhookOutcome.APPLIED
        current = await _current(basic_subscription.account_id)
        assert current.status == SubscriptionStatus.PAST_DUE
        assert current.plan == SubscriptionPlan.BASIC
        assert current.profiles_limit == 5

    @pytest.mark.parametrize("event_type", ["invoice.paid", "invoice.payment_succeeded"])
    async def test_paid_invoice_leaves_status(
        self, test_db, basic_subscription, event_type
    ):
        payload = build_stripe_event(
            event_type,
            build_stripe_invoice(customer="cus_basic123", subscription_id="sub_basic123"),
            created=1_234,
        )

        result = await _deliver(payload)

        assert result.outcome == WebhookOutcome.APPLIED
        current = await _current(basic_subscription.account_id)
        assert current.status == SubscriptionStatus.ACTIVE
        assert current.version == basic_subscription.version
        assert current.last_event_at is None

    async def test_payment_failed_on_cancelled_ignored(self, test_db, basic_subscription):
        now = int(time.time())
        await _deliver(
            build_stripe_event(
                "customer.subscription.deleted",
                build_stripe_subscription(
                    customer="cus_basic123", subscription_id="sub_basic123"
                ),
                event_id="evt_deleted",
                created=now,
            )
        )

        result = await _deliver(
            build_stripe_event(
                "invoice.payment_failed",
                build_stripe_invoice(customer="cus_basic123"),
                event_id="evt_failed",
                created=now + 5,
            )
        )

        assert result.outcome == WebhookOutcome.IGNORED
        current = await _current(basic_subscription.account_id)
        assert current.status == SubscriptionStatus.CANCELLED

    async def test_unhandled_event_type_acknowledged(self, test_db):
        payload = build_stripe_event(
            "customer.created", {"id": "cus_x", "object": "customer"}
        )

        result = await _deliver(payload)

        assert result.outcome == WebhookOutcome.IGNORED
        assert await WebhookEventRepository().get_by_event_id("evt_test_1") is not None

    @pytest.mark.parametrize("invoice_type", ["invoice.paid", "invoice.payment_failed"])
    async def test_invoice_does_not_make_earlier_subscription_event_stale(
        self, test_db, linked_subscription, invoice_type
    ):
        # Stripe creates the invoice after the subscription change but may
        # deliver it first
        invoice = build_stripe_event(
            invoice_type,
            build_stripe_invoice(),
            event_id="evt_invoice",
            created=2_000,
        )
        upgrade = build_stripe_event(
            "customer.subscription.updated",
            build_stripe_subscription(price_id="price_premium"),
            event_id="evt_upgrade",
            created=1_999,
        )

        await _deliver(invoice)
        result = await _deliver(upgrade)

        assert result.outcome == WebhookOutcome.APPLIED
        current = await _current(linked_subscription.account_id)
        assert current.plan == SubscriptionPlan.PREMIUM
        assert current.status == SubscriptionStatus.ACTIVE
        assert current.profiles_limit == 10
        assert current.proposals_limit == 50
        assert current.last_event_at == from_unix(1_999)

    async def test_invoice_older_than_subscription_event_is_stale(
        self, test_db, linked_subscription
    ):
        await _deliver(
            build_stripe_event(
                "customer.subscription.updated",
                build_stripe_subscription(),
                event_id="evt_update",
                created=2_000,
            )
        )

        result = await _deliver(
            build_stripe_event(
                "invoice.payment_failed",
                build_stripe_invoice(),
                event_id="evt_failed",
                created=1_000,
            )
        )

        assert result.outcome == WebhookOutcome.STALE
        current = await _current(linked_subscription.account_id)
        assert current.status == SubscriptionStatus.ACTIVE
