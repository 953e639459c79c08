# Test data and fixtures
import hashlib
import hmac
import json
import time
from typing import Optional

# Matches STRIPE_WEBHOOK_SECRET set in tests/conftest.py
TEST_WEBHOOK_SECRET = "whsec_test_secret"

# Unix timestamps used as Stripe billing periods
PERIOD_1_START = 1_760_000_000
PERIOD_1_END = 1_762_592_000
PERIOD_2_START = PERIOD_1_END
PERIOD_2_END = 1_765_184_000


def sign_stripe_payload(
    payload: str,
    secret: str = TEST_WEBHOOK_SECRET,
    timestamp: Optional[int] = None,
) -> str:
    """Build a Stripe-Signature header the way Stripe computes it."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def build_stripe_event(
    event_type: str,
    obj: dict,
    event_id: str = "evt_test_1",
    created: Optional[int] = None,
) -> str:
    """Serialize a Stripe event envelope around ``obj``."""
    return json.dumps(
        {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "created": created or int(time.time()),
            "livemode": False,
            "data": {"object": obj},
        }
    )


def build_stripe_subscription(
    customer: str = "cus_test123",
    subscription_id: str = "sub_test123",
    price_id: str = "price_basic",
    status: str = "active",
    period_start: int = PERIOD_1_START,
    period_end: int = PERIOD_1_END,
    cancel_at_period_end: bool = False,
    metadata: Optional[dict] = None,
    period_on_items: bool = False,
) -> dict:
    """A Stripe subscription object as it appears in webhook payloads."""
    item = {"id": "si_test", "price": {"id": price_id, "object": "price"}}
    obj = {
        "id": subscription_id,
        "object": "subscription",
        "customer": customer,
        "status": status,
        "cancel_at_period_end": cancel_at_period_end,
        "items": {"object": "list", "data": [item]},
        "metadata": metadata or {},
    }
    # Newer API versions only carry the period on the subscription item
    if period_on_items:
        item["current_period_start"] = period_start
        item["current_period_end"] = period_end
    else:
        obj["current_period_start"] = period_start
        obj["current_period_end"] = period_end
    return obj


def build_stripe_invoice(
    customer: str = "cus_test123",
    subscription_id: str = "sub_test123",
    invoice_id: str = "in_test123",
) -> dict:
    return {
        "id": invoice_id,
        "object": "invoice",
        "customer": customer,
        "subscription": subscription_id,
        "amount_due": 2999,
        "currency": "usd",
    }
