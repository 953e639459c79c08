"""
Billing package - subscriptions, usage quotas and payments.

This package integrates with:
- Stripe: Checkout, subscription lifecycle webhooks and invoicing

Usage counters and quota enforcement are kept locally via QuotaService.
"""
