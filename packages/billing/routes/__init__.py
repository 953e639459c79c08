"""Billing API routes."""

from packages.billing.routes import admin, billing, webhooks, plans

__all__ = ["admin", "billing", "webhooks", "plans"]
