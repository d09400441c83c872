"""Billing routers."""

from .dues import router as dues_router
from .invoices import router as invoices_router
from .late_fees import router as late_fees_router
from .payments import router as payments_router
from .settings import router as settings_router
from .webhooks import router as webhooks_router

__all__ = [
  "dues_router",
  "invoices_router",
  "late_fees_router",
  "payments_router",
  "settings_router",
  "webhooks_router",
]
