from .billing import (
  dues_router,
  invoices_router,
  late_fees_router,
  payments_router,
  settings_router,
  webhooks_router,
)

__all__ = [
  "dues_router",
  "invoices_router",
  "late_fees_router",
  "payments_router",
  "settings_router",
  "webhooks_router",
]
