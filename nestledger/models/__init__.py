# Import every model so Base.metadata is complete for create_all and alembic
from .iam import Admin, Tenant, TenantStatus
from .billing import (
  AdminBillingConfig,
  BillingAuditLog,
  BillingRun,
  Invoice,
  InvoiceItem,
  Payment,
  PlatformSettlement,
)

__all__ = [
  "Admin",
  "AdminBillingConfig",
  "BillingAuditLog",
  "BillingRun",
  "Invoice",
  "InvoiceItem",
  "Payment",
  "PlatformSettlement",
  "Tenant",
  "TenantStatus",
]
