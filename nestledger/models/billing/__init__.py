"""Billing models package.

Invoices and their items, payments, per-administrator billing configuration,
platform settlements, billing run records and the billing audit trail.
"""

from .admin_config import AdminBillingConfig
from .audit_log import BillingAuditLog, BillingEventType
from .billing_run import BillingRun, BillingRunTrigger, BillingRunType
from .invoice import (
  CHARGE_KINDS,
  FEE_KINDS,
  Invoice,
  InvoiceItem,
  InvoiceItemKind,
  InvoiceLine,
  InvoiceStatus,
)
from .payment import OFFLINE_GATEWAY, Payment, PaymentMode, PaymentStatus
from .settlement import PlatformSettlement

__all__ = [
  "AdminBillingConfig",
  "BillingAuditLog",
  "BillingEventType",
  "BillingRun",
  "BillingRunTrigger",
  "BillingRunType",
  "CHARGE_KINDS",
  "FEE_KINDS",
  "Invoice",
  "InvoiceItem",
  "InvoiceItemKind",
  "InvoiceLine",
  "InvoiceStatus",
  "OFFLINE_GATEWAY",
  "Payment",
  "PaymentMode",
  "PaymentStatus",
  "PlatformSettlement",
]
