"""Billing API models."""

from .invoice import (
  ChargesRequest,
  CreateInvoiceRequest,
  InvoiceItemResponse,
  InvoiceResponse,
  InvoicesResponse,
  MarkPaidRequest,
  UpdateInvoiceRequest,
)
from .ledger import BillingRunResponse, DuesResponse, RunError, SettlementResponse
from .payment import (
  CreateOrderRequest,
  OrderResponse,
  ReconciliationResponse,
  VerifyPaymentRequest,
  WebhookResponse,
)
from .settings import BillingConfigResponse, UpdateBillingConfigRequest

__all__ = [
  "BillingConfigResponse",
  "BillingRunResponse",
  "ChargesRequest",
  "CreateInvoiceRequest",
  "CreateOrderRequest",
  "DuesResponse",
  "InvoiceItemResponse",
  "InvoiceResponse",
  "InvoicesResponse",
  "MarkPaidRequest",
  "OrderResponse",
  "ReconciliationResponse",
  "RunError",
  "SettlementResponse",
  "UpdateBillingConfigRequest",
  "UpdateInvoiceRequest",
  "VerifyPaymentRequest",
  "WebhookResponse",
]
