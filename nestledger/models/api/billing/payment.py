"""Payment API models."""

from decimal import Decimal
from typing import Any, Dict

from pydantic import BaseModel, Field


class CreateOrderRequest(BaseModel):
  gateway: str | None = Field(
    None, description="razorpay or cashfree; defaults to the administrator's choice"
  )
  return_url: str | None = Field(
    None, description="Where Cashfree sends the tenant back after checkout"
  )


class OrderResponse(BaseModel):
  """A gateway order ready for client-side checkout."""

  gateway: str = Field(..., description="Gateway that holds the order")
  order_id: str = Field(..., description="Gateway order ID")
  amount: Decimal = Field(..., description="Order amount")
  currency: str = Field(..., description="Currency code")
  checkout: Dict[str, Any] = Field(
    ..., description="Provider-specific data for completing the payment"
  )


class VerifyPaymentRequest(BaseModel):
  """Client-side completion payload, untrusted until verified."""

  gateway: str = Field(..., description="Gateway that handled the payment")
  invoice_id: str = Field(..., description="Invoice the tenant was paying")
  payload: Dict[str, str] = Field(
    ...,
    description="Provider callback fields, e.g. razorpay_order_id, "
    "razorpay_payment_id and razorpay_signature",
  )


class ReconciliationResponse(BaseModel):
  """Result of applying a payment to an invoice."""

  invoice_id: str
  payment_id: str
  invoice_status: str
  created: bool = Field(
    ..., description="False when the invoice had already been settled"
  )


class WebhookResponse(BaseModel):
  status: str
  message: str
