"""Razorpay adapter - in-page checkout modal completion.

The tenant pays inside Razorpay's checkout modal, which hands the browser
``razorpay_order_id``, ``razorpay_payment_id`` and ``razorpay_signature``.
The signature is a hex HMAC-SHA256 of ``order_id|payment_id`` keyed with the
API secret. Webhooks carry ``X-Razorpay-Signature``, a hex HMAC-SHA256 of the
raw body keyed with the webhook secret.
"""

import json
from typing import Any, Dict, Mapping, Optional

from ...exceptions import ConfigurationError, GatewayError, InvalidSignatureError
from ...logger import get_logger
from .payment_gateway import (
  RAZORPAY,
  CallbackVerification,
  GatewayOrder,
  OrderRequest,
  PaymentGateway,
  WebhookEvent,
  from_subunits,
  gateway_retry,
  hmac_sha256,
  signatures_match,
  to_subunits,
)

logger = get_logger(__name__)

PAYMENT_EVENTS = {"payment.captured", "order.paid"}
REFUND_EVENTS = {"refund.processed"}


class RazorpayGateway(PaymentGateway):
  """Razorpay Orders API integration."""

  name = RAZORPAY

  @property
  def _auth(self) -> tuple[str, str]:
    return (self.config.key_id, self.config.key_secret)

  def _url(self, path: str) -> str:
    return f"{self.config.api_url.rstrip('/')}/{path.lstrip('/')}"

  @gateway_retry
  def create_order(self, request: OrderRequest) -> GatewayOrder:
    body = {
      "amount": to_subunits(request.amount),
      "currency": request.currency,
      "receipt": request.invoice_id,
      "notes": {
        "invoice_id": request.invoice_id,
        "admin_id": request.admin_id,
        "payment_mode": self.config.payment_mode.value,
      },
    }
    data = self._send("POST", self._url("orders"), "create_order", json=body, auth=self._auth)

    logger.info(
      f"Created Razorpay order {data['id']} for invoice {request.invoice_id}",
      extra={"gateway": self.name, "invoice_id": request.invoice_id},
    )

    return GatewayOrder(
      gateway=self.name,
      order_id=data["id"],
      amount=from_subunits(data["amount"]),
      currency=data.get("currency", request.currency),
      checkout={
        "completion": "modal",
        "key_id": self.config.key_id,
        "order_id": data["id"],
        "amount": data["amount"],
        "currency": data.get("currency", request.currency),
        "prefill": {
          "name": request.customer.name,
          "email": request.customer.email,
          "contact": request.customer.phone,
        },
      },
    )

  @gateway_retry
  def fetch_order(self, order_id: str) -> Dict[str, Any]:
    return self._send("GET", self._url(f"orders/{order_id}"), "fetch_order", auth=self._auth)

  def verify_callback(self, payload: Mapping[str, Any]) -> CallbackVerification:
    order_id = payload.get("razorpay_order_id")
    payment_id = payload.get("razorpay_payment_id")
    signature = payload.get("razorpay_signature")

    if not (order_id and payment_id and signature):
      return CallbackVerification.rejected(self.name, "Missing Razorpay callback fields")

    expected = hmac_sha256(
      self.config.key_secret, f"{order_id}|{payment_id}".encode("utf-8")
    ).hex()
    if not signatures_match(expected, signature):
      logger.warning(
        f"Razorpay callback signature mismatch for order {order_id}",
        extra={"gateway": self.name, "action": "verify_callback"},
      )
      return CallbackVerification.rejected(self.name, "Signature mismatch")

    order = self.fetch_order(order_id)
    return CallbackVerification(
      valid=True,
      gateway=self.name,
      gateway_payment_id=payment_id,
      gateway_order_id=order_id,
      invoice_id=self._invoice_ref(order),
      amount=from_subunits(order.get("amount_paid") or order["amount"]),
      currency=order.get("currency"),
      signature=signature,
    )

  def parse_webhook(self, body: bytes, headers: Mapping[str, str]) -> WebhookEvent:
    if not self.config.webhook_secret:
      raise ConfigurationError("RAZORPAY_WEBHOOK_SECRET", "webhook secret not configured")

    lowered = {k.lower(): v for k, v in headers.items()}
    expected = hmac_sha256(self.config.webhook_secret, body).hex()
    if not signatures_match(expected, lowered.get("x-razorpay-signature")):
      raise InvalidSignatureError(self.name, "Webhook signature mismatch")

    try:
      event = json.loads(body)
    except ValueError:
      raise GatewayError(self.name, "Webhook body is not valid JSON", retryable=False)

    event_type = event.get("event", "")
    entities = event.get("payload", {})
    payment = entities.get("payment", {}).get("entity", {})
    event_id = lowered.get("x-razorpay-event-id") or f"{event_type}:{payment.get('id')}"

    if event_type in PAYMENT_EVENTS:
      order = entities.get("order", {}).get("entity")
      invoice_id = self._invoice_ref(order) if order else None
      invoice_id = invoice_id or (payment.get("notes") or {}).get("invoice_id")
      if not invoice_id:
        invoice_id = self._invoice_ref(self.fetch_order(payment["order_id"]))

      verification = CallbackVerification(
        valid=True,
        gateway=self.name,
        gateway_payment_id=payment.get("id"),
        gateway_order_id=payment.get("order_id"),
        invoice_id=invoice_id,
        amount=from_subunits(payment.get("amount", 0)),
        currency=payment.get("currency"),
      )
      return WebhookEvent(self.name, event_id, event_type, "payment", verification, payload=event)

    if event_type in REFUND_EVENTS:
      refund = entities.get("refund", {}).get("entity", {})
      verification = CallbackVerification(
        valid=True,
        gateway=self.name,
        gateway_payment_id=refund.get("payment_id"),
        amount=from_subunits(refund.get("amount", 0)),
        currency=refund.get("currency"),
      )
      return WebhookEvent(
        self.name,
        lowered.get("x-razorpay-event-id") or f"{event_type}:{refund.get('id')}",
        event_type,
        "refund",
        verification,
        refund_id=refund.get("id"),
        payload=event,
      )

    return WebhookEvent(self.name, event_id, event_type, "ignored", payload=event)

  @staticmethod
  def _invoice_ref(order: Optional[Dict[str, Any]]) -> Optional[str]:
    if not order:
      return None
    return (order.get("notes") or {}).get("invoice_id") or order.get("receipt")
