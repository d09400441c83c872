"""Cashfree adapter - redirect completion.

The tenant is sent to Cashfree's hosted checkout and comes back to our
return URL with ``order_id`` in the query string. That query parameter is
not proof of anything: the adapter asks Cashfree for the order and accepts it
only when Cashfree reports it PAID.

Webhooks carry ``x-webhook-signature``, a base64 HMAC-SHA256 of
``x-webhook-timestamp + raw body`` keyed with the secret key.
"""

import base64
import json
import time
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from ...config import env
from ...exceptions import ConfigurationError, GatewayError, InvalidSignatureError
from ...logger import get_logger
from .payment_gateway import (
  CASHFREE,
  CallbackVerification,
  GatewayOrder,
  OrderRequest,
  PaymentGateway,
  WebhookEvent,
  gateway_retry,
  hmac_sha256,
  signatures_match,
)

logger = get_logger(__name__)

ORDER_PREFIX = "ORDER_"
DEFAULT_CUSTOMER_PHONE = "9999999999"
PAYMENT_EVENTS = {"PAYMENT_SUCCESS_WEBHOOK"}
REFUND_EVENTS = {"REFUND_STATUS_WEBHOOK"}


def build_order_id(invoice_id: str, timestamp: Optional[int] = None) -> str:
  return f"{ORDER_PREFIX}{invoice_id}_{timestamp or int(time.time())}"


def invoice_id_from_order_id(order_id: str) -> Optional[str]:
  """Recover the invoice id from an ``ORDER_{invoice_id}_{timestamp}`` id."""
  if not order_id or not order_id.startswith(ORDER_PREFIX):
    return None
  invoice_part, _, timestamp = order_id[len(ORDER_PREFIX) :].rpartition("_")
  if not invoice_part or not timestamp.isdigit():
    return None
  return invoice_part


class CashfreeGateway(PaymentGateway):
  """Cashfree Payment Gateway (PG) API integration."""

  name = CASHFREE

  @property
  def _headers(self) -> Dict[str, str]:
    return {
      "x-client-id": self.config.key_id,
      "x-client-secret": self.config.key_secret,
      "x-api-version": env.CASHFREE_API_VERSION,
      "Content-Type": "application/json",
    }

  def _url(self, path: str) -> str:
    return f"{self.config.api_url.rstrip('/')}/{path.lstrip('/')}"

  @gateway_retry
  def create_order(self, request: OrderRequest) -> GatewayOrder:
    order_id = build_order_id(request.invoice_id)
    return_url = request.return_url or (
      f"{env.APP_BASE_URL.rstrip('/')}/billing/payments/return"
    )
    separator = "&" if "?" in return_url else "?"

    body = {
      "order_id": order_id,
      "order_amount": float(request.amount),
      "order_currency": request.currency,
      "customer_details": {
        "customer_id": request.customer.customer_id,
        "customer_name": request.customer.name,
        "customer_email": request.customer.email,
        "customer_phone": request.customer.phone or DEFAULT_CUSTOMER_PHONE,
      },
      "order_meta": {"return_url": f"{return_url}{separator}order_id={order_id}"},
      "order_tags": {"invoice_id": request.invoice_id, "admin_id": request.admin_id},
    }
    data = self._send(
      "POST", self._url("orders"), "create_order", json=body, headers=self._headers
    )

    logger.info(
      f"Created Cashfree order {order_id} for invoice {request.invoice_id}",
      extra={"gateway": self.name, "invoice_id": request.invoice_id},
    )

    return GatewayOrder(
      gateway=self.name,
      order_id=data.get("order_id", order_id),
      amount=Decimal(str(data.get("order_amount", request.amount))),
      currency=data.get("order_currency", request.currency),
      checkout={
        "completion": "redirect",
        "payment_session_id": data["payment_session_id"],
        "mode": self.config.environment,
      },
    )

  @gateway_retry
  def fetch_order(self, order_id: str) -> Dict[str, Any]:
    return self._send(
      "GET", self._url(f"orders/{order_id}"), "fetch_order", headers=self._headers
    )

  @gateway_retry
  def fetch_payments(self, order_id: str) -> list[Dict[str, Any]]:
    return self._send(
      "GET",
      self._url(f"orders/{order_id}/payments"),
      "fetch_payments",
      headers=self._headers,
    )

  def verify_callback(self, payload: Mapping[str, Any]) -> CallbackVerification:
    order_id = payload.get("order_id")
    if not order_id:
      return CallbackVerification.rejected(self.name, "Missing order_id")

    order = self.fetch_order(order_id)
    status = order.get("order_status")
    if status != "PAID":
      logger.info(
        f"Cashfree order {order_id} returned with status {status}",
        extra={"gateway": self.name, "action": "verify_callback"},
      )
      return CallbackVerification.rejected(self.name, f"Order status is {status}")

    payments = self.fetch_payments(order_id)
    succeeded = [p for p in payments if p.get("payment_status") == "SUCCESS"]
    if not succeeded:
      return CallbackVerification.rejected(self.name, "No successful payment on order")

    return CallbackVerification(
      valid=True,
      gateway=self.name,
      gateway_payment_id=str(succeeded[0]["cf_payment_id"]),
      gateway_order_id=order_id,
      invoice_id=self._invoice_ref(order),
      amount=Decimal(str(order["order_amount"])),
      currency=order.get("order_currency"),
    )

  def parse_webhook(self, body: bytes, headers: Mapping[str, str]) -> WebhookEvent:
    if not self.config.webhook_secret:
      raise ConfigurationError("CASHFREE_SECRET_KEY", "webhook secret not configured")

    lowered = {k.lower(): v for k, v in headers.items()}
    timestamp = lowered.get("x-webhook-timestamp", "")
    expected = base64.b64encode(
      hmac_sha256(self.config.webhook_secret, timestamp.encode("utf-8") + body)
    ).decode("utf-8")
    if not timestamp or not signatures_match(expected, lowered.get("x-webhook-signature")):
      raise InvalidSignatureError(self.name, "Webhook signature mismatch")

    try:
      event = json.loads(body)
    except ValueError:
      raise GatewayError(self.name, "Webhook body is not valid JSON", retryable=False)

    event_type = event.get("type", "")
    data = event.get("data", {})
    order = data.get("order", {})
    payment = data.get("payment", {})

    if event_type in PAYMENT_EVENTS:
      payment_id = str(payment.get("cf_payment_id"))
      verification = CallbackVerification(
        valid=payment.get("payment_status") == "SUCCESS",
        gateway=self.name,
        gateway_payment_id=payment_id,
        gateway_order_id=order.get("order_id"),
        invoice_id=self._invoice_ref(order),
        amount=Decimal(str(payment.get("payment_amount", order.get("order_amount", 0)))),
        currency=payment.get("payment_currency") or order.get("order_currency"),
      )
      event_id = lowered.get("x-idempotency-key") or f"{event_type}:{payment_id}"
      return WebhookEvent(self.name, event_id, event_type, "payment", verification, payload=event)

    if event_type in REFUND_EVENTS:
      refund = data.get("refund", {})
      if refund.get("refund_status") == "SUCCESS":
        verification = CallbackVerification(
          valid=True,
          gateway=self.name,
          gateway_payment_id=str(refund.get("cf_payment_id")),
          gateway_order_id=refund.get("order_id"),
          amount=Decimal(str(refund.get("refund_amount", 0))),
          currency=refund.get("refund_currency"),
        )
        return WebhookEvent(
          self.name,
          lowered.get("x-idempotency-key") or f"{event_type}:{refund.get('cf_refund_id')}",
          event_type,
          "refund",
          verification,
          refund_id=str(refund.get("cf_refund_id")),
          payload=event,
        )

    event_id = lowered.get("x-idempotency-key") or f"{event_type}:{timestamp}"
    return WebhookEvent(self.name, event_id, event_type, "ignored", payload=event)

  @staticmethod
  def _invoice_ref(order: Dict[str, Any]) -> Optional[str]:
    tags = order.get("order_tags") or {}
    return tags.get("invoice_id") or invoice_id_from_order_id(order.get("order_id", ""))
