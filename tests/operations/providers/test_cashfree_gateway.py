"""Tests for the Cashfree adapter."""

import base64
import json
from decimal import Decimal
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from nestledger.exceptions import GatewayError, InvalidSignatureError
from nestledger.operations.providers.cashfree_gateway import (
  CashfreeGateway,
  build_order_id,
  invoice_id_from_order_id,
)
from nestledger.operations.providers.payment_gateway import (
  CustomerDetails,
  GatewayConfig,
  OrderRequest,
  hmac_sha256,
)

API_URL = "https://sandbox.cashfree.test/pg"
SECRET = "cf_secret"
ORDER_ID = "ORDER_inv_01HZX_1717000000"

PAID_ORDER = {
  "order_id": ORDER_ID,
  "order_status": "PAID",
  "order_amount": 10005.0,
  "order_currency": "INR",
  "order_tags": {"invoice_id": "inv_01HZX"},
}


def make_gateway(handler, max_retries=3):
  config = GatewayConfig(
    provider="cashfree",
    key_id="cf_app",
    key_secret=SECRET,
    webhook_secret=SECRET,
    api_url=API_URL,
    max_retries=max_retries,
  )
  client = httpx.Client(transport=httpx.MockTransport(handler))
  return CashfreeGateway(config, http_client=client)


def routes(table):
  """MockTransport handler dispatching on the request path."""

  def handler(request):
    return httpx.Response(200, json=table[request.url.path])

  return handler


def signed_headers(body, timestamp="1717000000", idempotency_key="idem_1"):
  signature = base64.b64encode(hmac_sha256(SECRET, timestamp.encode() + body)).decode()
  return {
    "x-webhook-timestamp": timestamp,
    "x-webhook-signature": signature,
    "x-idempotency-key": idempotency_key,
  }


class TestOrderIds:
  def test_round_trip(self):
    order_id = build_order_id("inv_01HZX", timestamp=1717000000)

    assert order_id == ORDER_ID
    assert invoice_id_from_order_id(order_id) == "inv_01HZX"

  @pytest.mark.parametrize("order_id", ["", "inv_01HZX_1717000000", "ORDER_inv_01HZX_abc"])
  def test_unparseable(self, order_id):
    assert invoice_id_from_order_id(order_id) is None


class TestCreateOrder:
  def test_redirect_checkout(self):
    seen = []

    def handler(request):
      seen.append(request)
      body = json.loads(request.content)
      return httpx.Response(
        200,
        json={
          "order_id": body["order_id"],
          "order_amount": 10005.0,
          "order_currency": "INR",
          "payment_session_id": "session_abc",
        },
      )

    request = OrderRequest(
      invoice_id="inv_01HZX",
      admin_id="adm_1",
      amount=Decimal("10005"),
      currency="INR",
      customer=CustomerDetails(customer_id="ten_1", name="Kabir Shah"),
      return_url="https://app.example/billing/return?source=invoice",
    )

    order = make_gateway(handler).create_order(request)

    sent = seen[0]
    body = json.loads(sent.content)
    assert sent.headers["x-client-id"] == "cf_app"
    assert sent.headers["x-client-secret"] == SECRET
    assert body["order_amount"] == 10005.0
    assert body["order_tags"] == {"invoice_id": "inv_01HZX", "admin_id": "adm_1"}
    assert body["customer_details"]["customer_phone"] == "9999999999"
    assert invoice_id_from_order_id(body["order_id"]) == "inv_01HZX"

    return_url = urlparse(body["order_meta"]["return_url"])
    assert parse_qs(return_url.query) == {
      "source": ["invoice"],
      "order_id": [body["order_id"]],
    }

    assert order.checkout == {
      "completion": "redirect",
      "payment_session_id": "session_abc",
      "mode": "sandbox",
    }
    assert order.amount == Decimal("10005")

  def test_rejected_order(self):
    calls = []

    def handler(request):
      calls.append(request)
      return httpx.Response(422, json={"message": "order_amount invalid"})

    request = OrderRequest(
      invoice_id="inv_1",
      admin_id="adm_1",
      amount=Decimal("0"),
      currency="INR",
      customer=CustomerDetails(customer_id="ten_1", name="Kabir"),
    )

    with pytest.raises(GatewayError) as exc_info:
      make_gateway(handler).create_order(request)

    assert len(calls) == 1
    assert exc_info.value.details["status_code"] == "422"


class TestVerifyCallback:
  def test_paid_order_is_verified_with_provider(self):
    handler = routes(
      {
        f"/pg/orders/{ORDER_ID}": PAID_ORDER,
        f"/pg/orders/{ORDER_ID}/payments": [
          {"cf_payment_id": 4410, "payment_status": "FAILED"},
          {"cf_payment_id": 4411, "payment_status": "SUCCESS"},
        ],
      }
    )

    verification = make_gateway(handler).verify_callback({"order_id": ORDER_ID})

    assert verification.valid is True
    assert verification.invoice_id == "inv_01HZX"
    assert verification.gateway_payment_id == "4411"
    assert verification.amount == Decimal("10005")

  def test_unpaid_order_rejected(self):
    handler = routes({f"/pg/orders/{ORDER_ID}": {**PAID_ORDER, "order_status": "ACTIVE"}})

    verification = make_gateway(handler).verify_callback({"order_id": ORDER_ID})

    assert verification.valid is False
    assert verification.reason == "Order status is ACTIVE"

  def test_paid_order_without_successful_payment(self):
    handler = routes(
      {
        f"/pg/orders/{ORDER_ID}": PAID_ORDER,
        f"/pg/orders/{ORDER_ID}/payments": [],
      }
    )

    verification = make_gateway(handler).verify_callback({"order_id": ORDER_ID})

    assert verification.valid is False

  def test_missing_order_id(self):
    verification = make_gateway(routes({})).verify_callback({})

    assert verification.valid is False
    assert verification.reason == "Missing order_id"


class TestParseWebhook:
  def test_payment_success(self):
    body = json.dumps(
      {
        "type": "PAYMENT_SUCCESS_WEBHOOK",
        "data": {
          "order": {"order_id": ORDER_ID, "order_amount": 10005},
          "payment": {
            "cf_payment_id": 4411,
            "payment_status": "SUCCESS",
            "payment_amount": 10005,
            "payment_currency": "INR",
          },
        },
      }
    ).encode()

    event = make_gateway(routes({})).parse_webhook(body, signed_headers(body))

    assert event.kind == "payment"
    assert event.event_id == "idem_1"
    assert event.verification.valid is True
    assert event.verification.invoice_id == "inv_01HZX"
    assert event.verification.gateway_payment_id == "4411"
    assert event.verification.amount == Decimal("10005")

  def test_refund_success(self):
    body = json.dumps(
      {
        "type": "REFUND_STATUS_WEBHOOK",
        "data": {
          "refund": {
            "cf_refund_id": 77,
            "cf_payment_id": 4411,
            "order_id": ORDER_ID,
            "refund_status": "SUCCESS",
            "refund_amount": 10005,
          }
        },
      }
    ).encode()

    event = make_gateway(routes({})).parse_webhook(body, signed_headers(body))

    assert event.kind == "refund"
    assert event.refund_id == "77"
    assert event.verification.gateway_payment_id == "4411"

  def test_pending_refund_is_ignored(self):
    body = json.dumps(
      {"type": "REFUND_STATUS_WEBHOOK", "data": {"refund": {"refund_status": "PENDING"}}}
    ).encode()

    event = make_gateway(routes({})).parse_webhook(body, signed_headers(body))

    assert event.kind == "ignored"

  def test_signature_covers_timestamp(self):
    body = b'{"type": "PAYMENT_SUCCESS_WEBHOOK"}'
    headers = signed_headers(body)
    headers["x-webhook-timestamp"] = "1717000999"

    with pytest.raises(InvalidSignatureError):
      make_gateway(routes({})).parse_webhook(body, headers)

  def test_missing_timestamp(self):
    body = b"{}"
    headers = signed_headers(body)
    del headers["x-webhook-timestamp"]

    with pytest.raises(InvalidSignatureError):
      make_gateway(routes({})).parse_webhook(body, headers)

  def test_invalid_json(self):
    body = b"not json"

    with pytest.raises(GatewayError) as exc_info:
      make_gateway(routes({})).parse_webhook(body, signed_headers(body))

    assert exc_info.value.retryable is False
