"""Tests for the Razorpay adapter."""

import base64
import json
from decimal import Decimal

import httpx
import pytest

from nestledger.exceptions import (
  ConfigurationError,
  GatewayError,
  GatewayTimeoutError,
  InvalidSignatureError,
)
from nestledger.models.billing.payment import PaymentMode
from nestledger.operations.providers.payment_gateway import (
  CustomerDetails,
  GatewayConfig,
  OrderRequest,
  hmac_sha256,
)
from nestledger.operations.providers.razorpay_gateway import RazorpayGateway

API_URL = "https://api.razorpay.test/v1"
KEY_SECRET = "rzp_secret"
WEBHOOK_SECRET = "rzp_webhook_secret"

ORDER = {
  "id": "order_RZ1",
  "amount": 1000500,
  "amount_paid": 1000500,
  "currency": "INR",
  "receipt": "inv_01HZX",
  "notes": {"invoice_id": "inv_01HZX", "admin_id": "adm_1"},
}


def make_gateway(handler, webhook_secret=WEBHOOK_SECRET, max_retries=3):
  config = GatewayConfig(
    provider="razorpay",
    key_id="rzp_test_key",
    key_secret=KEY_SECRET,
    webhook_secret=webhook_secret,
    payment_mode=PaymentMode.PLATFORM,
    api_url=API_URL,
    max_retries=max_retries,
  )
  client = httpx.Client(transport=httpx.MockTransport(handler))
  return RazorpayGateway(config, http_client=client)


def callback_signature(order_id, payment_id):
  return hmac_sha256(KEY_SECRET, f"{order_id}|{payment_id}".encode()).hex()


def webhook_headers(body, event_id="evt_RZ1"):
  return {
    "X-Razorpay-Signature": hmac_sha256(WEBHOOK_SECRET, body).hex(),
    "X-Razorpay-Event-Id": event_id,
  }


@pytest.fixture
def order_request():
  return OrderRequest(
    invoice_id="inv_01HZX",
    admin_id="adm_1",
    amount=Decimal("10005"),
    currency="INR",
    customer=CustomerDetails(
      customer_id="ten_1", name="Kabir Shah", email="kabir@example.com", phone="9876543210"
    ),
  )


class TestCreateOrder:
  def test_create_order(self, order_request):
    seen = []

    def handler(request):
      seen.append(request)
      return httpx.Response(200, json={"id": "order_RZ1", "amount": 1000500, "currency": "INR"})

    with make_gateway(handler) as gateway:
      order = gateway.create_order(order_request)

    request = seen[0]
    body = json.loads(request.content)
    assert request.method == "POST"
    assert str(request.url) == f"{API_URL}/orders"
    assert body["amount"] == 1000500
    assert body["receipt"] == "inv_01HZX"
    assert body["notes"]["invoice_id"] == "inv_01HZX"
    expected_auth = base64.b64encode(f"rzp_test_key:{KEY_SECRET}".encode()).decode()
    assert request.headers["authorization"] == f"Basic {expected_auth}"

    assert order.order_id == "order_RZ1"
    assert order.amount == Decimal("10005.00")
    assert order.checkout["completion"] == "modal"
    assert order.checkout["key_id"] == "rzp_test_key"
    assert order.checkout["prefill"]["contact"] == "9876543210"

  def test_timeout_is_retried(self, order_request):
    calls = []

    def handler(request):
      calls.append(request)
      if len(calls) == 1:
        raise httpx.ConnectTimeout("timed out", request=request)
      return httpx.Response(200, json={"id": "order_RZ1", "amount": 1000500})

    order = make_gateway(handler).create_order(order_request)

    assert len(calls) == 2
    assert order.order_id == "order_RZ1"

  def test_persistent_timeout_raises_after_retries(self, order_request):
    calls = []

    def handler(request):
      calls.append(request)
      raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(GatewayTimeoutError) as exc_info:
      make_gateway(handler, max_retries=3).create_order(order_request)

    assert len(calls) == 3
    assert exc_info.value.retryable is True

  def test_server_error_is_retryable(self, order_request):
    calls = []

    def handler(request):
      calls.append(request)
      return httpx.Response(503, json={"error": "unavailable"})

    with pytest.raises(GatewayError) as exc_info:
      make_gateway(handler, max_retries=2).create_order(order_request)

    assert len(calls) == 2
    assert exc_info.value.details["status_code"] == "503"

  def test_rejected_request_is_not_retried(self, order_request):
    calls = []

    def handler(request):
      calls.append(request)
      return httpx.Response(400, json={"error": {"description": "bad amount"}})

    with pytest.raises(GatewayError) as exc_info:
      make_gateway(handler).create_order(order_request)

    assert len(calls) == 1
    assert exc_info.value.retryable is False


class TestVerifyCallback:
  def test_valid_callback_uses_provider_order(self):
    def handler(request):
      assert str(request.url) == f"{API_URL}/orders/order_RZ1"
      return httpx.Response(200, json=ORDER)

    verification = make_gateway(handler).verify_callback(
      {
        "razorpay_order_id": "order_RZ1",
        "razorpay_payment_id": "pay_RZ1",
        "razorpay_signature": callback_signature("order_RZ1", "pay_RZ1"),
      }
    )

    assert verification.valid is True
    assert verification.invoice_id == "inv_01HZX"
    assert verification.gateway_payment_id == "pay_RZ1"
    assert verification.amount == Decimal("10005.00")

  def test_tampered_signature_rejected_without_lookup(self):
    def handler(request):
      raise AssertionError("order must not be fetched")

    verification = make_gateway(handler).verify_callback(
      {
        "razorpay_order_id": "order_RZ1",
        "razorpay_payment_id": "pay_OTHER",
        "razorpay_signature": callback_signature("order_RZ1", "pay_RZ1"),
      }
    )

    assert verification.valid is False
    assert verification.reason == "Signature mismatch"
    assert verification.invoice_id is None

  def test_missing_fields_rejected(self):
    verification = make_gateway(lambda r: httpx.Response(200)).verify_callback(
      {"razorpay_order_id": "order_RZ1"}
    )

    assert verification.valid is False


class TestParseWebhook:
  def test_payment_captured(self):
    body = json.dumps(
      {
        "event": "payment.captured",
        "payload": {
          "payment": {
            "entity": {
              "id": "pay_RZ1",
              "order_id": "order_RZ1",
              "amount": 1000500,
              "currency": "INR",
              "notes": {"invoice_id": "inv_01HZX"},
            }
          }
        },
      }
    ).encode()

    event = make_gateway(lambda r: httpx.Response(200)).parse_webhook(
      body, webhook_headers(body)
    )

    assert event.kind == "payment"
    assert event.event_id == "evt_RZ1"
    assert event.verification.valid is True
    assert event.verification.invoice_id == "inv_01HZX"
    assert event.verification.amount == Decimal("10005.00")

  def test_payment_without_notes_looks_up_order(self):
    body = json.dumps(
      {
        "event": "payment.captured",
        "payload": {
          "payment": {"entity": {"id": "pay_RZ1", "order_id": "order_RZ1", "amount": 1000500}}
        },
      }
    ).encode()

    event = make_gateway(lambda r: httpx.Response(200, json=ORDER)).parse_webhook(
      body, webhook_headers(body)
    )

    assert event.verification.invoice_id == "inv_01HZX"

  def test_refund_processed(self):
    body = json.dumps(
      {
        "event": "refund.processed",
        "payload": {
          "refund": {
            "entity": {"id": "rfnd_1", "payment_id": "pay_RZ1", "amount": 1000500}
          }
        },
      }
    ).encode()

    event = make_gateway(lambda r: httpx.Response(200)).parse_webhook(
      body, webhook_headers(body, event_id="evt_RF1")
    )

    assert event.kind == "refund"
    assert event.refund_id == "rfnd_1"
    assert event.verification.gateway_payment_id == "pay_RZ1"

  def test_other_events_are_ignored(self):
    body = json.dumps({"event": "payment.authorized", "payload": {}}).encode()

    event = make_gateway(lambda r: httpx.Response(200)).parse_webhook(
      body, webhook_headers(body)
    )

    assert event.kind == "ignored"
    assert event.verification is None

  def test_bad_signature(self):
    body = b'{"event": "payment.captured"}'

    with pytest.raises(InvalidSignatureError):
      make_gateway(lambda r: httpx.Response(200)).parse_webhook(
        body, {"X-Razorpay-Signature": "0" * 64}
      )

  def test_body_changed_after_signing(self):
    body = b'{"event": "payment.captured"}'
    headers = webhook_headers(body)

    with pytest.raises(InvalidSignatureError):
      make_gateway(lambda r: httpx.Response(200)).parse_webhook(
        b'{"event": "order.paid"}', headers
      )

  def test_missing_webhook_secret(self):
    with pytest.raises(ConfigurationError):
      make_gateway(lambda r: httpx.Response(200), webhook_secret=None).parse_webhook(
        b"{}", {}
      )
