"""Payment gateway abstraction layer.

Every provider integration exposes the same small surface to the billing
core: create an order for an invoice, verify a completion callback, and parse
an inbound webhook. How the tenant completes the payment (an in-page checkout
modal or a redirect to the provider and back) stays inside the adapter.

Callback and webhook fields are untrusted until the adapter has checked the
provider's signature scheme. Nothing in this module touches the database.
"""

import functools
import hashlib
import hmac
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

import httpx
from retrying import Retrying

from ...config import env
from ...config.constants import GATEWAY_RETRY_MAX_WAIT_MS, GATEWAY_RETRY_MIN_WAIT_MS
from ...exceptions import (
  ConfigurationError,
  GatewayError,
  GatewayTimeoutError,
  UnsupportedGatewayError,
)
from ...logger import get_logger
from ...models.billing.payment import PaymentMode
from ...security import decrypt_secret

logger = get_logger(__name__)

RAZORPAY = "razorpay"
CASHFREE = "cashfree"
SUPPORTED_GATEWAYS = (RAZORPAY, CASHFREE)


@dataclass(frozen=True)
class GatewayConfig:
  """Credentials and endpoints for one provider, resolved per administrator."""

  provider: str
  key_id: str
  key_secret: str = field(repr=False)
  webhook_secret: Optional[str] = field(default=None, repr=False)
  payment_mode: PaymentMode = PaymentMode.PLATFORM
  api_url: Optional[str] = None
  environment: str = "sandbox"
  timeout: float = 15.0
  max_retries: int = 3


@dataclass(frozen=True)
class CustomerDetails:
  customer_id: str
  name: str
  email: Optional[str] = None
  phone: Optional[str] = None


@dataclass(frozen=True)
class OrderRequest:
  """Everything a provider needs to open an order for one invoice."""

  invoice_id: str
  admin_id: str
  amount: Decimal
  currency: str
  customer: CustomerDetails
  return_url: Optional[str] = None


@dataclass(frozen=True)
class GatewayOrder:
  """A provider order plus the data the client needs to complete it."""

  gateway: str
  order_id: str
  amount: Decimal
  currency: str
  checkout: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CallbackVerification:
  """Result of checking a completion callback against the provider.

  When ``valid`` is False none of the other fields may be trusted.
  ``invoice_id`` and ``amount`` come from the provider's own record of the
  order, never from the callback payload.
  """

  valid: bool
  gateway: str
  gateway_payment_id: Optional[str] = None
  gateway_order_id: Optional[str] = None
  invoice_id: Optional[str] = None
  amount: Optional[Decimal] = None
  currency: Optional[str] = None
  signature: Optional[str] = None
  reason: Optional[str] = None

  @classmethod
  def rejected(cls, gateway: str, reason: str) -> "CallbackVerification":
    return cls(valid=False, gateway=gateway, reason=reason)


@dataclass(frozen=True)
class WebhookEvent:
  """A signature-checked webhook, normalized across providers.

  ``kind`` is ``payment`` for captured payments, ``refund`` for processed
  refunds, and ``ignored`` for event types the billing core does not act on.
  """

  gateway: str
  event_id: str
  event_type: str
  kind: str
  verification: Optional[CallbackVerification] = None
  refund_id: Optional[str] = None
  payload: Dict[str, Any] = field(default_factory=dict)


def hmac_sha256(secret: str, message: bytes) -> bytes:
  return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()


def signatures_match(expected: str, received: Optional[str]) -> bool:
  """Constant-time comparison of a computed signature with a received one."""
  if not received:
    return False
  return hmac.compare_digest(expected.encode("utf-8"), received.strip().encode("utf-8"))


def to_subunits(amount: Decimal) -> int:
  """Money in the currency's smallest unit (paise for INR)."""
  return int((Decimal(amount) * 100).to_integral_value())


def from_subunits(value: Any) -> Decimal:
  return (Decimal(str(value)) / Decimal("100")).quantize(Decimal("0.01"))


def _is_retryable(exception: Exception) -> bool:
  return isinstance(exception, GatewayError) and exception.retryable


def gateway_retry(func):
  """Retry retryable gateway failures, with near-zero waits under pytest."""

  @functools.wraps(func)
  def wrapper(self, *args, **kwargs):
    if os.getenv("PYTEST_CURRENT_TEST") or os.getenv("TESTING"):
      wait = {"wait_fixed": 1}
    else:
      wait = {
        "wait_random_min": GATEWAY_RETRY_MIN_WAIT_MS,
        "wait_random_max": GATEWAY_RETRY_MAX_WAIT_MS,
      }
    retrying = Retrying(
      stop_max_attempt_number=max(1, self.config.max_retries),
      retry_on_exception=_is_retryable,
      **wait,
    )
    return retrying.call(func, self, *args, **kwargs)

  return wrapper


class PaymentGateway(ABC):
  """Abstract payment gateway interface."""

  name: str = ""

  def __init__(self, config: GatewayConfig, http_client: Optional[httpx.Client] = None):
    self.config = config
    self.http_client = http_client or httpx.Client(timeout=config.timeout)

  def close(self):
    self.http_client.close()

  def __enter__(self):
    return self

  def __exit__(self, exc_type, exc, tb):
    self.close()

  @abstractmethod
  def create_order(self, request: OrderRequest) -> GatewayOrder:
    """Open a provider order for an invoice.

    Raises:
        GatewayError: Provider rejected the order or could not be reached.
            Retryable failures have already been retried.
    """
    pass

  @abstractmethod
  def verify_callback(self, payload: Mapping[str, Any]) -> CallbackVerification:
    """Check a client-side completion payload against the provider.

    Returns a verification with ``valid=False`` for a tampered or
    incomplete payload, and raises GatewayError only when the provider
    itself could not be consulted.
    """
    pass

  @abstractmethod
  def parse_webhook(self, body: bytes, headers: Mapping[str, str]) -> WebhookEvent:
    """Verify a webhook signature and normalize its event.

    Raises:
        InvalidSignatureError: Signature missing or wrong
        GatewayError: Payload is not a valid event
    """
    pass

  def _send(self, method: str, url: str, operation: str, **kwargs) -> Dict[str, Any]:
    """One HTTP exchange with the provider, mapped onto GatewayError."""
    try:
      response = self.http_client.request(method, url, **kwargs)
    except httpx.TimeoutException:
      logger.warning(
        f"{self.name} timed out during {operation}",
        extra={"gateway": self.name, "action": operation},
      )
      raise GatewayTimeoutError(self.name, operation)
    except httpx.TransportError as e:
      logger.warning(
        f"{self.name} unreachable during {operation}: {e}",
        extra={"gateway": self.name, "action": operation},
      )
      raise GatewayError(self.name, f"{self.name} unreachable: {e}", operation=operation)

    if response.status_code == 429 or response.status_code >= 500:
      raise GatewayError(
        self.name,
        f"{self.name} returned {response.status_code} during {operation}",
        retryable=True,
        status_code=response.status_code,
        operation=operation,
      )
    if response.status_code >= 400:
      logger.error(
        f"{self.name} rejected {operation}: {response.status_code} {response.text}",
        extra={"gateway": self.name, "action": operation},
      )
      raise GatewayError(
        self.name,
        f"{self.name} rejected {operation} with status {response.status_code}",
        retryable=False,
        status_code=response.status_code,
        operation=operation,
      )

    try:
      return response.json()
    except ValueError:
      raise GatewayError(
        self.name, f"{self.name} sent an unreadable response to {operation}"
      )


def _require(value: Optional[str], config_key: str, provider: str) -> str:
  if not value:
    raise ConfigurationError(config_key, f"not configured for {provider}")
  return value


def resolve_gateway_config(admin_config=None, provider: Optional[str] = None) -> GatewayConfig:
  """
  Build the explicit gateway configuration for one administrator.

  PLATFORM mode uses the platform's own provider account. OWN mode uses the
  administrator's stored keys, decrypted here and nowhere else.

  Args:
      admin_config: The administrator's AdminBillingConfig, or None for
          platform defaults
      provider: Override the administrator's configured provider

  Raises:
      UnsupportedGatewayError: Unknown provider
      ConfigurationError: Required credentials are missing
  """
  mode = PaymentMode(admin_config.payment_mode if admin_config else PaymentMode.PLATFORM)
  provider = (
    provider
    or (admin_config.gateway_provider if admin_config else None)
    or env.DEFAULT_PAYMENT_GATEWAY
  ).lower()
  if provider not in SUPPORTED_GATEWAYS:
    raise UnsupportedGatewayError(provider)

  if provider == RAZORPAY:
    api_url = env.RAZORPAY_API_URL
    environment = "production" if env.is_production() else "test"
  else:
    environment = env.CASHFREE_ENVIRONMENT
    api_url = (
      "https://api.cashfree.com/pg"
      if environment == "production"
      else "https://sandbox.cashfree.com/pg"
    )

  if mode is PaymentMode.OWN:
    key_id = _require(admin_config.own_key_id, "own_key_id", provider)
    key_secret = decrypt_secret(
      _require(admin_config.own_key_secret_encrypted, "own_key_secret", provider)
    )
    webhook_secret = (
      decrypt_secret(admin_config.own_webhook_secret_encrypted)
      if admin_config.own_webhook_secret_encrypted
      else None
    )
  elif provider == RAZORPAY:
    key_id = _require(env.RAZORPAY_KEY_ID, "RAZORPAY_KEY_ID", provider)
    key_secret = _require(env.RAZORPAY_KEY_SECRET, "RAZORPAY_KEY_SECRET", provider)
    webhook_secret = env.RAZORPAY_WEBHOOK_SECRET or None
  else:
    key_id = _require(env.CASHFREE_APP_ID, "CASHFREE_APP_ID", provider)
    key_secret = _require(env.CASHFREE_SECRET_KEY, "CASHFREE_SECRET_KEY", provider)
    webhook_secret = None

  # Cashfree signs webhooks with the API secret key
  if provider == CASHFREE:
    webhook_secret = webhook_secret or key_secret

  return GatewayConfig(
    provider=provider,
    key_id=key_id,
    key_secret=key_secret,
    webhook_secret=webhook_secret,
    payment_mode=mode,
    api_url=api_url,
    environment=environment,
    timeout=env.GATEWAY_HTTP_TIMEOUT,
    max_retries=env.GATEWAY_MAX_RETRIES,
  )


def get_payment_gateway(
  config: GatewayConfig, http_client: Optional[httpx.Client] = None
) -> PaymentGateway:
  """Factory function to get a gateway adapter for a resolved config.

  Raises:
      UnsupportedGatewayError: Unknown provider name
  """
  from .cashfree_gateway import CashfreeGateway
  from .razorpay_gateway import RazorpayGateway

  adapters = {RAZORPAY: RazorpayGateway, CASHFREE: CashfreeGateway}
  adapter = adapters.get(config.provider)
  if adapter is None:
    raise UnsupportedGatewayError(config.provider)
  return adapter(config, http_client=http_client)
