from .payment_gateway import (
  CallbackVerification,
  CustomerDetails,
  GatewayConfig,
  GatewayOrder,
  OrderRequest,
  PaymentGateway,
  WebhookEvent,
  get_payment_gateway,
  resolve_gateway_config,
)

__all__ = [
  "CallbackVerification",
  "CustomerDetails",
  "GatewayConfig",
  "GatewayOrder",
  "OrderRequest",
  "PaymentGateway",
  "WebhookEvent",
  "get_payment_gateway",
  "resolve_gateway_config",
]
