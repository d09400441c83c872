"""
Gateway checkout and webhook intake.

A tenant pays an invoice in two steps: ``start_checkout`` opens an order with
the provider configured for the invoice's administrator, and
``complete_checkout`` verifies the provider's completion (modal callback or
redirect return) and hands it to the payment recorder. Provider webhooks
arrive independently through ``process_webhook`` and land in the same
recorder, so whichever path reports the payment first settles the invoice and
the other resolves to a replay.
"""

from typing import Any, Dict, Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...exceptions import (
  ConfigurationError,
  InvalidInvoiceStateError,
  InvoiceNotFoundError,
  ValidationError,
)
from ...logger import get_logger
from ...models.billing.admin_config import AdminBillingConfig
from ...models.billing.audit_log import BillingAuditLog
from ...models.billing.invoice import Invoice
from ...models.billing.payment import PaymentMode
from ...models.iam.tenant import Tenant
from ..providers.payment_gateway import (
  CustomerDetails,
  GatewayOrder,
  OrderRequest,
  get_payment_gateway,
  resolve_gateway_config,
)
from .notifications import BillingNotifier
from .ownership import Principal, ensure_can_pay_invoice
from .payment_recorder import PaymentRecorder, ReconciliationResult

logger = get_logger(__name__)


def _load_invoice(session: Session, invoice_id: str) -> Invoice:
  invoice = Invoice.get_by_id(invoice_id, session)
  if not invoice:
    raise InvoiceNotFoundError(invoice_id)
  return invoice


def start_checkout(
  session: Session,
  principal: Principal,
  invoice_id: str,
  gateway: Optional[str] = None,
  return_url: Optional[str] = None,
) -> GatewayOrder:
  """
  Open a provider order for the full outstanding amount of a pending invoice.

  Args:
      session: Database session
      principal: The billed tenant
      invoice_id: Invoice to pay
      gateway: Provider override; defaults to the administrator's provider
      return_url: Where a redirect provider sends the tenant afterwards

  Raises:
      InvalidInvoiceStateError: The invoice is not pending
      ConfigurationError: The administrator's gateway is not set up
      GatewayError: The provider rejected or did not answer the request
  """
  invoice = _load_invoice(session, invoice_id)
  ensure_can_pay_invoice(principal, invoice)
  if not invoice.is_pending:
    raise InvalidInvoiceStateError(invoice.id, invoice.status, "pay")

  admin_config = AdminBillingConfig.get_or_create(invoice.admin_id, session)
  config = resolve_gateway_config(admin_config, provider=gateway)

  tenant = Tenant.get_by_id(invoice.tenant_id, session)
  customer = CustomerDetails(
    customer_id=invoice.tenant_id,
    name=tenant.full_name if tenant else invoice.tenant_id,
    email=tenant.email if tenant else None,
    phone=tenant.phone if tenant else None,
  )
  request = OrderRequest(
    invoice_id=invoice.id,
    admin_id=invoice.admin_id,
    amount=invoice.total_amount,
    currency=invoice.currency,
    customer=customer,
    return_url=return_url,
  )

  with get_payment_gateway(config) as provider:
    order = provider.create_order(request)

  logger.info(
    f"Opened {order.gateway} order {order.order_id} for invoice {invoice.invoice_number}",
    extra={
      "invoice_id": invoice.id,
      "admin_id": invoice.admin_id,
      "gateway": order.gateway,
      "payment_mode": config.payment_mode.value,
    },
  )
  return order


def complete_checkout(
  session: Session,
  principal: Principal,
  gateway_name: str,
  invoice_id: str,
  payload: Mapping[str, Any],
  notifier: Optional[BillingNotifier] = None,
) -> ReconciliationResult:
  """
  Verify a completion callback and record the payment it reports.

  ``invoice_id`` is what the client believes it paid; the invoice actually
  settled is the one the provider's order points at, and the two must agree.

  Raises:
      InvalidSignatureError: The callback failed verification
      ValidationError: The provider's order belongs to another invoice
  """
  invoice = _load_invoice(session, invoice_id)
  ensure_can_pay_invoice(principal, invoice)

  admin_config = AdminBillingConfig.get_or_create(invoice.admin_id, session)
  config = resolve_gateway_config(admin_config, provider=gateway_name)

  with get_payment_gateway(config) as provider:
    verification = provider.verify_callback(payload)

  if verification.valid and verification.invoice_id != invoice.id:
    logger.warning(
      f"{config.provider} order {verification.gateway_order_id} belongs to invoice "
      f"{verification.invoice_id}, not {invoice.id}",
      extra={"invoice_id": invoice.id, "gateway": config.provider, "action": "verify"},
    )
    raise ValidationError(
      "Payment does not belong to this invoice",
      field="invoice_id",
      gateway_order_id=verification.gateway_order_id,
    )

  return PaymentRecorder(session, notifier).reconcile(
    verification, config.payment_mode, principal=principal
  )


def _webhook_config(session: Session, provider: str, admin_id: Optional[str]):
  if admin_id is None:
    return resolve_gateway_config(provider=provider)

  admin_config = AdminBillingConfig.get_for_admin(admin_id, session)
  if not admin_config or admin_config.payment_mode != PaymentMode.OWN.value:
    raise ConfigurationError(
      "payment_mode", f"administrator {admin_id} does not use their own gateway account"
    )
  return resolve_gateway_config(admin_config, provider=provider)


def process_webhook(
  session: Session,
  provider: str,
  body: bytes,
  headers: Mapping[str, str],
  admin_id: Optional[str] = None,
  notifier: Optional[BillingNotifier] = None,
) -> Dict[str, str]:
  """
  Verify and apply one provider webhook delivery.

  Args:
      session: Database session
      provider: Provider name from the webhook URL
      body: Raw request body, exactly as signed
      headers: Request headers
      admin_id: Set when the webhook came from an administrator's own account

  Returns:
      {"status": "success" | "ignored", "message": ...}

  Raises:
      InvalidSignatureError: Signature check failed
      GatewayError: The provider could not be queried; the delivery should
          be retried
  """
  config = _webhook_config(session, provider, admin_id)
  with get_payment_gateway(config) as gateway:
    event = gateway.parse_webhook(body, headers)

  if BillingAuditLog.is_webhook_processed(event.event_id, config.provider, session):
    logger.info(
      f"{config.provider} webhook {event.event_id} already processed",
      extra={"gateway": config.provider, "action": "webhook_replay"},
    )
    return {"status": "success", "message": "Event already processed"}

  status, message = "success", f"Processed {event.event_type}"
  summary: Dict[str, Any] = {"kind": event.kind}

  if event.kind == "payment" and event.verification and event.verification.valid:
    try:
      result = PaymentRecorder(session, notifier).reconcile(
        event.verification, config.payment_mode, admin_id=admin_id
      )
      summary.update(result.to_dict())
    except (InvoiceNotFoundError, ValidationError) as e:
      logger.warning(
        f"{config.provider} webhook {event.event_id} not applied: {e.message}",
        extra={
          "gateway": config.provider,
          "invoice_id": event.verification.invoice_id,
          "action": "webhook_not_applied",
        },
      )
      status, message = "ignored", e.message
      summary["error"] = e.error_code
  elif event.kind == "refund" and event.verification:
    PaymentRecorder(session, notifier).record_refund(event.verification, event.refund_id)
    summary["refund_id"] = event.refund_id
  else:
    status, message = "ignored", f"Event {event.event_type} not handled"

  try:
    BillingAuditLog.mark_webhook_processed(
      event_id=event.event_id,
      provider=config.provider,
      event_type=event.event_type,
      event_data=summary,
      session=session,
    )
  except IntegrityError:
    session.rollback()
    logger.info(
      f"{config.provider} webhook {event.event_id} recorded concurrently",
      extra={"gateway": config.provider, "action": "webhook_replay"},
    )

  return {"status": status, "message": message}
