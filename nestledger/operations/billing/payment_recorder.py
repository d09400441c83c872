"""
Payment recording and reconciliation.

Turns a verified payment into exactly one SUCCESS payment row and exactly one
pending -> paid transition of its invoice. Several service instances may
receive the same callback at once, so the guarantee comes from the database:

- the partial unique index ``uq_payment_invoice_success`` admits one SUCCESS
  payment per invoice, and
- the invoice moves to paid through a conditional UPDATE that only matches
  while the invoice is still pending.

The loser of a race sees an IntegrityError (or a zero rowcount), rolls back
and resolves to the winner's result. A replay is reported as success, never as
an error.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ...exceptions import (
  GatewayError,
  InvalidInvoiceStateError,
  InvalidSignatureError,
  InvoiceNotFoundError,
  PersistenceError,
  ReconciliationConflict,
  ValidationError,
)
from ...logger import get_logger, log_error
from ...models.billing.audit_log import BillingAuditLog, BillingEventType
from ...models.billing.invoice import Invoice, InvoiceStatus
from ...models.billing.payment import (
  OFFLINE_GATEWAY,
  Payment,
  PaymentMode,
  PaymentStatus,
)
from ..providers.payment_gateway import CallbackVerification
from .notifications import BillingNotifier, notify_safely
from .ownership import Principal, ensure_can_pay_invoice

logger = get_logger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class PaymentEvent:
  """A verified payment, ready to be applied to its invoice."""

  invoice_id: str
  tenant_id: str
  admin_id: str
  gateway_name: str
  gateway_payment_id: Optional[str]
  gateway_order_id: Optional[str]
  amount: Decimal
  payment_mode: PaymentMode
  currency: str = "INR"
  gateway_signature: Optional[str] = None


@dataclass(frozen=True)
class ReconciliationResult:
  """Outcome of applying a payment event.

  ``created`` is False for an idempotent replay: the invoice was already
  settled and ``payment_id`` is the existing SUCCESS payment.
  """

  invoice_id: str
  payment_id: str
  invoice_status: str
  created: bool

  @property
  def replayed(self) -> bool:
    return not self.created

  def to_dict(self) -> dict:
    return {
      "invoice_id": self.invoice_id,
      "payment_id": self.payment_id,
      "invoice_status": self.invoice_status,
      "created": self.created,
    }


def split_payout(
  invoice: Invoice, amount: Decimal, payment_mode: PaymentMode
) -> tuple[Decimal, Optional[Decimal]]:
  """Platform fee share and the vendor payout owed for a payment.

  A payout is only owed when the platform's gateway account collected the
  money; in OWN and OFFLINE mode the administrator already holds it.
  """
  platform_fee = invoice.platform_fee_total
  if payment_mode is not PaymentMode.PLATFORM:
    return platform_fee, None
  return platform_fee, max(ZERO, Decimal(amount) - platform_fee)


class PaymentRecorder:
  """Applies verified payments to invoices exactly once."""

  def __init__(self, session: Session, notifier: Optional[BillingNotifier] = None):
    self.session = session
    self.notifier = notifier or BillingNotifier(session)

  def reconcile(
    self,
    verification: CallbackVerification,
    payment_mode: PaymentMode,
    principal: Optional[Principal] = None,
    admin_id: Optional[str] = None,
  ) -> ReconciliationResult:
    """
    Record a gateway payment after its callback or webhook was verified.

    Args:
        verification: Adapter verification result; rejected when not valid
        payment_mode: Which gateway account collected the money
        principal: Tenant completing the payment in-session, if any
        admin_id: Administrator whose own gateway account reported the
            payment; the invoice must belong to them

    Raises:
        InvalidSignatureError: The payload failed verification
        InvoiceNotFoundError: The provider's order references no invoice
        InvalidInvoiceStateError: The invoice was cancelled
    """
    if not verification.valid:
      logger.warning(
        f"Rejected unverified {verification.gateway} payment: {verification.reason}",
        extra={"gateway": verification.gateway, "action": "reconcile"},
      )
      raise InvalidSignatureError(
        verification.gateway, verification.reason or "Payment could not be verified"
      )
    if not verification.invoice_id:
      raise GatewayError(
        verification.gateway,
        "Verified payment does not reference an invoice",
        retryable=False,
        gateway_order_id=verification.gateway_order_id,
      )

    invoice = Invoice.get_by_id(verification.invoice_id, self.session)
    if not invoice:
      raise InvoiceNotFoundError(verification.invoice_id)
    if principal is not None:
      ensure_can_pay_invoice(principal, invoice)
    if admin_id is not None and invoice.admin_id != admin_id:
      raise ValidationError(
        "Payment was reported by another administrator's gateway account",
        field="admin_id",
        invoice_id=invoice.id,
      )

    event = PaymentEvent(
      invoice_id=invoice.id,
      tenant_id=invoice.tenant_id,
      admin_id=invoice.admin_id,
      gateway_name=verification.gateway,
      gateway_payment_id=verification.gateway_payment_id,
      gateway_order_id=verification.gateway_order_id,
      amount=verification.amount if verification.amount is not None else invoice.total_amount,
      payment_mode=payment_mode,
      currency=verification.currency or invoice.currency,
      gateway_signature=verification.signature,
    )
    return self.record(event)

  def record(
    self,
    event: PaymentEvent,
    audit_event: BillingEventType = BillingEventType.PAYMENT_SUCCEEDED,
    actor_id: Optional[str] = None,
    actor_type: str = "system",
  ) -> ReconciliationResult:
    """Apply a verified payment event to its invoice.

    A second delivery of the same (or any other) payment for a settled
    invoice returns the existing result without writing anything new.
    """
    invoice = Invoice.get_by_id(event.invoice_id, self.session)
    if not invoice:
      raise InvoiceNotFoundError(event.invoice_id)
    if invoice.admin_id != event.admin_id or invoice.tenant_id != event.tenant_id:
      raise ValidationError(
        "Payment does not belong to this invoice's administrator and tenant",
        field="invoice_id",
        invoice_id=event.invoice_id,
      )

    try:
      existing = Payment.get_success_for_invoice(invoice.id, self.session)
      if existing:
        raise ReconciliationConflict(
          invoice.id, "invoice already has a successful payment", payment_id=existing.id
        )
      if not invoice.is_pending:
        raise InvalidInvoiceStateError(invoice.id, invoice.status, "pay")

      payment = self._apply(invoice, event, audit_event, actor_id, actor_type)
    except ReconciliationConflict as conflict:
      return self._resolve_conflict(event, conflict)

    result = ReconciliationResult(
      invoice_id=invoice.id,
      payment_id=payment.id,
      invoice_status=invoice.status,
      created=True,
    )
    notify_safely(self.notifier.payment_receipt, invoice, payment)
    return result

  def record_offline(
    self, invoice: Invoice, actor_id: str, reference: Optional[str] = None
  ) -> ReconciliationResult:
    """Settle an invoice paid outside any gateway (cash, bank transfer)."""
    event = PaymentEvent(
      invoice_id=invoice.id,
      tenant_id=invoice.tenant_id,
      admin_id=invoice.admin_id,
      gateway_name=OFFLINE_GATEWAY,
      gateway_payment_id=reference,
      gateway_order_id=None,
      amount=Decimal(invoice.total_amount),
      payment_mode=PaymentMode.OFFLINE,
      currency=invoice.currency,
    )
    return self.record(
      event,
      audit_event=BillingEventType.INVOICE_MARKED_PAID,
      actor_id=actor_id,
      actor_type="admin",
    )

  def record_refund(
    self, verification: CallbackVerification, refund_id: Optional[str]
  ) -> Optional[BillingAuditLog]:
    """Audit a provider refund against the payment it reverses.

    The payment row and the invoice are left as they are.
    """
    payment = None
    if verification.gateway_payment_id:
      payment = Payment.get_by_gateway_payment_id(
        verification.gateway, verification.gateway_payment_id, self.session
      )
    if not payment:
      logger.warning(
        f"Refund {refund_id} references unknown {verification.gateway} payment "
        f"{verification.gateway_payment_id}",
        extra={"gateway": verification.gateway, "action": "record_refund"},
      )
      return None

    try:
      return BillingAuditLog.log_event(
        session=self.session,
        event_type=BillingEventType.REFUND_PROCESSED,
        description=f"Refund of {verification.amount} processed by {verification.gateway}",
        actor_type=verification.gateway,
        admin_id=payment.admin_id,
        invoice_id=payment.invoice_id,
        payment_id=payment.id,
        event_data={
          "refund_id": refund_id,
          "amount": str(verification.amount),
          "gateway_payment_id": verification.gateway_payment_id,
        },
        external_ref=f"{verification.gateway}:{refund_id}" if refund_id else None,
      )
    except IntegrityError:
      self.session.rollback()
      logger.info(f"Refund {refund_id} already recorded")
      return None

  def _apply(
    self,
    invoice: Invoice,
    event: PaymentEvent,
    audit_event: BillingEventType,
    actor_id: Optional[str],
    actor_type: str,
  ) -> Payment:
    """Insert the payment and flip the invoice to paid in one transaction."""
    amount = Decimal(event.amount)
    if amount != Decimal(invoice.total_amount):
      logger.warning(
        f"Payment amount {amount} differs from invoice total {invoice.total_amount}",
        extra={
          "invoice_id": invoice.id,
          "gateway": event.gateway_name,
          "action": "amount_mismatch",
        },
      )

    platform_fee, vendor_payout = split_payout(invoice, amount, event.payment_mode)
    payment = Payment(
      invoice_id=invoice.id,
      tenant_id=invoice.tenant_id,
      admin_id=invoice.admin_id,
      gateway_name=event.gateway_name,
      gateway_order_id=event.gateway_order_id,
      gateway_payment_id=event.gateway_payment_id,
      gateway_signature=event.gateway_signature,
      amount=amount,
      currency=event.currency,
      platform_fee=platform_fee,
      vendor_payout=vendor_payout,
      status=PaymentStatus.SUCCESS.value,
      payment_mode=event.payment_mode.value,
    )
    paid_at = datetime.now(UTC)

    try:
      self.session.add(payment)
      self.session.flush()

      updated = (
        self.session.query(Invoice)
        .filter(
          Invoice.id == invoice.id,
          Invoice.status == InvoiceStatus.PENDING.value,
        )
        .update(
          {
            Invoice.status: InvoiceStatus.PAID.value,
            Invoice.paid_at: paid_at,
            Invoice.updated_at: paid_at,
          },
          synchronize_session=False,
        )
      )
      if updated != 1:
        raise ReconciliationConflict(invoice.id, "invoice left pending concurrently")

      BillingAuditLog.log_event(
        session=self.session,
        event_type=audit_event,
        description=f"Invoice {invoice.invoice_number} paid via {event.gateway_name}",
        actor_type=actor_type,
        actor_id=actor_id,
        admin_id=invoice.admin_id,
        invoice_id=invoice.id,
        payment_id=payment.id,
        event_data={
          "amount": str(amount),
          "payment_mode": event.payment_mode.value,
          "gateway_payment_id": event.gateway_payment_id,
          "vendor_payout": str(vendor_payout) if vendor_payout is not None else None,
        },
        commit=False,
      )
      self.session.commit()
    except IntegrityError as e:
      self.session.rollback()
      raise ReconciliationConflict(
        invoice.id, "a successful payment was recorded concurrently", error=str(e.orig)
      )
    except ReconciliationConflict:
      self.session.rollback()
      raise
    except SQLAlchemyError as e:
      self.session.rollback()
      log_error(
        logger,
        e,
        component="payment_recorder",
        action="record_payment",
        error_category="persistence",
        admin_id=invoice.admin_id,
        invoice_id=invoice.id,
      )
      raise PersistenceError("record_payment", str(e), invoice_id=invoice.id)

    self.session.refresh(invoice)
    logger.info(
      f"Recorded {event.gateway_name} payment {payment.id} for invoice "
      f"{invoice.invoice_number}",
      extra={
        "invoice_id": invoice.id,
        "payment_id": payment.id,
        "admin_id": invoice.admin_id,
        "gateway": event.gateway_name,
      },
    )
    return payment

  def _resolve_conflict(
    self, event: PaymentEvent, conflict: ReconciliationConflict
  ) -> ReconciliationResult:
    """Resolve a losing or repeated payment to the invoice's settled state."""
    self.session.expire_all()
    invoice = Invoice.get_by_id(event.invoice_id, self.session)
    existing = Payment.get_success_for_invoice(event.invoice_id, self.session)

    if existing is None:
      if invoice is not None and invoice.status == InvoiceStatus.CANCELLED.value:
        raise InvalidInvoiceStateError(invoice.id, invoice.status, "pay")
      raise PersistenceError(
        "record_payment", conflict.message, invoice_id=event.invoice_id
      )

    duplicate_charge = (
      event.gateway_payment_id is not None
      and (
        existing.gateway_name != event.gateway_name
        or existing.gateway_payment_id != event.gateway_payment_id
      )
    )
    if duplicate_charge:
      logger.warning(
        f"Invoice {event.invoice_id} already settled by payment {existing.id}; "
        f"{event.gateway_name} payment {event.gateway_payment_id} needs a refund review",
        extra={
          "invoice_id": event.invoice_id,
          "payment_id": existing.id,
          "gateway": event.gateway_name,
          "action": "duplicate_charge",
        },
      )
    else:
      logger.info(
        f"Idempotent replay for invoice {event.invoice_id}: {conflict.details['reason']}",
        extra={
          "invoice_id": event.invoice_id,
          "payment_id": existing.id,
          "gateway": event.gateway_name,
          "action": "reconciliation_conflict",
        },
      )

    try:
      BillingAuditLog.log_event(
        session=self.session,
        event_type=BillingEventType.RECONCILIATION_CONFLICT,
        description=f"Duplicate payment event for settled invoice {event.invoice_id}",
        admin_id=existing.admin_id,
        invoice_id=existing.invoice_id,
        payment_id=existing.id,
        event_data={
          "gateway": event.gateway_name,
          "gateway_payment_id": event.gateway_payment_id,
          "duplicate_charge": duplicate_charge,
        },
      )
    except SQLAlchemyError as e:
      self.session.rollback()
      log_error(
        logger,
        e,
        component="payment_recorder",
        action="audit_reconciliation_conflict",
        error_category="persistence",
        invoice_id=event.invoice_id,
      )

    return ReconciliationResult(
      invoice_id=existing.invoice_id,
      payment_id=existing.id,
      invoice_status=invoice.status if invoice else InvoiceStatus.PAID.value,
      created=False,
    )
