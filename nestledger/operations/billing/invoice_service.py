"""
Invoice lifecycle operations.

pending is the only state that accepts changes. It moves to paid (gateway
reconciliation or an administrator marking it paid) or to cancelled, and
neither of those has a way out. Every operation checks ownership first.
"""

from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...exceptions import (
  InvalidInvoiceStateError,
  InvoiceNotFoundError,
  PaidInvoiceDeletionError,
  PersistenceError,
  ValidationError,
)
from ...logger import get_logger, log_error
from ...models.billing.admin_config import AdminBillingConfig
from ...models.billing.audit_log import BillingAuditLog, BillingEventType
from ...models.billing.invoice import Invoice, InvoiceItem, InvoiceStatus
from ...models.billing.payment import Payment
from ...models.iam.tenant import Tenant
from .fee_calculator import ChargeInputs, FeeSchedule, calculate_fees
from .notifications import BillingNotifier, notify_safely
from .ownership import (
  Principal,
  ensure_admin_scope,
  ensure_can_manage_invoice,
  ensure_can_view_invoice,
  scope_invoice_filters,
)
from .payment_recorder import PaymentRecorder, ReconciliationResult

logger = get_logger(__name__)


class InvoiceService:
  """Create, query and transition invoices on behalf of a principal."""

  def __init__(self, session: Session, notifier: Optional[BillingNotifier] = None):
    self.session = session
    self.notifier = notifier or BillingNotifier(session)

  def create_invoice(
    self,
    principal: Principal,
    admin_id: str,
    tenant_id: str,
    period_month: int,
    period_year: int,
    due_date: date,
    charges: ChargeInputs,
    notes: Optional[str] = None,
    notify: bool = True,
  ) -> Invoice:
    """
    Create a pending invoice priced with the administrator's fee schedule.

    Raises:
        InsufficientPermissionsError: Caller is not the administrator
        ValidationError: Bad period, foreign tenant or invalid charges
        PersistenceError: Database rejected the write
    """
    ensure_admin_scope(principal, admin_id)

    if not 1 <= period_month <= 12:
      raise ValidationError("Billing month must be between 1 and 12", field="period_month")

    tenant = Tenant.get_by_id(tenant_id, self.session)
    if not tenant or tenant.admin_id != admin_id:
      raise ValidationError(
        "Tenant does not belong to this administrator", field="tenant_id"
      )

    config = AdminBillingConfig.get_or_create(admin_id, self.session)
    breakdown = calculate_fees(charges, FeeSchedule.from_config(config))

    try:
      invoice = Invoice.create_invoice(
        admin_id=admin_id,
        tenant_id=tenant_id,
        period_month=period_month,
        period_year=period_year,
        due_date=due_date,
        lines=breakdown.items,
        subtotal=breakdown.subtotal,
        total_amount=breakdown.total_amount,
        session=self.session,
        notes=notes,
      )
      BillingAuditLog.log_event(
        session=self.session,
        event_type=BillingEventType.INVOICE_CREATED,
        description=f"Invoice {invoice.invoice_number} created for {invoice.period_label}",
        actor_type=principal.role.value,
        actor_id=principal.user_id,
        admin_id=admin_id,
        invoice_id=invoice.id,
        event_data={"total_amount": str(invoice.total_amount)},
      )
    except SQLAlchemyError as e:
      self.session.rollback()
      log_error(
        logger,
        e,
        component="invoice_service",
        action="create_invoice",
        error_category="persistence",
        admin_id=admin_id,
      )
      raise PersistenceError("create_invoice", str(e), tenant_id=tenant_id)

    if notify:
      notify_safely(self.notifier.invoice_created, invoice)
    return invoice

  def get_invoice(self, principal: Principal, invoice_id: str) -> Invoice:
    invoice = self._load(invoice_id)
    ensure_can_view_invoice(principal, invoice)
    return invoice

  def list_invoices(
    self,
    principal: Principal,
    admin_id: Optional[str] = None,
    tenant_id: Optional[str] = None,
    status: Optional[InvoiceStatus] = None,
    due_from: Optional[date] = None,
    due_to: Optional[date] = None,
  ) -> list[Invoice]:
    """Invoices visible to the caller, filtered by owner, status and due date."""
    if due_from and due_to and due_from > due_to:
      raise ValidationError("due_from must not be after due_to", field="due_from")

    admin_id, tenant_id = scope_invoice_filters(principal, admin_id, tenant_id)
    return Invoice.search(
      self.session,
      admin_id=admin_id,
      tenant_id=tenant_id,
      status=status,
      due_from=due_from,
      due_to=due_to,
    )

  def edit_invoice(
    self,
    principal: Principal,
    invoice_id: str,
    charges: Optional[ChargeInputs] = None,
    due_date: Optional[date] = None,
    notes: Optional[str] = None,
  ) -> Invoice:
    """
    Replace the charges of a pending invoice and reprice it.

    Charge and platform fee items are rebuilt from the new charges; accrued
    late fees stay on the invoice and are carried into the new total.
    """
    invoice = self._load(invoice_id, for_update=True)
    ensure_can_manage_invoice(principal, invoice)
    if not invoice.is_pending:
      raise InvalidInvoiceStateError(invoice.id, invoice.status, "edit")

    changes = {}
    try:
      if charges is not None:
        config = AdminBillingConfig.get_or_create(invoice.admin_id, self.session)
        breakdown = calculate_fees(charges, FeeSchedule.from_config(config))
        late_fees = invoice.late_fee_items

        rebuilt = [
          InvoiceItem.from_line(line, position)
          for position, line in enumerate(breakdown.items)
        ]
        for offset, item in enumerate(late_fees):
          item.position = len(rebuilt) + offset

        invoice.items = rebuilt + late_fees
        invoice.subtotal = breakdown.subtotal
        invoice.total_amount = breakdown.total_amount + sum(
          (Decimal(item.amount) for item in late_fees), Decimal("0")
        )
        changes["total_amount"] = str(invoice.total_amount)

      if due_date is not None:
        invoice.due_date = due_date
        changes["due_date"] = due_date.isoformat()
      if notes is not None:
        invoice.notes = notes
        changes["notes"] = notes

      BillingAuditLog.log_event(
        session=self.session,
        event_type=BillingEventType.INVOICE_EDITED,
        description=f"Invoice {invoice.invoice_number} edited",
        actor_type=principal.role.value,
        actor_id=principal.user_id,
        admin_id=invoice.admin_id,
        invoice_id=invoice.id,
        event_data=changes,
        commit=False,
      )
      self.session.commit()
    except SQLAlchemyError as e:
      self.session.rollback()
      log_error(
        logger,
        e,
        component="invoice_service",
        action="edit_invoice",
        error_category="persistence",
        admin_id=invoice.admin_id,
        invoice_id=invoice_id,
      )
      raise PersistenceError("edit_invoice", str(e), invoice_id=invoice_id)

    self.session.refresh(invoice)
    return invoice

  def mark_paid(
    self, principal: Principal, invoice_id: str, reference: Optional[str] = None
  ) -> ReconciliationResult:
    """Record an offline payment. Repeating it returns the settled state."""
    invoice = self._load(invoice_id)
    ensure_can_manage_invoice(principal, invoice)
    return PaymentRecorder(self.session, self.notifier).record_offline(
      invoice, actor_id=principal.user_id, reference=reference
    )

  def cancel_invoice(self, principal: Principal, invoice_id: str) -> Invoice:
    invoice = self._load(invoice_id)
    ensure_can_manage_invoice(principal, invoice)

    if invoice.status == InvoiceStatus.CANCELLED.value:
      return invoice
    if invoice.status == InvoiceStatus.PAID.value:
      raise InvalidInvoiceStateError(invoice.id, invoice.status, "cancel")

    now = datetime.now(UTC)
    try:
      updated = (
        self.session.query(Invoice)
        .filter(Invoice.id == invoice.id, Invoice.status == InvoiceStatus.PENDING.value)
        .update(
          {
            Invoice.status: InvoiceStatus.CANCELLED.value,
            Invoice.cancelled_at: now,
            Invoice.updated_at: now,
          },
          synchronize_session=False,
        )
      )
      if updated == 1:
        BillingAuditLog.log_event(
          session=self.session,
          event_type=BillingEventType.INVOICE_CANCELLED,
          description=f"Invoice {invoice.invoice_number} cancelled",
          actor_type=principal.role.value,
          actor_id=principal.user_id,
          admin_id=invoice.admin_id,
          invoice_id=invoice.id,
          commit=False,
        )
      self.session.commit()
    except SQLAlchemyError as e:
      self.session.rollback()
      raise PersistenceError("cancel_invoice", str(e), invoice_id=invoice_id)

    self.session.refresh(invoice)
    if invoice.status == InvoiceStatus.PAID.value:
      raise InvalidInvoiceStateError(invoice.id, invoice.status, "cancel")
    return invoice

  def delete_invoice(
    self, principal: Principal, invoice_id: str, privileged: bool = False
  ) -> None:
    """
    Delete an invoice with its items and payments.

    A paid invoice carries the only record of money collected, so deleting
    one needs ``privileged=True`` and is audited as its own event type.
    """
    invoice = self._load(invoice_id)
    ensure_can_manage_invoice(principal, invoice)

    paid = invoice.status == InvoiceStatus.PAID.value
    if paid and not privileged:
      raise PaidInvoiceDeletionError(invoice.id)

    payments = Payment.get_by_invoice_id(invoice.id, self.session)
    event_type = (
      BillingEventType.INVOICE_DELETED_PAID if paid else BillingEventType.INVOICE_DELETED
    )

    try:
      BillingAuditLog.log_event(
        session=self.session,
        event_type=event_type,
        description=f"Invoice {invoice.invoice_number} deleted",
        actor_type=principal.role.value,
        actor_id=principal.user_id,
        admin_id=invoice.admin_id,
        invoice_id=invoice.id,
        event_data={
          "status": invoice.status,
          "total_amount": str(invoice.total_amount),
          "payments": [
            {"id": p.id, "amount": str(p.amount), "gateway": p.gateway_name}
            for p in payments
          ],
        },
        commit=False,
      )
      self.session.delete(invoice)
      self.session.commit()
    except SQLAlchemyError as e:
      self.session.rollback()
      raise PersistenceError("delete_invoice", str(e), invoice_id=invoice_id)

    if paid:
      logger.warning(
        f"Paid invoice {invoice_id} deleted with {len(payments)} payment(s)",
        extra={
          "action": "delete_paid_invoice",
          "admin_id": invoice.admin_id,
          "invoice_id": invoice_id,
        },
      )

  def _load(self, invoice_id: str, for_update: bool = False) -> Invoice:
    query = self.session.query(Invoice).filter(Invoice.id == invoice_id)
    if for_update:
      query = query.with_for_update()
    invoice = query.first()
    if not invoice:
      raise InvoiceNotFoundError(invoice_id)
    return invoice
