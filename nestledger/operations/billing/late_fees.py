"""
Daily late fee accrual.

Selects pending invoices past their due date whose administrator has late
fees switched on, and adds one late fee per invoice per calendar day. The fee
is a percentage of the invoice's current total, so fees compound day over
day.

Re-running on the same day is harmless: a fee already dated today is skipped,
and the partial unique index on (invoice_id, accrual_date) for late fee items
rejects a second insert from a concurrent run. Each invoice is committed on
its own; one failure is reported and the rest of the batch carries on.
"""

import time
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...config.billing import BillingConfig
from ...logger import get_logger, log_error, performance_timer
from ...models.billing.admin_config import AdminBillingConfig
from ...models.billing.audit_log import BillingAuditLog, BillingEventType
from ...models.billing.billing_run import BillingRun, BillingRunType
from ...models.billing.invoice import Invoice, InvoiceItem, InvoiceItemKind, InvoiceStatus
from .fee_calculator import percent_of
from .notifications import BillingNotifier, notify_safely

logger = get_logger(__name__)


def apply_late_fee(
  session: Session, invoice: Invoice, percent: Decimal, today: date
) -> Optional[Decimal]:
  """
  Add today's late fee to one invoice and commit.

  Returns:
      The fee applied, or None when the invoice was skipped (fee already
      applied today, fee rounds to zero, or the invoice stopped being pending)
  """
  if invoice.has_late_fee_on(today):
    logger.debug(f"Late fee already applied today to invoice {invoice.id}")
    return None

  fee = percent_of(Decimal(invoice.total_amount), Decimal(percent))
  if fee <= 0:
    return None

  item = InvoiceItem(
    invoice_id=invoice.id,
    position=invoice.next_position(),
    description=BillingConfig.late_fee_description(Decimal(percent), today.isoformat()),
    amount=fee,
    kind=InvoiceItemKind.LATE_FEE.value,
    accrual_date=today,
  )

  try:
    session.add(item)
    session.flush()
  except IntegrityError:
    session.rollback()
    logger.info(
      f"Late fee for {today} on invoice {invoice.id} applied by a concurrent run",
      extra={"invoice_id": invoice.id, "action": "late_fee_skipped"},
    )
    return None

  updated = (
    session.query(Invoice)
    .filter(Invoice.id == invoice.id, Invoice.status == InvoiceStatus.PENDING.value)
    .update(
      {
        Invoice.total_amount: Invoice.total_amount + fee,
        Invoice.updated_at: datetime.now(UTC),
      },
      synchronize_session=False,
    )
  )
  if updated != 1:
    session.rollback()
    logger.info(
      f"Invoice {invoice.id} left pending before its late fee was applied",
      extra={"invoice_id": invoice.id, "action": "late_fee_skipped"},
    )
    return None

  BillingAuditLog.log_event(
    session=session,
    event_type=BillingEventType.LATE_FEE_APPLIED,
    description=f"Late fee of {fee} applied to {invoice.invoice_number}",
    admin_id=invoice.admin_id,
    invoice_id=invoice.id,
    event_data={"fee": str(fee), "percent": str(percent), "accrual_date": today.isoformat()},
    commit=False,
  )
  session.commit()
  session.refresh(invoice)
  return fee


@performance_timer(logger, component="late_fees", action="run_late_fee_accrual")
def run_late_fee_accrual(
  session: Session,
  manual: bool = False,
  admin_id: Optional[str] = None,
  today: Optional[date] = None,
  notifier: Optional[BillingNotifier] = None,
) -> Dict[str, Any]:
  """
  Apply today's late fees to every eligible overdue invoice.

  The scheduler and the administrator's "run now" action both call this.

  Args:
      session: Database session
      manual: True when an administrator triggered the run
      admin_id: Restrict the run to one administrator
      today: Accrual date, defaults to the current UTC date
      notifier: Tenant notifier, defaults to email via Celery

  Returns:
      {"success", "processed", "errors": [{"id", "error"}], "execution_time_ms"}
  """
  start_time = time.time()
  started_at = datetime.now(UTC)
  today = today or started_at.date()
  notifier = notifier or BillingNotifier(session)

  logger.info(
    f"Starting late fee run ({'manual' if manual else 'scheduled'}) for {today}",
    extra={"action": "run_late_fee_accrual", "admin_id": admin_id},
  )

  configs = AdminBillingConfig.get_late_fee_configs(session, admin_id=admin_id)
  percents = {config.admin_id: Decimal(config.late_fee_daily_percent) for config in configs}
  invoices = Invoice.get_overdue_pending(session, today, percents.keys())

  processed = 0
  errors = []

  for invoice in invoices:
    invoice_id, invoice_admin_id = invoice.id, invoice.admin_id
    try:
      fee = apply_late_fee(session, invoice, percents[invoice_admin_id], today)
    except Exception as e:
      session.rollback()
      log_error(
        logger,
        e,
        component="late_fees",
        action="apply_late_fee",
        error_category="batch_item",
        admin_id=invoice_admin_id,
        invoice_id=invoice_id,
      )
      errors.append({"id": invoice_id, "error": str(e)})
      continue

    if fee is None:
      continue

    processed += 1
    logger.info(
      f"Applied late fee {fee} to invoice {invoice.invoice_number}",
      extra={"invoice_id": invoice_id, "admin_id": invoice_admin_id},
    )
    notify_safely(notifier.late_fee_applied, invoice, fee, today)

  execution_time_ms = int((time.time() - start_time) * 1000)

  BillingRun.record(
    session,
    run_type=BillingRunType.LATE_FEES,
    manual=manual,
    processed_count=processed,
    errors=errors,
    execution_time_ms=execution_time_ms,
    started_at=started_at,
    admin_scope=admin_id,
  )

  logger.info(
    f"Late fee run finished: {processed} applied, {len(errors)} errors "
    f"out of {len(invoices)} overdue invoices",
    extra={"action": "run_late_fee_accrual", "duration_ms": execution_time_ms},
  )

  return {
    "success": True,
    "processed": processed,
    "errors": errors,
    "execution_time_ms": execution_time_ms,
  }
