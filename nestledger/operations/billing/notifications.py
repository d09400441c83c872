"""
Tenant notifications for billing events.

Emails are rendered here and handed to the Celery notification queue. Billing
code calls the notifier through ``notify_safely``: a notification that fails
for any reason is logged and reported as ``False``, and never undoes the
billing change that triggered it.
"""

import calendar
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

from kombu.exceptions import OperationalError
from sqlalchemy.orm import Session

from ...config import env
from ...logger import get_logger, log_error
from ...models.billing.invoice import Invoice
from ...models.billing.payment import Payment
from ...models.iam.tenant import Tenant

logger = get_logger(__name__)


def notify_safely(notify: Callable[..., bool], invoice: Invoice, *args: Any) -> bool:
  """Call a notifier method for an invoice whose billing change is committed."""
  invoice_id, admin_id = invoice.id, invoice.admin_id
  try:
    return notify(invoice, *args)
  except Exception as e:
    log_error(
      logger,
      e,
      component="notifications",
      action=getattr(notify, "__name__", "notify"),
      error_category="notification",
      admin_id=admin_id,
      invoice_id=invoice_id,
    )
    return False


def format_amount(amount: Decimal) -> str:
  return f"{env.BILLING_CURRENCY} {Decimal(amount):,.2f}"


def render_email(email_type: str, data: Dict[str, Any]) -> Dict[str, str]:
  """Subject, HTML and text bodies for a billing email type."""
  name = data.get("tenant_name") or "Tenant"

  if email_type == "late_fee_applied":
    subject = "Action Required: Late Fee Applied"
    lines = [
      f"Hi {name},",
      f"Your invoice {data['invoice_number']} for {data['period']} is overdue.",
      f"A late fee of {data['fee']} was added on {data['accrual_date']}.",
      f"The new amount due is {data['total']}.",
      "Please pay at the earliest to avoid further charges.",
    ]
  elif email_type == "payment_receipt":
    subject = f"Payment Receipt: {data['month']} Rent"
    lines = [
      f"Hi {name},",
      f"We received your payment of {data['amount']} for invoice "
      f"{data['invoice_number']}.",
      f"Transaction ID: {data['transaction_id']}",
      f"Date: {data['paid_on']}",
    ]
  elif email_type == "invoice_created":
    subject = f"New Invoice: {data['period']}"
    lines = [
      f"Hi {name},",
      f"Your invoice {data['invoice_number']} for {data['period']} is ready.",
      f"Amount due: {data['total']}, payable by {data['due_date']}.",
    ]
  else:
    raise ValueError(f"Unknown billing email type: {email_type}")

  text = "\n\n".join(lines)
  html = "".join(f"<p>{line}</p>" for line in lines)
  return {"subject": subject, "html": html, "text": text}


class BillingNotifier:
  """Queues tenant-facing billing emails."""

  def __init__(self, session: Session):
    self.session = session

  def late_fee_applied(self, invoice: Invoice, fee: Decimal, accrual_date) -> bool:
    return self._notify_tenant(
      invoice,
      "late_fee_applied",
      {
        "invoice_number": invoice.invoice_number,
        "period": invoice.period_label,
        "fee": format_amount(fee),
        "total": format_amount(invoice.total_amount),
        "accrual_date": accrual_date.isoformat(),
      },
    )

  def payment_receipt(self, invoice: Invoice, payment: Payment) -> bool:
    return self._notify_tenant(
      invoice,
      "payment_receipt",
      {
        "invoice_number": invoice.invoice_number,
        "month": calendar.month_name[invoice.period_month],
        "amount": format_amount(payment.amount),
        "transaction_id": payment.gateway_payment_id or payment.id,
        "paid_on": payment.created_at.date().isoformat(),
      },
    )

  def invoice_created(self, invoice: Invoice) -> bool:
    return self._notify_tenant(
      invoice,
      "invoice_created",
      {
        "invoice_number": invoice.invoice_number,
        "period": invoice.period_label,
        "total": format_amount(invoice.total_amount),
        "due_date": invoice.due_date.isoformat(),
      },
    )

  def _notify_tenant(
    self, invoice: Invoice, email_type: str, data: Dict[str, Any]
  ) -> bool:
    tenant: Optional[Tenant] = Tenant.get_by_id(invoice.tenant_id, self.session)
    if not tenant or not tenant.email:
      logger.warning(
        f"No email on file for tenant {invoice.tenant_id}, skipping {email_type}",
        extra={"invoice_id": invoice.id, "tenant_id": invoice.tenant_id},
      )
      return False

    rendered = render_email(email_type, {"tenant_name": tenant.full_name, **data})
    return self.send(tenant.email, rendered["subject"], rendered, email_type)

  def send(
    self, to: str, subject: str, body: Dict[str, str], email_type: str = "billing"
  ) -> bool:
    """Queue an email; returns False if the queue could not be reached."""
    from ...tasks.billing.notifications import send_billing_email

    try:
      send_billing_email.delay(
        to_email=to,
        subject=subject,
        html_body=body["html"],
        text_body=body.get("text"),
        email_type=email_type,
      )
      return True
    except OperationalError as e:
      logger.error(
        f"Failed to queue {email_type} email to {to}: {e}",
        extra={"action": "queue_notification", "error_category": "notification"},
      )
      return False
