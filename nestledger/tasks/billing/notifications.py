"""Asynchronous delivery of billing emails."""

from typing import Any, Dict

from ...celery import celery_app
from ...logger import get_logger
from ...operations.aws.ses import SESEmailService

logger = get_logger(__name__)


@celery_app.task(name="nestledger.tasks.send_billing_email", bind=True)
def send_billing_email(
  self,
  to_email: str,
  subject: str,
  html_body: str,
  text_body: str | None = None,
  email_type: str = "billing",
) -> Dict[str, Any]:
  """
  Send one billing email through SES.

  Delivery failures are reported in the result, never raised: the billing
  operation that queued the email has already been committed.
  """
  sent = SESEmailService().send(
    to_email=to_email,
    subject=subject,
    html_body=html_body,
    text_body=text_body,
    email_type=email_type,
  )

  if not sent:
    logger.warning(
      f"Billing email '{subject}' to {to_email} was not delivered",
      extra={"action": "send_billing_email"},
    )

  return {"sent": sent, "email_type": email_type, "to": to_email}
