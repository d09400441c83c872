"""Tests for the billing email delivery task."""

from unittest.mock import patch

from nestledger.tasks.billing.notifications import send_billing_email


class TestSendBillingEmailTask:
  @patch("nestledger.tasks.billing.notifications.SESEmailService")
  def test_delivered(self, mock_service_cls):
    mock_service_cls.return_value.send.return_value = True

    result = send_billing_email(  # type: ignore[call-arg]
      to_email="kabir@example.com",
      subject="New Invoice: May 2024",
      html_body="<p>Hi</p>",
      text_body="Hi",
      email_type="invoice_created",
    )

    assert result == {"sent": True, "email_type": "invoice_created", "to": "kabir@example.com"}
    mock_service_cls.return_value.send.assert_called_once_with(
      to_email="kabir@example.com",
      subject="New Invoice: May 2024",
      html_body="<p>Hi</p>",
      text_body="Hi",
      email_type="invoice_created",
    )

  @patch("nestledger.tasks.billing.notifications.SESEmailService")
  def test_undelivered_is_reported_not_raised(self, mock_service_cls):
    mock_service_cls.return_value.send.return_value = False

    result = send_billing_email(  # type: ignore[call-arg]
      to_email="kabir@example.com", subject="Receipt", html_body="<p>Paid</p>"
    )

    assert result["sent"] is False
    assert result["email_type"] == "billing"
