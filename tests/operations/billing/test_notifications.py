"""Tests for tenant billing notifications."""

from datetime import UTC, date, datetime
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from kombu.exceptions import OperationalError

from nestledger.operations.billing.notifications import (
  BillingNotifier,
  format_amount,
  notify_safely,
  render_email,
)


@pytest.fixture
def billing_notifier(db_session):
  return BillingNotifier(db_session)


@pytest.fixture
def invoice(make_invoice):
  return make_invoice(total=Decimal("10000"), fee=Decimal("5"))


class TestRenderEmail:
  def test_late_fee_email(self):
    rendered = render_email(
      "late_fee_applied",
      {
        "tenant_name": "Kabir",
        "invoice_number": "INV-2024-05-0001",
        "period": "May 2024",
        "fee": "INR 50.00",
        "total": "INR 10,050.00",
        "accrual_date": "2024-05-11",
      },
    )

    assert rendered["subject"] == "Action Required: Late Fee Applied"
    assert "A late fee of INR 50.00 was added on 2024-05-11." in rendered["text"]
    assert rendered["html"].startswith("<p>Hi Kabir,</p>")

  def test_unknown_type(self):
    with pytest.raises(ValueError):
      render_email("welcome", {})

  def test_format_amount(self):
    assert format_amount(Decimal("10005")) == "INR 10,005.00"


class TestBillingNotifier:
  def test_late_fee_applied_queues_email(self, billing_notifier, invoice, queued_emails):
    sent = billing_notifier.late_fee_applied(invoice, Decimal("50"), date(2024, 5, 11))

    assert sent is True
    kwargs = queued_emails.call_args.kwargs
    assert kwargs["to_email"] == "kabir@example.com"
    assert kwargs["subject"] == "Action Required: Late Fee Applied"
    assert kwargs["email_type"] == "late_fee_applied"
    assert "INR 50.00" in kwargs["text_body"]

  def test_payment_receipt(self, billing_notifier, invoice, queued_emails):
    payment = SimpleNamespace(
      id="pay_local",
      amount=Decimal("10005"),
      gateway_payment_id="pay_gateway_1",
      created_at=datetime(2024, 5, 8, 10, 30, tzinfo=UTC),
    )

    billing_notifier.payment_receipt(invoice, payment)

    kwargs = queued_emails.call_args.kwargs
    assert kwargs["subject"] == "Payment Receipt: May Rent"
    assert "Transaction ID: pay_gateway_1" in kwargs["text_body"]
    assert "Date: 2024-05-08" in kwargs["text_body"]

  def test_invoice_created(self, billing_notifier, invoice, queued_emails):
    billing_notifier.invoice_created(invoice)

    kwargs = queued_emails.call_args.kwargs
    assert kwargs["subject"] == "New Invoice: May 2024"
    assert "payable by 2024-05-10" in kwargs["text_body"]

  def test_tenant_without_email_is_skipped(
    self, billing_notifier, invoice, test_tenant, db_session, queued_emails
  ):
    test_tenant.email = None
    db_session.commit()

    assert billing_notifier.invoice_created(invoice) is False
    queued_emails.assert_not_called()

  def test_unreachable_queue_does_not_raise(self, billing_notifier, invoice, queued_emails):
    queued_emails.side_effect = OperationalError("broker unreachable")

    assert billing_notifier.invoice_created(invoice) is False


class TestNotifySafely:
  def test_returns_notifier_result(self, invoice):
    assert notify_safely(lambda inv, fee: inv.id == invoice.id, invoice, Decimal("50"))

  def test_any_failure_is_logged_and_reported(self, billing_notifier, invoice):
    with patch(
      "nestledger.operations.billing.notifications.Tenant.get_by_id",
      side_effect=RuntimeError("connection reset"),
    ):
      with patch("nestledger.operations.billing.notifications.log_error") as log_error:
        assert notify_safely(billing_notifier.invoice_created, invoice) is False

    assert log_error.call_args.kwargs["action"] == "invoice_created"
    assert log_error.call_args.kwargs["invoice_id"] == invoice.id
