"""Tests for daily late fee accrual."""

from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest

from nestledger.models.billing.admin_config import AdminBillingConfig
from nestledger.models.billing.audit_log import BillingAuditLog, BillingEventType
from nestledger.models.billing.billing_run import BillingRun, BillingRunType
from nestledger.models.billing.invoice import Invoice, InvoiceStatus
from nestledger.models.iam.tenant import Tenant
from nestledger.operations.billing import late_fees
from nestledger.operations.billing.late_fees import apply_late_fee, run_late_fee_accrual

DAY_ONE = date(2024, 5, 11)
DAY_TWO = date(2024, 5, 12)


def _total(db_session, invoice_id) -> Decimal:
  db_session.expire_all()
  return Decimal(Invoice.get_by_id(invoice_id, db_session).total_amount)


class TestRunLateFeeAccrual:
  def test_fees_compound_day_over_day(self, db_session, billing_config, make_invoice, notifier):
    invoice = make_invoice(total=Decimal("10000"), due_date=date(2024, 5, 10))

    first = run_late_fee_accrual(db_session, today=DAY_ONE, notifier=notifier)
    assert first["processed"] == 1
    assert _total(db_session, invoice.id) == Decimal("10050")

    second = run_late_fee_accrual(db_session, today=DAY_TWO, notifier=notifier)
    assert second["processed"] == 1
    assert _total(db_session, invoice.id) == Decimal("10100")

    refreshed = Invoice.get_by_id(invoice.id, db_session)
    assert [item.accrual_date for item in refreshed.late_fee_items] == [DAY_ONE, DAY_TWO]
    assert [item.description for item in refreshed.late_fee_items] == [
      "Late Fee (0.5%) - 2024-05-11",
      "Late Fee (0.5%) - 2024-05-12",
    ]
    assert refreshed.totals_consistent()

  def test_second_run_same_day_is_a_noop(
    self, db_session, billing_config, make_invoice, notifier
  ):
    invoice = make_invoice(total=Decimal("10000"))

    run_late_fee_accrual(db_session, today=DAY_ONE, notifier=notifier)
    again = run_late_fee_accrual(db_session, today=DAY_ONE, notifier=notifier)

    assert again["processed"] == 0
    assert again["errors"] == []
    assert _total(db_session, invoice.id) == Decimal("10050")
    assert len(Invoice.get_by_id(invoice.id, db_session).late_fee_items) == 1
    notifier.late_fee_applied.assert_called_once()

  def test_notifies_tenant_with_fee(self, db_session, billing_config, make_invoice, notifier):
    invoice = make_invoice(total=Decimal("10000"))

    run_late_fee_accrual(db_session, today=DAY_ONE, notifier=notifier)

    notified_invoice, fee, accrual_date = notifier.late_fee_applied.call_args[0]
    assert notified_invoice.id == invoice.id
    assert fee == Decimal("50")
    assert accrual_date == DAY_ONE

  def test_notification_failure_is_not_a_run_error(
    self, db_session, billing_config, make_invoice, notifier
  ):
    invoice = make_invoice(total=Decimal("10000"))
    notifier.late_fee_applied.side_effect = RuntimeError("smtp down")

    result = run_late_fee_accrual(db_session, today=DAY_ONE, notifier=notifier)

    assert result["processed"] == 1
    assert result["errors"] == []
    assert _total(db_session, invoice.id) == Decimal("10050")

  def test_audits_each_fee(self, db_session, billing_config, make_invoice, notifier):
    invoice = make_invoice(total=Decimal("10000"))

    run_late_fee_accrual(db_session, today=DAY_ONE, notifier=notifier)

    entries = [
      log
      for log in BillingAuditLog.get_invoice_history(db_session, invoice.id)
      if log.event_type == BillingEventType.LATE_FEE_APPLIED.value
    ]
    assert len(entries) == 1
    assert entries[0].event_data["fee"] == "50"

  def test_not_yet_overdue_is_skipped(self, db_session, billing_config, make_invoice, notifier):
    invoice = make_invoice(due_date=DAY_ONE)

    result = run_late_fee_accrual(db_session, today=DAY_ONE, notifier=notifier)

    assert result["processed"] == 0
    assert _total(db_session, invoice.id) == Decimal("10000")

  def test_paid_and_cancelled_invoices_are_skipped(
    self, db_session, billing_config, make_invoice, notifier
  ):
    paid = make_invoice(period_month=4)
    cancelled = make_invoice(period_month=5)
    paid.status = InvoiceStatus.PAID.value
    cancelled.status = InvoiceStatus.CANCELLED.value
    db_session.commit()

    result = run_late_fee_accrual(db_session, today=DAY_ONE, notifier=notifier)

    assert result["processed"] == 0
    assert _total(db_session, paid.id) == Decimal("10000")
    assert _total(db_session, cancelled.id) == Decimal("10000")

  def test_disabled_late_fees_are_skipped(self, db_session, test_admin, make_invoice, notifier):
    config = AdminBillingConfig.get_or_create(test_admin.id, db_session)
    assert config.late_fee_enabled is False
    invoice = make_invoice()

    result = run_late_fee_accrual(db_session, today=DAY_ONE, notifier=notifier)

    assert result["processed"] == 0
    assert _total(db_session, invoice.id) == Decimal("10000")

  def test_run_scoped_to_one_admin(
    self, db_session, billing_config, other_admin, make_invoice, notifier
  ):
    other_config = AdminBillingConfig.get_or_create(other_admin.id, db_session)
    other_config.late_fee_enabled = True
    other_tenant = Tenant(
      admin_id=other_admin.id, full_name="Isha Verma", monthly_rent=Decimal("9000")
    )
    db_session.add(other_tenant)
    db_session.commit()
    mine = make_invoice()
    theirs = make_invoice(tenant=other_tenant)

    result = run_late_fee_accrual(
      db_session, manual=True, admin_id=other_admin.id, today=DAY_ONE, notifier=notifier
    )

    assert result["processed"] == 1
    assert _total(db_session, mine.id) == Decimal("10000")
    assert _total(db_session, theirs.id) == Decimal("10050")

  def test_one_failure_does_not_stop_the_batch(
    self, db_session, billing_config, make_invoice, notifier
  ):
    broken = make_invoice(period_month=4, due_date=date(2024, 4, 10))
    healthy = make_invoice(period_month=5, due_date=date(2024, 5, 10))
    broken_id = broken.id
    original = late_fees.apply_late_fee

    def flaky(session, invoice, percent, today):
      if invoice.id == broken_id:
        raise RuntimeError("disk full")
      return original(session, invoice, percent, today)

    with patch.object(late_fees, "apply_late_fee", side_effect=flaky):
      result = run_late_fee_accrual(db_session, today=DAY_ONE, notifier=notifier)

    assert result["success"] is True
    assert result["processed"] == 1
    assert result["errors"] == [{"id": broken_id, "error": "disk full"}]
    assert _total(db_session, broken_id) == Decimal("10000")
    assert _total(db_session, healthy.id) == Decimal("10050")

    run = BillingRun.get_recent(db_session, run_type=BillingRunType.LATE_FEES)[0]
    assert run.status == "partial"
    assert run.error_count == 1

  def test_records_billing_run(self, db_session, billing_config, make_invoice, notifier):
    make_invoice()

    run_late_fee_accrual(
      db_session, manual=True, admin_id=billing_config.admin_id, today=DAY_ONE, notifier=notifier
    )

    run = BillingRun.get_recent(db_session, run_type=BillingRunType.LATE_FEES)[0]
    assert run.status == "success"
    assert run.trigger == "manual"
    assert run.processed_count == 1
    assert run.admin_scope == billing_config.admin_id


class TestApplyLateFee:
  def test_fee_rounding_to_zero_is_skipped(self, db_session, make_invoice):
    invoice = make_invoice(total=Decimal("50"))

    assert apply_late_fee(db_session, invoice, Decimal("0.5"), DAY_ONE) is None
    assert invoice.late_fee_items == []

  def test_concurrent_run_loses_on_unique_index(self, db_session, make_invoice):
    invoice = make_invoice(total=Decimal("10000"))
    assert apply_late_fee(db_session, invoice, Decimal("0.5"), DAY_ONE) == Decimal("50")

    # A second worker that has not seen the first fee yet
    with patch.object(Invoice, "has_late_fee_on", return_value=False):
      assert apply_late_fee(db_session, invoice, Decimal("0.5"), DAY_ONE) is None

    assert _total(db_session, invoice.id) == Decimal("10050")
    assert len(Invoice.get_by_id(invoice.id, db_session).late_fee_items) == 1

  def test_invoice_settled_meanwhile_is_left_alone(self, db_session, make_invoice):
    invoice = make_invoice(total=Decimal("10000"))
    db_session.query(Invoice).filter(Invoice.id == invoice.id).update(
      {Invoice.status: InvoiceStatus.PAID.value}, synchronize_session=False
    )
    db_session.commit()

    assert apply_late_fee(db_session, invoice, Decimal("0.5"), DAY_ONE) is None
    assert _total(db_session, invoice.id) == Decimal("10000")
    assert Invoice.get_by_id(invoice.id, db_session).late_fee_items == []

  @pytest.mark.parametrize(
    "total,expected",
    [
      (Decimal("10000"), Decimal("50")),
      (Decimal("10050"), Decimal("50")),
      (Decimal("11133"), Decimal("56")),
      (Decimal("100"), Decimal("1")),
    ],
  )
  def test_fee_is_rounded_percent_of_current_total(
    self, db_session, make_invoice, total, expected
  ):
    invoice = make_invoice(total=total)

    assert apply_late_fee(db_session, invoice, Decimal("0.5"), DAY_ONE) == expected
