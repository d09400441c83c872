"""Tests for monthly invoice generation."""

from datetime import date
from decimal import Decimal

import pytest

from nestledger.models.billing.billing_run import BillingRun, BillingRunType
from nestledger.models.billing.invoice import Invoice, InvoiceStatus
from nestledger.models.iam.tenant import Tenant, TenantStatus
from nestledger.operations.billing.invoice_generation import run_monthly_invoice_generation

CYCLE_DAY = date(2024, 6, 5)


@pytest.fixture
def auto_billing(db_session, billing_config):
  billing_config.auto_billing_enabled = True
  billing_config.billing_cycle_day = 5
  billing_config.fixed_electricity = Decimal("500")
  billing_config.fixed_water = Decimal("200")
  billing_config.fixed_maintenance = Decimal("300")
  db_session.commit()
  return billing_config


class TestMonthlyInvoiceGeneration:
  def test_bills_active_tenants_on_cycle_day(
    self, db_session, auto_billing, test_tenant, notifier
  ):
    result = run_monthly_invoice_generation(db_session, today=CYCLE_DAY, notifier=notifier)

    assert result["processed"] == 1
    assert result["errors"] == []
    invoice = Invoice.get_for_period(test_tenant.id, 6, 2024, db_session)
    assert invoice.status == InvoiceStatus.PENDING.value
    assert Decimal(invoice.subtotal) == Decimal("11000")
    assert Decimal(invoice.total_amount) == Decimal("11133")
    assert invoice.due_date == date(2024, 6, 15)
    notifier.invoice_created.assert_called_once()

  def test_repeat_run_skips_billed_tenants(
    self, db_session, auto_billing, test_tenant, notifier
  ):
    run_monthly_invoice_generation(db_session, today=CYCLE_DAY, notifier=notifier)
    again = run_monthly_invoice_generation(db_session, today=CYCLE_DAY, notifier=notifier)

    assert again["processed"] == 0
    assert db_session.query(Invoice).filter_by(tenant_id=test_tenant.id).count() == 1

  def test_cancelled_invoice_is_rebilled(
    self, db_session, auto_billing, test_tenant, notifier
  ):
    run_monthly_invoice_generation(db_session, today=CYCLE_DAY, notifier=notifier)
    invoice = Invoice.get_for_period(test_tenant.id, 6, 2024, db_session)
    invoice.status = InvoiceStatus.CANCELLED.value
    db_session.commit()

    again = run_monthly_invoice_generation(db_session, today=CYCLE_DAY, notifier=notifier)

    assert again["processed"] == 1

  def test_other_days_do_nothing(self, db_session, auto_billing, test_tenant, notifier):
    result = run_monthly_invoice_generation(
      db_session, today=date(2024, 6, 6), notifier=notifier
    )

    assert result["processed"] == 0
    assert db_session.query(Invoice).count() == 0

  def test_auto_billing_off_does_nothing(
    self, db_session, billing_config, test_tenant, notifier
  ):
    billing_config.billing_cycle_day = 5
    db_session.commit()

    result = run_monthly_invoice_generation(db_session, today=CYCLE_DAY, notifier=notifier)

    assert result["processed"] == 0

  def test_manual_run_ignores_cycle_day(
    self, db_session, billing_config, test_admin, test_tenant, notifier
  ):
    result = run_monthly_invoice_generation(
      db_session,
      manual=True,
      admin_id=test_admin.id,
      today=date(2024, 6, 20),
      notifier=notifier,
    )

    assert result["processed"] == 1
    invoice = Invoice.get_for_period(test_tenant.id, 6, 2024, db_session)
    assert Decimal(invoice.subtotal) == Decimal("10000")

    run = BillingRun.get_recent(db_session, run_type=BillingRunType.MONTHLY_INVOICES)[0]
    assert run.trigger == "manual"
    assert run.admin_scope == test_admin.id

  def test_inactive_tenants_are_skipped(
    self, db_session, auto_billing, test_tenant, notifier
  ):
    test_tenant.status = TenantStatus.INACTIVE.value
    db_session.commit()

    result = run_monthly_invoice_generation(db_session, today=CYCLE_DAY, notifier=notifier)

    assert result["processed"] == 0

  def test_tenant_failure_is_reported(
    self, db_session, auto_billing, test_admin, test_tenant, notifier
  ):
    no_rent = Tenant(
      admin_id=test_admin.id, full_name="Rent Not Set", monthly_rent=Decimal("0")
    )
    db_session.add(no_rent)
    db_session.commit()
    no_rent_id = no_rent.id

    result = run_monthly_invoice_generation(db_session, today=CYCLE_DAY, notifier=notifier)

    assert result["processed"] == 1
    assert [error["id"] for error in result["errors"]] == [no_rent_id]
    assert "Rent amount is required" in result["errors"][0]["error"]

    run = BillingRun.get_recent(db_session, run_type=BillingRunType.MONTHLY_INVOICES)[0]
    assert run.status == "partial"
