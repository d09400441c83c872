"""
Monthly invoice generation.

On each administrator's billing cycle day, bills every active tenant for the
current month: their rent plus the administrator's fixed maintenance,
electricity and water charges, priced with the administrator's fee schedule.
A tenant that already has a non-cancelled invoice for the month is skipped,
so the run can be repeated safely.
"""

import time
from datetime import UTC, date, datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ...config import env
from ...logger import get_logger, log_error, performance_timer
from ...models.billing.admin_config import AdminBillingConfig
from ...models.billing.billing_run import BillingRun, BillingRunType
from ...models.billing.invoice import Invoice
from ...models.iam.tenant import Tenant
from .fee_calculator import ChargeInputs
from .invoice_service import InvoiceService
from .notifications import BillingNotifier
from .ownership import Principal

logger = get_logger(__name__)


def _configs_for_run(
  session: Session, manual: bool, admin_id: Optional[str], today: date
) -> list[AdminBillingConfig]:
  # A manual run bills the administrator now regardless of cycle day
  if manual and admin_id:
    return [AdminBillingConfig.get_or_create(admin_id, session)]

  configs = AdminBillingConfig.get_due_for_generation(session, today.day)
  if admin_id:
    configs = [config for config in configs if config.admin_id == admin_id]
  return configs


@performance_timer(logger, component="invoice_generation", action="run_monthly_invoices")
def run_monthly_invoice_generation(
  session: Session,
  manual: bool = False,
  admin_id: Optional[str] = None,
  today: Optional[date] = None,
  notifier: Optional[BillingNotifier] = None,
) -> Dict[str, Any]:
  """
  Generate this month's invoices for every administrator due today.

  Returns:
      {"success", "processed", "errors": [{"id", "error"}], "execution_time_ms"}
  """
  start_time = time.time()
  started_at = datetime.now(UTC)
  today = today or started_at.date()
  due_date = today + timedelta(days=env.INVOICE_DUE_DAYS)
  service = InvoiceService(session, notifier)
  system = Principal.system()

  processed = 0
  errors = []

  for config in _configs_for_run(session, manual, admin_id, today):
    for tenant in Tenant.get_active_for_admin(config.admin_id, session):
      tenant_id = tenant.id
      if Invoice.get_for_period(tenant_id, today.month, today.year, session):
        continue

      try:
        charges = ChargeInputs(
          rent=tenant.monthly_rent,
          electricity=config.fixed_electricity,
          water=config.fixed_water,
          maintenance=config.fixed_maintenance,
        )
        invoice = service.create_invoice(
          system,
          admin_id=config.admin_id,
          tenant_id=tenant_id,
          period_month=today.month,
          period_year=today.year,
          due_date=due_date,
          charges=charges,
        )
        processed += 1
        logger.info(
          f"Generated invoice {invoice.invoice_number} for tenant {tenant_id}",
          extra={"admin_id": config.admin_id, "invoice_id": invoice.id},
        )
      except Exception as e:
        session.rollback()
        log_error(
          logger,
          e,
          component="invoice_generation",
          action="generate_invoice",
          error_category="batch_item",
          admin_id=config.admin_id,
          metadata={"tenant_id": tenant_id},
        )
        errors.append({"id": tenant_id, "error": str(e)})

  execution_time_ms = int((time.time() - start_time) * 1000)

  BillingRun.record(
    session,
    run_type=BillingRunType.MONTHLY_INVOICES,
    manual=manual,
    processed_count=processed,
    errors=errors,
    execution_time_ms=execution_time_ms,
    started_at=started_at,
    admin_scope=admin_id,
  )

  return {
    "success": True,
    "processed": processed,
    "errors": errors,
    "execution_time_ms": execution_time_ms,
  }
