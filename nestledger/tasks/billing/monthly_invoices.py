"""Monthly invoice generation task."""

from typing import Any, Dict, Optional

from ...celery import celery_app
from ...database import get_celery_db_session
from ...logger import get_logger
from ...operations.billing.invoice_generation import run_monthly_invoice_generation

logger = get_logger(__name__)


@celery_app.task(name="nestledger.tasks.generate_monthly_invoices", bind=True)
def generate_monthly_invoices(
  self, manual: bool = False, admin_id: Optional[str] = None
) -> Dict[str, Any]:
  """
  Bill every active tenant of the administrators whose cycle day is today.

  With ``manual=True`` and an ``admin_id`` the cycle day is ignored and
  only that administrator's tenants are billed.
  """
  session = get_celery_db_session()
  try:
    result = run_monthly_invoice_generation(session, manual=manual, admin_id=admin_id)
    logger.info(
      f"Monthly invoice generation: {result['processed']} created, "
      f"{len(result['errors'])} errors"
    )
    return result
  except Exception as e:
    logger.error(f"Monthly invoice generation failed: {e}", exc_info=True)
    session.rollback()
    raise
  finally:
    session.close()
