"""
Daily late fee accrual task.

Runs from Celery Beat once a day. Administrators can also queue it for their
own invoices from the billing API; both paths end in run_late_fee_accrual.
"""

from typing import Any, Dict, Optional

from ...celery import celery_app
from ...database import get_celery_db_session
from ...logger import get_logger
from ...operations.billing.late_fees import run_late_fee_accrual

logger = get_logger(__name__)


@celery_app.task(name="nestledger.tasks.apply_late_fees", bind=True)
def apply_late_fees(
  self, manual: bool = False, admin_id: Optional[str] = None
) -> Dict[str, Any]:
  """Apply today's late fees, optionally scoped to one administrator."""
  logger.info(
    f"Late fee task started ({'manual' if manual else 'scheduled'})",
    extra={"action": "apply_late_fees", "admin_id": admin_id},
  )

  session = get_celery_db_session()
  try:
    return run_late_fee_accrual(session, manual=manual, admin_id=admin_id)
  except Exception as e:
    logger.error(f"Late fee task failed: {e}", exc_info=True)
    session.rollback()
    raise
  finally:
    session.close()
