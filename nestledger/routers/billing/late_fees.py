"""Late fee endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ...database import get_db_session
from ...exceptions import NestLedgerError
from ...logger import get_logger
from ...middleware.auth.dependencies import require_admin
from ...models.api.billing.ledger import BillingRunResponse
from ...operations.billing.late_fees import run_late_fee_accrual
from ...operations.billing.ownership import Principal
from .errors import to_http_exception

logger = get_logger(__name__)

router = APIRouter(prefix="/v1/billing/late-fees", tags=["Billing"])


@router.post(
  "/run",
  response_model=BillingRunResponse,
  summary="Run Late Fee Accrual",
  description="""Apply today's late fees to the caller's overdue pending invoices.

Runs the same accrual as the daily schedule, limited to the caller's
invoices. Invoices that already received today's fee are skipped, so the
action can be repeated.""",
  operation_id="runLateFees",
)
async def run_late_fees(
  principal: Principal = Depends(require_admin),
  db: Session = Depends(get_db_session),
):
  try:
    result = run_late_fee_accrual(db, manual=True, admin_id=principal.user_id)
    return BillingRunResponse(**result)

  except NestLedgerError as e:
    raise to_http_exception(e)
  except Exception as e:
    logger.error(f"Late fee run failed: {e}", exc_info=True)
    raise HTTPException(status_code=500, detail="Failed to run late fees")
