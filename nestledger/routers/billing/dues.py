"""Platform dues endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...database import get_db_session
from ...exceptions import NestLedgerError
from ...logger import get_logger
from ...middleware.auth.dependencies import require_admin
from ...models.api.billing.ledger import DuesResponse, SettlementResponse
from ...operations.billing.dues_ledger import get_dues_summary, get_settlement_history
from ...operations.billing.ownership import Principal
from .errors import to_http_exception

logger = get_logger(__name__)

router = APIRouter(prefix="/v1/billing/dues", tags=["Billing"])


@router.get(
  "",
  response_model=DuesResponse,
  summary="Get Platform Dues",
  description="""What the platform owes the caller.

`collected` sums the vendor payouts of payments collected through the
platform's gateway account, `settled` sums the transfers already made, and
`due` is the difference, never below zero.""",
  operation_id="getPlatformDues",
)
async def get_dues(
  limit: int = Query(100, ge=1, le=500, description="Settlements to return"),
  principal: Principal = Depends(require_admin),
  db: Session = Depends(get_db_session),
):
  try:
    summary = get_dues_summary(principal, principal.user_id, db)
    settlements = get_settlement_history(principal, principal.user_id, db, limit=limit)
    return DuesResponse(
      **summary.to_dict(),
      settlements=[SettlementResponse.model_validate(s) for s in settlements],
    )

  except NestLedgerError as e:
    raise to_http_exception(e)
  except Exception as e:
    logger.error(f"Failed to get platform dues: {e}", exc_info=True)
    raise HTTPException(status_code=500, detail="Failed to retrieve platform dues")
