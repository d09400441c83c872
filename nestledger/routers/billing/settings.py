"""Administrator billing settings endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ...database import get_db_session
from ...exceptions import NestLedgerError
from ...logger import get_logger
from ...middleware.auth.dependencies import require_admin
from ...models.api.billing.settings import BillingConfigResponse, UpdateBillingConfigRequest
from ...operations.billing.billing_settings import get_billing_config, update_billing_config
from ...operations.billing.ownership import Principal
from .errors import to_http_exception

logger = get_logger(__name__)

router = APIRouter(prefix="/v1/billing/config", tags=["Billing"])


@router.get(
  "",
  response_model=BillingConfigResponse,
  summary="Get Billing Settings",
  description="""The caller's fee schedule, late fee policy, monthly generation
and gateway settings. Gateway secrets are never returned.""",
  operation_id="getBillingConfig",
)
async def get_config(
  principal: Principal = Depends(require_admin),
  db: Session = Depends(get_db_session),
):
  try:
    config = get_billing_config(db, principal, principal.user_id)
    return BillingConfigResponse.from_config(config)

  except NestLedgerError as e:
    raise to_http_exception(e)
  except Exception as e:
    logger.error(f"Failed to get billing settings: {e}", exc_info=True)
    raise HTTPException(status_code=500, detail="Failed to retrieve billing settings")


@router.put(
  "",
  response_model=BillingConfigResponse,
  summary="Update Billing Settings",
  description="""Change any subset of the caller's billing settings.

**Gateway account:**
- `PLATFORM`: payments go through the platform's gateway account and the
  platform owes a vendor payout
- `OWN`: payments go through the administrator's account; `own_key_id` and
  `own_key_secret` must be set (now or earlier). Secrets are stored encrypted.

**Late fees:** accrue daily on overdue pending invoices once
`late_fee_enabled` is on and `late_fee_daily_percent` is above zero.""",
  operation_id="updateBillingConfig",
)
async def update_config(
  request: UpdateBillingConfigRequest,
  principal: Principal = Depends(require_admin),
  db: Session = Depends(get_db_session),
):
  try:
    config = update_billing_config(db, principal, principal.user_id, request.to_changes())
    return BillingConfigResponse.from_config(config)

  except NestLedgerError as e:
    raise to_http_exception(e)
  except Exception as e:
    logger.error(f"Failed to update billing settings: {e}", exc_info=True)
    raise HTTPException(status_code=500, detail="Failed to update billing settings")
