"""Webhook handlers for payment gateways."""

import asyncio

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from ...database import get_db_session
from ...exceptions import InvalidSignatureError, NestLedgerError
from ...logger import get_logger, log_auth_event
from ...models.api.billing.payment import WebhookResponse
from ...operations.billing.checkout import process_webhook
from ...operations.providers.payment_gateway import CASHFREE, RAZORPAY
from .errors import to_http_exception

logger = get_logger(__name__)

router = APIRouter(prefix="/v1/webhooks", tags=["Webhooks"])

SIGNATURE_HEADERS = {
  RAZORPAY: "x-razorpay-signature",
  CASHFREE: "x-webhook-signature",
}


async def _handle(
  provider: str, request: Request, db: Session, admin_id: str | None = None
) -> WebhookResponse:
  provider = provider.lower()
  header = SIGNATURE_HEADERS.get(provider)
  if header is None:
    raise HTTPException(status_code=404, detail=f"Unknown webhook provider: {provider}")

  payload = await request.body()
  client_ip = request.client.host if request.client else "unknown"

  if not request.headers.get(header):
    log_auth_event(
      "missing_webhook_signature",
      success=False,
      metadata={
        "provider": provider,
        "ip_address": client_ip,
        "endpoint": str(request.url.path),
        "payload_size_bytes": len(payload),
      },
    )
    raise HTTPException(status_code=400, detail=f"Missing {header} header")

  try:
    result = await asyncio.to_thread(
      process_webhook, db, provider, payload, request.headers, admin_id=admin_id
    )
    return WebhookResponse(**result)

  except InvalidSignatureError as e:
    log_auth_event(
      "invalid_webhook_signature",
      success=False,
      metadata={
        "provider": provider,
        "ip_address": client_ip,
        "endpoint": str(request.url.path),
        "admin_id": admin_id,
      },
    )
    raise to_http_exception(e)
  except NestLedgerError as e:
    logger.warning(
      f"{provider} webhook failed: {e.message}",
      extra={"gateway": provider, "admin_id": admin_id, "action": "webhook_failed"},
    )
    raise to_http_exception(e)
  except Exception as e:
    logger.error(f"Webhook processing error: {e}", exc_info=True)
    raise HTTPException(status_code=500, detail="Webhook processing failed")


@router.post(
  "/{provider}",
  response_model=WebhookResponse,
  status_code=status.HTTP_200_OK,
  summary="Gateway Webhook Handler",
  description="""Handle webhook events from the platform's gateway accounts.

Supported providers and events:
- razorpay: `payment.captured`, `order.paid`, `refund.processed`
- cashfree: `PAYMENT_SUCCESS_WEBHOOK`, `REFUND_STATUS_WEBHOOK`

**SECURITY**: No bearer token. Every delivery is verified with the provider's
signature header before anything is read from it. Redelivered events are
acknowledged without being applied twice.""",
  operation_id="handleGatewayWebhook",
)
async def handle_webhook(
  provider: str,
  request: Request,
  db: Session = Depends(get_db_session),
):
  return await _handle(provider, request, db)


@router.post(
  "/{provider}/{admin_id}",
  response_model=WebhookResponse,
  status_code=status.HTTP_200_OK,
  summary="Administrator Gateway Webhook Handler",
  description="""Handle webhook events from an administrator's own gateway account.

Verified with the administrator's stored webhook secret. Payments are only
applied to that administrator's invoices.""",
  operation_id="handleAdminGatewayWebhook",
)
async def handle_admin_webhook(
  provider: str,
  admin_id: str,
  request: Request,
  db: Session = Depends(get_db_session),
):
  return await _handle(provider, request, db, admin_id=admin_id)
