"""Tenant payment endpoints: open a gateway order and complete it."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...database import get_db_session
from ...exceptions import NestLedgerError, ValidationError
from ...logger import get_logger
from ...middleware.auth.dependencies import get_current_principal
from ...models.api.billing.payment import (
  CreateOrderRequest,
  OrderResponse,
  ReconciliationResponse,
  VerifyPaymentRequest,
)
from ...operations.billing.checkout import complete_checkout, start_checkout
from ...operations.billing.ownership import Principal
from ...operations.providers.cashfree_gateway import invoice_id_from_order_id
from ...operations.providers.payment_gateway import CASHFREE
from .errors import to_http_exception

logger = get_logger(__name__)

router = APIRouter(prefix="/v1/billing", tags=["Payments"])


@router.post(
  "/invoices/{invoice_id}/orders",
  response_model=OrderResponse,
  summary="Create Payment Order",
  description="""Open a gateway order for the full amount of a pending invoice.

The response's `checkout` object tells the client how to finish:
- `completion: modal` (Razorpay): open the checkout modal with `key_id` and
  `order_id`, then post the handler's fields to `/v1/billing/payments/verify`
- `completion: redirect` (Cashfree): start checkout with `payment_session_id`;
  Cashfree sends the tenant back with `order_id`, which the client passes to
  `/v1/billing/payments/return`

**Requirements:**
- Caller must be the billed tenant
- The invoice must be pending""",
  operation_id="createPaymentOrder",
)
def create_order(
  invoice_id: str,
  request: CreateOrderRequest | None = None,
  principal: Principal = Depends(get_current_principal),
  db: Session = Depends(get_db_session),
):
  try:
    order = start_checkout(
      db,
      principal,
      invoice_id,
      gateway=request.gateway if request else None,
      return_url=request.return_url if request else None,
    )
    return OrderResponse(
      gateway=order.gateway,
      order_id=order.order_id,
      amount=order.amount,
      currency=order.currency,
      checkout=order.checkout,
    )

  except NestLedgerError as e:
    raise to_http_exception(e)
  except Exception as e:
    logger.error(f"Failed to create order for invoice {invoice_id}: {e}", exc_info=True)
    raise HTTPException(status_code=500, detail="Failed to create payment order")


@router.post(
  "/payments/verify",
  response_model=ReconciliationResponse,
  summary="Verify Payment",
  description="""Complete a modal checkout.

The callback signature is checked with the gateway secret and the order is
looked up with the gateway before anything is recorded. Repeating a verified
callback returns the existing payment with `created: false`.""",
  operation_id="verifyPayment",
)
def verify_payment(
  request: VerifyPaymentRequest,
  principal: Principal = Depends(get_current_principal),
  db: Session = Depends(get_db_session),
):
  try:
    result = complete_checkout(
      db, principal, request.gateway, request.invoice_id, request.payload
    )
    return ReconciliationResponse(**result.to_dict())

  except NestLedgerError as e:
    raise to_http_exception(e)
  except Exception as e:
    logger.error(f"Failed to verify payment: {e}", exc_info=True)
    raise HTTPException(status_code=500, detail="Failed to verify payment")


@router.get(
  "/payments/return",
  response_model=ReconciliationResponse,
  summary="Complete Redirect Payment",
  description="""Complete a Cashfree redirect checkout.

`order_id` only identifies the order; the payment is accepted once Cashfree
reports the order PAID.""",
  operation_id="completeRedirectPayment",
)
def payment_return(
  order_id: str = Query(..., description="Order ID from the gateway redirect"),
  principal: Principal = Depends(get_current_principal),
  db: Session = Depends(get_db_session),
):
  try:
    invoice_id = invoice_id_from_order_id(order_id)
    if not invoice_id:
      raise ValidationError("Unrecognized order ID", field="order_id")

    result = complete_checkout(
      db, principal, CASHFREE, invoice_id, {"order_id": order_id}
    )
    return ReconciliationResponse(**result.to_dict())

  except NestLedgerError as e:
    raise to_http_exception(e)
  except Exception as e:
    logger.error(f"Failed to complete redirect payment {order_id}: {e}", exc_info=True)
    raise HTTPException(status_code=500, detail="Failed to complete payment")
