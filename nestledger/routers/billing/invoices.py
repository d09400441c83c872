"""Invoice management endpoints."""

from datetime import UTC, date, datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from ...config import env
from ...database import get_db_session
from ...exceptions import NestLedgerError
from ...logger import get_logger
from ...middleware.auth.dependencies import get_current_principal, require_admin
from ...models.api.billing.invoice import (
  CreateInvoiceRequest,
  InvoiceResponse,
  InvoicesResponse,
  MarkPaidRequest,
  UpdateInvoiceRequest,
)
from ...models.api.billing.ledger import BillingRunResponse
from ...models.api.billing.payment import ReconciliationResponse
from ...models.billing.invoice import InvoiceStatus
from ...operations.billing.invoice_generation import run_monthly_invoice_generation
from ...operations.billing.invoice_service import InvoiceService
from ...operations.billing.ownership import Principal
from .errors import to_http_exception

logger = get_logger(__name__)

router = APIRouter(prefix="/v1/billing/invoices", tags=["Billing"])


@router.post(
  "",
  response_model=InvoiceResponse,
  status_code=status.HTTP_201_CREATED,
  summary="Create Invoice",
  description="""Bill one of your tenants for a period.

Charges are priced with your fee schedule: a fixed platform fee plus
percentage fees on the charge subtotal, each rounded to whole rupees.

**Requirements:**
- Caller must be an administrator
- The tenant must belong to the caller""",
  operation_id="createInvoice",
)
async def create_invoice(
  request: CreateInvoiceRequest,
  principal: Principal = Depends(require_admin),
  db: Session = Depends(get_db_session),
):
  try:
    due_date = request.due_date or (
      datetime.now(UTC).date() + timedelta(days=env.INVOICE_DUE_DAYS)
    )
    invoice = InvoiceService(db).create_invoice(
      principal,
      admin_id=principal.user_id,
      tenant_id=request.tenant_id,
      period_month=request.period_month,
      period_year=request.period_year,
      due_date=due_date,
      charges=request.charges.to_inputs(),
      notes=request.notes,
    )
    return InvoiceResponse.model_validate(invoice)

  except NestLedgerError as e:
    raise to_http_exception(e)
  except Exception as e:
    logger.error(f"Failed to create invoice: {e}", exc_info=True)
    raise HTTPException(status_code=500, detail="Failed to create invoice")


@router.get(
  "",
  response_model=InvoicesResponse,
  summary="List Invoices",
  description="""List invoices visible to the caller.

Administrators see invoices they issued; tenants see invoices billed to them.
A filter naming another administrator or tenant is rejected.""",
  operation_id="listInvoices",
)
async def list_invoices(
  admin_id: str | None = Query(None, description="Filter by administrator"),
  tenant_id: str | None = Query(None, description="Filter by tenant"),
  invoice_status: InvoiceStatus | None = Query(
    None, alias="status", description="Filter by status"
  ),
  due_from: date | None = Query(None, description="Earliest due date (inclusive)"),
  due_to: date | None = Query(None, description="Latest due date (inclusive)"),
  principal: Principal = Depends(get_current_principal),
  db: Session = Depends(get_db_session),
):
  try:
    invoices = InvoiceService(db).list_invoices(
      principal,
      admin_id=admin_id,
      tenant_id=tenant_id,
      status=invoice_status,
      due_from=due_from,
      due_to=due_to,
    )
    return InvoicesResponse(
      invoices=[InvoiceResponse.model_validate(invoice) for invoice in invoices],
      total_count=len(invoices),
    )

  except NestLedgerError as e:
    raise to_http_exception(e)
  except Exception as e:
    logger.error(f"Failed to list invoices: {e}", exc_info=True)
    raise HTTPException(status_code=500, detail="Failed to retrieve invoices")


@router.post(
  "/generate",
  response_model=BillingRunResponse,
  summary="Generate Monthly Invoices",
  description="""Bill every active tenant of the caller for the current month.

Tenants that already have an invoice for the month are skipped, so the action
can be repeated. Failures for individual tenants are reported in `errors`.""",
  operation_id="generateMonthlyInvoices",
)
async def generate_invoices(
  principal: Principal = Depends(require_admin),
  db: Session = Depends(get_db_session),
):
  try:
    result = run_monthly_invoice_generation(
      db, manual=True, admin_id=principal.user_id
    )
    return BillingRunResponse(**result)

  except NestLedgerError as e:
    raise to_http_exception(e)
  except Exception as e:
    logger.error(f"Failed to generate invoices: {e}", exc_info=True)
    raise HTTPException(status_code=500, detail="Failed to generate invoices")


@router.get(
  "/{invoice_id}",
  response_model=InvoiceResponse,
  summary="Get Invoice",
  description="Get one invoice with its line items.",
  operation_id="getInvoice",
)
async def get_invoice(
  invoice_id: str,
  principal: Principal = Depends(get_current_principal),
  db: Session = Depends(get_db_session),
):
  try:
    return InvoiceResponse.model_validate(
      InvoiceService(db).get_invoice(principal, invoice_id)
    )

  except NestLedgerError as e:
    raise to_http_exception(e)
  except Exception as e:
    logger.error(f"Failed to get invoice {invoice_id}: {e}", exc_info=True)
    raise HTTPException(status_code=500, detail="Failed to retrieve invoice")


@router.patch(
  "/{invoice_id}",
  response_model=InvoiceResponse,
  summary="Edit Invoice",
  description="""Change the charges, due date or notes of a pending invoice.

New charges are repriced with the current fee schedule. Late fees already
accrued stay on the invoice. Paid and cancelled invoices cannot be edited.""",
  operation_id="editInvoice",
)
async def edit_invoice(
  invoice_id: str,
  request: UpdateInvoiceRequest,
  principal: Principal = Depends(require_admin),
  db: Session = Depends(get_db_session),
):
  try:
    invoice = InvoiceService(db).edit_invoice(
      principal,
      invoice_id,
      charges=request.charges.to_inputs() if request.charges else None,
      due_date=request.due_date,
      notes=request.notes,
    )
    return InvoiceResponse.model_validate(invoice)

  except NestLedgerError as e:
    raise to_http_exception(e)
  except Exception as e:
    logger.error(f"Failed to edit invoice {invoice_id}: {e}", exc_info=True)
    raise HTTPException(status_code=500, detail="Failed to edit invoice")


@router.post(
  "/{invoice_id}/mark-paid",
  response_model=ReconciliationResponse,
  summary="Mark Invoice Paid",
  description="""Record a payment received outside the gateways (cash, bank transfer).

Marking an invoice that is already paid returns the existing payment with
`created: false`.""",
  operation_id="markInvoicePaid",
)
async def mark_invoice_paid(
  invoice_id: str,
  request: MarkPaidRequest | None = None,
  principal: Principal = Depends(require_admin),
  db: Session = Depends(get_db_session),
):
  try:
    result = InvoiceService(db).mark_paid(
      principal, invoice_id, reference=request.reference if request else None
    )
    return ReconciliationResponse(**result.to_dict())

  except NestLedgerError as e:
    raise to_http_exception(e)
  except Exception as e:
    logger.error(f"Failed to mark invoice {invoice_id} paid: {e}", exc_info=True)
    raise HTTPException(status_code=500, detail="Failed to mark invoice paid")


@router.post(
  "/{invoice_id}/cancel",
  response_model=InvoiceResponse,
  summary="Cancel Invoice",
  description="Cancel a pending invoice. Cancelling twice is a no-op; paid invoices cannot be cancelled.",
  operation_id="cancelInvoice",
)
async def cancel_invoice(
  invoice_id: str,
  principal: Principal = Depends(require_admin),
  db: Session = Depends(get_db_session),
):
  try:
    invoice = InvoiceService(db).cancel_invoice(principal, invoice_id)
    return InvoiceResponse.model_validate(invoice)

  except NestLedgerError as e:
    raise to_http_exception(e)
  except Exception as e:
    logger.error(f"Failed to cancel invoice {invoice_id}: {e}", exc_info=True)
    raise HTTPException(status_code=500, detail="Failed to cancel invoice")


@router.delete(
  "/{invoice_id}",
  status_code=status.HTTP_204_NO_CONTENT,
  summary="Delete Invoice",
  description="""Delete an invoice with its line items and payments.

Paid invoices are only deleted with `allow_paid=true`; the deletion and the
payments it removes are kept in the billing audit log.""",
  operation_id="deleteInvoice",
)
async def delete_invoice(
  invoice_id: str,
  allow_paid: bool = Query(False, description="Also delete a paid invoice"),
  principal: Principal = Depends(require_admin),
  db: Session = Depends(get_db_session),
):
  try:
    InvoiceService(db).delete_invoice(principal, invoice_id, privileged=allow_paid)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

  except NestLedgerError as e:
    raise to_http_exception(e)
  except Exception as e:
    logger.error(f"Failed to delete invoice {invoice_id}: {e}", exc_info=True)
    raise HTTPException(status_code=500, detail="Failed to delete invoice")
