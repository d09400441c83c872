"""Invoice API models."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from ....models.billing.invoice import InvoiceStatus
from ....operations.billing.fee_calculator import ChargeInputs


class ChargesRequest(BaseModel):
  """Raw charges for one billing period."""

  rent: Decimal = Field(..., description="Room rent, must be positive")
  electricity: Decimal = Field(Decimal("0"), description="Electricity charge")
  water: Decimal = Field(Decimal("0"), description="Water charge")
  maintenance: Decimal = Field(Decimal("0"), description="Maintenance charge")

  def to_inputs(self) -> ChargeInputs:
    return ChargeInputs(
      rent=self.rent,
      electricity=self.electricity,
      water=self.water,
      maintenance=self.maintenance,
    )


class CreateInvoiceRequest(BaseModel):
  """Request to bill a tenant for one period."""

  tenant_id: str = Field(..., description="Tenant being billed")
  period_month: int = Field(..., ge=1, le=12, description="Billing month (1-12)")
  period_year: int = Field(..., ge=2000, le=2100, description="Billing year")
  due_date: date | None = Field(
    None, description="Due date; defaults to today plus the configured due days"
  )
  charges: ChargesRequest
  notes: str | None = Field(None, max_length=500, description="Free-form note")


class UpdateInvoiceRequest(BaseModel):
  """Changes to a pending invoice. Omitted fields are left as they are."""

  charges: ChargesRequest | None = Field(
    None, description="Replacement charges; fees are recomputed, late fees kept"
  )
  due_date: date | None = Field(None, description="New due date")
  notes: str | None = Field(None, max_length=500, description="Free-form note")


class MarkPaidRequest(BaseModel):
  reference: str | None = Field(
    None, max_length=100, description="Receipt or bank reference of the offline payment"
  )


class InvoiceItemResponse(BaseModel):
  """Invoice line item."""

  model_config = ConfigDict(from_attributes=True)

  position: int = Field(..., description="Display order")
  description: str = Field(..., description="Line item description")
  amount: Decimal = Field(..., description="Amount in whole currency units")
  kind: str = Field(..., description="rent, utility, service, fee or late_fee")
  accrual_date: date | None = Field(None, description="Day a late fee accrued")


class InvoiceResponse(BaseModel):
  """Invoice information."""

  model_config = ConfigDict(from_attributes=True)

  id: str = Field(..., description="Invoice ID")
  invoice_number: str = Field(..., description="Invoice number")
  admin_id: str = Field(..., description="Owning administrator")
  tenant_id: str = Field(..., description="Billed tenant")
  period_month: int
  period_year: int
  due_date: date
  status: InvoiceStatus = Field(..., description="pending, paid or cancelled")
  subtotal: Decimal = Field(..., description="Sum of base charges")
  total_amount: Decimal = Field(..., description="Subtotal plus all fees")
  currency: str
  paid_at: datetime | None = None
  cancelled_at: datetime | None = None
  notes: str | None = None
  created_at: datetime
  items: list[InvoiceItemResponse] = Field(..., description="Invoice line items")


class InvoicesResponse(BaseModel):
  """Response for invoice list."""

  invoices: list[InvoiceResponse] = Field(..., description="List of invoices")
  total_count: int = Field(..., description="Number of invoices returned")
