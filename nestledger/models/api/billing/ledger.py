"""Platform dues and billing run API models."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class SettlementResponse(BaseModel):
  model_config = ConfigDict(from_attributes=True)

  id: str
  amount: Decimal
  reference_id: str | None = None
  settled_at: datetime


class DuesResponse(BaseModel):
  """What the platform owes an administrator right now."""

  admin_id: str
  collected: Decimal = Field(..., description="Vendor payouts collected by the platform")
  settled: Decimal = Field(..., description="Amount already transferred")
  due: Decimal = Field(..., description="max(0, collected - settled)")
  settlements: list[SettlementResponse] = Field(
    default_factory=list, description="Settlement history, newest first"
  )


class RunError(BaseModel):
  id: str = Field(..., description="Invoice or tenant that failed")
  error: str


class BillingRunResponse(BaseModel):
  """Summary of a late fee or invoice generation run."""

  success: bool
  processed: int
  errors: list[RunError]
  execution_time_ms: int
