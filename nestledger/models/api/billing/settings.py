"""Administrator billing settings API models."""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field, SecretStr

from ....models.billing.admin_config import AdminBillingConfig


class UpdateBillingConfigRequest(BaseModel):
  """Partial update; only the fields sent are changed."""

  fixed_fee: Decimal | None = Field(None, ge=0, description="Fixed service fee")
  platform_percent: Decimal | None = Field(None, ge=0)
  development_percent: Decimal | None = Field(None, ge=0)
  support_percent: Decimal | None = Field(None, ge=0)
  maintenance_percent: Decimal | None = Field(None, ge=0)
  gateway_percent: Decimal | None = Field(None, ge=0)

  late_fee_enabled: bool | None = None
  late_fee_daily_percent: Decimal | None = Field(
    None, ge=0, le=100, description="Daily late fee, percent of the running total"
  )

  billing_cycle_day: int | None = Field(None, ge=1, le=28)
  auto_billing_enabled: bool | None = None
  fixed_maintenance: Decimal | None = Field(None, ge=0)
  fixed_electricity: Decimal | None = Field(None, ge=0)
  fixed_water: Decimal | None = Field(None, ge=0)

  payment_mode: Literal["PLATFORM", "OWN"] | None = None
  gateway_provider: Literal["razorpay", "cashfree"] | None = None
  own_key_id: str | None = Field(None, min_length=1, max_length=200)
  own_key_secret: SecretStr | None = Field(None, description="Stored encrypted")
  own_webhook_secret: SecretStr | None = Field(None, description="Stored encrypted")

  def to_changes(self) -> dict:
    changes = self.model_dump(exclude_unset=True)
    for name in ("own_key_secret", "own_webhook_secret"):
      secret = getattr(self, name)
      if secret is not None:
        changes[name] = secret.get_secret_value()
    return changes


class BillingConfigResponse(BaseModel):
  """Billing settings with gateway secrets reduced to presence flags."""

  admin_id: str
  fixed_fee: Decimal
  platform_percent: Decimal
  development_percent: Decimal
  support_percent: Decimal
  maintenance_percent: Decimal
  gateway_percent: Decimal
  late_fee_enabled: bool
  late_fee_daily_percent: Decimal
  billing_cycle_day: int
  auto_billing_enabled: bool
  fixed_maintenance: Decimal
  fixed_electricity: Decimal
  fixed_water: Decimal
  payment_mode: str
  gateway_provider: str
  own_key_id: str | None = None
  has_own_key_secret: bool
  has_own_webhook_secret: bool
  updated_at: datetime

  @classmethod
  def from_config(cls, config: AdminBillingConfig) -> "BillingConfigResponse":
    return cls(
      admin_id=config.admin_id,
      fixed_fee=config.fixed_fee,
      platform_percent=config.platform_percent,
      development_percent=config.development_percent,
      support_percent=config.support_percent,
      maintenance_percent=config.maintenance_percent,
      gateway_percent=config.gateway_percent,
      late_fee_enabled=config.late_fee_enabled,
      late_fee_daily_percent=config.late_fee_daily_percent,
      billing_cycle_day=config.billing_cycle_day,
      auto_billing_enabled=config.auto_billing_enabled,
      fixed_maintenance=config.fixed_maintenance,
      fixed_electricity=config.fixed_electricity,
      fixed_water=config.fixed_water,
      payment_mode=config.payment_mode,
      gateway_provider=config.gateway_provider,
      own_key_id=config.own_key_id,
      has_own_key_secret=bool(config.own_key_secret_encrypted),
      has_own_webhook_secret=bool(config.own_webhook_secret_encrypted),
      updated_at=config.updated_at,
    )
