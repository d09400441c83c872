"""
Fee calculation for tenant invoices.

Turns raw charge amounts plus an administrator's fee schedule into the
itemized bill: base charges first, then the platform fee items in a fixed
order. Every percentage fee is rounded to a whole currency unit on its own
(round-half-up); the aggregate is never re-rounded, so the fee items may
differ by a unit or two from ``sum(percent) * subtotal``. That is the
defined behaviour.

The calculator is pure: identical inputs always produce identical output.
"""

from dataclasses import dataclass, fields
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from ...config.billing import (
  DEFAULT_FEE_SCHEDULE,
  ELECTRICITY_DESCRIPTION,
  FIXED_FEE_DESCRIPTION,
  MAINTENANCE_DESCRIPTION,
  PERCENT_FEE_ORDER,
  RENT_DESCRIPTION,
  WATER_DESCRIPTION,
  BillingConfig,
)
from ...exceptions import ValidationError
from ...models.billing.invoice import InvoiceItemKind, InvoiceLine

WHOLE_UNIT = Decimal("1")
ZERO = Decimal("0")


def to_decimal(value: Any, field: str) -> Decimal:
  """Coerce a money or percent input to Decimal without float artefacts."""
  if isinstance(value, Decimal):
    return value
  try:
    return Decimal(str(value))
  except (InvalidOperation, ValueError):
    raise ValidationError(f"{field} must be a number", field=field, value=str(value))


def round_half_up(value: Decimal) -> Decimal:
  """Round to the nearest whole currency unit, halves away from zero."""
  return value.quantize(WHOLE_UNIT, rounding=ROUND_HALF_UP)


def percent_of(amount: Decimal, percent: Decimal) -> Decimal:
  """``round(amount * percent / 100)`` with round-half-up."""
  return round_half_up(amount * percent / Decimal("100"))


@dataclass(frozen=True)
class FeeSchedule:
  """One fixed fee plus five independent percentages (in percent)."""

  fixed_fee: Decimal
  platform_percent: Decimal
  development_percent: Decimal
  support_percent: Decimal
  maintenance_percent: Decimal
  gateway_percent: Decimal

  def __post_init__(self):
    for f in fields(self):
      value = to_decimal(getattr(self, f.name), f.name)
      if value < 0:
        raise ValidationError(f"{f.name} cannot be negative", field=f.name)
      object.__setattr__(self, f.name, value)

  @classmethod
  def default(cls) -> "FeeSchedule":
    return cls(**DEFAULT_FEE_SCHEDULE)

  @classmethod
  def from_config(cls, config) -> "FeeSchedule":
    """Build from an AdminBillingConfig (or anything with the same fields)."""
    return cls(**{f.name: getattr(config, f.name) for f in fields(cls)})


@dataclass(frozen=True)
class ChargeInputs:
  """Raw base charges for one billing period."""

  rent: Decimal
  electricity: Decimal = ZERO
  water: Decimal = ZERO
  maintenance: Decimal = ZERO

  def __post_init__(self):
    for f in fields(self):
      object.__setattr__(self, f.name, to_decimal(getattr(self, f.name), f.name))

    if self.rent <= 0:
      raise ValidationError("Rent amount is required", field="rent")
    for name in ("electricity", "water", "maintenance"):
      if getattr(self, name) < 0:
        raise ValidationError(f"{name} charge cannot be negative", field=name)


@dataclass(frozen=True)
class FeeBreakdown:
  """Ordered invoice lines with their derived totals."""

  items: tuple[InvoiceLine, ...]
  subtotal: Decimal
  total_amount: Decimal

  @property
  def base_items(self) -> list[InvoiceLine]:
    return [item for item in self.items if not item.is_fee]

  @property
  def fee_items(self) -> list[InvoiceLine]:
    return [item for item in self.items if item.is_fee]

  @property
  def fee_total(self) -> Decimal:
    return sum((item.amount for item in self.fee_items), ZERO)


def build_base_items(charges: ChargeInputs) -> list[InvoiceLine]:
  """Rent always, then the optional charges that are non-zero."""
  items = [InvoiceLine(RENT_DESCRIPTION, charges.rent, InvoiceItemKind.RENT)]

  optional = [
    (ELECTRICITY_DESCRIPTION, charges.electricity, InvoiceItemKind.UTILITY),
    (WATER_DESCRIPTION, charges.water, InvoiceItemKind.UTILITY),
    (MAINTENANCE_DESCRIPTION, charges.maintenance, InvoiceItemKind.SERVICE),
  ]
  for description, amount, kind in optional:
    if amount > 0:
      items.append(InvoiceLine(description, amount, kind))

  return items


def build_fee_items(subtotal: Decimal, schedule: FeeSchedule) -> list[InvoiceLine]:
  """Fixed fee then each configured percentage share, rounded independently."""
  items = []

  if schedule.fixed_fee > 0:
    items.append(
      InvoiceLine(FIXED_FEE_DESCRIPTION, schedule.fixed_fee, InvoiceItemKind.FEE)
    )

  for field_name, label in PERCENT_FEE_ORDER:
    percent = getattr(schedule, field_name)
    if percent <= 0:
      continue
    items.append(
      InvoiceLine(
        BillingConfig.percent_fee_description(label, percent),
        percent_of(subtotal, percent),
        InvoiceItemKind.FEE,
      )
    )

  return items


def calculate_fees(
  charges: ChargeInputs, schedule: Optional[FeeSchedule] = None
) -> FeeBreakdown:
  """
  Compute the itemized bill for a set of charges.

  Args:
      charges: Base charges; rent must be positive
      schedule: Administrator fee schedule, platform defaults when omitted

  Returns:
      FeeBreakdown with base items, fee items, subtotal and total_amount

  Raises:
      ValidationError: If rent <= 0 or any amount is negative
  """
  schedule = schedule or FeeSchedule.default()

  base_items = build_base_items(charges)
  subtotal = sum((item.amount for item in base_items), ZERO)
  fee_items = build_fee_items(subtotal, schedule)
  total_amount = subtotal + sum((item.amount for item in fee_items), ZERO)

  return FeeBreakdown(
    items=tuple(base_items + fee_items),
    subtotal=subtotal,
    total_amount=total_amount,
  )
