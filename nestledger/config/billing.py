"""
Billing configuration - platform fee schedule defaults and item wording.

Administrators may override every value of the fee schedule through their
AdminBillingConfig row; these are the values used for new administrators.
"""

from decimal import Decimal
from typing import Dict, List, Tuple

# Platform fee schedule applied on top of the base charges.
# Percentages are expressed in percent (0.6 means 0.6 % of the subtotal).
DEFAULT_FEE_SCHEDULE: Dict[str, Decimal] = {
  "fixed_fee": Decimal("5"),
  "platform_percent": Decimal("0.6"),
  "development_percent": Decimal("0.05"),
  "support_percent": Decimal("0.15"),
  "maintenance_percent": Decimal("0.2"),
  "gateway_percent": Decimal("0.15"),
}

# Fee items are always emitted in this order after the fixed fee.
# Format: (schedule field, item label)
PERCENT_FEE_ORDER: List[Tuple[str, str]] = [
  ("platform_percent", "Platform Share"),
  ("development_percent", "Development Share"),
  ("support_percent", "Support Share"),
  ("maintenance_percent", "System Maintenance"),
  ("gateway_percent", "Gateway Fee"),
]

FIXED_FEE_DESCRIPTION = "Fixed Service Fee"

# Base charge wording
RENT_DESCRIPTION = "Room Rent"
ELECTRICITY_DESCRIPTION = "Electricity Charges"
WATER_DESCRIPTION = "Water Charges"
MAINTENANCE_DESCRIPTION = "Maintenance Charges"

DEFAULT_LATE_FEE_DAILY_PERCENT = Decimal("0.5")
DEFAULT_BILLING_CYCLE_DAY = 1


class BillingConfig:
  """Accessors for billing defaults and generated item wording."""

  @classmethod
  def get_default_fee_schedule(cls) -> Dict[str, Decimal]:
    return dict(DEFAULT_FEE_SCHEDULE)

  @classmethod
  def percent_fee_description(cls, label: str, percent: Decimal) -> str:
    """Render a percentage fee label, e.g. ``Platform Share (0.6%)``."""
    return f"{label} ({percent.normalize():f}%)"

  @classmethod
  def late_fee_description(cls, percent: Decimal, accrual_date: str) -> str:
    """Render the late fee item label, e.g. ``Late Fee (0.5%) - 2024-05-12``."""
    return f"Late Fee ({percent.normalize():f}%) - {accrual_date}"
