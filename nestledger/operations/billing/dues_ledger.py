"""
Platform dues ledger.

How much the platform owes an administrator for payments it collected on
their behalf. Always derived from the payment and settlement rows at query
time; there are no running counters to drift out of step.
"""

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models.billing.invoice import Invoice
from ...models.billing.payment import Payment, PaymentStatus
from ...models.billing.settlement import PlatformSettlement
from .ownership import Principal, ensure_admin_scope

ZERO = Decimal("0")


@dataclass(frozen=True)
class DuesSummary:
  admin_id: str
  collected: Decimal
  settled: Decimal

  @property
  def due(self) -> Decimal:
    return max(ZERO, self.collected - self.settled)

  def to_dict(self) -> dict:
    return {
      "admin_id": self.admin_id,
      "collected": self.collected,
      "settled": self.settled,
      "due": self.due,
    }


def collected_for_admin(admin_id: str, session: Session) -> Decimal:
  """Sum of vendor payouts over SUCCESS payments on the administrator's invoices."""
  total = (
    session.query(func.coalesce(func.sum(Payment.vendor_payout), 0))
    .join(Invoice, Payment.invoice_id == Invoice.id)
    .filter(
      Invoice.admin_id == admin_id,
      Payment.status == PaymentStatus.SUCCESS.value,
      Payment.vendor_payout.isnot(None),
    )
    .scalar()
  )
  return Decimal(total)


def get_dues_summary(principal: Principal, admin_id: str, session: Session) -> DuesSummary:
  ensure_admin_scope(principal, admin_id)
  return DuesSummary(
    admin_id=admin_id,
    collected=collected_for_admin(admin_id, session),
    settled=PlatformSettlement.total_for_admin(admin_id, session),
  )


def get_settlement_history(
  principal: Principal, admin_id: str, session: Session, limit: int = 100
) -> list[PlatformSettlement]:
  ensure_admin_scope(principal, admin_id)
  return PlatformSettlement.get_for_admin(admin_id, session, limit=limit)
