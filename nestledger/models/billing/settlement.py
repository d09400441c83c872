"""Platform settlements - funds transferred from the platform to administrators."""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import Column, DateTime, ForeignKey, Index, Numeric, String, func
from sqlalchemy.orm import Session

from ...database import Base
from ...utils.ulid import generate_prefixed_ulid


class PlatformSettlement(Base):
  """A bank transfer of collected vendor payouts to an administrator.

  Rows are written by the external settlement process; the billing core only
  reads them.
  """

  __tablename__ = "platform_settlements"

  id = Column(String, primary_key=True, default=lambda: generate_prefixed_ulid("stl"))

  admin_id = Column(String, ForeignKey("admins.id"), nullable=False)
  amount = Column(Numeric(12, 2), nullable=False)
  reference_id = Column(String, nullable=True)
  settled_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

  __table_args__ = (Index("idx_settlement_admin", "admin_id"),)

  def __repr__(self) -> str:
    return f"<PlatformSettlement {self.id} {self.amount} to {self.admin_id}>"

  @classmethod
  def get_for_admin(
    cls, admin_id: str, session: Session, limit: int = 100
  ) -> list["PlatformSettlement"]:
    return (
      session.query(cls)
      .filter(cls.admin_id == admin_id)
      .order_by(cls.settled_at.desc())
      .limit(limit)
      .all()
    )

  @classmethod
  def total_for_admin(cls, admin_id: str, session: Session) -> Decimal:
    total = (
      session.query(func.coalesce(func.sum(cls.amount), 0))
      .filter(cls.admin_id == admin_id)
      .scalar()
    )
    return Decimal(total)
