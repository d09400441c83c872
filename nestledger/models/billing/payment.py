"""Payment records - the durable trail of money collected against invoices."""

from datetime import UTC, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
  Column,
  DateTime,
  ForeignKey,
  Index,
  Numeric,
  String,
  text,
)
from sqlalchemy.orm import Session, relationship

from ...database import Base
from ...utils.ulid import generate_prefixed_ulid


class PaymentStatus(str, Enum):
  SUCCESS = "SUCCESS"
  FAILED = "FAILED"
  PENDING = "PENDING"


class PaymentMode(str, Enum):
  """Who collected the money.

  PLATFORM: the shared platform gateway account collected on the
  administrator's behalf, so a vendor payout is owed.
  OWN: the administrator's own gateway account collected it directly.
  OFFLINE: the administrator recorded a cash/bank payment by hand.
  """

  PLATFORM = "PLATFORM"
  OWN = "OWN"
  OFFLINE = "OFFLINE"


OFFLINE_GATEWAY = "offline"


class Payment(Base):
  """A payment applied to an invoice.

  Written only by the payment recorder. At most one SUCCESS payment may
  exist per invoice; the partial unique index below is what makes duplicate
  gateway callbacks resolve to a single row across process instances.
  """

  __tablename__ = "payments"

  id = Column(String, primary_key=True, default=lambda: generate_prefixed_ulid("pay"))

  invoice_id = Column(
    String, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False
  )
  tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False)
  admin_id = Column(String, ForeignKey("admins.id"), nullable=False)

  gateway_name = Column(String, nullable=False)
  gateway_order_id = Column(String, nullable=True)
  gateway_payment_id = Column(String, nullable=True)
  gateway_signature = Column(String, nullable=True)

  amount = Column(Numeric(12, 2), nullable=False)
  currency = Column(String(3), default="INR", nullable=False)
  platform_fee = Column(Numeric(12, 2), nullable=True)
  vendor_payout = Column(Numeric(12, 2), nullable=True)

  status = Column(String, nullable=False)
  payment_mode = Column(String, nullable=False)

  created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

  invoice = relationship("Invoice", back_populates="payments")

  __table_args__ = (
    Index("idx_payment_invoice", "invoice_id"),
    Index("idx_payment_admin", "admin_id"),
    Index("idx_payment_tenant", "tenant_id"),
    Index(
      "uq_payment_invoice_success",
      "invoice_id",
      unique=True,
      postgresql_where=text("status = 'SUCCESS'"),
      sqlite_where=text("status = 'SUCCESS'"),
    ),
    Index(
      "uq_payment_gateway_payment_id",
      "gateway_name",
      "gateway_payment_id",
      unique=True,
      postgresql_where=text(f"gateway_name <> '{OFFLINE_GATEWAY}'"),
      sqlite_where=text(f"gateway_name <> '{OFFLINE_GATEWAY}'"),
    ),
  )

  def __repr__(self) -> str:
    return f"<Payment {self.id} {self.status} {self.amount} via {self.gateway_name}>"

  @classmethod
  def get_success_for_invoice(
    cls, invoice_id: str, session: Session
  ) -> Optional["Payment"]:
    return (
      session.query(cls)
      .filter(cls.invoice_id == invoice_id, cls.status == PaymentStatus.SUCCESS.value)
      .first()
    )

  @classmethod
  def get_by_gateway_payment_id(
    cls, gateway_name: str, gateway_payment_id: str, session: Session
  ) -> Optional["Payment"]:
    return (
      session.query(cls)
      .filter(
        cls.gateway_name == gateway_name,
        cls.gateway_payment_id == gateway_payment_id,
      )
      .first()
    )

  @classmethod
  def get_by_invoice_id(cls, invoice_id: str, session: Session) -> list["Payment"]:
    return (
      session.query(cls)
      .filter(cls.invoice_id == invoice_id)
      .order_by(cls.created_at)
      .all()
    )
