"""Tenant invoice models - itemized rent, utility and fee billing per period."""

import calendar
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional

from sqlalchemy import (
  CheckConstraint,
  Column,
  Date,
  DateTime,
  ForeignKey,
  Index,
  Integer,
  Numeric,
  String,
  func,
  text,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, relationship

from ...database import Base
from ...exceptions import ValidationError
from ...logger import get_logger
from ...utils.ulid import generate_prefixed_ulid

logger = get_logger(__name__)

INVOICE_NUMBER_ATTEMPTS = 3


class InvoiceStatus(str, Enum):
  """Invoice status states. PAID and CANCELLED are terminal."""

  PENDING = "pending"
  PAID = "paid"
  CANCELLED = "cancelled"


class InvoiceItemKind(str, Enum):
  """What an invoice line charges for."""

  RENT = "rent"
  UTILITY = "utility"
  SERVICE = "service"
  FEE = "fee"
  LATE_FEE = "late_fee"


CHARGE_KINDS = frozenset(
  {InvoiceItemKind.RENT, InvoiceItemKind.UTILITY, InvoiceItemKind.SERVICE}
)
FEE_KINDS = frozenset({InvoiceItemKind.FEE, InvoiceItemKind.LATE_FEE})


@dataclass(frozen=True)
class InvoiceLine:
  """A validated invoice line before it is persisted.

  ``accrual_date`` is required for late fees and forbidden for every other
  kind, so a late fee can always be matched to the day it accrued.
  """

  description: str
  amount: Decimal
  kind: InvoiceItemKind
  accrual_date: Optional[date] = None

  def __post_init__(self):
    kind = InvoiceItemKind(self.kind)
    object.__setattr__(self, "kind", kind)
    object.__setattr__(self, "amount", Decimal(self.amount))

    if not self.description:
      raise ValidationError("Item description is required", field="description")
    if self.amount < 0:
      raise ValidationError(
        f"Item amount cannot be negative: {self.description}", field="amount"
      )
    if kind is InvoiceItemKind.LATE_FEE and self.accrual_date is None:
      raise ValidationError("Late fee items require an accrual date", field="accrual_date")
    if kind is not InvoiceItemKind.LATE_FEE and self.accrual_date is not None:
      raise ValidationError(
        "Only late fee items may carry an accrual date", field="accrual_date"
      )

  @property
  def is_fee(self) -> bool:
    return self.kind in FEE_KINDS


class Invoice(Base):
  """Invoice for one tenant for one billing period.

  Carries the itemized base charges, the platform fee items computed from
  them, and any late fees accrued while overdue. The stored totals always
  satisfy ``total_amount == subtotal + sum(fee-kind items)``.
  """

  __tablename__ = "invoices"

  id = Column(String, primary_key=True, default=lambda: generate_prefixed_ulid("inv"))

  invoice_number = Column(String, unique=True, nullable=False)

  admin_id = Column(String, ForeignKey("admins.id"), nullable=False)
  tenant_id = Column(String, ForeignKey("tenants.id"), nullable=False)

  period_month = Column(Integer, nullable=False)
  period_year = Column(Integer, nullable=False)
  due_date = Column(Date, nullable=False)

  status = Column(String, default=InvoiceStatus.PENDING.value, nullable=False)

  subtotal = Column(Numeric(12, 2), nullable=False)
  total_amount = Column(Numeric(12, 2), nullable=False)
  currency = Column(String(3), default="INR", nullable=False)

  paid_at = Column(DateTime, nullable=True)
  cancelled_at = Column(DateTime, nullable=True)
  notes = Column(String, nullable=True)

  created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
  updated_at = Column(
    DateTime,
    default=lambda: datetime.now(UTC),
    onupdate=lambda: datetime.now(UTC),
    nullable=False,
  )

  items = relationship(
    "InvoiceItem",
    back_populates="invoice",
    cascade="all, delete-orphan",
    order_by="InvoiceItem.position",
  )
  payments = relationship(
    "Payment", back_populates="invoice", cascade="all, delete-orphan"
  )

  __table_args__ = (
    Index("idx_invoice_admin", "admin_id"),
    Index("idx_invoice_tenant", "tenant_id"),
    Index("idx_invoice_status", "status"),
    Index("idx_invoice_due_date", "due_date"),
    Index("idx_invoice_tenant_period", "tenant_id", "period_year", "period_month"),
    CheckConstraint(
      "status IN ('pending', 'paid', 'cancelled')", name="ck_invoice_status"
    ),
    CheckConstraint("period_month BETWEEN 1 AND 12", name="ck_invoice_period_month"),
  )

  def __repr__(self) -> str:
    return f"<Invoice {self.invoice_number} {self.status} total={self.total_amount}>"

  @classmethod
  def create_invoice(
    cls,
    admin_id: str,
    tenant_id: str,
    period_month: int,
    period_year: int,
    due_date: date,
    lines: Iterable[InvoiceLine],
    subtotal: Decimal,
    total_amount: Decimal,
    session: Session,
    currency: str = "INR",
    notes: Optional[str] = None,
  ) -> "Invoice":
    """Create a pending invoice with its items in one commit.

    The invoice number is claimed through the unique index on
    ``invoice_number``; a concurrent create that took the same number makes
    this one retry with the next free number.
    """
    lines = list(lines)
    for attempt in range(1, INVOICE_NUMBER_ATTEMPTS + 1):
      invoice = cls(
        invoice_number=cls._generate_invoice_number(session, period_year, period_month),
        admin_id=admin_id,
        tenant_id=tenant_id,
        period_month=period_month,
        period_year=period_year,
        due_date=due_date,
        status=InvoiceStatus.PENDING.value,
        subtotal=subtotal,
        total_amount=total_amount,
        currency=currency,
        notes=notes,
      )
      for position, line in enumerate(lines):
        invoice.items.append(InvoiceItem.from_line(line, position))

      session.add(invoice)
      try:
        session.commit()
        break
      except IntegrityError:
        session.rollback()
        if attempt == INVOICE_NUMBER_ATTEMPTS:
          raise
        logger.warning(
          f"Invoice number {invoice.invoice_number} taken, retrying",
          extra={"admin_id": admin_id, "attempt": attempt},
        )

    session.refresh(invoice)

    logger.info(
      f"Created invoice {invoice.invoice_number} for tenant {tenant_id}",
      extra={"admin_id": admin_id, "invoice_id": invoice.id},
    )

    return invoice

  @classmethod
  def _generate_invoice_number(
    cls, session: Session, period_year: int, period_month: int
  ) -> str:
    """Next invoice number for the period, one past the highest issued.

    Deleted invoices leave gaps; their numbers are never reissued while a
    higher one exists.
    """
    prefix = f"INV-{period_year}-{period_month:02d}-"
    latest = (
      session.query(cls.invoice_number)
      .filter(cls.invoice_number.like(f"{prefix}%"))
      .order_by(func.length(cls.invoice_number).desc(), cls.invoice_number.desc())
      .first()
    )
    sequence = int(latest[0][len(prefix):]) + 1 if latest else 1

    return f"{prefix}{sequence:04d}"

  @classmethod
  def get_by_id(cls, invoice_id: str, session: Session) -> Optional["Invoice"]:
    return session.query(cls).filter(cls.id == invoice_id).first()

  @classmethod
  def search(
    cls,
    session: Session,
    admin_id: Optional[str] = None,
    tenant_id: Optional[str] = None,
    status: Optional[InvoiceStatus] = None,
    due_from: Optional[date] = None,
    due_to: Optional[date] = None,
  ) -> list["Invoice"]:
    """Query invoices by owner, tenant, status and due date range (inclusive)."""
    query = session.query(cls)

    if admin_id:
      query = query.filter(cls.admin_id == admin_id)
    if tenant_id:
      query = query.filter(cls.tenant_id == tenant_id)
    if status:
      query = query.filter(cls.status == InvoiceStatus(status).value)
    if due_from:
      query = query.filter(cls.due_date >= due_from)
    if due_to:
      query = query.filter(cls.due_date <= due_to)

    return query.order_by(cls.due_date.desc(), cls.created_at.desc()).all()

  @classmethod
  def get_for_period(
    cls, tenant_id: str, period_month: int, period_year: int, session: Session
  ) -> Optional["Invoice"]:
    """Get the non-cancelled invoice of a tenant for a billing period."""
    return (
      session.query(cls)
      .filter(
        cls.tenant_id == tenant_id,
        cls.period_month == period_month,
        cls.period_year == period_year,
        cls.status != InvoiceStatus.CANCELLED.value,
      )
      .first()
    )

  @classmethod
  def get_overdue_pending(
    cls, session: Session, today: date, admin_ids: Iterable[str]
  ) -> list["Invoice"]:
    """Pending invoices of the given administrators whose due date has passed."""
    admin_ids = list(admin_ids)
    if not admin_ids:
      return []

    return (
      session.query(cls)
      .filter(
        cls.status == InvoiceStatus.PENDING.value,
        cls.due_date < today,
        cls.admin_id.in_(admin_ids),
      )
      .order_by(cls.due_date)
      .all()
    )

  @property
  def is_pending(self) -> bool:
    return self.status == InvoiceStatus.PENDING.value

  @property
  def period_label(self) -> str:
    return f"{calendar.month_name[self.period_month]} {self.period_year}"

  @property
  def charge_items(self) -> list["InvoiceItem"]:
    return [item for item in self.items if item.kind_enum in CHARGE_KINDS]

  @property
  def fee_items(self) -> list["InvoiceItem"]:
    return [item for item in self.items if item.kind_enum is InvoiceItemKind.FEE]

  @property
  def late_fee_items(self) -> list["InvoiceItem"]:
    return [item for item in self.items if item.kind_enum is InvoiceItemKind.LATE_FEE]

  @property
  def platform_fee_total(self) -> Decimal:
    """Sum of platform fee items; late fees belong to the administrator."""
    return sum((Decimal(item.amount) for item in self.fee_items), Decimal("0"))

  def has_late_fee_on(self, accrual_date: date) -> bool:
    return any(item.accrual_date == accrual_date for item in self.late_fee_items)

  def next_position(self) -> int:
    return max((item.position for item in self.items), default=-1) + 1

  def totals_consistent(self) -> bool:
    fee_sum = sum(
      (Decimal(item.amount) for item in self.items if item.kind_enum in FEE_KINDS),
      Decimal("0"),
    )
    return Decimal(self.total_amount) == Decimal(self.subtotal) + fee_sum


class InvoiceItem(Base):
  """Line item of an invoice."""

  __tablename__ = "invoice_items"

  id = Column(String, primary_key=True, default=lambda: generate_prefixed_ulid("itm"))

  invoice_id = Column(
    String, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False
  )

  position = Column(Integer, nullable=False)
  description = Column(String, nullable=False)
  amount = Column(Numeric(12, 2), nullable=False)
  kind = Column(String, nullable=False)
  accrual_date = Column(Date, nullable=True)

  created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

  invoice = relationship("Invoice", back_populates="items")

  __table_args__ = (
    Index("idx_invoice_item_invoice", "invoice_id"),
    # One late fee per invoice per calendar day, enforced by the database so
    # concurrent accrual runs cannot both apply.
    Index(
      "uq_invoice_item_late_fee_date",
      "invoice_id",
      "accrual_date",
      unique=True,
      postgresql_where=text("kind = 'late_fee'"),
      sqlite_where=text("kind = 'late_fee'"),
    ),
    CheckConstraint("amount >= 0", name="ck_invoice_item_amount"),
    CheckConstraint(
      "(kind = 'late_fee' AND accrual_date IS NOT NULL) "
      "OR (kind <> 'late_fee' AND accrual_date IS NULL)",
      name="ck_invoice_item_accrual_date",
    ),
  )

  def __repr__(self) -> str:
    return f"<InvoiceItem {self.kind} {self.description} {self.amount}>"

  @classmethod
  def from_line(
    cls, line: InvoiceLine, position: int, invoice_id: Optional[str] = None
  ) -> "InvoiceItem":
    return cls(
      invoice_id=invoice_id,
      position=position,
      description=line.description,
      amount=line.amount,
      kind=line.kind.value,
      accrual_date=line.accrual_date,
    )

  @property
  def kind_enum(self) -> InvoiceItemKind:
    return InvoiceItemKind(self.kind)

  def to_line(self) -> InvoiceLine:
    return InvoiceLine(
      description=self.description,
      amount=Decimal(self.amount),
      kind=self.kind_enum,
      accrual_date=self.accrual_date,
    )
