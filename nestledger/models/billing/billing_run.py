"""Billing run records - one row per late fee or invoice generation run."""

from datetime import UTC, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, Column, DateTime, Index, Integer, String
from sqlalchemy.orm import Session

from ...database import Base
from ...utils.ulid import generate_prefixed_ulid


class BillingRunType(str, Enum):
  LATE_FEES = "late_fees"
  MONTHLY_INVOICES = "monthly_invoices"


class BillingRunTrigger(str, Enum):
  SCHEDULED = "scheduled"
  MANUAL = "manual"


class BillingRun(Base):
  """Outcome of a batch billing run, kept for operators and administrators."""

  __tablename__ = "billing_runs"

  id = Column(String, primary_key=True, default=lambda: generate_prefixed_ulid("run"))

  run_type = Column(String, nullable=False)
  trigger = Column(String, nullable=False)
  triggered_by = Column(String, nullable=True)
  admin_scope = Column(String, nullable=True)

  status = Column(String, nullable=False, default="running")
  processed_count = Column(Integer, nullable=False, default=0)
  error_count = Column(Integer, nullable=False, default=0)
  errors = Column(JSON, nullable=True)
  execution_time_ms = Column(Integer, nullable=True)

  started_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
  completed_at = Column(DateTime, nullable=True)

  __table_args__ = (
    Index("idx_billing_run_type_started", "run_type", "started_at"),
    Index("idx_billing_run_scope", "admin_scope"),
  )

  def __repr__(self) -> str:
    return f"<BillingRun {self.run_type} {self.status} processed={self.processed_count}>"

  @classmethod
  def record(
    cls,
    session: Session,
    run_type: BillingRunType,
    manual: bool,
    processed_count: int,
    errors: list[dict],
    execution_time_ms: int,
    started_at: datetime,
    admin_scope: Optional[str] = None,
  ) -> "BillingRun":
    """Persist the summary of a finished run."""
    if errors and processed_count == 0:
      status = "failed"
    elif errors:
      status = "partial"
    else:
      status = "success"

    run = cls(
      run_type=run_type.value,
      trigger=(BillingRunTrigger.MANUAL if manual else BillingRunTrigger.SCHEDULED).value,
      triggered_by=admin_scope if manual else "scheduler",
      admin_scope=admin_scope,
      status=status,
      processed_count=processed_count,
      error_count=len(errors),
      errors=errors or None,
      execution_time_ms=execution_time_ms,
      started_at=started_at,
      completed_at=datetime.now(UTC),
    )
    session.add(run)
    session.commit()
    return run

  @classmethod
  def get_recent(
    cls,
    session: Session,
    run_type: Optional[BillingRunType] = None,
    admin_scope: Optional[str] = None,
    limit: int = 20,
  ) -> list["BillingRun"]:
    query = session.query(cls)
    if run_type:
      query = query.filter(cls.run_type == run_type.value)
    if admin_scope:
      query = query.filter(cls.admin_scope == admin_scope)
    return query.order_by(cls.started_at.desc()).limit(limit).all()
