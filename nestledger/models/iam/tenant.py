"""Tenant directory entry."""

from datetime import UTC, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Column, DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Session

from ...database import Base
from ...utils.ulid import generate_prefixed_ulid


class TenantStatus(str, Enum):
  ACTIVE = "active"
  INACTIVE = "inactive"


class Tenant(Base):
  """A tenant occupying a room under an administrator's property."""

  __tablename__ = "tenants"

  id = Column(String, primary_key=True, default=lambda: generate_prefixed_ulid("ten"))
  admin_id = Column(String, ForeignKey("admins.id"), nullable=False)

  full_name = Column(String, nullable=False)
  email = Column(String, nullable=True)
  phone = Column(String, nullable=True)

  monthly_rent = Column(Numeric(12, 2), nullable=False, default=0)
  status = Column(String, nullable=False, default=TenantStatus.ACTIVE.value)

  created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

  __table_args__ = (
    Index("idx_tenant_admin", "admin_id"),
    Index("idx_tenant_admin_status", "admin_id", "status"),
  )

  def __repr__(self) -> str:
    return f"<Tenant {self.id} {self.full_name}>"

  @classmethod
  def get_by_id(cls, tenant_id: str, session: Session) -> Optional["Tenant"]:
    return session.query(cls).filter(cls.id == tenant_id).first()

  @classmethod
  def get_active_for_admin(cls, admin_id: str, session: Session) -> list["Tenant"]:
    """Get all active tenants belonging to an administrator."""
    return (
      session.query(cls)
      .filter(cls.admin_id == admin_id, cls.status == TenantStatus.ACTIVE.value)
      .order_by(cls.created_at)
      .all()
    )
