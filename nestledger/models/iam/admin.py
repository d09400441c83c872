"""Property administrator directory entry."""

from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import Session

from ...database import Base
from ...utils.ulid import generate_prefixed_ulid


class Admin(Base):
  """An administrator who owns a property, its tenants and their invoices.

  Administrators are managed outside the billing core; this table only
  carries what billing needs to address and notify them.
  """

  __tablename__ = "admins"

  id = Column(String, primary_key=True, default=lambda: generate_prefixed_ulid("adm"))
  full_name = Column(String, nullable=False)
  email = Column(String, nullable=False, unique=True)
  property_name = Column(String, nullable=True)

  created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

  def __repr__(self) -> str:
    return f"<Admin {self.id} {self.email}>"

  @classmethod
  def get_by_id(cls, admin_id: str, session: Session) -> Optional["Admin"]:
    return session.query(cls).filter(cls.id == admin_id).first()
