"""Per-administrator billing configuration."""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
  Boolean,
  CheckConstraint,
  Column,
  DateTime,
  ForeignKey,
  Integer,
  Numeric,
  String,
)
from sqlalchemy.orm import Session

from ...config.billing import (
  DEFAULT_BILLING_CYCLE_DAY,
  DEFAULT_FEE_SCHEDULE,
  DEFAULT_LATE_FEE_DAILY_PERCENT,
)
from ...database import Base
from ...logger import get_logger
from .payment import PaymentMode

logger = get_logger(__name__)


class AdminBillingConfig(Base):
  """Fee schedule, late fee policy, billing cycle and gateway settings.

  One row per administrator. Gateway secrets for OWN payment mode are stored
  Fernet-encrypted and are only decrypted when a gateway config is resolved.
  """

  __tablename__ = "admin_billing_configs"

  admin_id = Column(String, ForeignKey("admins.id"), primary_key=True)

  # Platform fee schedule (percent values, 0.6 == 0.6 %)
  fixed_fee = Column(Numeric(12, 2), nullable=False)
  platform_percent = Column(Numeric(6, 4), nullable=False)
  development_percent = Column(Numeric(6, 4), nullable=False)
  support_percent = Column(Numeric(6, 4), nullable=False)
  maintenance_percent = Column(Numeric(6, 4), nullable=False)
  gateway_percent = Column(Numeric(6, 4), nullable=False)

  # Late fee policy
  late_fee_enabled = Column(Boolean, default=False, nullable=False)
  late_fee_daily_percent = Column(Numeric(6, 4), default=0, nullable=False)

  # Monthly generation
  billing_cycle_day = Column(Integer, default=DEFAULT_BILLING_CYCLE_DAY, nullable=False)
  auto_billing_enabled = Column(Boolean, default=False, nullable=False)
  fixed_maintenance = Column(Numeric(12, 2), default=0, nullable=False)
  fixed_electricity = Column(Numeric(12, 2), default=0, nullable=False)
  fixed_water = Column(Numeric(12, 2), default=0, nullable=False)

  # Gateway settings
  payment_mode = Column(String, default=PaymentMode.PLATFORM.value, nullable=False)
  gateway_provider = Column(String, default="razorpay", nullable=False)
  own_key_id = Column(String, nullable=True)
  own_key_secret_encrypted = Column(String, nullable=True)
  own_webhook_secret_encrypted = Column(String, nullable=True)

  created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
  updated_at = Column(
    DateTime,
    default=lambda: datetime.now(UTC),
    onupdate=lambda: datetime.now(UTC),
    nullable=False,
  )

  __table_args__ = (
    CheckConstraint(
      "billing_cycle_day BETWEEN 1 AND 28", name="ck_admin_config_cycle_day"
    ),
    CheckConstraint(
      "payment_mode IN ('PLATFORM', 'OWN')", name="ck_admin_config_payment_mode"
    ),
  )

  def __repr__(self) -> str:
    return f"<AdminBillingConfig {self.admin_id} mode={self.payment_mode}>"

  @classmethod
  def get_for_admin(
    cls, admin_id: str, session: Session
  ) -> Optional["AdminBillingConfig"]:
    return session.query(cls).filter(cls.admin_id == admin_id).first()

  @classmethod
  def get_or_create(cls, admin_id: str, session: Session) -> "AdminBillingConfig":
    """Return the administrator's config, creating it from platform defaults."""
    config = cls.get_for_admin(admin_id, session)
    if config:
      return config

    config = cls(
      admin_id=admin_id,
      late_fee_enabled=False,
      late_fee_daily_percent=DEFAULT_LATE_FEE_DAILY_PERCENT,
      billing_cycle_day=DEFAULT_BILLING_CYCLE_DAY,
      auto_billing_enabled=False,
      fixed_maintenance=Decimal("0"),
      fixed_electricity=Decimal("0"),
      fixed_water=Decimal("0"),
      payment_mode=PaymentMode.PLATFORM.value,
      **DEFAULT_FEE_SCHEDULE,
    )
    session.add(config)
    session.commit()
    session.refresh(config)

    logger.info(f"Created default billing config for admin {admin_id}")
    return config

  @classmethod
  def get_late_fee_configs(
    cls, session: Session, admin_id: Optional[str] = None
  ) -> list["AdminBillingConfig"]:
    """Configs with late fees switched on and a positive daily percent."""
    query = session.query(cls).filter(
      cls.late_fee_enabled.is_(True), cls.late_fee_daily_percent > 0
    )
    if admin_id:
      query = query.filter(cls.admin_id == admin_id)
    return query.all()

  @classmethod
  def get_due_for_generation(
    cls, session: Session, cycle_day: int
  ) -> list["AdminBillingConfig"]:
    """Configs with automatic generation enabled whose cycle day is today."""
    return (
      session.query(cls)
      .filter(
        cls.auto_billing_enabled.is_(True),
        cls.billing_cycle_day == cycle_day,
      )
      .all()
    )

  @property
  def uses_platform_gateway(self) -> bool:
    return self.payment_mode == PaymentMode.PLATFORM.value
