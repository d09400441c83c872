"""Billing audit log - consolidated audit trail for all billing events."""

import secrets
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, Column, DateTime, Index, String
from sqlalchemy.orm import Session

from ...database import Base
from ...logger import get_logger

logger = get_logger(__name__)


class BillingEventType(str, Enum):
  """Types of billing audit events."""

  INVOICE_CREATED = "invoice_created"
  INVOICE_EDITED = "invoice_edited"
  INVOICE_CANCELLED = "invoice_cancelled"
  INVOICE_MARKED_PAID = "invoice_marked_paid"
  INVOICE_DELETED = "invoice_deleted"
  INVOICE_DELETED_PAID = "invoice_deleted_paid"

  LATE_FEE_APPLIED = "late_fee_applied"

  PAYMENT_SUCCEEDED = "payment_succeeded"
  RECONCILIATION_CONFLICT = "reconciliation_conflict"
  REFUND_PROCESSED = "refund_processed"

  WEBHOOK_RECEIVED = "webhook_received"

  BILLING_CONFIG_UPDATED = "billing_config_updated"


class BillingAuditLog(Base):
  """Consolidated audit log for billing events.

  Invoice and payment ids are stored without foreign keys so the trail
  survives deletion of the records it describes.
  """

  __tablename__ = "billing_audit_logs"

  id = Column(
    String, primary_key=True, default=lambda: f"baud_{secrets.token_urlsafe(16)}"
  )

  event_type = Column(String, nullable=False)
  event_timestamp = Column(
    DateTime, default=lambda: datetime.now(timezone.utc), nullable=False
  )

  admin_id = Column(String, nullable=True)
  invoice_id = Column(String, nullable=True)
  payment_id = Column(String, nullable=True)

  # Provider-scoped identifier of an inbound webhook event, used for dedupe
  external_ref = Column(String, nullable=True)

  event_data = Column(JSON, nullable=True)
  description = Column(String, nullable=False)

  actor_id = Column(String, nullable=True)
  actor_type = Column(String, nullable=False)

  __table_args__ = (
    Index("idx_billing_audit_admin", "admin_id"),
    Index("idx_billing_audit_invoice", "invoice_id"),
    Index("idx_billing_audit_event_type", "event_type"),
    Index("idx_billing_audit_timestamp", "event_timestamp"),
    Index(
      "uq_billing_audit_external_ref", "event_type", "external_ref", unique=True
    ),
  )

  def __repr__(self) -> str:
    return f"<BillingAuditLog {self.event_type} at {self.event_timestamp}>"

  @classmethod
  def log_event(
    cls,
    session: Session,
    event_type: BillingEventType | str,
    description: str,
    actor_type: str = "system",
    admin_id: Optional[str] = None,
    invoice_id: Optional[str] = None,
    payment_id: Optional[str] = None,
    event_data: Optional[dict] = None,
    actor_id: Optional[str] = None,
    external_ref: Optional[str] = None,
    commit: bool = True,
  ) -> "BillingAuditLog":
    """Create an audit log entry.

    With ``commit=False`` the entry joins the caller's transaction so it is
    written or discarded together with the change it describes.
    """
    event_type_str = (
      event_type.value if isinstance(event_type, BillingEventType) else event_type
    )
    audit_log = cls(
      event_type=event_type_str,
      description=description,
      actor_type=actor_type,
      admin_id=admin_id,
      invoice_id=invoice_id,
      payment_id=payment_id,
      event_data=event_data,
      actor_id=actor_id,
      external_ref=external_ref,
    )

    session.add(audit_log)
    if commit:
      session.commit()

    logger.info(
      f"Billing audit log: {event_type_str}",
      extra={
        "action": event_type_str,
        "admin_id": admin_id,
        "invoice_id": invoice_id,
        "payment_id": payment_id,
      },
    )

    return audit_log

  @classmethod
  def get_invoice_history(
    cls,
    session: Session,
    invoice_id: str,
  ) -> list["BillingAuditLog"]:
    """Get audit history for an invoice."""
    return (
      session.query(cls)
      .filter(cls.invoice_id == invoice_id)
      .order_by(cls.event_timestamp.desc())
      .all()
    )

  @classmethod
  def get_admin_history(
    cls,
    session: Session,
    admin_id: str,
    event_type: Optional[BillingEventType] = None,
    limit: int = 100,
  ) -> list["BillingAuditLog"]:
    """Get audit history for an administrator."""
    query = session.query(cls).filter(cls.admin_id == admin_id)

    if event_type:
      query = query.filter(cls.event_type == event_type.value)

    return query.order_by(cls.event_timestamp.desc()).limit(limit).all()

  @classmethod
  def is_webhook_processed(cls, event_id: str, provider: str, session: Session) -> bool:
    """Check if a webhook event has already been processed.

    Args:
        event_id: The webhook event ID from the payment provider
        provider: Payment provider name (e.g. 'razorpay')
        session: Database session

    Returns:
        True if event already processed, False otherwise
    """
    return (
      session.query(cls)
      .filter(
        cls.event_type == BillingEventType.WEBHOOK_RECEIVED.value,
        cls.external_ref == f"{provider}:{event_id}",
      )
      .first()
      is not None
    )

  @classmethod
  def mark_webhook_processed(
    cls,
    event_id: str,
    provider: str,
    event_type: str,
    event_data: dict,
    session: Session,
  ) -> "BillingAuditLog":
    """Mark a webhook event as processed in the audit log.

    Args:
        event_id: The webhook event ID from the payment provider
        provider: Payment provider name (e.g. 'razorpay')
        event_type: The webhook event type (e.g. 'payment.captured')
        event_data: Summary of the event payload
        session: Database session

    Returns:
        The created audit log entry
    """
    return cls.log_event(
      session=session,
      event_type=BillingEventType.WEBHOOK_RECEIVED,
      description=f"Processed {provider} webhook: {event_type}",
      actor_type=provider,
      event_data={"provider": provider, "event_id": event_id, "type": event_type, **event_data},
      external_ref=f"{provider}:{event_id}",
    )
