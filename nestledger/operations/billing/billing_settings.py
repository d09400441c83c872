"""
Administrator billing settings.

An administrator controls their own fee schedule, late fee policy, monthly
generation and gateway account. Gateway secrets for OWN payment mode are
encrypted before they reach the database and are never returned.
"""

from dataclasses import fields
from decimal import Decimal
from typing import Any, Dict, Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...exceptions import PersistenceError, UnsupportedGatewayError, ValidationError
from ...logger import get_logger, log_error
from ...models.billing.admin_config import AdminBillingConfig
from ...models.billing.audit_log import BillingAuditLog, BillingEventType
from ...models.billing.payment import PaymentMode
from ...security import encrypt_secret
from ..providers.payment_gateway import SUPPORTED_GATEWAYS
from .fee_calculator import FeeSchedule, to_decimal
from .ownership import Principal, ensure_admin_scope

logger = get_logger(__name__)

FEE_SCHEDULE_FIELDS = tuple(f.name for f in fields(FeeSchedule))
FIXED_CHARGE_FIELDS = ("fixed_maintenance", "fixed_electricity", "fixed_water")
SECRET_FIELDS = {
  "own_key_secret": "own_key_secret_encrypted",
  "own_webhook_secret": "own_webhook_secret_encrypted",
}
SETTING_FIELDS = frozenset(
  FEE_SCHEDULE_FIELDS
  + FIXED_CHARGE_FIELDS
  + tuple(SECRET_FIELDS)
  + (
    "late_fee_enabled",
    "late_fee_daily_percent",
    "billing_cycle_day",
    "auto_billing_enabled",
    "payment_mode",
    "gateway_provider",
    "own_key_id",
  )
)
ADMIN_PAYMENT_MODES = (PaymentMode.PLATFORM.value, PaymentMode.OWN.value)
MAX_LATE_FEE_DAILY_PERCENT = Decimal("100")


def get_billing_config(
  session: Session, principal: Principal, admin_id: str
) -> AdminBillingConfig:
  ensure_admin_scope(principal, admin_id)
  return AdminBillingConfig.get_or_create(admin_id, session)


def _validated(changes: Mapping[str, Any]) -> Dict[str, Any]:
  """Normalize a partial settings update; secrets stay in plain text here."""
  unknown = set(changes) - SETTING_FIELDS
  if unknown:
    raise ValidationError(
      f"Unknown billing settings: {', '.join(sorted(unknown))}", field=sorted(unknown)[0]
    )

  values: Dict[str, Any] = {}
  for name, value in changes.items():
    if value is None:
      raise ValidationError(f"{name} cannot be null", field=name)

    if name in FEE_SCHEDULE_FIELDS or name in FIXED_CHARGE_FIELDS:
      amount = to_decimal(value, name)
      if amount < 0:
        raise ValidationError(f"{name} cannot be negative", field=name)
      values[name] = amount
    elif name == "late_fee_daily_percent":
      percent = to_decimal(value, name)
      if percent < 0 or percent > MAX_LATE_FEE_DAILY_PERCENT:
        raise ValidationError(
          "Late fee percent must be between 0 and 100", field=name, value=str(percent)
        )
      values[name] = percent
    elif name == "billing_cycle_day":
      try:
        day = int(value)
      except (TypeError, ValueError):
        raise ValidationError("Billing cycle day must be a whole number", field=name)
      if not 1 <= day <= 28:
        raise ValidationError("Billing cycle day must be between 1 and 28", field=name)
      values[name] = day
    elif name == "payment_mode":
      mode = str(value).upper()
      if mode not in ADMIN_PAYMENT_MODES:
        raise ValidationError(f"Unsupported payment mode: {value}", field=name)
      values[name] = mode
    elif name == "gateway_provider":
      provider = str(value).lower()
      if provider not in SUPPORTED_GATEWAYS:
        raise UnsupportedGatewayError(provider)
      values[name] = provider
    elif name in SECRET_FIELDS or name == "own_key_id":
      text = str(value).strip()
      if not text:
        raise ValidationError(f"{name} cannot be empty", field=name)
      values[name] = text
    else:
      values[name] = bool(value)

  return values


def update_billing_config(
  session: Session,
  principal: Principal,
  admin_id: str,
  changes: Mapping[str, Any],
) -> AdminBillingConfig:
  """
  Apply a partial update to an administrator's billing settings.

  Args:
      session: Database session
      principal: Caller; must be the administrator
      admin_id: Administrator whose settings change
      changes: Setting name to new value; absent names are left as they are

  Raises:
      InsufficientPermissionsError: Caller is not the administrator
      ValidationError: A value is out of range, or OWN mode lacks keys
      UnsupportedGatewayError: Unknown gateway provider
  """
  ensure_admin_scope(principal, admin_id)
  values = _validated(changes)
  config = AdminBillingConfig.get_or_create(admin_id, session)

  schedule_values = {
    name: values.get(name, getattr(config, name)) for name in FEE_SCHEDULE_FIELDS
  }
  FeeSchedule(**schedule_values)

  mode = values.get("payment_mode", config.payment_mode)
  if mode == PaymentMode.OWN.value:
    has_key_id = values.get("own_key_id") or config.own_key_id
    has_secret = values.get("own_key_secret") or config.own_key_secret_encrypted
    if not has_key_id:
      raise ValidationError("Gateway key ID is required for own account", field="own_key_id")
    if not has_secret:
      raise ValidationError(
        "Gateway key secret is required for own account", field="own_key_secret"
      )

  try:
    for name, value in values.items():
      if name in SECRET_FIELDS:
        setattr(config, SECRET_FIELDS[name], encrypt_secret(value))
      else:
        setattr(config, name, value)

    BillingAuditLog.log_event(
      session=session,
      event_type=BillingEventType.BILLING_CONFIG_UPDATED,
      description=f"Billing settings updated for admin {admin_id}",
      actor_type="system" if principal.is_system else "admin",
      actor_id=principal.user_id,
      admin_id=admin_id,
      event_data={"fields": sorted(values), "payment_mode": mode},
      commit=False,
    )
    session.commit()
  except SQLAlchemyError as e:
    session.rollback()
    log_error(
      logger,
      e,
      component="billing_settings",
      action="update_billing_config",
      error_category="persistence",
      admin_id=admin_id,
    )
    raise PersistenceError("update_billing_config", str(e), admin_id=admin_id)

  session.refresh(config)
  logger.info(
    f"Updated billing settings for admin {admin_id}: {', '.join(sorted(values))}",
    extra={"admin_id": admin_id, "action": "update_billing_config"},
  )
  return config
