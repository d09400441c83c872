"""
NestLedger logging entry point.

Exposes the configured application logger plus component loggers for the
API, background workers, billing operations and security events.
"""

import logging

from .config import env
from .config.logging import (
  setup_logging,
  get_logger,
  log_error,
  log_security_event,
  performance_timer,
)

setup_logging()

logger = get_logger("nestledger")

if env.is_development():
  logging.getLogger("httpx").setLevel(logging.WARNING)
  logging.getLogger("httpcore").setLevel(logging.WARNING)
  logging.getLogger("boto3").setLevel(logging.WARNING)
  logging.getLogger("botocore").setLevel(logging.WARNING)
  logging.getLogger("urllib3").setLevel(logging.WARNING)

api_logger = get_logger("nestledger.api")
worker_logger = get_logger("nestledger.workers")
billing_logger = get_logger("nestledger.billing")
security_logger = get_logger("nestledger.security")


def log_auth_event(
  event_type: str,
  user_id: str | None = None,
  success: bool = True,
  metadata: dict | None = None,
) -> None:
  """Log security/authentication events."""
  log_security_event(security_logger, event_type, user_id, success, metadata)


__all__ = [
  "logger",
  "api_logger",
  "worker_logger",
  "billing_logger",
  "security_logger",
  "log_auth_event",
  "log_error",
  "log_security_event",
  "performance_timer",
  "get_logger",
]
