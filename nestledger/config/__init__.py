"""
Centralized configuration package for NestLedger.

This package provides a single source of truth for configuration settings:
environment variables, billing defaults and operational constants.
"""

from .billing import BillingConfig, DEFAULT_FEE_SCHEDULE
from .env import EnvConfig, env

__all__ = [
  "BillingConfig",
  "DEFAULT_FEE_SCHEDULE",
  "EnvConfig",
  "env",
]
