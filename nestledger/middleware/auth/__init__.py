"""Authentication middleware."""

from .dependencies import get_current_principal, require_admin

__all__ = ["get_current_principal", "require_admin"]
