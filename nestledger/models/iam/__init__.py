"""Directory models for the people billing addresses."""

from .admin import Admin
from .tenant import Tenant, TenantStatus

__all__ = ["Admin", "Tenant", "TenantStatus"]
