"""
Ownership checks for invoice and payment operations.

Every read or write of an invoice, payment or ledger goes through one of the
guards below. Administrators may only touch invoices they own; tenants may
only read and pay their own invoices; the system principal (scheduler,
verified gateway callbacks) is unrestricted.
"""

from dataclasses import dataclass
from enum import Enum

from ...exceptions import InsufficientPermissionsError
from ...logger import log_auth_event
from ...models.billing.invoice import Invoice


class PrincipalRole(str, Enum):
  ADMIN = "admin"
  TENANT = "tenant"
  SYSTEM = "system"


@dataclass(frozen=True)
class Principal:
  """The authenticated caller of a billing operation."""

  user_id: str
  role: PrincipalRole

  @classmethod
  def system(cls) -> "Principal":
    return cls(user_id="system", role=PrincipalRole.SYSTEM)

  @property
  def is_admin(self) -> bool:
    return self.role is PrincipalRole.ADMIN

  @property
  def is_tenant(self) -> bool:
    return self.role is PrincipalRole.TENANT

  @property
  def is_system(self) -> bool:
    return self.role is PrincipalRole.SYSTEM


def _deny(principal: Principal, permission: str, resource: str):
  log_auth_event(
    "ownership_denied",
    user_id=principal.user_id,
    success=False,
    metadata={"permission": permission, "resource": resource},
  )
  raise InsufficientPermissionsError(
    permission, resource=resource, user_id=principal.user_id
  )


def ensure_admin_scope(principal: Principal, admin_id: str) -> None:
  """Caller must be the administrator ``admin_id`` (or the system)."""
  if principal.is_system:
    return
  if principal.is_admin and principal.user_id == admin_id:
    return
  _deny(principal, "admin_owner", f"admin:{admin_id}")


def ensure_can_view_invoice(principal: Principal, invoice: Invoice) -> None:
  """Owning administrator or the billed tenant may read an invoice."""
  if principal.is_system:
    return
  if principal.is_admin and invoice.admin_id == principal.user_id:
    return
  if principal.is_tenant and invoice.tenant_id == principal.user_id:
    return
  _deny(principal, "invoice_read", f"invoice:{invoice.id}")


def ensure_can_manage_invoice(principal: Principal, invoice: Invoice) -> None:
  """Only the owning administrator may create, edit, cancel or delete."""
  if principal.is_system:
    return
  if principal.is_admin and invoice.admin_id == principal.user_id:
    return
  _deny(principal, "invoice_manage", f"invoice:{invoice.id}")


def ensure_can_pay_invoice(principal: Principal, invoice: Invoice) -> None:
  """Only the billed tenant may start a gateway payment for an invoice."""
  if principal.is_system:
    return
  if principal.is_tenant and invoice.tenant_id == principal.user_id:
    return
  _deny(principal, "invoice_pay", f"invoice:{invoice.id}")


def scope_invoice_filters(
  principal: Principal, admin_id: str | None, tenant_id: str | None
) -> tuple[str | None, str | None]:
  """
  Narrow invoice query filters to what the caller may see.

  Administrators are pinned to their own admin_id; tenants to their own
  tenant_id. A filter naming someone else is rejected rather than ignored.
  """
  if principal.is_system:
    return admin_id, tenant_id

  if principal.is_admin:
    if admin_id and admin_id != principal.user_id:
      _deny(principal, "invoice_read", f"admin:{admin_id}")
    return principal.user_id, tenant_id

  if tenant_id and tenant_id != principal.user_id:
    _deny(principal, "invoice_read", f"tenant:{tenant_id}")
  return admin_id, principal.user_id
