"""Tests for invoice ownership guards."""

from types import SimpleNamespace

import pytest

from nestledger.exceptions import InsufficientPermissionsError
from nestledger.operations.billing.ownership import (
  Principal,
  PrincipalRole,
  ensure_admin_scope,
  ensure_can_manage_invoice,
  ensure_can_pay_invoice,
  ensure_can_view_invoice,
  scope_invoice_filters,
)

ADMIN = Principal(user_id="adm_1", role=PrincipalRole.ADMIN)
OTHER_ADMIN = Principal(user_id="adm_2", role=PrincipalRole.ADMIN)
TENANT = Principal(user_id="ten_1", role=PrincipalRole.TENANT)
OTHER_TENANT = Principal(user_id="ten_2", role=PrincipalRole.TENANT)
SYSTEM = Principal.system()


@pytest.fixture
def invoice():
  return SimpleNamespace(id="inv_1", admin_id="adm_1", tenant_id="ten_1")


class TestPrincipal:
  def test_roles(self):
    assert ADMIN.is_admin and not ADMIN.is_tenant
    assert TENANT.is_tenant and not TENANT.is_system
    assert SYSTEM.is_system
    assert SYSTEM.user_id == "system"


class TestInvoiceGuards:
  def test_view(self, invoice):
    ensure_can_view_invoice(ADMIN, invoice)
    ensure_can_view_invoice(TENANT, invoice)
    ensure_can_view_invoice(SYSTEM, invoice)

    for outsider in (OTHER_ADMIN, OTHER_TENANT):
      with pytest.raises(InsufficientPermissionsError):
        ensure_can_view_invoice(outsider, invoice)

  def test_manage_is_owner_only(self, invoice):
    ensure_can_manage_invoice(ADMIN, invoice)
    ensure_can_manage_invoice(SYSTEM, invoice)

    for caller in (OTHER_ADMIN, TENANT):
      with pytest.raises(InsufficientPermissionsError):
        ensure_can_manage_invoice(caller, invoice)

  def test_pay_is_billed_tenant_only(self, invoice):
    ensure_can_pay_invoice(TENANT, invoice)

    for caller in (ADMIN, OTHER_TENANT):
      with pytest.raises(InsufficientPermissionsError):
        ensure_can_pay_invoice(caller, invoice)

  def test_denial_details(self, invoice):
    with pytest.raises(InsufficientPermissionsError) as exc_info:
      ensure_can_manage_invoice(OTHER_ADMIN, invoice)

    assert exc_info.value.details == {
      "required_permission": "invoice_manage",
      "resource": "invoice:inv_1",
      "user_id": "adm_2",
    }

  def test_admin_scope(self):
    ensure_admin_scope(ADMIN, "adm_1")
    ensure_admin_scope(SYSTEM, "adm_1")

    with pytest.raises(InsufficientPermissionsError):
      ensure_admin_scope(OTHER_ADMIN, "adm_1")
    with pytest.raises(InsufficientPermissionsError):
      ensure_admin_scope(TENANT, "adm_1")


class TestScopeInvoiceFilters:
  def test_admin_pinned_to_self(self):
    assert scope_invoice_filters(ADMIN, None, "ten_9") == ("adm_1", "ten_9")

  def test_admin_naming_other_admin_denied(self):
    with pytest.raises(InsufficientPermissionsError):
      scope_invoice_filters(ADMIN, "adm_2", None)

  def test_tenant_pinned_to_self(self):
    assert scope_invoice_filters(TENANT, "adm_1", None) == ("adm_1", "ten_1")

  def test_tenant_naming_other_tenant_denied(self):
    with pytest.raises(InsufficientPermissionsError):
      scope_invoice_filters(TENANT, None, "ten_2")

  def test_system_unrestricted(self):
    assert scope_invoice_filters(SYSTEM, "adm_2", "ten_2") == ("adm_2", "ten_2")
