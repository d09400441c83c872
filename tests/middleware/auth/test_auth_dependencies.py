"""Tests for the bearer token FastAPI dependencies."""

from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from nestledger.middleware.auth.dependencies import get_current_principal, require_admin
from nestledger.middleware.auth.jwt import create_jwt_token
from nestledger.operations.billing.ownership import Principal, PrincipalRole


@pytest.fixture
def request_stub():
  request = MagicMock()
  request.url.path = "/v1/billing/invoices"
  return request


def bearer(token):
  return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class TestGetCurrentPrincipal:
  @pytest.mark.asyncio
  async def test_valid_token(self, request_stub):
    principal = await get_current_principal(
      request_stub, bearer(create_jwt_token("ten_1", "tenant"))
    )

    assert principal == Principal(user_id="ten_1", role=PrincipalRole.TENANT)

  @pytest.mark.asyncio
  async def test_missing_token(self, request_stub):
    with pytest.raises(HTTPException) as exc_info:
      await get_current_principal(request_stub, None)

    assert exc_info.value.status_code == 401
    assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}

  @pytest.mark.asyncio
  async def test_invalid_token(self, request_stub):
    with pytest.raises(HTTPException) as exc_info:
      await get_current_principal(request_stub, bearer("garbage"))

    assert exc_info.value.status_code == 401
    assert exc_info.value.detail == "Invalid or expired token"


class TestRequireAdmin:
  @pytest.mark.asyncio
  async def test_admin_passes(self):
    admin = Principal(user_id="adm_1", role=PrincipalRole.ADMIN)

    assert await require_admin(admin) is admin

  @pytest.mark.asyncio
  async def test_tenant_forbidden(self):
    with pytest.raises(HTTPException) as exc_info:
      await require_admin(Principal(user_id="ten_1", role=PrincipalRole.TENANT))

    assert exc_info.value.status_code == 403
