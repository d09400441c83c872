import pytest
from fastapi.testclient import TestClient

from main import create_app
from nestledger.database import get_db_session
from nestledger.middleware.auth.jwt import create_jwt_token


@pytest.fixture
def client(db_session):
  """API client whose requests share the test's database session."""
  app = create_app()

  def override_db():
    yield db_session

  app.dependency_overrides[get_db_session] = override_db
  with TestClient(app) as test_client:
    yield test_client
  app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(test_admin):
  return {"Authorization": f"Bearer {create_jwt_token(test_admin.id, 'admin')}"}


@pytest.fixture
def other_admin_headers(other_admin):
  return {"Authorization": f"Bearer {create_jwt_token(other_admin.id, 'admin')}"}


@pytest.fixture
def tenant_headers(test_tenant):
  return {"Authorization": f"Bearer {create_jwt_token(test_tenant.id, 'tenant')}"}
