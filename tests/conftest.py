import os

# Settings are read when nestledger is imported, so they go first
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key-for-billing-tests")
os.environ.setdefault(
  "CREDENTIAL_ENCRYPTION_KEY", "MDEyMzQ1Njc4OWFiY2RlZjAxMjM0NTY3ODlhYmNkZWY="
)
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_platform")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "rzp_platform_secret")
os.environ.setdefault("RAZORPAY_WEBHOOK_SECRET", "rzp_platform_webhook_secret")
os.environ.setdefault("CASHFREE_APP_ID", "cf_test_platform")
os.environ.setdefault("CASHFREE_SECRET_KEY", "cf_platform_secret")
os.environ.setdefault("EMAIL_ENABLED", "false")

from datetime import date, timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402
from unittest.mock import Mock, patch  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import nestledger.models  # noqa: E402,F401
from nestledger.database import Base  # noqa: E402
from nestledger.models.billing.admin_config import AdminBillingConfig  # noqa: E402
from nestledger.models.billing.invoice import (  # noqa: E402
  Invoice,
  InvoiceItemKind,
  InvoiceLine,
)
from nestledger.models.iam.admin import Admin  # noqa: E402
from nestledger.models.iam.tenant import Tenant  # noqa: E402
from nestledger.operations.billing.notifications import BillingNotifier  # noqa: E402
from nestledger.operations.billing.ownership import (  # noqa: E402
  Principal,
  PrincipalRole,
)


@pytest.fixture
def db_engine():
  """In-memory SQLite database shared by every connection of one test."""
  engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
  )
  Base.metadata.create_all(bind=engine)
  yield engine
  Base.metadata.drop_all(bind=engine)
  engine.dispose()


@pytest.fixture
def db_session(db_engine):
  TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
  session = TestingSessionLocal()
  yield session
  session.close()


@pytest.fixture(autouse=True)
def queued_emails():
  """Billing emails are queued on Celery; capture them instead."""
  with patch(
    "nestledger.tasks.billing.notifications.send_billing_email.delay"
  ) as mock_delay:
    yield mock_delay


@pytest.fixture
def notifier():
  return Mock(spec=BillingNotifier)


@pytest.fixture
def test_admin(db_session):
  admin = Admin(
    id="adm_01TESTADMIN0000000000000001",
    full_name="Meera Nair",
    email="meera@greenview.example",
    property_name="Greenview PG",
  )
  db_session.add(admin)
  db_session.commit()
  return admin


@pytest.fixture
def other_admin(db_session):
  admin = Admin(
    id="adm_01TESTADMIN0000000000000002",
    full_name="Arjun Rao",
    email="arjun@lakeside.example",
    property_name="Lakeside Residency",
  )
  db_session.add(admin)
  db_session.commit()
  return admin


@pytest.fixture
def test_tenant(db_session, test_admin):
  tenant = Tenant(
    id="ten_01TESTTENANT000000000000001",
    admin_id=test_admin.id,
    full_name="Kabir Shah",
    email="kabir@example.com",
    phone="9876543210",
    monthly_rent=Decimal("10000"),
  )
  db_session.add(tenant)
  db_session.commit()
  return tenant


@pytest.fixture
def billing_config(db_session, test_admin):
  """Platform-default fee schedule with late fees at 0.5 % per day."""
  config = AdminBillingConfig.get_or_create(test_admin.id, db_session)
  config.late_fee_enabled = True
  config.late_fee_daily_percent = Decimal("0.5")
  db_session.commit()
  return config


@pytest.fixture
def admin_principal(test_admin):
  return Principal(user_id=test_admin.id, role=PrincipalRole.ADMIN)


@pytest.fixture
def tenant_principal(test_tenant):
  return Principal(user_id=test_tenant.id, role=PrincipalRole.TENANT)


@pytest.fixture
def make_invoice(db_session, test_admin, test_tenant):
  """Create a pending invoice with a single rent line."""

  def _make(
    total=Decimal("10000"),
    due_date=None,
    period_month=5,
    period_year=2024,
    fee=None,
    tenant=None,
  ):
    tenant = tenant or test_tenant
    lines = [InvoiceLine("Room Rent", Decimal(total), InvoiceItemKind.RENT)]
    subtotal = Decimal(total)
    total_amount = Decimal(total)
    if fee is not None:
      lines.append(InvoiceLine("Fixed Service Fee", Decimal(fee), InvoiceItemKind.FEE))
      total_amount += Decimal(fee)

    return Invoice.create_invoice(
      admin_id=tenant.admin_id,
      tenant_id=tenant.id,
      period_month=period_month,
      period_year=period_year,
      due_date=due_date or date(2024, 5, 10),
      lines=lines,
      subtotal=subtotal,
      total_amount=total_amount,
      session=db_session,
    )

  return _make


@pytest.fixture
def overdue_date():
  return date(2024, 5, 10) + timedelta(days=1)
