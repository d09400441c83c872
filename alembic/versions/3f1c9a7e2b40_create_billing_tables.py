"""create_billing_tables

Revision ID: 3f1c9a7e2b40
Revises:
Create Date: 2026-10-19 09:12:44.318207

"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3f1c9a7e2b40"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
  op.create_table(
    "admins",
    sa.Column("id", sa.String(), nullable=False),
    sa.Column("full_name", sa.String(), nullable=False),
    sa.Column("email", sa.String(), nullable=False),
    sa.Column("property_name", sa.String(), nullable=True),
    sa.Column("created_at", sa.DateTime(), nullable=False),
    sa.PrimaryKeyConstraint("id"),
    sa.UniqueConstraint("email"),
  )

  op.create_table(
    "tenants",
    sa.Column("id", sa.String(), nullable=False),
    sa.Column("admin_id", sa.String(), nullable=False),
    sa.Column("full_name", sa.String(), nullable=False),
    sa.Column("email", sa.String(), nullable=True),
    sa.Column("phone", sa.String(), nullable=True),
    sa.Column("monthly_rent", sa.Numeric(12, 2), nullable=False),
    sa.Column("status", sa.String(), nullable=False),
    sa.Column("created_at", sa.DateTime(), nullable=False),
    sa.ForeignKeyConstraint(["admin_id"], ["admins.id"]),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index("idx_tenant_admin", "tenants", ["admin_id"], unique=False)
  op.create_index(
    "idx_tenant_admin_status", "tenants", ["admin_id", "status"], unique=False
  )

  op.create_table(
    "admin_billing_configs",
    sa.Column("admin_id", sa.String(), nullable=False),
    sa.Column("fixed_fee", sa.Numeric(12, 2), nullable=False),
    sa.Column("platform_percent", sa.Numeric(6, 4), nullable=False),
    sa.Column("development_percent", sa.Numeric(6, 4), nullable=False),
    sa.Column("support_percent", sa.Numeric(6, 4), nullable=False),
    sa.Column("maintenance_percent", sa.Numeric(6, 4), nullable=False),
    sa.Column("gateway_percent", sa.Numeric(6, 4), nullable=False),
    sa.Column("late_fee_enabled", sa.Boolean(), nullable=False),
    sa.Column("late_fee_daily_percent", sa.Numeric(6, 4), nullable=False),
    sa.Column("billing_cycle_day", sa.Integer(), nullable=False),
    sa.Column("auto_billing_enabled", sa.Boolean(), nullable=False),
    sa.Column("fixed_maintenance", sa.Numeric(12, 2), nullable=False),
    sa.Column("fixed_electricity", sa.Numeric(12, 2), nullable=False),
    sa.Column("fixed_water", sa.Numeric(12, 2), nullable=False),
    sa.Column("payment_mode", sa.String(), nullable=False),
    sa.Column("gateway_provider", sa.String(), nullable=False),
    sa.Column("own_key_id", sa.String(), nullable=True),
    sa.Column("own_key_secret_encrypted", sa.String(), nullable=True),
    sa.Column("own_webhook_secret_encrypted", sa.String(), nullable=True),
    sa.Column("created_at", sa.DateTime(), nullable=False),
    sa.Column("updated_at", sa.DateTime(), nullable=False),
    sa.CheckConstraint(
      "billing_cycle_day BETWEEN 1 AND 28", name="ck_admin_config_cycle_day"
    ),
    sa.CheckConstraint(
      "payment_mode IN ('PLATFORM', 'OWN')", name="ck_admin_config_payment_mode"
    ),
    sa.ForeignKeyConstraint(["admin_id"], ["admins.id"]),
    sa.PrimaryKeyConstraint("admin_id"),
  )

  op.create_table(
    "invoices",
    sa.Column("id", sa.String(), nullable=False),
    sa.Column("invoice_number", sa.String(), nullable=False),
    sa.Column("admin_id", sa.String(), nullable=False),
    sa.Column("tenant_id", sa.String(), nullable=False),
    sa.Column("period_month", sa.Integer(), nullable=False),
    sa.Column("period_year", sa.Integer(), nullable=False),
    sa.Column("due_date", sa.Date(), nullable=False),
    sa.Column("status", sa.String(), nullable=False),
    sa.Column("subtotal", sa.Numeric(12, 2), nullable=False),
    sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
    sa.Column("currency", sa.String(3), nullable=False),
    sa.Column("paid_at", sa.DateTime(), nullable=True),
    sa.Column("cancelled_at", sa.DateTime(), nullable=True),
    sa.Column("notes", sa.String(), nullable=True),
    sa.Column("created_at", sa.DateTime(), nullable=False),
    sa.Column("updated_at", sa.DateTime(), nullable=False),
    sa.CheckConstraint(
      "status IN ('pending', 'paid', 'cancelled')", name="ck_invoice_status"
    ),
    sa.CheckConstraint("period_month BETWEEN 1 AND 12", name="ck_invoice_period_month"),
    sa.ForeignKeyConstraint(["admin_id"], ["admins.id"]),
    sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
    sa.PrimaryKeyConstraint("id"),
    sa.UniqueConstraint("invoice_number"),
  )
  op.create_index("idx_invoice_admin", "invoices", ["admin_id"], unique=False)
  op.create_index("idx_invoice_tenant", "invoices", ["tenant_id"], unique=False)
  op.create_index("idx_invoice_status", "invoices", ["status"], unique=False)
  op.create_index("idx_invoice_due_date", "invoices", ["due_date"], unique=False)
  op.create_index(
    "idx_invoice_tenant_period",
    "invoices",
    ["tenant_id", "period_year", "period_month"],
    unique=False,
  )

  op.create_table(
    "invoice_items",
    sa.Column("id", sa.String(), nullable=False),
    sa.Column("invoice_id", sa.String(), nullable=False),
    sa.Column("position", sa.Integer(), nullable=False),
    sa.Column("description", sa.String(), nullable=False),
    sa.Column("amount", sa.Numeric(12, 2), nullable=False),
    sa.Column("kind", sa.String(), nullable=False),
    sa.Column("accrual_date", sa.Date(), nullable=True),
    sa.Column("created_at", sa.DateTime(), nullable=False),
    sa.CheckConstraint("amount >= 0", name="ck_invoice_item_amount"),
    sa.CheckConstraint(
      "(kind = 'late_fee' AND accrual_date IS NOT NULL) "
      "OR (kind <> 'late_fee' AND accrual_date IS NULL)",
      name="ck_invoice_item_accrual_date",
    ),
    sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"], ondelete="CASCADE"),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(
    "idx_invoice_item_invoice", "invoice_items", ["invoice_id"], unique=False
  )
  op.create_index(
    "uq_invoice_item_late_fee_date",
    "invoice_items",
    ["invoice_id", "accrual_date"],
    unique=True,
    postgresql_where=sa.text("kind = 'late_fee'"),
    sqlite_where=sa.text("kind = 'late_fee'"),
  )

  op.create_table(
    "payments",
    sa.Column("id", sa.String(), nullable=False),
    sa.Column("invoice_id", sa.String(), nullable=False),
    sa.Column("tenant_id", sa.String(), nullable=False),
    sa.Column("admin_id", sa.String(), nullable=False),
    sa.Column("gateway_name", sa.String(), nullable=False),
    sa.Column("gateway_order_id", sa.String(), nullable=True),
    sa.Column("gateway_payment_id", sa.String(), nullable=True),
    sa.Column("gateway_signature", sa.String(), nullable=True),
    sa.Column("amount", sa.Numeric(12, 2), nullable=False),
    sa.Column("currency", sa.String(3), nullable=False),
    sa.Column("platform_fee", sa.Numeric(12, 2), nullable=True),
    sa.Column("vendor_payout", sa.Numeric(12, 2), nullable=True),
    sa.Column("status", sa.String(), nullable=False),
    sa.Column("payment_mode", sa.String(), nullable=False),
    sa.Column("created_at", sa.DateTime(), nullable=False),
    sa.ForeignKeyConstraint(["invoice_id"], ["invoices.id"], ondelete="CASCADE"),
    sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
    sa.ForeignKeyConstraint(["admin_id"], ["admins.id"]),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index("idx_payment_invoice", "payments", ["invoice_id"], unique=False)
  op.create_index("idx_payment_admin", "payments", ["admin_id"], unique=False)
  op.create_index("idx_payment_tenant", "payments", ["tenant_id"], unique=False)
  # One SUCCESS payment per invoice
  op.create_index(
    "uq_payment_invoice_success",
    "payments",
    ["invoice_id"],
    unique=True,
    postgresql_where=sa.text("status = 'SUCCESS'"),
    sqlite_where=sa.text("status = 'SUCCESS'"),
  )
  # Offline references are free text typed by administrators
  op.create_index(
    "uq_payment_gateway_payment_id",
    "payments",
    ["gateway_name", "gateway_payment_id"],
    unique=True,
    postgresql_where=sa.text("gateway_name <> 'offline'"),
    sqlite_where=sa.text("gateway_name <> 'offline'"),
  )

  op.create_table(
    "platform_settlements",
    sa.Column("id", sa.String(), nullable=False),
    sa.Column("admin_id", sa.String(), nullable=False),
    sa.Column("amount", sa.Numeric(12, 2), nullable=False),
    sa.Column("reference_id", sa.String(), nullable=True),
    sa.Column("settled_at", sa.DateTime(), nullable=False),
    sa.ForeignKeyConstraint(["admin_id"], ["admins.id"]),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(
    "idx_settlement_admin", "platform_settlements", ["admin_id"], unique=False
  )

  op.create_table(
    "billing_runs",
    sa.Column("id", sa.String(), nullable=False),
    sa.Column("run_type", sa.String(), nullable=False),
    sa.Column("trigger", sa.String(), nullable=False),
    sa.Column("triggered_by", sa.String(), nullable=True),
    sa.Column("admin_scope", sa.String(), nullable=True),
    sa.Column("status", sa.String(), nullable=False),
    sa.Column("processed_count", sa.Integer(), nullable=False),
    sa.Column("error_count", sa.Integer(), nullable=False),
    sa.Column("errors", sa.JSON(), nullable=True),
    sa.Column("execution_time_ms", sa.Integer(), nullable=True),
    sa.Column("started_at", sa.DateTime(), nullable=False),
    sa.Column("completed_at", sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(
    "idx_billing_run_type_started",
    "billing_runs",
    ["run_type", "started_at"],
    unique=False,
  )
  op.create_index("idx_billing_run_scope", "billing_runs", ["admin_scope"], unique=False)

  op.create_table(
    "billing_audit_logs",
    sa.Column("id", sa.String(), nullable=False),
    sa.Column("event_type", sa.String(), nullable=False),
    sa.Column("event_timestamp", sa.DateTime(), nullable=False),
    sa.Column("admin_id", sa.String(), nullable=True),
    sa.Column("invoice_id", sa.String(), nullable=True),
    sa.Column("payment_id", sa.String(), nullable=True),
    sa.Column("external_ref", sa.String(), nullable=True),
    sa.Column("event_data", sa.JSON(), nullable=True),
    sa.Column("description", sa.String(), nullable=False),
    sa.Column("actor_id", sa.String(), nullable=True),
    sa.Column("actor_type", sa.String(), nullable=False),
    sa.PrimaryKeyConstraint("id"),
  )
  op.create_index(
    "idx_billing_audit_admin", "billing_audit_logs", ["admin_id"], unique=False
  )
  op.create_index(
    "idx_billing_audit_invoice", "billing_audit_logs", ["invoice_id"], unique=False
  )
  op.create_index(
    "idx_billing_audit_event_type", "billing_audit_logs", ["event_type"], unique=False
  )
  op.create_index(
    "idx_billing_audit_timestamp",
    "billing_audit_logs",
    ["event_timestamp"],
    unique=False,
  )
  op.create_index(
    "uq_billing_audit_external_ref",
    "billing_audit_logs",
    ["event_type", "external_ref"],
    unique=True,
  )


def downgrade() -> None:
  op.drop_index("uq_billing_audit_external_ref", table_name="billing_audit_logs")
  op.drop_index("idx_billing_audit_timestamp", table_name="billing_audit_logs")
  op.drop_index("idx_billing_audit_event_type", table_name="billing_audit_logs")
  op.drop_index("idx_billing_audit_invoice", table_name="billing_audit_logs")
  op.drop_index("idx_billing_audit_admin", table_name="billing_audit_logs")
  op.drop_table("billing_audit_logs")

  op.drop_index("idx_billing_run_scope", table_name="billing_runs")
  op.drop_index("idx_billing_run_type_started", table_name="billing_runs")
  op.drop_table("billing_runs")

  op.drop_index("idx_settlement_admin", table_name="platform_settlements")
  op.drop_table("platform_settlements")

  op.drop_index("uq_payment_gateway_payment_id", table_name="payments")
  op.drop_index("uq_payment_invoice_success", table_name="payments")
  op.drop_index("idx_payment_tenant", table_name="payments")
  op.drop_index("idx_payment_admin", table_name="payments")
  op.drop_index("idx_payment_invoice", table_name="payments")
  op.drop_table("payments")

  op.drop_index("uq_invoice_item_late_fee_date", table_name="invoice_items")
  op.drop_index("idx_invoice_item_invoice", table_name="invoice_items")
  op.drop_table("invoice_items")

  op.drop_index("idx_invoice_tenant_period", table_name="invoices")
  op.drop_index("idx_invoice_due_date", table_name="invoices")
  op.drop_index("idx_invoice_status", table_name="invoices")
  op.drop_index("idx_invoice_tenant", table_name="invoices")
  op.drop_index("idx_invoice_admin", table_name="invoices")
  op.drop_table("invoices")

  op.drop_table("admin_billing_configs")

  op.drop_index("idx_tenant_admin_status", table_name="tenants")
  op.drop_index("idx_tenant_admin", table_name="tenants")
  op.drop_table("tenants")

  op.drop_table("admins")
