"""Initial textile workflow schema

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_initial"
down_revision = None
branch_labels = None
depends_on = None

ACTIVE_SQLITE = sa.text("active = 1")
ACTIVE_POSTGRES = sa.text("active = true")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
    ]


def _active_unique(name, table, column):
    op.create_index(name, table, [column], unique=True,
                    sqlite_where=ACTIVE_SQLITE, postgresql_where=ACTIVE_POSTGRES)


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        sa.Column("login_attempts", sa.Integer(), nullable=False),
        sa.Column("lock_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deactivated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deactivated_by", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_users_role_active", "users", ["role", "is_active"])

    op.create_table(
        "revoked_tokens",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("jti", sa.String(64), nullable=False),
        sa.Column("token_type", sa.String(16), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_revoked_tokens_user_id_users"),
        sa.PrimaryKeyConstraint("id", name="pk_revoked_tokens"),
        sa.UniqueConstraint("jti", name="uq_revoked_tokens_jti"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_revoked_tokens_expires_at", "revoked_tokens", ["expires_at"])
    op.create_index("ix_revoked_tokens_user_id", "revoked_tokens", ["user_id"])

    op.create_table(
        "reference_sequences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("scope", sa.String(32), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_reference_sequences"),
        sa.UniqueConstraint("scope", name="uq_reference_sequences_scope"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "clients",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("acronym", sa.String(10), nullable=False),
        sa.Column("company_name", sa.String(200), nullable=False),
        sa.Column("cnpj", sa.String(14), nullable=False),
        sa.Column("contact_responsible_name", sa.String(100), nullable=False),
        sa.Column("contact_phone", sa.String(20), nullable=False),
        sa.Column("contact_email", sa.String(255), nullable=False),
        sa.Column("address_street", sa.String(200), nullable=False),
        sa.Column("address_number", sa.String(20), nullable=False),
        sa.Column("address_complement", sa.String(100), nullable=True),
        sa.Column("address_neighborhood", sa.String(100), nullable=False),
        sa.Column("address_city", sa.String(100), nullable=False),
        sa.Column("address_state", sa.String(2), nullable=False),
        sa.Column("address_zipcode", sa.String(9), nullable=False),
        sa.Column("value_per_meter", sa.Numeric(12, 2), nullable=False),
        sa.Column("value_per_piece", sa.Numeric(12, 2), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_clients"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_clients_acronym", "clients", ["acronym"])
    op.create_index("ix_clients_active", "clients", ["active"])
    op.create_index("ix_clients_active_created", "clients", ["active", "created_at"])
    _active_unique("uq_clients_active_cnpj", "clients", "cnpj")
    _active_unique("uq_clients_active_acronym", "clients", "acronym")

    op.create_table(
        "developments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("internal_reference", sa.String(20), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("client_reference", sa.String(100), nullable=True),
        sa.Column("piece_image_url", sa.String(500), nullable=True),
        sa.Column("piece_image_public_id", sa.String(255), nullable=True),
        sa.Column("variant_color", sa.String(50), nullable=True),
        sa.Column("production_type", sa.String(16), nullable=False),
        sa.Column("production_meters", sa.Numeric(12, 2), nullable=True),
        sa.Column("production_sizes", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(24), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"], name="fk_developments_client_id_clients"),
        sa.PrimaryKeyConstraint("id", name="pk_developments"),
        sa.UniqueConstraint("internal_reference", name="uq_developments_internal_reference"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_developments_client_id", "developments", ["client_id"])
    op.create_index("ix_developments_active", "developments", ["active"])
    op.create_index("ix_developments_client_active", "developments", ["client_id", "active"])
    op.create_index("ix_developments_status", "developments", ["status"])

    op.create_table(
        "production_orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("development_id", sa.Integer(), nullable=False),
        sa.Column("internal_reference", sa.String(20), nullable=False),
        sa.Column("status", sa.String(24), nullable=False),
        sa.Column("fabric_type", sa.String(100), nullable=False),
        sa.Column("pilot", sa.Boolean(), nullable=False),
        sa.Column("observations", sa.String(1000), nullable=True),
        sa.Column("priority", sa.String(8), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["development_id"], ["developments.id"],
                                name="fk_production_orders_development_id_developments"),
        sa.PrimaryKeyConstraint("id", name="pk_production_orders"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_production_orders_development_id", "production_orders", ["development_id"])
    op.create_index("ix_production_orders_internal_reference", "production_orders", ["internal_reference"])
    op.create_index("ix_production_orders_active", "production_orders", ["active"])
    op.create_index("ix_production_orders_status", "production_orders", ["status"])
    op.create_index("ix_production_orders_priority", "production_orders", ["priority"])
    _active_unique("uq_production_orders_active_development", "production_orders", "development_id")

    op.create_table(
        "production_sheets",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("production_order_id", sa.Integer(), nullable=False),
        sa.Column("internal_reference", sa.String(20), nullable=False),
        sa.Column("entry_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expected_exit_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("machine", sa.Integer(), nullable=False),
        sa.Column("stage", sa.String(16), nullable=False),
        sa.Column("production_notes", sa.String(1000), nullable=True),
        sa.Column("temperature", sa.Float(), nullable=True),
        sa.Column("velocity", sa.Float(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["production_order_id"], ["production_orders.id"],
                                name="fk_production_sheets_production_order_id_production_orders"),
        sa.PrimaryKeyConstraint("id", name="pk_production_sheets"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_production_sheets_production_order_id", "production_sheets", ["production_order_id"])
    op.create_index("ix_production_sheets_internal_reference", "production_sheets", ["internal_reference"])
    op.create_index("ix_production_sheets_active", "production_sheets", ["active"])
    op.create_index("ix_production_sheets_machine_stage", "production_sheets", ["machine", "stage"])
    _active_unique("uq_production_sheets_active_order", "production_sheets", "production_order_id")

    op.create_table(
        "delivery_sheets",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("production_sheet_id", sa.Integer(), nullable=False),
        sa.Column("internal_reference", sa.String(20), nullable=False),
        sa.Column("delivery_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_value", sa.Numeric(12, 2), nullable=False),
        sa.Column("notes", sa.String(1000), nullable=True),
        sa.Column("invoice_number", sa.String(50), nullable=False),
        sa.Column("address_street", sa.String(200), nullable=False),
        sa.Column("address_number", sa.String(20), nullable=False),
        sa.Column("address_complement", sa.String(100), nullable=True),
        sa.Column("address_neighborhood", sa.String(100), nullable=False),
        sa.Column("address_city", sa.String(100), nullable=False),
        sa.Column("address_state", sa.String(2), nullable=False),
        sa.Column("address_zip_code", sa.String(10), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["production_sheet_id"], ["production_sheets.id"],
                                name="fk_delivery_sheets_production_sheet_id_production_sheets"),
        sa.PrimaryKeyConstraint("id", name="pk_delivery_sheets"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_delivery_sheets_production_sheet_id", "delivery_sheets", ["production_sheet_id"])
    op.create_index("ix_delivery_sheets_internal_reference", "delivery_sheets", ["internal_reference"])
    op.create_index("ix_delivery_sheets_invoice_number", "delivery_sheets", ["invoice_number"])
    op.create_index("ix_delivery_sheets_active", "delivery_sheets", ["active"])
    op.create_index("ix_delivery_sheets_status", "delivery_sheets", ["status"])
    _active_unique("uq_delivery_sheets_active_sheet", "delivery_sheets", "production_sheet_id")

    op.create_table(
        "production_receipts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("production_order_id", sa.Integer(), nullable=False),
        sa.Column("internal_reference", sa.String(20), nullable=False),
        sa.Column("payment_method", sa.String(16), nullable=False),
        sa.Column("payment_status", sa.String(8), nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("paid_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("remaining_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("issue_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.String(1000), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("paid_amount <= total_amount", name="ck_production_receipts_paid_not_above_total"),
        sa.ForeignKeyConstraint(["production_order_id"], ["production_orders.id"],
                                name="fk_production_receipts_production_order_id_production_orders"),
        sa.PrimaryKeyConstraint("id", name="pk_production_receipts"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_production_receipts_production_order_id", "production_receipts", ["production_order_id"])
    op.create_index("ix_production_receipts_internal_reference", "production_receipts", ["internal_reference"])
    op.create_index("ix_production_receipts_active", "production_receipts", ["active"])
    op.create_index("ix_production_receipts_status_due", "production_receipts", ["payment_status", "due_date"])
    _active_unique("uq_production_receipts_active_order", "production_receipts", "production_order_id")


def downgrade():
    op.drop_table("production_receipts")
    op.drop_table("delivery_sheets")
    op.drop_table("production_sheets")
    op.drop_table("production_orders")
    op.drop_table("developments")
    op.drop_table("clients")
    op.drop_table("reference_sequences")
    op.drop_table("revoked_tokens")
    op.drop_table("users")
