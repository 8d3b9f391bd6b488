"""initial pdv schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


class GUID(sa.TypeDecorator):
    impl = sa.CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import UUID

            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(sa.CHAR(36))


def _money(name: str, nullable: bool = False, **kwargs) -> sa.Column:
    return sa.Column(name, sa.Numeric(12, 2), nullable=nullable, **kwargs)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("username", sa.String(length=150), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=50), nullable=False, server_default="SELLER"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "customers",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=50), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "products",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("code", sa.String(length=50), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        _money("sale_price"),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
    )

    op.create_table(
        "payment_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("default_fee_responsibility", sa.String(length=20), nullable=False, server_default="customer"),
        sa.Column("updated_by_user_id", GUID(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "payment_method_settings",
        sa.Column("kind", sa.String(length=20), primary_key=True),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("fee", sa.Numeric(10, 4), nullable=False, server_default="0"),
        sa.Column("fee_kind", sa.String(length=20), nullable=False, server_default="percentage"),
        sa.Column("fee_responsibility", sa.String(length=20), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "pos_cash_sessions",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("cashier_user_id", GUID(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("cashier_name", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="OPEN"),
        _money("opening_amount"),
        _money("total_sales", server_default="0"),
        _money("total_cash_in", server_default="0"),
        _money("total_cash_out", server_default="0"),
        _money("expected_cash", nullable=True),
        _money("counted_cash", nullable=True),
        _money("difference", nullable=True),
        sa.Column("notes", sa.String(length=500), nullable=True),
        sa.Column("opened_at", sa.DateTime(), nullable=False),
        sa.Column("closed_at", sa.DateTime(), nullable=True),
        sa.Column("closed_by_user_id", GUID(), nullable=True),
    )
    op.create_index("ix_pos_cash_sessions_cashier_user_id", "pos_cash_sessions", ["cashier_user_id"])
    op.create_index(
        "uq_pos_cash_sessions_open_cashier",
        "pos_cash_sessions",
        ["cashier_user_id"],
        unique=True,
        sqlite_where=sa.text("status = 'OPEN'"),
        postgresql_where=sa.text("status = 'OPEN'"),
    )

    op.create_table(
        "pos_sales",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("seller_user_id", GUID(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("seller_name", sa.String(length=255), nullable=False),
        sa.Column("customer_id", GUID(), sa.ForeignKey("customers.id"), nullable=True),
        sa.Column("customer_name", sa.String(length=255), nullable=True),
        sa.Column("cash_session_id", GUID(), sa.ForeignKey("pos_cash_sessions.id"), nullable=False),
        _money("subtotal"),
        _money("discount_value"),
        sa.Column("discount_kind", sa.String(length=20), nullable=False),
        _money("discount_amount"),
        _money("addition_value"),
        sa.Column("addition_kind", sa.String(length=20), nullable=False),
        _money("addition_amount"),
        _money("total"),
        _money("fees"),
        _money("final_amount"),
        _money("paid_total"),
        _money("change_due"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_pos_sales_seller_user_id", "pos_sales", ["seller_user_id"])
    op.create_index("ix_pos_sales_customer_id", "pos_sales", ["customer_id"])
    op.create_index("ix_pos_sales_cash_session_id", "pos_sales", ["cash_session_id"])
    op.create_index("ix_pos_sales_created_at", "pos_sales", ["created_at"])
    op.create_index("ix_pos_sales_seller_created", "pos_sales", ["seller_user_id", "created_at"])

    op.create_table(
        "pos_sale_lines",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("sale_id", GUID(), sa.ForeignKey("pos_sales.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("product_id", GUID(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("product_code", sa.String(length=50), nullable=False),
        sa.Column("product_name", sa.String(length=255), nullable=False),
        _money("unit_price"),
        sa.Column("qty", sa.Integer(), nullable=False),
        _money("discount_value"),
        sa.Column("discount_kind", sa.String(length=20), nullable=False),
        _money("discount_amount"),
        _money("line_total"),
        _money("net_total"),
    )
    op.create_index("ix_pos_sale_lines_sale_id", "pos_sale_lines", ["sale_id"])
    op.create_index("ix_pos_sale_lines_product_id", "pos_sale_lines", ["product_id"])

    op.create_table(
        "pos_payments",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("sale_id", GUID(), sa.ForeignKey("pos_sales.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        _money("amount"),
        _money("fee"),
        _money("store_fee"),
        _money("charge_amount"),
        _money("net_amount"),
    )
    op.create_index("ix_pos_payments_sale_id", "pos_payments", ["sale_id"])

    op.create_table(
        "customer_purchases",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("customer_id", GUID(), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("sale_id", GUID(), sa.ForeignKey("pos_sales.id"), nullable=False, unique=True),
        sa.Column("purchased_at", sa.DateTime(), nullable=False),
        _money("amount"),
    )
    op.create_index("ix_customer_purchases_customer_id", "customer_purchases", ["customer_id"])

    op.create_table(
        "deferred_payments",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("sale_id", GUID(), sa.ForeignKey("pos_sales.id"), nullable=False),
        sa.Column("customer_id", GUID(), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=False),
        _money("amount"),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("is_paid", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_deferred_payments_sale_id", "deferred_payments", ["sale_id"])
    op.create_index("ix_deferred_payments_customer_id", "deferred_payments", ["customer_id"])
    op.create_index("ix_deferred_payments_due_date", "deferred_payments", ["due_date"])
    op.create_index("ix_deferred_payments_customer_paid", "deferred_payments", ["customer_id", "is_paid"])

    op.create_table(
        "stock_movements",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("product_id", GUID(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("sale_id", GUID(), sa.ForeignKey("pos_sales.id"), nullable=True),
        sa.Column("movement_type", sa.String(length=20), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("previous_stock", sa.Integer(), nullable=False),
        sa.Column("new_stock", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=255), nullable=False),
        sa.Column("user_id", GUID(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_stock_movements_product_id", "stock_movements", ["product_id"])
    op.create_index("ix_stock_movements_sale_id", "stock_movements", ["sale_id"])

    op.create_table(
        "pos_cash_movements",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("cash_session_id", GUID(), sa.ForeignKey("pos_cash_sessions.id"), nullable=False),
        sa.Column("cashier_user_id", GUID(), nullable=False),
        sa.Column("actor_user_id", GUID(), nullable=False),
        sa.Column("sale_id", GUID(), sa.ForeignKey("pos_sales.id"), nullable=True, unique=True),
        sa.Column("movement_type", sa.String(length=20), nullable=False),
        _money("amount"),
        sa.Column("reason", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_pos_cash_movements_cash_session_id", "pos_cash_movements", ["cash_session_id"])
    op.create_index("ix_pos_cash_movements_cashier_user_id", "pos_cash_movements", ["cashier_user_id"])
    op.create_index("ix_pos_cash_movements_movement_type", "pos_cash_movements", ["movement_type"])
    op.create_index("ix_pos_cash_movements_created_at", "pos_cash_movements", ["created_at"])

    op.create_table(
        "idempotency_records",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("actor_user_id", GUID(), nullable=False),
        sa.Column("endpoint", sa.String(length=255), nullable=False),
        sa.Column("method", sa.String(length=10), nullable=False),
        sa.Column("idempotency_key", sa.String(length=255), nullable=False),
        sa.Column("request_hash", sa.String(length=64), nullable=False),
        sa.Column("state", sa.String(length=20), nullable=False),
        sa.Column("status_code", sa.Integer(), nullable=True),
        sa.Column("response_body", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("actor_user_id", "endpoint", "method", "idempotency_key", name="uq_idempotency"),
    )
    op.create_index("ix_idempotency_records_actor_user_id", "idempotency_records", ["actor_user_id"])

    op.create_table(
        "audit_events",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("user_id", GUID(), nullable=True),
        sa.Column("trace_id", sa.String(length=64), nullable=True),
        sa.Column("actor", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=True),
        sa.Column("before_payload", sa.JSON(), nullable=True),
        sa.Column("after_payload", sa.JSON(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("result", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_audit_events_user_id", "audit_events", ["user_id"])
    op.create_index("ix_audit_events_trace_id", "audit_events", ["trace_id"])


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_table("idempotency_records")
    op.drop_table("pos_cash_movements")
    op.drop_table("stock_movements")
    op.drop_table("deferred_payments")
    op.drop_table("customer_purchases")
    op.drop_table("pos_payments")
    op.drop_table("pos_sale_lines")
    op.drop_table("pos_sales")
    op.drop_index("uq_pos_cash_sessions_open_cashier", table_name="pos_cash_sessions")
    op.drop_table("pos_cash_sessions")
    op.drop_table("payment_method_settings")
    op.drop_table("payment_settings")
    op.drop_table("products")
    op.drop_table("customers")
    op.drop_table("users")
