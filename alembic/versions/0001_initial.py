"""initial

Revision ID: 0001_initial
Revises: 
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade():
    op.create_table(
        "services",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("vendor_id", sa.String(36), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_services_vendor_id", "services", ["vendor_id"], unique=False)

    op.create_table(
        "ticket_types",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("service_id", sa.String(36), sa.ForeignKey("services.id"), nullable=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("available_count", sa.Integer, nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint("available_count >= 0", name="ck_ticket_types_available_nonnegative"),
    )
    op.create_index("ix_ticket_types_service_id", "ticket_types", ["service_id"], unique=False)

    op.create_table(
        "orders",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("vendor_id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=True),
        sa.Column("currency", sa.String(8), nullable=False, server_default="UGX"),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("reference", sa.String(128), nullable=True),
        sa.Column("payment_method", sa.String(32), nullable=True),
        sa.Column("guest_name", sa.String(255), nullable=True),
        sa.Column("guest_email", sa.String(255), nullable=True),
        sa.Column("guest_phone", sa.String(32), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("fulfilled_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_orders_vendor_id", "orders", ["vendor_id"], unique=False)
    op.create_index("ix_orders_status_fulfilled", "orders", ["status", "fulfilled_at"], unique=False)

    op.create_table(
        "order_items",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("order_id", sa.String(36), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("ticket_type_id", sa.String(36), sa.ForeignKey("ticket_types.id"), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    )
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"], unique=False)

    op.create_table(
        "payments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("reference", sa.String(128), nullable=False),
        sa.Column("order_id", sa.String(36), sa.ForeignKey("orders.id"), nullable=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(8), nullable=False, server_default="UGX"),
        sa.Column("phone_number", sa.String(32), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("gateway_status", sa.String(32), nullable=True),
        sa.Column("transaction_uuid", sa.String(64), nullable=True),
        sa.Column("provider_reference", sa.String(128), nullable=True),
        sa.Column("webhook_data", sa.JSON, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_payments_reference", "payments", ["reference"], unique=True)
    op.create_index("ix_payments_order_status", "payments", ["order_id", "status"], unique=False)

    op.create_table(
        "transactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("vendor_id", sa.String(36), nullable=False),
        sa.Column("booking_id", sa.String(36), nullable=True),
        sa.Column("tourist_id", sa.String(36), nullable=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(8), nullable=False, server_default="UGX"),
        sa.Column("transaction_type", sa.String(16), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("payment_method", sa.String(32), nullable=True),
        sa.Column("reference", sa.String(128), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_transactions_reference", "transactions", ["reference"], unique=True)
    op.create_index(
        "ix_transactions_vendor_type_status",
        "transactions",
        ["vendor_id", "transaction_type", "status"],
        unique=False,
    )

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("order_id", sa.String(36), nullable=True),
        sa.Column("service_id", sa.String(36), nullable=False),
        sa.Column("vendor_id", sa.String(36), nullable=False),
        sa.Column("tourist_id", sa.String(36), nullable=True),
        sa.Column("booking_date", sa.Date, nullable=False),
        sa.Column("service_date", sa.Date, nullable=True),
        sa.Column("guests", sa.Integer, nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(8), nullable=False, server_default="UGX"),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("payment_status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("payment_reference", sa.String(128), nullable=True),
        sa.Column("guest_name", sa.String(255), nullable=True),
        sa.Column("guest_email", sa.String(255), nullable=True),
        sa.Column("guest_phone", sa.String(32), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("order_id", "service_id", name="uq_bookings_order_service"),
    )
    op.create_index("ix_bookings_vendor_id", "bookings", ["vendor_id"], unique=False)
    op.create_index("ix_bookings_vendor_status", "bookings", ["vendor_id", "status"], unique=False)

    op.create_table(
        "ticket_allocations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("order_item_id", sa.String(36), sa.ForeignKey("order_items.id"), nullable=False, unique=True),
        sa.Column("order_id", sa.String(36), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("ticket_type_id", sa.String(36), sa.ForeignKey("ticket_types.id"), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_ticket_allocations_order_id", "ticket_allocations", ["order_id"], unique=False)

    op.create_table(
        "tickets",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("order_id", sa.String(36), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("order_item_id", sa.String(36), sa.ForeignKey("order_items.id"), nullable=True),
        sa.Column("ticket_type_id", sa.String(36), sa.ForeignKey("ticket_types.id"), nullable=False),
        sa.Column("owner_id", sa.String(36), nullable=True),
        sa.Column("issued_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        *_timestamps(),
    )
    op.create_index("ix_tickets_code", "tickets", ["code"], unique=True)
    op.create_index("ix_tickets_order_id", "tickets", ["order_id"], unique=False)
    op.create_index("ix_tickets_ticket_type_id", "tickets", ["ticket_type_id"], unique=False)


def downgrade():
    op.drop_table("tickets")
    op.drop_table("ticket_allocations")
    op.drop_table("bookings")
    op.drop_table("transactions")
    op.drop_table("payments")
    op.drop_table("order_items")
    op.drop_table("orders")
    op.drop_table("ticket_types")
    op.drop_table("services")
