"""Initial schema: tour packages, bookings, payment events, audit logs.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

BOOKING_STATUSES = ("PENDING", "CONFIRMED", "CANCELLED", "COMPLETED", "DISPUTED", "REFUNDED")
PAYMENT_STATUSES = ("PENDING", "PROCESSING", "PAID", "FAILED", "REFUNDED")


def _in_list(column: str, values: tuple) -> str:
    return f"{column} IN ({', '.join(repr(v) for v in values)})"


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "tour_packages",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("irembo_product_code", sa.String(64), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("price >= 0", name="check_tour_price_non_negative"),
    )
    op.create_index("ix_tour_packages_slug", "tour_packages", ["slug"], unique=True)

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("tour_package_id", sa.String(32), sa.ForeignKey("tour_packages.id"), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("customer_email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("country", sa.String(100), nullable=True),
        sa.Column("participants", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("payment_intent_id", sa.String(100), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("participants > 0", name="check_booking_participants_positive"),
        sa.CheckConstraint(_in_list("status", BOOKING_STATUSES), name="check_booking_status"),
        sa.CheckConstraint(_in_list("payment_status", PAYMENT_STATUSES), name="check_booking_payment_status"),
    )
    op.create_index("ix_bookings_tour_package_id", "bookings", ["tour_package_id"])
    op.create_index("ix_bookings_customer_email", "bookings", ["customer_email"])
    # Every webhook looks the booking up by invoice number first
    op.create_index("ix_bookings_payment_intent_id", "bookings", ["payment_intent_id"])

    op.create_table(
        "payment_events",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("booking_id", sa.String(32), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("event", sa.String(50), nullable=False),
        sa.Column("provider_transaction_id", sa.String(100), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_payment_events_booking_id", "payment_events", ["booking_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("booking_id", sa.String(32), sa.ForeignKey("bookings.id"), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_booking_id", "audit_logs", ["booking_id"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("payment_events")
    op.drop_table("bookings")
    op.drop_table("tour_packages")
