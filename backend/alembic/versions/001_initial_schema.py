"""Initial schema: users, coupons, bookings with payment and referral columns.

Revision ID: 001
Revises: None
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "coupons",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("discount", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("discount >= 0", name="check_coupon_discount_non_negative"),
    )
    op.create_index("ix_coupons_id", "coupons", ["id"])
    op.create_index("ix_coupons_code", "coupons", ["code"], unique=True)

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("event_id", sa.String(64), nullable=True),
        sa.Column("ticket_type", sa.String(20), nullable=False, server_default="General"),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("base_amount", sa.Integer(), nullable=False),
        sa.Column("discount_amount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_amount", sa.Integer(), nullable=False),
        sa.Column("payment_id", sa.String(64), nullable=True),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_method", sa.String(20), nullable=True),
        sa.Column("gateway_response", sa.JSON(), nullable=True),
        sa.Column("referral_code", sa.String(20), nullable=False),
        sa.Column("referral_code_used", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("referral_code_redeemed_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("referral_coupons", sa.JSON(), nullable=False),
        sa.Column("coupon_id", sa.Integer(), sa.ForeignKey("coupons.id"), nullable=True),
        sa.Column("coupon_code", sa.String(50), nullable=True),
        sa.Column("attendees", sa.JSON(), nullable=False),
        sa.Column("tshirt_size", sa.String(10), nullable=True),
        sa.Column("government_id", sa.String(32), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="confirmed"),
        *_timestamps(),
        sa.CheckConstraint("discount_amount >= 0", name="check_booking_discount_non_negative"),
        sa.CheckConstraint("total_amount >= 0", name="check_booking_total_non_negative"),
        sa.CheckConstraint("total_amount = base_amount - discount_amount", name="check_booking_total_matches"),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'completed', 'failed', 'refunded')",
            name="check_booking_payment_status",
        ),
        sa.CheckConstraint(
            "status IN ('confirmed', 'cancelled', 'attended', 'no-show')",
            name="check_booking_status",
        ),
    )
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_event_id", "bookings", ["event_id"])
    # Callback lookups by merchant txnid and, after completion, by gateway id.
    op.create_index("ix_bookings_payment_id", "bookings", ["payment_id"], unique=True)
    # Referral redemption filters on code; uniqueness keeps codes one-to-one with bookings.
    op.create_index("ix_bookings_referral_code", "bookings", ["referral_code"], unique=True)


def downgrade() -> None:
    op.drop_table("bookings")
    op.drop_table("coupons")
    op.drop_table("users")
