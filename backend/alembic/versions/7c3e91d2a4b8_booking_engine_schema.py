"""booking_engine_schema

Revision ID: 7c3e91d2a4b8
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '7c3e91d2a4b8'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.Numeric(12, 2)
PERCENT = sa.Numeric(5, 2)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    # Catalog
    op.create_table(
        "hotels",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False, unique=True),
        sa.Column("description", sa.Text()),
        sa.Column("city", sa.String(100)),
        sa.Column("country", sa.String(100)),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("timezone", sa.String(64), nullable=False),
        sa.Column("tax_percentage", PERCENT, nullable=False),
        sa.Column("service_charge_percentage", PERCENT, nullable=False),
        sa.Column("check_in_time", sa.Time(), nullable=False),
        sa.Column("check_out_time", sa.Time(), nullable=False),
        sa.Column("cancellation_policy", sa.String(20), nullable=False),
        sa.Column("cancellation_deadline_hours", sa.Integer(), nullable=False),
        sa.Column("cancellation_refund_percentage", PERCENT, nullable=False),
        sa.Column("late_cancellation_refund_percentage", PERCENT, nullable=False),
        sa.Column("status", sa.String(50), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        "discount_codes",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("hotel_id", sa.UUID(), sa.ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("value", MONEY, nullable=False),
        sa.Column("valid_from", sa.Date()),
        sa.Column("valid_to", sa.Date()),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("hotel_id", "code", name="uq_discount_codes_hotel_code"),
    )
    op.create_index("ix_discount_codes_hotel_id", "discount_codes", ["hotel_id"])

    op.create_table(
        "room_types",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("hotel_id", sa.UUID(), sa.ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("max_occupancy", sa.Integer(), nullable=False),
        sa.Column("max_adults", sa.Integer(), nullable=False),
        sa.Column("max_children", sa.Integer(), nullable=False),
        sa.Column("bed_configuration", sa.JSON()),
        sa.Column("base_price", MONEY, nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("total_rooms", sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_room_types_hotel_id", "room_types", ["hotel_id"])

    op.create_table(
        "rooms",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("hotel_id", sa.UUID(), sa.ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False),
        sa.Column("room_type_id", sa.UUID(), sa.ForeignKey("room_types.id", ondelete="CASCADE"), nullable=False),
        sa.Column("room_number", sa.String(20), nullable=False),
        sa.Column("floor", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("last_cleaned_at", sa.DateTime()),
        *_timestamps(),
        sa.UniqueConstraint("hotel_id", "room_number", name="uq_rooms_hotel_number"),
    )
    op.create_index("ix_rooms_hotel_id", "rooms", ["hotel_id"])
    op.create_index("ix_rooms_room_type_id", "rooms", ["room_type_id"])
    op.create_index("ix_rooms_status", "rooms", ["status"])

    op.create_table(
        "room_rates",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("hotel_id", sa.UUID(), sa.ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False),
        sa.Column("room_type_id", sa.UUID(), sa.ForeignKey("room_types.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("rate_type", sa.String(20), nullable=False),
        sa.Column("price", MONEY, nullable=False),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("start_date", sa.Date()),
        sa.Column("end_date", sa.Date()),
        sa.Column("days_of_week", sa.JSON()),
        sa.Column("min_stay", sa.Integer(), nullable=False),
        sa.Column("max_stay", sa.Integer()),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("inclusions", sa.JSON()),
        *_timestamps(),
    )
    op.create_index("ix_room_rates_hotel_id", "room_rates", ["hotel_id"])
    op.create_index("ix_room_rates_room_type_id", "room_rates", ["room_type_id"])

    # Per-date counters; version guards concurrent holds
    op.create_table(
        "room_inventory",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("room_type_id", sa.UUID(), sa.ForeignKey("room_types.id", ondelete="CASCADE"), nullable=False),
        sa.Column("stay_date", sa.Date(), nullable=False),
        sa.Column("total_rooms", sa.Integer(), nullable=False),
        sa.Column("booked_rooms", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("blocked_rooms", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint("room_type_id", "stay_date", name="uq_room_inventory_type_date"),
    )
    op.create_index("ix_room_inventory_stay_date", "room_inventory", ["stay_date"])

    # Guests and bookings
    op.create_table(
        "guests",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("hotel_id", sa.UUID(), sa.ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50)),
        sa.Column("address", sa.Text()),
        sa.Column("city", sa.String(100)),
        sa.Column("country", sa.String(100)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("hotel_id", "email", name="uq_guests_hotel_email"),
    )
    op.create_index("ix_guests_hotel_id", "guests", ["hotel_id"])
    op.create_index("ix_guests_email", "guests", ["email"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("hotel_id", sa.UUID(), sa.ForeignKey("hotels.id", ondelete="CASCADE"), nullable=False),
        sa.Column("guest_id", sa.UUID(), sa.ForeignKey("guests.id"), nullable=False),
        sa.Column("booking_number", sa.String(32), nullable=False, unique=True),
        sa.Column("idempotency_key", sa.String(255)),
        sa.Column("check_in", sa.Date(), nullable=False),
        sa.Column("check_out", sa.Date(), nullable=False),
        sa.Column("nights", sa.Integer(), nullable=False),
        sa.Column("adults", sa.Integer(), nullable=False),
        sa.Column("children", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("payment_status", sa.String(20), nullable=False),
        sa.Column("source", sa.String(20), nullable=False),
        sa.Column("special_requests", sa.Text()),
        sa.Column("internal_notes", sa.Text()),
        sa.Column("confirmed_at", sa.DateTime()),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("room_total", MONEY, nullable=False),
        sa.Column("tax_percentage", PERCENT, nullable=False),
        sa.Column("tax_amount", MONEY, nullable=False),
        sa.Column("service_charge_percentage", PERCENT, nullable=False),
        sa.Column("service_charge", MONEY, nullable=False),
        sa.Column("discount", MONEY, nullable=False),
        sa.Column("discount_code", sa.String(50)),
        sa.Column("extra_charges_total", MONEY, nullable=False),
        sa.Column("subtotal", MONEY, nullable=False),
        sa.Column("grand_total", MONEY, nullable=False),
        sa.Column("amount_paid", MONEY, nullable=False),
        sa.Column("amount_due", MONEY, nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("hotel_id", "idempotency_key", name="uq_bookings_hotel_idempotency_key"),
    )
    op.create_index("ix_bookings_hotel_id", "bookings", ["hotel_id"])
    op.create_index("ix_bookings_guest_id", "bookings", ["guest_id"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index("ix_bookings_check_in", "bookings", ["check_in"])

    op.create_table(
        "booked_rooms",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("booking_id", sa.UUID(), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("room_type_id", sa.UUID(), sa.ForeignKey("room_types.id"), nullable=False),
        sa.Column("rate_id", sa.UUID(), sa.ForeignKey("room_rates.id"), nullable=False),
        sa.Column("room_id", sa.UUID(), sa.ForeignKey("rooms.id", ondelete="SET NULL")),
        sa.Column("room_number", sa.String(20)),
        sa.Column("room_type_name", sa.String(255), nullable=False),
        sa.Column("rate_name", sa.String(255), nullable=False),
        sa.Column("rate_type", sa.String(20), nullable=False),
        sa.Column("price_per_night", MONEY, nullable=False),
        sa.Column("total_price", MONEY, nullable=False),
    )
    op.create_index("ix_booked_rooms_booking_id", "booked_rooms", ["booking_id"])

    op.create_table(
        "extra_charges",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("booking_id", sa.UUID(), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("category", sa.String(30), nullable=False),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("total", MONEY, nullable=False),
        sa.Column("charge_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_extra_charges_booking_id", "extra_charges", ["booking_id"])

    op.create_table(
        "payments",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("booking_id", sa.UUID(), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("payment_number", sa.String(32), nullable=False, unique=True),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("method", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("transaction_id", sa.String(255)),
        sa.Column("failure_reason", sa.Text()),
        sa.Column("processed_by", sa.String(255)),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_payments_booking_id", "payments", ["booking_id"])

    # Lifecycle records, at most one of each per booking
    op.create_table(
        "booking_cancellations",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("booking_id", sa.UUID(), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=False),
        sa.Column("cancelled_by", sa.String(255), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("policy_type", sa.String(20), nullable=False),
        sa.Column("hours_before_check_in", sa.Numeric(10, 2), nullable=False),
        sa.Column("refund_percentage", PERCENT, nullable=False),
        sa.Column("refund_amount", MONEY, nullable=False),
        sa.Column("refund_status", sa.String(20), nullable=False),
        sa.Column("refund_settled_at", sa.DateTime()),
    )
    op.create_table(
        "check_in_records",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("booking_id", sa.UUID(), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("checked_in_at", sa.DateTime(), nullable=False),
        sa.Column("checked_in_by", sa.String(255), nullable=False),
        sa.Column("id_verified", sa.Boolean(), nullable=False),
        sa.Column("id_type", sa.String(50)),
        sa.Column("id_number", sa.String(100)),
        sa.Column("vehicle_number", sa.String(50)),
        sa.Column("key_card_numbers", sa.JSON()),
        sa.Column("early_check_in", sa.Boolean(), nullable=False),
    )
    op.create_table(
        "check_out_records",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("booking_id", sa.UUID(), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("checked_out_at", sa.DateTime(), nullable=False),
        sa.Column("checked_out_by", sa.String(255), nullable=False),
        sa.Column("room_inspected", sa.Boolean(), nullable=False),
        sa.Column("minibar_charges", MONEY, nullable=False),
        sa.Column("damage_charges", MONEY, nullable=False),
        sa.Column("late_checkout_fee", MONEY, nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("released_nights", sa.Integer(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("check_out_records")
    op.drop_table("check_in_records")
    op.drop_table("booking_cancellations")
    op.drop_index("ix_payments_booking_id", table_name="payments")
    op.drop_table("payments")
    op.drop_index("ix_extra_charges_booking_id", table_name="extra_charges")
    op.drop_table("extra_charges")
    op.drop_index("ix_booked_rooms_booking_id", table_name="booked_rooms")
    op.drop_table("booked_rooms")
    op.drop_index("ix_bookings_check_in", table_name="bookings")
    op.drop_index("ix_bookings_status", table_name="bookings")
    op.drop_index("ix_bookings_guest_id", table_name="bookings")
    op.drop_index("ix_bookings_hotel_id", table_name="bookings")
    op.drop_table("bookings")
    op.drop_index("ix_guests_email", table_name="guests")
    op.drop_index("ix_guests_hotel_id", table_name="guests")
    op.drop_table("guests")
    op.drop_index("ix_room_inventory_stay_date", table_name="room_inventory")
    op.drop_table("room_inventory")
    op.drop_index("ix_room_rates_room_type_id", table_name="room_rates")
    op.drop_index("ix_room_rates_hotel_id", table_name="room_rates")
    op.drop_table("room_rates")
    op.drop_index("ix_rooms_status", table_name="rooms")
    op.drop_index("ix_rooms_room_type_id", table_name="rooms")
    op.drop_index("ix_rooms_hotel_id", table_name="rooms")
    op.drop_table("rooms")
    op.drop_index("ix_room_types_hotel_id", table_name="room_types")
    op.drop_table("room_types")
    op.drop_index("ix_discount_codes_hotel_id", table_name="discount_codes")
    op.drop_table("discount_codes")
    op.drop_table("hotels")
