"""Booking aggregate: reservation, booked-room snapshots, ledger, payments, and lifecycle records."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import JSON, Boolean, Date, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, TimestampMixin, UUIDPrimaryKeyMixin, utcnow

MONEY = Numeric(12, 2)


class Booking(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A reservation of one or more rooms at a hotel for a date range."""

    __tablename__ = "bookings"

    hotel_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("hotels.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    guest_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("guests.id"),
        nullable=False,
        index=True,
    )
    booking_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    idempotency_key: Mapped[str | None] = mapped_column(String(255), default=None)
    check_in: Mapped[date] = mapped_column(Date, nullable=False)
    check_out: Mapped[date] = mapped_column(Date, nullable=False)
    nights: Mapped[int] = mapped_column(Integer, nullable=False)
    adults: Mapped[int] = mapped_column(Integer, default=1)
    children: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(
        String(20),
        default="pending",
        index=True,
    )  # pending, confirmed, checked-in, checked-out, cancelled, no-show
    payment_status: Mapped[str] = mapped_column(
        String(20),
        default="pending",
    )  # pending, partial, paid, refunded, failed
    source: Mapped[str] = mapped_column(String(20), default="direct")
    special_requests: Mapped[str | None] = mapped_column(Text, default=None)
    internal_notes: Mapped[str | None] = mapped_column(Text, default=None)
    confirmed_at: Mapped[datetime | None] = mapped_column(default=None)

    # Pricing snapshot
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    room_total: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    tax_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    service_charge_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    service_charge: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    discount: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    discount_code: Mapped[str | None] = mapped_column(String(50), default=None)
    extra_charges_total: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    subtotal: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    grand_total: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    amount_paid: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    amount_due: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    # Relationships
    guest: Mapped["Guest"] = relationship(lazy="selectin")  # type: ignore[name-defined]  # noqa: F821
    rooms: Mapped[list["BookedRoom"]] = relationship(
        lazy="selectin", cascade="all, delete-orphan", order_by="BookedRoom.position"
    )
    extra_charges: Mapped[list["ExtraCharge"]] = relationship(
        lazy="selectin", cascade="all, delete-orphan", order_by="ExtraCharge.created_at"
    )
    payments: Mapped[list["Payment"]] = relationship(
        lazy="selectin", cascade="all, delete-orphan", order_by="Payment.created_at"
    )
    cancellation: Mapped["BookingCancellation | None"] = relationship(
        lazy="selectin", cascade="all, delete-orphan", uselist=False
    )
    check_in_record: Mapped["CheckInRecord | None"] = relationship(
        lazy="selectin", cascade="all, delete-orphan", uselist=False
    )
    check_out_record: Mapped["CheckOutRecord | None"] = relationship(
        lazy="selectin", cascade="all, delete-orphan", uselist=False
    )

    __table_args__ = (
        Index("ix_bookings_check_in", "check_in"),
        UniqueConstraint("hotel_id", "idempotency_key", name="uq_bookings_hotel_idempotency_key"),
    )

    def __repr__(self) -> str:
        return f"<Booking(number={self.booking_number!r}, status={self.status}, payment_status={self.payment_status})>"


class BookedRoom(UUIDPrimaryKeyMixin, Base):
    """Snapshot of the room type and rate a booked room was sold at.

    Catalog edits never reach this row; it keeps the price-at-booking-time.
    """

    __tablename__ = "booked_rooms"

    booking_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, default=0)
    room_type_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("room_types.id"),
        nullable=False,
    )
    rate_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("room_rates.id"),
        nullable=False,
    )
    room_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("rooms.id", ondelete="SET NULL"),
        default=None,
    )
    room_number: Mapped[str | None] = mapped_column(String(20), default=None)
    room_type_name: Mapped[str] = mapped_column(String(255), nullable=False)
    rate_name: Mapped[str] = mapped_column(String(255), nullable=False)
    rate_type: Mapped[str] = mapped_column(String(20), nullable=False)
    price_per_night: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)


class ExtraCharge(UUIDPrimaryKeyMixin, Base):
    """Append-only ledger entry; corrections are new rows with a negative amount."""

    __tablename__ = "extra_charges"

    booking_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    category: Mapped[str] = mapped_column(String(30), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    total: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    charge_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)


class Payment(UUIDPrimaryKeyMixin, Base):
    """A payment attempt recorded against a booking."""

    __tablename__ = "payments"

    booking_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    payment_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    method: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)  # completed, failed
    transaction_id: Mapped[str | None] = mapped_column(String(255), default=None)
    failure_reason: Mapped[str | None] = mapped_column(Text, default=None)
    processed_by: Mapped[str | None] = mapped_column(String(255), default=None)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)


class BookingCancellation(UUIDPrimaryKeyMixin, Base):
    """Cancellation outcome. Only ``refund_status`` changes after creation."""

    __tablename__ = "booking_cancellations"

    booking_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    cancelled_at: Mapped[datetime] = mapped_column(nullable=False)
    cancelled_by: Mapped[str] = mapped_column(String(255), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    policy_type: Mapped[str] = mapped_column(String(20), nullable=False)
    hours_before_check_in: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    refund_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    refund_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    refund_status: Mapped[str] = mapped_column(String(20), default="pending")  # pending, processed, failed
    refund_settled_at: Mapped[datetime | None] = mapped_column(default=None)


class CheckInRecord(UUIDPrimaryKeyMixin, Base):
    """Front-desk record captured when the guest checks in."""

    __tablename__ = "check_in_records"

    booking_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    checked_in_at: Mapped[datetime] = mapped_column(nullable=False)
    checked_in_by: Mapped[str] = mapped_column(String(255), nullable=False)
    id_verified: Mapped[bool] = mapped_column(Boolean, nullable=False)
    id_type: Mapped[str | None] = mapped_column(String(50), default=None)
    id_number: Mapped[str | None] = mapped_column(String(100), default=None)
    vehicle_number: Mapped[str | None] = mapped_column(String(50), default=None)
    key_card_numbers: Mapped[list | None] = mapped_column(JSON, default=list)
    early_check_in: Mapped[bool] = mapped_column(Boolean, default=False)


class CheckOutRecord(UUIDPrimaryKeyMixin, Base):
    """Front-desk record captured when the guest checks out."""

    __tablename__ = "check_out_records"

    booking_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    checked_out_at: Mapped[datetime] = mapped_column(nullable=False)
    checked_out_by: Mapped[str] = mapped_column(String(255), nullable=False)
    room_inspected: Mapped[bool] = mapped_column(Boolean, nullable=False)
    minibar_charges: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    damage_charges: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    late_checkout_fee: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"))
    notes: Mapped[str | None] = mapped_column(Text, default=None)
    released_nights: Mapped[int] = mapped_column(Integer, default=0)
