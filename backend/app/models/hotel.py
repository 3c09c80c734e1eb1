"""Hotel model: a property with its pricing defaults and cancellation policy."""

import uuid
from datetime import date, time
from decimal import Decimal

from sqlalchemy import Boolean, Date, ForeignKey, Integer, Numeric, String, Text, Time, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Hotel(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A hotel managed from the multi-property console."""

    __tablename__ = "hotels"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    city: Mapped[str | None] = mapped_column(String(100), default=None)
    country: Mapped[str | None] = mapped_column(String(100), default=None)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False)
    tax_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    service_charge_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    check_in_time: Mapped[time] = mapped_column(Time, default=time(14, 0))
    check_out_time: Mapped[time] = mapped_column(Time, default=time(12, 0))

    # Cancellation policy: free, partial, non-refundable
    cancellation_policy: Mapped[str] = mapped_column(String(20), default="free")
    cancellation_deadline_hours: Mapped[int] = mapped_column(Integer, default=48)
    cancellation_refund_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("100"))
    late_cancellation_refund_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"))

    status: Mapped[str] = mapped_column(String(50), default="active")  # active, inactive

    def __repr__(self) -> str:
        return f"<Hotel(id={self.id}, name={self.name!r})>"


class DiscountCode(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A redeemable discount: a flat amount or a percentage of the pre-extras subtotal."""

    __tablename__ = "discount_codes"

    hotel_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("hotels.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)  # flat, percentage
    value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    valid_from: Mapped[date | None] = mapped_column(Date, default=None)
    valid_to: Mapped[date | None] = mapped_column(Date, default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    __table_args__ = (UniqueConstraint("hotel_id", "code", name="uq_discount_codes_hotel_code"),)

    def __repr__(self) -> str:
        return f"<DiscountCode(code={self.code!r}, kind={self.kind!r}, value={self.value})>"
