"""Room catalog models: room types, physical rooms, rates, and per-date inventory."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import JSON, Boolean, Date, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class RoomType(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A category of room (e.g. Deluxe Suite) sharing capacity and pricing."""

    __tablename__ = "room_types"

    hotel_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("hotels.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    max_occupancy: Mapped[int] = mapped_column(Integer, nullable=False)
    max_adults: Mapped[int] = mapped_column(Integer, nullable=False)
    max_children: Mapped[int] = mapped_column(Integer, default=0)
    bed_configuration: Mapped[list | None] = mapped_column(JSON, default=list)
    base_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    total_rooms: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    rates: Mapped[list["RoomRate"]] = relationship(
        back_populates="room_type", lazy="selectin", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<RoomType(id={self.id}, name={self.name!r}, total_rooms={self.total_rooms})>"


class Room(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A physical room belonging to a room type."""

    __tablename__ = "rooms"

    hotel_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("hotels.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    room_type_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("room_types.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    room_number: Mapped[str] = mapped_column(String(20), nullable=False)
    floor: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(
        String(20),
        default="available",
        index=True,
    )  # available, occupied, reserved, maintenance, cleaning
    notes: Mapped[str | None] = mapped_column(Text, default=None)
    last_cleaned_at: Mapped[datetime | None] = mapped_column(default=None)

    __table_args__ = (UniqueConstraint("hotel_id", "room_number", name="uq_rooms_hotel_number"),)

    def __repr__(self) -> str:
        return f"<Room(number={self.room_number!r}, status={self.status!r})>"


class RoomRate(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A priced offer for a room type under specific stay conditions."""

    __tablename__ = "room_rates"

    hotel_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("hotels.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    room_type_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("room_types.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    rate_type: Mapped[str] = mapped_column(
        String(20), nullable=False
    )  # standard, weekend, seasonal, promotional, corporate, package
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    start_date: Mapped[date | None] = mapped_column(Date, default=None)
    end_date: Mapped[date | None] = mapped_column(Date, default=None)
    days_of_week: Mapped[list | None] = mapped_column(JSON, default=None)  # 0-6, Sunday first
    min_stay: Mapped[int] = mapped_column(Integer, default=1)
    max_stay: Mapped[int | None] = mapped_column(Integer, default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    inclusions: Mapped[list | None] = mapped_column(JSON, default=list)

    room_type: Mapped["RoomType"] = relationship(back_populates="rates", lazy="selectin")

    def __repr__(self) -> str:
        return f"<RoomRate(name={self.name!r}, type={self.rate_type!r}, price={self.price})>"


class RoomInventory(Base):
    """Per-date allocation counter for a room type.

    ``version`` is bumped on every hold so concurrent writers can detect
    that the row changed between their read and their update.
    """

    __tablename__ = "room_inventory"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    room_type_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("room_types.id", ondelete="CASCADE"),
        nullable=False,
    )
    stay_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_rooms: Mapped[int] = mapped_column(Integer, nullable=False)
    booked_rooms: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    blocked_rooms: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint("room_type_id", "stay_date", name="uq_room_inventory_type_date"),
        Index("ix_room_inventory_stay_date", "stay_date"),
    )

    @property
    def available_rooms(self) -> int:
        return max(0, self.total_rooms - self.booked_rooms - self.blocked_rooms)

    def __repr__(self) -> str:
        return (
            f"<RoomInventory(room_type_id={self.room_type_id}, date={self.stay_date}, "
            f"booked={self.booked_rooms}/{self.total_rooms})>"
        )
