"""Catalog service: hotels, room types, rates, physical rooms, discount codes, and inventory blocks."""

import logging
import uuid
from datetime import date, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.booking.cancellation import CancellationPolicy
from app.booking.errors import NotFound, PolicyViolation, ValidationError
from app.booking.inventory import InventoryDay, inventory_calendar, set_blocked_rooms
from app.booking.pricing import DiscountRule
from app.config import settings
from app.database import utcnow
from app.models.hotel import DiscountCode, Hotel
from app.models.room import Room, RoomRate, RoomType
from app.schemas.hotel import DiscountCodeCreate, HotelCreate
from app.schemas.room import InventoryBlockRequest, RoomCreate, RoomRateCreate, RoomRateUpdate, RoomTypeCreate

logger = logging.getLogger(__name__)

# Physical room statuses
ROOM_AVAILABLE = "available"
ROOM_OCCUPIED = "occupied"
ROOM_CLEANING = "cleaning"


# ---------------------------------------------------------------------------
# Hotels
# ---------------------------------------------------------------------------


def hotel_now(hotel: Hotel) -> datetime:
    """Current wall-clock time at the hotel, as a naive datetime."""
    return datetime.now(ZoneInfo(hotel.timezone)).replace(tzinfo=None)


def cancellation_policy(hotel: Hotel) -> CancellationPolicy:
    return CancellationPolicy(
        type=hotel.cancellation_policy,
        deadline_hours=hotel.cancellation_deadline_hours,
        refund_percentage=hotel.cancellation_refund_percentage,
        late_refund_percentage=hotel.late_cancellation_refund_percentage,
    )


async def create_hotel(db: AsyncSession, data: HotelCreate) -> Hotel:
    """Register a hotel, filling currency, tax, and timezone from settings when omitted."""
    timezone = data.timezone or settings.default_timezone
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationError(f"Unknown timezone '{timezone}'", field="timezone") from e

    refund_percentage = data.cancellation_refund_percentage
    late_refund_percentage = data.late_cancellation_refund_percentage
    if data.cancellation_policy == "non-refundable":
        refund_percentage = late_refund_percentage = 0

    hotel = Hotel(
        name=data.name,
        slug=data.slug,
        description=data.description,
        city=data.city,
        country=data.country,
        currency=(data.currency or settings.default_currency).upper(),
        timezone=timezone,
        tax_percentage=(
            data.tax_percentage if data.tax_percentage is not None else settings.default_tax_percentage
        ),
        service_charge_percentage=(
            data.service_charge_percentage
            if data.service_charge_percentage is not None
            else settings.default_service_charge_percentage
        ),
        check_in_time=data.check_in_time,
        check_out_time=data.check_out_time,
        cancellation_policy=data.cancellation_policy,
        cancellation_deadline_hours=data.cancellation_deadline_hours,
        cancellation_refund_percentage=refund_percentage,
        late_cancellation_refund_percentage=late_refund_percentage,
    )
    cancellation_policy(hotel)
    try:
        async with db.begin_nested():
            db.add(hotel)
    except IntegrityError as e:
        raise ValidationError(f"A hotel with slug '{data.slug}' already exists", field="slug") from e
    logger.info("Created hotel %s (%s)", hotel.slug, hotel.id)
    return hotel


async def get_hotel(db: AsyncSession, hotel_id: uuid.UUID) -> Hotel:
    hotel = await db.get(Hotel, hotel_id)
    if hotel is None:
        raise NotFound("Hotel", hotel_id)
    return hotel


async def list_hotels(db: AsyncSession, skip: int = 0, limit: int = 20) -> tuple[list[Hotel], int]:
    total = (await db.execute(select(func.count()).select_from(Hotel))).scalar_one()
    result = await db.execute(select(Hotel).order_by(Hotel.name).offset(skip).limit(limit))
    return list(result.scalars().all()), total


# ---------------------------------------------------------------------------
# Room types and rates
# ---------------------------------------------------------------------------


async def create_room_type(db: AsyncSession, hotel_id: uuid.UUID, data: RoomTypeCreate) -> RoomType:
    hotel = await get_hotel(db, hotel_id)
    room_type = RoomType(
        hotel_id=hotel.id,
        name=data.name,
        description=data.description,
        max_occupancy=data.max_occupancy,
        max_adults=data.max_adults,
        max_children=data.max_children,
        bed_configuration=[bed.model_dump() for bed in data.bed_configuration],
        base_price=data.base_price,
        currency=hotel.currency,
        total_rooms=data.total_rooms,
        rates=[],
    )
    async with db.begin_nested():
        db.add(room_type)
    logger.info("Created room type %s (%d rooms) for hotel %s", room_type.name, room_type.total_rooms, hotel.slug)
    return room_type


async def get_room_type(db: AsyncSession, room_type_id: uuid.UUID, hotel_id: uuid.UUID | None = None) -> RoomType:
    """Fetch a room type, optionally checking that it belongs to ``hotel_id``."""
    room_type = await db.get(RoomType, room_type_id)
    if room_type is None or (hotel_id is not None and room_type.hotel_id != hotel_id):
        raise NotFound("Room type", room_type_id)
    return room_type


async def list_room_types(db: AsyncSession, hotel_id: uuid.UUID) -> list[RoomType]:
    await get_hotel(db, hotel_id)
    result = await db.execute(
        select(RoomType).where(RoomType.hotel_id == hotel_id).order_by(RoomType.base_price, RoomType.name)
    )
    return list(result.scalars().all())


async def create_rate(db: AsyncSession, hotel_id: uuid.UUID, data: RoomRateCreate) -> RoomRate:
    hotel = await get_hotel(db, hotel_id)
    room_type = await get_room_type(db, data.room_type_id, hotel_id)
    rate = RoomRate(
        hotel_id=hotel.id,
        name=data.name,
        description=data.description,
        rate_type=data.rate_type,
        price=data.price,
        currency=hotel.currency,
        start_date=data.start_date,
        end_date=data.end_date,
        days_of_week=sorted(set(data.days_of_week)) if data.days_of_week else None,
        min_stay=data.min_stay,
        max_stay=data.max_stay,
        is_active=data.is_active,
        inclusions=data.inclusions,
    )
    async with db.begin_nested():
        rate.room_type = room_type
        db.add(rate)
    logger.info("Created %s rate %r at %s for room type %s", rate.rate_type, rate.name, rate.price, room_type.name)
    return rate


async def get_rate(db: AsyncSession, rate_id: uuid.UUID) -> RoomRate:
    rate = await db.get(RoomRate, rate_id)
    if rate is None:
        raise NotFound("Rate", rate_id)
    return rate


async def update_rate(db: AsyncSession, hotel_id: uuid.UUID, rate_id: uuid.UUID, data: RoomRateUpdate) -> RoomRate:
    """Apply a partial update. Booked rooms keep their own price snapshot."""
    rate = await get_rate(db, rate_id)
    if rate.hotel_id != hotel_id:
        raise NotFound("Rate", rate_id)
    changes = data.model_dump(exclude_unset=True)
    if "end_date" in changes and changes["end_date"] is not None and rate.start_date is not None:
        if changes["end_date"] < rate.start_date:
            raise ValidationError("end_date must not be before start_date", field="end_date")
    async with db.begin_nested():
        for key, value in changes.items():
            setattr(rate, key, value)
    logger.info("Updated rate %s: %s", rate.id, ", ".join(sorted(changes)) or "no changes")
    return rate


async def list_rates(
    db: AsyncSession, hotel_id: uuid.UUID, room_type_id: uuid.UUID | None = None
) -> list[RoomRate]:
    query = select(RoomRate).where(RoomRate.hotel_id == hotel_id)
    if room_type_id is not None:
        query = query.where(RoomRate.room_type_id == room_type_id)
    result = await db.execute(query.order_by(RoomRate.price))
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Physical rooms
# ---------------------------------------------------------------------------


async def create_room(db: AsyncSession, hotel_id: uuid.UUID, data: RoomCreate) -> Room:
    await get_hotel(db, hotel_id)
    room_type = await get_room_type(db, data.room_type_id, hotel_id)
    room = Room(
        hotel_id=hotel_id,
        room_type_id=room_type.id,
        room_number=data.room_number,
        floor=data.floor,
        notes=data.notes,
        status=ROOM_AVAILABLE,
    )
    try:
        async with db.begin_nested():
            db.add(room)
    except IntegrityError as e:
        raise ValidationError(f"Room {data.room_number} already exists", field="room_number") from e
    return room


async def list_rooms(
    db: AsyncSession,
    hotel_id: uuid.UUID,
    status: str | None = None,
    room_type_id: uuid.UUID | None = None,
) -> list[Room]:
    query = select(Room).where(Room.hotel_id == hotel_id)
    if status is not None:
        query = query.where(Room.status == status)
    if room_type_id is not None:
        query = query.where(Room.room_type_id == room_type_id)
    result = await db.execute(query.order_by(Room.room_number))
    return list(result.scalars().all())


async def mark_room_clean(db: AsyncSession, hotel_id: uuid.UUID, room_id: uuid.UUID) -> Room:
    """Housekeeping has cleaned the room: ``cleaning -> available``."""
    room = await db.get(Room, room_id)
    if room is None or room.hotel_id != hotel_id:
        raise NotFound("Room", room_id)
    async with db.begin_nested():
        result = await db.execute(
            update(Room)
            .where(Room.id == room_id, Room.status == ROOM_CLEANING)
            .values(status=ROOM_AVAILABLE, last_cleaned_at=utcnow())
            .execution_options(synchronize_session=False)
        )
    await db.refresh(room)
    if result.rowcount != 1:
        raise PolicyViolation(f"Room {room.room_number} is {room.status}, not awaiting cleaning", field="status")
    logger.info("Room %s cleaned and available", room.room_number)
    return room


# ---------------------------------------------------------------------------
# Discount codes
# ---------------------------------------------------------------------------


async def create_discount_code(db: AsyncSession, hotel_id: uuid.UUID, data: DiscountCodeCreate) -> DiscountCode:
    await get_hotel(db, hotel_id)
    discount = DiscountCode(
        hotel_id=hotel_id,
        code=data.code.strip().upper(),
        kind=data.kind,
        value=data.value,
        valid_from=data.valid_from,
        valid_to=data.valid_to,
    )
    try:
        async with db.begin_nested():
            db.add(discount)
    except IntegrityError as e:
        raise ValidationError(f"Discount code '{discount.code}' already exists", field="code") from e
    logger.info("Created %s discount code %s for hotel %s", discount.kind, discount.code, hotel_id)
    return discount


async def active_discounts(db: AsyncSession, hotel_id: uuid.UUID, on: date) -> dict[str, DiscountRule]:
    """Discount codes redeemable on ``on``, keyed by upper-case code."""
    result = await db.execute(
        select(DiscountCode).where(
            DiscountCode.hotel_id == hotel_id,
            DiscountCode.is_active.is_(True),
        )
    )
    return {
        d.code.upper(): DiscountRule(code=d.code.upper(), kind=d.kind, value=d.value)
        for d in result.scalars().all()
        if (d.valid_from is None or d.valid_from <= on) and (d.valid_to is None or on <= d.valid_to)
    }


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------


async def block_inventory(db: AsyncSession, hotel_id: uuid.UUID, data: InventoryBlockRequest) -> list[InventoryDay]:
    """Set the blocked-room count for a room type over a date range and return the new calendar."""
    room_type = await get_room_type(db, data.room_type_id, hotel_id)
    if data.blocked_rooms > room_type.total_rooms:
        raise ValidationError(
            f"Cannot block {data.blocked_rooms} of {room_type.total_rooms} rooms", field="blocked_rooms"
        )
    async with db.begin_nested():
        await set_blocked_rooms(db, room_type, data.start_date, data.end_date, data.blocked_rooms)
    return await inventory_calendar(db, [room_type], data.start_date, data.end_date)


async def get_inventory_calendar(
    db: AsyncSession,
    hotel_id: uuid.UUID,
    start: date,
    end: date,
    room_type_id: uuid.UUID | None = None,
) -> list[InventoryDay]:
    if room_type_id is not None:
        room_types = [await get_room_type(db, room_type_id, hotel_id)]
    else:
        room_types = await list_room_types(db, hotel_id)
    return await inventory_calendar(db, room_types, start, end)
