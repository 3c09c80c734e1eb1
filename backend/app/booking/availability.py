"""Availability resolver: which room types can host a party for every night of a stay."""

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.booking.errors import InvalidDateRange, NotFound, RateNotApplicable, ValidationError
from app.booking.pricing import RateTerms, check_stay_length
from app.models.hotel import Hotel
from app.models.room import RoomInventory, RoomRate, RoomType

logger = logging.getLogger(__name__)


def stay_nights(check_in: date, check_out: date) -> int:
    """Number of nights between two dates; raises ``InvalidDateRange`` unless positive."""
    nights = (check_out - check_in).days
    if nights < 1:
        raise InvalidDateRange()
    return nights


def stay_dates(check_in: date, check_out: date) -> list[date]:
    """Every night in ``[check_in, check_out)``."""
    return [check_in + timedelta(days=i) for i in range(stay_nights(check_in, check_out))]


def day_of_week(day: date) -> int:
    """Day index with Sunday = 0 … Saturday = 6, the convention used by ``RoomRate.days_of_week``."""
    return (day.weekday() + 1) % 7


def rate_terms(rate: RoomRate) -> RateTerms:
    return RateTerms(
        rate_id=rate.id,
        room_type_id=rate.room_type_id,
        price=rate.price,
        min_stay=rate.min_stay,
        max_stay=rate.max_stay,
        name=rate.name,
    )


def ensure_rate_applicable(rate: RoomRate, check_in: date, check_out: date) -> None:
    """Raise ``RateNotApplicable`` unless ``rate`` can be sold for every night of the stay."""
    if not rate.is_active:
        raise RateNotApplicable(f"Rate '{rate.name}' is not active", field="rate_id")
    nights = stay_dates(check_in, check_out)
    if rate.start_date is not None and nights[0] < rate.start_date:
        raise RateNotApplicable(f"Rate '{rate.name}' starts on {rate.start_date}", field="rate_id")
    if rate.end_date is not None and nights[-1] > rate.end_date:
        raise RateNotApplicable(f"Rate '{rate.name}' ends on {rate.end_date}", field="rate_id")
    if rate.days_of_week:
        allowed = set(rate.days_of_week)
        if any(day_of_week(night) not in allowed for night in nights):
            raise RateNotApplicable(
                f"Rate '{rate.name}' only applies on days {sorted(allowed)}", field="rate_id"
            )
    check_stay_length(rate_terms(rate), len(nights))


def rate_applies(rate: RoomRate, check_in: date, check_out: date) -> bool:
    try:
        ensure_rate_applicable(rate, check_in, check_out)
    except RateNotApplicable:
        return False
    return True


@dataclass
class RoomAvailability:
    """One search result: a room type that is free for the whole stay."""

    room_type: RoomType
    available_count: int
    rates: list[RoomRate] = field(default_factory=list)
    lowest_rate: Decimal | None = None
    total_price: Decimal | None = None  # lowest rate for the whole stay and requested room count


async def inventory_by_date(
    db: AsyncSession,
    room_type_ids: list[uuid.UUID],
    check_in: date,
    check_out: date,
) -> dict[uuid.UUID, dict[date, RoomInventory]]:
    """Load existing inventory rows for the stay, keyed by room type then date."""
    if not room_type_ids:
        return {}
    result = await db.execute(
        select(RoomInventory).where(
            RoomInventory.room_type_id.in_(room_type_ids),
            RoomInventory.stay_date >= check_in,
            RoomInventory.stay_date < check_out,
        )
        .execution_options(populate_existing=True)
    )
    rows: dict[uuid.UUID, dict[date, RoomInventory]] = defaultdict(dict)
    for row in result.scalars().all():
        rows[row.room_type_id][row.stay_date] = row
    return rows


def free_rooms(room_type: RoomType, rows: dict[date, RoomInventory], nights: list[date]) -> int:
    """Rooms of ``room_type`` free on every night; a night with no row has the full count."""
    counts = [
        rows[night].available_rooms if night in rows else room_type.total_rooms
        for night in nights
    ]
    return max(0, min(counts)) if counts else 0


async def search_availability(
    db: AsyncSession,
    hotel_id: uuid.UUID,
    check_in: date,
    check_out: date,
    adults: int,
    children: int = 0,
    room_count: int = 1,
) -> list[RoomAvailability]:
    """Return room types with capacity for the party and free rooms for every night.

    A room type that is free on some nights but not others is left out.
    No matching room type is an empty list, not an error.
    """
    nights = stay_dates(check_in, check_out)
    if adults < 1:
        raise ValidationError("At least one adult is required", field="adults")
    if children < 0:
        raise ValidationError("children cannot be negative", field="children")
    if room_count < 1:
        raise ValidationError("room_count must be at least 1", field="room_count")

    hotel = await db.get(Hotel, hotel_id)
    if hotel is None:
        raise NotFound("Hotel", hotel_id)

    result = await db.execute(
        select(RoomType).where(RoomType.hotel_id == hotel_id).order_by(RoomType.base_price, RoomType.name)
    )
    party = adults + children
    candidates = [
        rt
        for rt in result.scalars().all()
        if rt.max_occupancy * room_count >= party and rt.max_adults * room_count >= adults
    ]
    inventory = await inventory_by_date(db, [rt.id for rt in candidates], check_in, check_out)

    results: list[RoomAvailability] = []
    for room_type in candidates:
        available = free_rooms(room_type, inventory.get(room_type.id, {}), nights)
        if available < room_count:
            continue
        rates = sorted(
            (r for r in room_type.rates if rate_applies(r, check_in, check_out)),
            key=lambda r: r.price,
        )
        lowest = rates[0].price if rates else None
        results.append(
            RoomAvailability(
                room_type=room_type,
                available_count=available,
                rates=rates,
                lowest_rate=lowest,
                total_price=lowest * len(nights) * room_count if lowest is not None else None,
            )
        )

    logger.info(
        "Availability for hotel %s %s..%s (%d adults, %d children): %d room types",
        hotel_id,
        check_in,
        check_out,
        adults,
        children,
        len(results),
    )
    return results
