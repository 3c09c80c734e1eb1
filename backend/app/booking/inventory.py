"""Room inventory counters: atomic hold/release of per-date room-type allocations.

A hold reads the row's counters and ``version``, checks the remaining count,
then updates with ``WHERE version = :seen``. If another writer got there
first the update touches no row; the read is repeated (``retries`` times)
before giving up with ``InventoryUnavailable``. Rows are locked in a fixed
order (room type id, then date) so concurrent bookings never deadlock.
"""

import logging
import uuid
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.booking.availability import inventory_by_date, stay_dates
from app.booking.errors import InventoryUnavailable, ValidationError
from app.config import settings
from app.models.room import RoomInventory, RoomType

logger = logging.getLogger(__name__)


async def ensure_inventory_rows(db: AsyncSession, room_type: RoomType, nights: Iterable[date]) -> None:
    """Create missing counter rows for ``nights`` with the room type's full count.

    Two writers may race to create the same row; the loser's savepoint is
    rolled back and the rows are re-read.
    """
    nights = sorted(set(nights))
    for _ in range(2):
        result = await db.execute(
            select(RoomInventory.stay_date).where(
                RoomInventory.room_type_id == room_type.id,
                RoomInventory.stay_date.in_(nights),
            )
        )
        existing = set(result.scalars().all())
        missing = [night for night in nights if night not in existing]
        if not missing:
            return
        try:
            async with db.begin_nested():
                db.add_all(
                    RoomInventory(
                        room_type_id=room_type.id,
                        stay_date=night,
                        total_rooms=room_type.total_rooms,
                        booked_rooms=0,
                        blocked_rooms=0,
                        version=0,
                    )
                    for night in missing
                )
        except IntegrityError:
            logger.info("Inventory rows for room type %s were created concurrently; re-reading", room_type.id)
    raise InventoryUnavailable(f"Could not open inventory for room type '{room_type.name}'")


async def _hold_night(
    db: AsyncSession,
    room_type: RoomType,
    night: date,
    quantity: int,
    retries: int,
) -> None:
    for attempt in range(retries + 1):
        row = (
            await db.execute(
                select(
                    RoomInventory.id,
                    RoomInventory.total_rooms,
                    RoomInventory.booked_rooms,
                    RoomInventory.blocked_rooms,
                    RoomInventory.version,
                ).where(
                    RoomInventory.room_type_id == room_type.id,
                    RoomInventory.stay_date == night,
                )
            )
        ).one()
        remaining = row.total_rooms - row.booked_rooms - row.blocked_rooms
        if remaining < quantity:
            raise InventoryUnavailable(
                f"Only {max(remaining, 0)} '{room_type.name}' room(s) left on {night.isoformat()}",
                field="room_selections",
            )

        result = await db.execute(
            update(RoomInventory)
            .where(RoomInventory.id == row.id, RoomInventory.version == row.version)
            .values(
                booked_rooms=RoomInventory.booked_rooms + quantity,
                version=RoomInventory.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return
        logger.warning(
            "Inventory conflict on %s %s (attempt %d/%d)", room_type.name, night, attempt + 1, retries + 1
        )

    raise InventoryUnavailable(
        f"'{room_type.name}' on {night.isoformat()} is being booked concurrently; no room could be held",
        field="room_selections",
    )


async def hold_rooms(
    db: AsyncSession,
    requests: dict[uuid.UUID, tuple[RoomType, int]],
    check_in: date,
    check_out: date,
    *,
    retries: int | None = None,
) -> None:
    """Take ``quantity`` rooms of each room type for every night of the stay.

    ``requests`` maps room type id to ``(room_type, quantity)``. Call inside a
    savepoint: a failure part-way leaves earlier nights held until rollback.
    """
    retries = settings.inventory_conflict_retries if retries is None else retries
    nights = stay_dates(check_in, check_out)
    for room_type_id in sorted(requests):
        room_type, quantity = requests[room_type_id]
        await ensure_inventory_rows(db, room_type, nights)
        for night in nights:
            await _hold_night(db, room_type, night, quantity, retries)
        logger.info("Held %d x %s for %s..%s", quantity, room_type.name, check_in, check_out)


async def release_rooms(
    db: AsyncSession,
    quantities: Counter,
    nights: list[date],
) -> None:
    """Give back ``quantities[room_type_id]`` rooms on each of ``nights``."""
    if not nights:
        return
    for room_type_id in sorted(quantities):
        quantity = quantities[room_type_id]
        result = await db.execute(
            update(RoomInventory)
            .where(
                RoomInventory.room_type_id == room_type_id,
                RoomInventory.stay_date.in_(nights),
                RoomInventory.booked_rooms >= quantity,
            )
            .values(
                booked_rooms=RoomInventory.booked_rooms - quantity,
                version=RoomInventory.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != len(nights):
            logger.warning(
                "Released %d of %d nights for room type %s; counters were already lower",
                result.rowcount,
                len(nights),
                room_type_id,
            )
        else:
            logger.info("Released %d room(s) of type %s for %d nights", quantity, room_type_id, len(nights))


async def set_blocked_rooms(
    db: AsyncSession,
    room_type: RoomType,
    start: date,
    end: date,
    blocked: int,
) -> None:
    """Set the out-of-order count for ``[start, end)``; never below what is already sold."""
    if blocked < 0:
        raise ValidationError("blocked_rooms cannot be negative", field="blocked_rooms")
    nights = stay_dates(start, end)
    await ensure_inventory_rows(db, room_type, nights)
    result = await db.execute(
        update(RoomInventory)
        .where(
            RoomInventory.room_type_id == room_type.id,
            RoomInventory.stay_date.in_(nights),
            RoomInventory.total_rooms - RoomInventory.booked_rooms >= blocked,
        )
        .values(blocked_rooms=blocked, version=RoomInventory.version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != len(nights):
        raise InventoryUnavailable(
            f"Cannot block {blocked} '{room_type.name}' room(s): some nights are already sold",
            field="blocked_rooms",
        )
    logger.info("Blocked %d x %s for %s..%s", blocked, room_type.name, start, end)


@dataclass
class InventoryDay:
    room_type_id: uuid.UUID
    room_type_name: str
    stay_date: date
    total: int
    booked: int
    blocked: int

    @property
    def available(self) -> int:
        return max(0, self.total - self.booked - self.blocked)


async def inventory_calendar(
    db: AsyncSession,
    room_types: list[RoomType],
    start: date,
    end: date,
) -> list[InventoryDay]:
    """Per-date counters for ``[start, end)``, filling never-touched nights with the full count."""
    nights = stay_dates(start, end)
    rows = await inventory_by_date(db, [rt.id for rt in room_types], start, end)
    days: list[InventoryDay] = []
    for night in nights:
        for room_type in room_types:
            row = rows.get(room_type.id, {}).get(night)
            days.append(
                InventoryDay(
                    room_type_id=room_type.id,
                    room_type_name=room_type.name,
                    stay_date=night,
                    total=row.total_rooms if row else room_type.total_rooms,
                    booked=row.booked_rooms if row else 0,
                    blocked=row.blocked_rooms if row else 0,
                )
            )
    return days
