"""Tests for the availability search and the inventory counters behind it."""

from collections import Counter
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.booking.availability import day_of_week, search_availability, stay_dates
from app.booking.errors import InvalidDateRange, InventoryUnavailable, NotFound, ValidationError
from app.booking.inventory import hold_rooms, inventory_calendar, release_rooms, set_blocked_rooms
from app.models.room import RoomInventory
from app.schemas.room import RoomRateCreate, RoomRateUpdate
from app.services import catalog_service

# 2030-03-10 is a Sunday
SUNDAY = date(2030, 3, 10)
MONDAY = date(2030, 3, 11)
TUESDAY = date(2030, 3, 12)
FRIDAY = date(2030, 3, 15)
SUNDAY_AFTER = date(2030, 3, 17)


async def _counters(db: AsyncSession, room_type_id, night: date) -> tuple[int, int, int]:
    row = (
        await db.execute(
            select(RoomInventory.booked_rooms, RoomInventory.blocked_rooms, RoomInventory.version).where(
                RoomInventory.room_type_id == room_type_id, RoomInventory.stay_date == night
            )
        )
    ).one()
    return row.booked_rooms, row.blocked_rooms, row.version


class TestStayDates:
    def test_nights_exclude_check_out(self):
        assert stay_dates(SUNDAY, TUESDAY) == [SUNDAY, MONDAY]

    def test_empty_or_inverted_stay_rejected(self):
        with pytest.raises(InvalidDateRange):
            stay_dates(SUNDAY, SUNDAY)
        with pytest.raises(InvalidDateRange):
            stay_dates(TUESDAY, SUNDAY)

    def test_sunday_is_day_zero(self):
        assert day_of_week(SUNDAY) == 0
        assert day_of_week(FRIDAY) == 5


# ---------------------------------------------------------------------------
# search_availability
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestSearchAvailability:
    async def test_lists_room_types_cheapest_first(self, db_session: AsyncSession, catalog):
        results = await search_availability(db_session, catalog.hotel.id, SUNDAY, TUESDAY, adults=2)

        assert [r.room_type.name for r in results] == ["Deluxe Double", "Family Suite"]
        deluxe, suite = results
        assert deluxe.available_count == 2
        assert deluxe.lowest_rate == Decimal("9000")
        assert deluxe.total_price == Decimal("18000")
        assert suite.available_count == 1
        assert suite.total_price == Decimal("33000")

    async def test_party_too_big_for_room_type_is_excluded(self, db_session: AsyncSession, catalog):
        results = await search_availability(db_session, catalog.hotel.id, SUNDAY, TUESDAY, adults=3)
        assert [r.room_type.name for r in results] == ["Family Suite"]

    async def test_room_count_multiplies_capacity(self, db_session: AsyncSession, catalog):
        results = await search_availability(
            db_session, catalog.hotel.id, SUNDAY, TUESDAY, adults=4, room_count=2
        )
        assert [r.room_type.name for r in results] == ["Deluxe Double"]
        assert results[0].total_price == Decimal("36000")

    async def test_sold_out_on_one_night_excludes_the_whole_stay(self, db_session: AsyncSession, catalog):
        async with db_session.begin_nested():
            await hold_rooms(db_session, {catalog.deluxe.id: (catalog.deluxe, 2)}, MONDAY, TUESDAY)

        full_stay = await search_availability(db_session, catalog.hotel.id, SUNDAY, TUESDAY, adults=2)
        first_night = await search_availability(db_session, catalog.hotel.id, SUNDAY, MONDAY, adults=2)

        assert "Deluxe Double" not in [r.room_type.name for r in full_stay]
        assert "Deluxe Double" in [r.room_type.name for r in first_night]

    async def test_blocked_rooms_are_not_for_sale(self, db_session: AsyncSession, catalog):
        async with db_session.begin_nested():
            await set_blocked_rooms(db_session, catalog.deluxe, SUNDAY, TUESDAY, 1)

        results = await search_availability(db_session, catalog.hotel.id, SUNDAY, TUESDAY, adults=2)
        assert results[0].room_type.name == "Deluxe Double"
        assert results[0].available_count == 1

    async def test_rates_filtered_by_days_and_stay_length(self, db_session: AsyncSession, catalog):
        weekend = await catalog_service.create_rate(
            db_session,
            catalog.hotel.id,
            RoomRateCreate(
                room_type_id=catalog.deluxe.id,
                name="Weekend Escape",
                rate_type="weekend",
                price=Decimal("8000"),
                days_of_week=[5, 6],
            ),
        )
        await catalog_service.create_rate(
            db_session,
            catalog.hotel.id,
            RoomRateCreate(
                room_type_id=catalog.deluxe.id,
                name="Stay Longer",
                rate_type="promotional",
                price=Decimal("7000"),
                min_stay=4,
            ),
        )

        weekday = await search_availability(db_session, catalog.hotel.id, SUNDAY, TUESDAY, adults=2)
        weekend_stay = await search_availability(db_session, catalog.hotel.id, FRIDAY, SUNDAY_AFTER, adults=2)

        assert [r.name for r in weekday[0].rates] == ["Best Available Rate"]
        assert [r.id for r in weekend_stay[0].rates] == [weekend.id, catalog.deluxe_rate.id]
        assert weekend_stay[0].lowest_rate == Decimal("8000")

    async def test_room_type_without_an_applicable_rate_has_no_price(self, db_session: AsyncSession, catalog):
        await catalog_service.update_rate(
            db_session,
            catalog.hotel.id,
            catalog.suite_rate.id,
            RoomRateUpdate(is_active=False),
        )
        results = await search_availability(db_session, catalog.hotel.id, SUNDAY, TUESDAY, adults=2)
        suite = next(r for r in results if r.room_type.name == "Family Suite")
        assert suite.rates == []
        assert suite.lowest_rate is None
        assert suite.total_price is None

    async def test_invalid_inputs(self, db_session: AsyncSession, catalog):
        with pytest.raises(InvalidDateRange):
            await search_availability(db_session, catalog.hotel.id, TUESDAY, SUNDAY, adults=2)
        with pytest.raises(ValidationError):
            await search_availability(db_session, catalog.hotel.id, SUNDAY, TUESDAY, adults=0)

    async def test_unknown_hotel(self, db_session: AsyncSession, catalog):
        with pytest.raises(NotFound):
            await search_availability(db_session, catalog.deluxe.id, SUNDAY, TUESDAY, adults=1)


# ---------------------------------------------------------------------------
# Inventory counters
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestInventory:
    async def test_hold_opens_rows_and_counts_every_night(self, db_session: AsyncSession, catalog):
        async with db_session.begin_nested():
            await hold_rooms(db_session, {catalog.deluxe.id: (catalog.deluxe, 1)}, SUNDAY, TUESDAY)

        assert await _counters(db_session, catalog.deluxe.id, SUNDAY) == (1, 0, 1)
        assert await _counters(db_session, catalog.deluxe.id, MONDAY) == (1, 0, 1)

    async def test_failed_hold_leaves_counters_untouched(self, db_session: AsyncSession, catalog):
        async with db_session.begin_nested():
            await hold_rooms(db_session, {catalog.deluxe.id: (catalog.deluxe, 2)}, MONDAY, TUESDAY)

        with pytest.raises(InventoryUnavailable) as exc_info:
            async with db_session.begin_nested():
                await hold_rooms(db_session, {catalog.deluxe.id: (catalog.deluxe, 1)}, SUNDAY, TUESDAY)

        assert "Deluxe Double" in exc_info.value.message
        # Sunday was held before Monday failed; the savepoint rolled it back.
        days = await inventory_calendar(db_session, [catalog.deluxe], SUNDAY, TUESDAY)
        assert [d.booked for d in days] == [0, 2]
        assert await _counters(db_session, catalog.deluxe.id, MONDAY) == (2, 0, 1)

    async def test_release_gives_rooms_back(self, db_session: AsyncSession, catalog):
        async with db_session.begin_nested():
            await hold_rooms(db_session, {catalog.deluxe.id: (catalog.deluxe, 2)}, SUNDAY, TUESDAY)
            await release_rooms(db_session, Counter({catalog.deluxe.id: 1}), [MONDAY])

        assert (await _counters(db_session, catalog.deluxe.id, SUNDAY))[0] == 2
        assert (await _counters(db_session, catalog.deluxe.id, MONDAY))[0] == 1

    async def test_release_never_goes_below_zero(self, db_session: AsyncSession, catalog):
        async with db_session.begin_nested():
            await hold_rooms(db_session, {catalog.deluxe.id: (catalog.deluxe, 1)}, SUNDAY, MONDAY)
            await release_rooms(db_session, Counter({catalog.deluxe.id: 2}), [SUNDAY])

        assert (await _counters(db_session, catalog.deluxe.id, SUNDAY))[0] == 1

    async def test_cannot_block_rooms_already_sold(self, db_session: AsyncSession, catalog):
        async with db_session.begin_nested():
            await hold_rooms(db_session, {catalog.deluxe.id: (catalog.deluxe, 2)}, SUNDAY, MONDAY)

        with pytest.raises(InventoryUnavailable):
            async with db_session.begin_nested():
                await set_blocked_rooms(db_session, catalog.deluxe, SUNDAY, TUESDAY, 1)
        assert await _counters(db_session, catalog.deluxe.id, SUNDAY) == (2, 0, 1)

    async def test_calendar_fills_untouched_nights(self, db_session: AsyncSession, catalog):
        async with db_session.begin_nested():
            await hold_rooms(db_session, {catalog.suite.id: (catalog.suite, 1)}, MONDAY, TUESDAY)

        days = await inventory_calendar(db_session, [catalog.suite], SUNDAY, TUESDAY)

        assert [(d.stay_date, d.total, d.booked, d.available) for d in days] == [
            (SUNDAY, 1, 0, 1),
            (MONDAY, 1, 1, 0),
        ]
