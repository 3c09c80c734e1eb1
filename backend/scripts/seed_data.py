"""Seed the database with demo hotels in Nepal, their room catalog, and a few bookings.

Everything goes through the catalog and booking services, so inventory
counters, prices and booking numbers are exactly what the API would produce.

Run from the backend/ directory:
    python -m scripts.seed_data
"""

import asyncio
import sys
from datetime import date, time, timedelta
from decimal import Decimal
from pathlib import Path

# Add backend to path so imports work when run as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import delete, select

from app.database import async_session_factory
from app.models.hotel import Hotel
from app.schemas.booking import BookingCreate, ConfirmTransition, PaymentCreate, RoomSelectionIn
from app.schemas.guest import GuestDetails
from app.schemas.hotel import DiscountCodeCreate, HotelCreate
from app.schemas.room import RoomCreate, RoomRateCreate, RoomTypeCreate
from app.services import booking_service, catalog_service

# ---------------------------------------------------------------------------
# Seed data definitions
# ---------------------------------------------------------------------------

HOTELS = [
    {
        "hotel": HotelCreate(
            name="Himalayan Heritage Hotel",
            slug="himalayan-heritage-thamel",
            description="Boutique courtyard hotel a short walk from Thamel and Durbar Square.",
            city="Kathmandu",
            country="Nepal",
            check_in_time=time(14, 0),
            check_out_time=time(12, 0),
            cancellation_policy="free",
            cancellation_deadline_hours=48,
        ),
        "room_types": [
            {
                "type": RoomTypeCreate(
                    name="Deluxe Double",
                    description="Courtyard-facing room with a queen bed.",
                    max_occupancy=2,
                    max_adults=2,
                    bed_configuration=[{"type": "queen", "count": 1}],
                    base_price=Decimal("9000"),
                    total_rooms=4,
                ),
                "rooms": ["101", "102", "201", "202"],
                "rates": [
                    {"name": "Best Available Rate", "rate_type": "standard", "price": Decimal("9000")},
                    {
                        "name": "Weekend Escape",
                        "rate_type": "weekend",
                        "price": Decimal("10500"),
                        "days_of_week": [5, 6],
                    },
                ],
            },
            {
                "type": RoomTypeCreate(
                    name="Family Suite",
                    description="Two rooms, a king bed and two singles.",
                    max_occupancy=4,
                    max_adults=3,
                    max_children=2,
                    bed_configuration=[{"type": "king", "count": 1}, {"type": "single", "count": 2}],
                    base_price=Decimal("16500"),
                    total_rooms=2,
                ),
                "rooms": ["301", "302"],
                "rates": [
                    {"name": "Best Available Rate", "rate_type": "standard", "price": Decimal("16500")},
                    {
                        "name": "Stay Longer",
                        "rate_type": "promotional",
                        "price": Decimal("14000"),
                        "min_stay": 4,
                    },
                ],
            },
        ],
        "discounts": [DiscountCodeCreate(code="DASHAIN10", kind="percentage", value=Decimal("10"))],
    },
    {
        "hotel": HotelCreate(
            name="Phewa Lakeside Resort",
            slug="phewa-lakeside-pokhara",
            description="Lakeside resort with Annapurna views, ten minutes from the Pokhara airport.",
            city="Pokhara",
            country="Nepal",
            cancellation_policy="partial",
            cancellation_deadline_hours=72,
            cancellation_refund_percentage=Decimal("50"),
        ),
        "room_types": [
            {
                "type": RoomTypeCreate(
                    name="Lake View Room",
                    max_occupancy=3,
                    max_adults=2,
                    max_children=1,
                    bed_configuration=[{"type": "double", "count": 1}],
                    base_price=Decimal("12000"),
                    total_rooms=3,
                ),
                "rooms": ["L1", "L2", "L3"],
                "rates": [
                    {"name": "Room Only", "rate_type": "standard", "price": Decimal("12000")},
                    {
                        "name": "Half Board",
                        "rate_type": "package",
                        "price": Decimal("15500"),
                        "inclusions": ["breakfast", "dinner"],
                    },
                ],
            },
        ],
        "discounts": [DiscountCodeCreate(code="WELCOME2000", kind="flat", value=Decimal("2000"))],
    },
]

GUESTS = [
    GuestDetails(first_name="Aarati", last_name="Shrestha", email="aarati.shrestha@example.com", phone="+977 9841000001", city="Lalitpur", country="Nepal"),
    GuestDetails(first_name="Tenzing", last_name="Sherpa", email="tenzing.sherpa@example.com", phone="+977 9851000002", city="Solukhumbu", country="Nepal"),
    GuestDetails(first_name="Priya", last_name="Nair", email="priya.nair@example.com", phone="+91 9820000003", city="Kochi", country="India"),
    GuestDetails(first_name="Lukas", last_name="Weber", email="lukas.weber@example.com", phone="+49 1510000004", city="Munich", country="Germany"),
]


async def seed() -> None:
    """Populate the database with demo hotels.

    Idempotent: demo hotels that already exist are deleted (with everything
    that cascades from them) and recreated.
    """
    async with async_session_factory() as session:
        slugs = [entry["hotel"].slug for entry in HOTELS]
        existing = (await session.execute(select(Hotel.id).where(Hotel.slug.in_(slugs)))).scalars().all()
        if existing:
            print(f"⚠️  {len(existing)} demo hotel(s) already exist. Deleting and re-seeding...")
            await session.execute(delete(Hotel).where(Hotel.id.in_(existing)))
            await session.flush()

        created: list[tuple[Hotel, list]] = []
        for entry in HOTELS:
            hotel = await catalog_service.create_hotel(session, entry["hotel"])
            print(f"   🏨 {hotel.name}, {hotel.city} ({hotel.currency}, {hotel.cancellation_policy} cancellation)")
            offers = []
            for type_entry in entry["room_types"]:
                room_type = await catalog_service.create_room_type(session, hotel.id, type_entry["type"])
                for number in type_entry["rooms"]:
                    await catalog_service.create_room(
                        session, hotel.id, RoomCreate(room_type_id=room_type.id, room_number=number)
                    )
                for rate_data in type_entry["rates"]:
                    rate = await catalog_service.create_rate(
                        session, hotel.id, RoomRateCreate(room_type_id=room_type.id, **rate_data)
                    )
                    if rate.rate_type == "standard":
                        offers.append((room_type, rate))
                print(f"      🛏  {room_type.name}: {room_type.total_rooms} rooms, {len(type_entry['rates'])} rates")
            for discount in entry["discounts"]:
                await catalog_service.create_discount_code(session, hotel.id, discount)
            created.append((hotel, offers))

        # ------------------------------------------------------------------
        # Bookings: a spread of statuses two to three weeks out
        # ------------------------------------------------------------------
        today = date.today()
        booking_count = 0
        for index, guest in enumerate(GUESTS):
            hotel, offers = created[index % len(created)]
            room_type, rate = offers[index % len(offers)]
            check_in = today + timedelta(days=14 + index * 2)
            booking, _ = await booking_service.create_booking(
                session,
                BookingCreate(
                    hotel_id=hotel.id,
                    room_selections=[RoomSelectionIn(room_type_id=room_type.id, rate_id=rate.id)],
                    check_in=check_in,
                    check_out=check_in + timedelta(days=2 + index % 3),
                    guest_details=guest,
                    adults=min(2, room_type.max_adults),
                    discount_code="DASHAIN10" if index == 0 else None,
                    source=["direct", "website", "booking.com", "phone"][index],
                ),
            )
            if index % 2 == 0:
                deposit = (booking.grand_total / 2).quantize(Decimal("1"))
                await booking_service.record_payment(
                    session,
                    booking.id,
                    PaymentCreate(amount=deposit, method="cash", processed_by="seed"),
                    gateway=None,
                )
                await booking_service.update_booking_status(
                    session, booking.id, ConfirmTransition(status="confirmed", performed_by="seed")
                )
            booking_count += 1
            print(f"   📅 {booking.booking_number}, {guest.first_name} {guest.last_name}, {booking.grand_total} {booking.currency}")

        await session.commit()

        print()
        print("=" * 60)
        print("📊 Seed Summary")
        print("=" * 60)
        print(f"   Hotels:        {len(created)}")
        print(f"   Guests:        {len(GUESTS)}")
        print(f"   Bookings:      {booking_count}")
        print("=" * 60)
        print("🎉 Done! Browse the API at /docs")


if __name__ == "__main__":
    asyncio.run(seed())
