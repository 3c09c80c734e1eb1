"""Shared test configuration and fixtures.

Every test gets its own SQLite database file (through aiosqlite):
- pysqlite's implicit transactions are switched off and every transaction
  starts with ``BEGIN IMMEDIATE``, so SAVEPOINTs behave and two sessions
  writing at once take the database lock in turn.
- The API client shares the test's session, so a test can arrange data with
  the services and then drive it over HTTP.
"""

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from datetime import time
from decimal import Decimal

import httpx
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from app.booking.collaborators import (
    GatewayError,
    PaymentVerification,
    get_housekeeping,
    get_notifier,
    get_payment_gateway,
)
from app.database import Base, get_db
from app.main import app
from app.models.hotel import Hotel
from app.models.room import Room, RoomRate, RoomType
from app.schemas.hotel import HotelCreate
from app.schemas.room import RoomCreate, RoomRateCreate, RoomTypeCreate
from app.services import catalog_service

# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """A fresh SQLite database with every table created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}", echo=False)

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session whose transaction is rolled back when the test ends."""
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()


# ---------------------------------------------------------------------------
# Collaborator fakes
# ---------------------------------------------------------------------------


class RecordingNotifier:
    """Stands in for a webhook and remembers every event it was asked to send."""

    def __init__(self, fail: bool = False) -> None:
        self.events: list[tuple[str, dict]] = []
        self.fail = fail

    async def send(self, event: str, payload: dict) -> None:
        self.events.append((event, payload))
        if self.fail:
            raise httpx.ConnectError("webhook unreachable")


class FakeGateway:
    """Payment gateway double; ``verifications`` maps a token to what the gateway reports."""

    def __init__(self) -> None:
        self.verifications: dict[str, PaymentVerification] = {}
        self.initiated: list[tuple[Decimal, str, str]] = []
        self.unavailable = False

    async def initiate_payment(self, amount: Decimal, booking_ref: str, method: str) -> str:
        if self.unavailable:
            raise GatewayError("gateway is down")
        self.initiated.append((amount, booking_ref, method))
        return f"https://pay.example.test/{method}/{booking_ref}"

    async def verify_payment(self, token: str, method: str) -> PaymentVerification:
        if self.unavailable:
            raise GatewayError("gateway is down")
        return self.verifications.get(token, PaymentVerification(status="failed", amount=Decimal("0")))


@pytest_asyncio.fixture
async def gateway() -> FakeGateway:
    return FakeGateway()


@pytest_asyncio.fixture
async def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture
async def housekeeping() -> RecordingNotifier:
    return RecordingNotifier()


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    gateway: FakeGateway,
    notifier: RecordingNotifier,
    housekeeping: RecordingNotifier,
) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient wired to the test session and collaborator fakes."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_housekeeping] = lambda: housekeeping

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Catalog: a Kathmandu hotel with two room types
# ---------------------------------------------------------------------------


@dataclass
class Catalog:
    hotel: Hotel
    deluxe: RoomType
    deluxe_rate: RoomRate
    suite: RoomType
    suite_rate: RoomRate
    rooms: list[Room]


async def build_catalog(
    db: AsyncSession,
    *,
    slug: str = "himalayan-heritage",
    cancellation_policy: str = "free",
    refund_percentage: Decimal = Decimal("100"),
    late_refund_percentage: Decimal = Decimal("0"),
    deadline_hours: int = 48,
) -> Catalog:
    """Two Deluxe Doubles (9,000 NPR) and one Family Suite (16,500 NPR), 13% tax, 10% service."""
    hotel = await catalog_service.create_hotel(
        db,
        HotelCreate(
            name="Himalayan Heritage Hotel",
            slug=slug,
            city="Kathmandu",
            country="Nepal",
            currency="NPR",
            timezone="Asia/Kathmandu",
            tax_percentage=Decimal("13"),
            service_charge_percentage=Decimal("10"),
            check_in_time=time(14, 0),
            check_out_time=time(12, 0),
            cancellation_policy=cancellation_policy,
            cancellation_deadline_hours=deadline_hours,
            cancellation_refund_percentage=refund_percentage,
            late_cancellation_refund_percentage=late_refund_percentage,
        ),
    )
    deluxe = await catalog_service.create_room_type(
        db,
        hotel.id,
        RoomTypeCreate(
            name="Deluxe Double",
            max_occupancy=2,
            max_adults=2,
            bed_configuration=[{"type": "queen", "count": 1}],
            base_price=Decimal("9000"),
            total_rooms=2,
        ),
    )
    suite = await catalog_service.create_room_type(
        db,
        hotel.id,
        RoomTypeCreate(
            name="Family Suite",
            max_occupancy=4,
            max_adults=3,
            max_children=2,
            base_price=Decimal("16500"),
            total_rooms=1,
        ),
    )
    deluxe_rate = await catalog_service.create_rate(
        db,
        hotel.id,
        RoomRateCreate(room_type_id=deluxe.id, name="Best Available Rate", price=Decimal("9000")),
    )
    suite_rate = await catalog_service.create_rate(
        db,
        hotel.id,
        RoomRateCreate(room_type_id=suite.id, name="Best Available Rate", price=Decimal("16500")),
    )
    rooms = [
        await catalog_service.create_room(db, hotel.id, RoomCreate(room_type_id=deluxe.id, room_number="101", floor=1)),
        await catalog_service.create_room(db, hotel.id, RoomCreate(room_type_id=deluxe.id, room_number="102", floor=1)),
        await catalog_service.create_room(db, hotel.id, RoomCreate(room_type_id=suite.id, room_number="301", floor=3)),
    ]
    return Catalog(
        hotel=hotel,
        deluxe=deluxe,
        deluxe_rate=deluxe_rate,
        suite=suite,
        suite_rate=suite_rate,
        rooms=rooms,
    )


@pytest_asyncio.fixture
async def catalog(db_session: AsyncSession) -> Catalog:
    return await build_catalog(db_session)


@pytest_asyncio.fixture
async def committed_catalog(session_factory) -> Catalog:
    """A catalog committed to the database, for tests that use several sessions."""
    async with session_factory() as session:
        built = await build_catalog(session)
        await session.commit()
    return built
