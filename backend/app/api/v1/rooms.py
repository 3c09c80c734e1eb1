"""Room catalog API router: room types, rates, physical rooms, availability, and inventory.

All routes are scoped to a hotel: ``/api/v1/hotels/{hotel_id}/...``.
"""

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db
from app.booking.availability import search_availability
from app.booking.inventory import InventoryDay
from app.models.room import Room, RoomRate, RoomType
from app.schemas.booking import AvailabilityResult
from app.schemas.room import (
    InventoryBlockRequest,
    InventoryDayResponse,
    RoomCreate,
    RoomRateCreate,
    RoomRateResponse,
    RoomRateUpdate,
    RoomResponse,
    RoomTypeCreate,
    RoomTypeResponse,
)
from app.services import catalog_service

router = APIRouter(prefix="/api/v1/hotels/{hotel_id}", tags=["rooms"])


# ---------------------------------------------------------------------------
# Room types and rates
# ---------------------------------------------------------------------------


@router.post(
    "/room-types",
    response_model=RoomTypeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a room type",
)
async def create_room_type(
    hotel_id: uuid.UUID,
    body: RoomTypeCreate,
    db: AsyncSession = Depends(get_db),
) -> RoomType:
    return await catalog_service.create_room_type(db, hotel_id, body)


@router.get(
    "/room-types",
    response_model=list[RoomTypeResponse],
    summary="List room types",
)
async def list_room_types(
    hotel_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> list[RoomType]:
    return await catalog_service.list_room_types(db, hotel_id)


@router.post(
    "/rates",
    response_model=RoomRateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a rate for a room type",
)
async def create_rate(
    hotel_id: uuid.UUID,
    body: RoomRateCreate,
    db: AsyncSession = Depends(get_db),
) -> RoomRate:
    return await catalog_service.create_rate(db, hotel_id, body)


@router.get(
    "/rates",
    response_model=list[RoomRateResponse],
    summary="List rates",
)
async def list_rates(
    hotel_id: uuid.UUID,
    room_type_id: uuid.UUID | None = Query(None, description="Filter by room type"),
    db: AsyncSession = Depends(get_db),
) -> list[RoomRate]:
    return await catalog_service.list_rates(db, hotel_id, room_type_id)


@router.patch(
    "/rates/{rate_id}",
    response_model=RoomRateResponse,
    summary="Update a rate",
)
async def update_rate(
    hotel_id: uuid.UUID,
    rate_id: uuid.UUID,
    body: RoomRateUpdate,
    db: AsyncSession = Depends(get_db),
) -> RoomRate:
    """Change a rate. Bookings already made keep the price they were sold at."""
    return await catalog_service.update_rate(db, hotel_id, rate_id, body)


# ---------------------------------------------------------------------------
# Physical rooms
# ---------------------------------------------------------------------------


@router.post(
    "/rooms",
    response_model=RoomResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a physical room",
)
async def create_room(
    hotel_id: uuid.UUID,
    body: RoomCreate,
    db: AsyncSession = Depends(get_db),
) -> Room:
    return await catalog_service.create_room(db, hotel_id, body)


@router.get(
    "/rooms",
    response_model=list[RoomResponse],
    summary="List physical rooms",
)
async def list_rooms(
    hotel_id: uuid.UUID,
    status_filter: str | None = Query(None, alias="status", description="Filter by room status"),
    room_type_id: uuid.UUID | None = Query(None, description="Filter by room type"),
    db: AsyncSession = Depends(get_db),
) -> list[Room]:
    return await catalog_service.list_rooms(db, hotel_id, status=status_filter, room_type_id=room_type_id)


@router.post(
    "/rooms/{room_id}/clean",
    response_model=RoomResponse,
    summary="Mark a room as cleaned",
)
async def mark_room_clean(
    hotel_id: uuid.UUID,
    room_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> Room:
    """Housekeeping callback: a room in ``cleaning`` becomes ``available`` again."""
    return await catalog_service.mark_room_clean(db, hotel_id, room_id)


# ---------------------------------------------------------------------------
# Availability and inventory
# ---------------------------------------------------------------------------


@router.get(
    "/availability",
    response_model=list[AvailabilityResult],
    summary="Search room availability",
)
async def availability(
    hotel_id: uuid.UUID,
    check_in: date = Query(..., description="Arrival date"),
    check_out: date = Query(..., description="Departure date"),
    adults: int = Query(1, description="Number of adults"),
    children: int = Query(0, description="Number of children"),
    room_count: int = Query(1, description="Rooms wanted of one type"),
    db: AsyncSession = Depends(get_db),
) -> list[AvailabilityResult]:
    """Room types with capacity for the party and a free room for every night of the stay."""
    results = await search_availability(
        db, hotel_id, check_in, check_out, adults, children=children, room_count=room_count
    )
    return [AvailabilityResult.model_validate(r) for r in results]


@router.get(
    "/inventory",
    response_model=list[InventoryDayResponse],
    summary="Per-date inventory calendar",
)
async def inventory(
    hotel_id: uuid.UUID,
    start_date: date = Query(..., description="First night"),
    end_date: date = Query(..., description="Day after the last night"),
    room_type_id: uuid.UUID | None = Query(None, description="Limit to one room type"),
    db: AsyncSession = Depends(get_db),
) -> list[InventoryDay]:
    return await catalog_service.get_inventory_calendar(db, hotel_id, start_date, end_date, room_type_id)


@router.put(
    "/inventory/blocks",
    response_model=list[InventoryDayResponse],
    summary="Block or unblock rooms for a date range",
)
async def block_inventory(
    hotel_id: uuid.UUID,
    body: InventoryBlockRequest,
    db: AsyncSession = Depends(get_db),
) -> list[InventoryDay]:
    """Set how many rooms of a type are out of sale on each night. ``0`` unblocks."""
    return await catalog_service.block_inventory(db, hotel_id, body)
