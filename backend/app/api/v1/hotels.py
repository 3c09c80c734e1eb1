"""Hotels API router: multi-property administration and discount codes."""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db
from app.models.hotel import DiscountCode, Hotel
from app.schemas.hotel import (
    DiscountCodeCreate,
    DiscountCodeResponse,
    HotelCreate,
    HotelListResponse,
    HotelResponse,
)
from app.services import catalog_service

router = APIRouter(prefix="/api/v1/hotels", tags=["hotels"])


@router.post(
    "",
    response_model=HotelResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a hotel",
)
async def create_hotel(
    body: HotelCreate,
    db: AsyncSession = Depends(get_db),
) -> Hotel:
    """Create a hotel. Currency, tax, service charge and timezone default from settings."""
    return await catalog_service.create_hotel(db, body)


@router.get(
    "",
    response_model=HotelListResponse,
    summary="List hotels",
)
async def list_hotels(
    skip: int = Query(0, ge=0, description="Pagination offset"),
    limit: int = Query(20, ge=1, le=100, description="Pagination limit"),
    db: AsyncSession = Depends(get_db),
) -> dict:
    items, total = await catalog_service.list_hotels(db, skip=skip, limit=limit)
    return {"items": items, "total": total}


@router.get(
    "/{hotel_id}",
    response_model=HotelResponse,
    summary="Get a hotel",
)
async def get_hotel(
    hotel_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> Hotel:
    return await catalog_service.get_hotel(db, hotel_id)


@router.post(
    "/{hotel_id}/discount-codes",
    response_model=DiscountCodeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a discount code",
)
async def create_discount_code(
    hotel_id: uuid.UUID,
    body: DiscountCodeCreate,
    db: AsyncSession = Depends(get_db),
) -> DiscountCode:
    """Create a flat or percentage discount code. Codes are stored upper-case."""
    return await catalog_service.create_discount_code(db, hotel_id, body)
