"""Pydantic v2 request/response schemas for room types, rates, rooms, and inventory."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, model_validator

RATE_TYPE_PATTERN = "^(standard|weekend|seasonal|promotional|corporate|package)$"

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class BedConfiguration(BaseModel):
    type: str = Field(..., pattern="^(single|double|queen|king|twin|sofa-bed|bunk-bed|crib)$")
    count: int = Field(1, ge=1)


class RoomTypeCreate(BaseModel):
    """Schema for creating a room type."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    max_occupancy: int = Field(..., ge=1)
    max_adults: int = Field(..., ge=1)
    max_children: int = Field(0, ge=0)
    bed_configuration: list[BedConfiguration] = []
    base_price: Decimal = Field(..., ge=0)
    total_rooms: int = Field(..., ge=0)

    @model_validator(mode="after")
    def check_capacity(self) -> "RoomTypeCreate":
        """Adults alone cannot exceed the room's occupancy."""
        if self.max_adults > self.max_occupancy:
            raise ValueError("max_adults cannot exceed max_occupancy")
        return self


class RoomRateCreate(BaseModel):
    """Schema for creating a rate on a room type."""

    room_type_id: uuid.UUID
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    rate_type: str = Field("standard", pattern=RATE_TYPE_PATTERN)
    price: Decimal = Field(..., ge=0)
    start_date: date | None = None
    end_date: date | None = None
    days_of_week: list[int] | None = None
    min_stay: int = Field(1, ge=1)
    max_stay: int | None = Field(None, ge=1)
    is_active: bool = True
    inclusions: list[str] = []

    @model_validator(mode="after")
    def check_terms(self) -> "RoomRateCreate":
        """Validate day indexes (0 = Sunday), window order, and stay bounds."""
        if self.days_of_week is not None and any(d < 0 or d > 6 for d in self.days_of_week):
            raise ValueError("days_of_week entries must be between 0 (Sunday) and 6 (Saturday)")
        if self.start_date is not None and self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        if self.max_stay is not None and self.max_stay < self.min_stay:
            raise ValueError("max_stay must not be less than min_stay")
        return self


class RoomRateUpdate(BaseModel):
    """Partial rate update. Existing bookings keep the price they were sold at."""

    name: str | None = Field(None, min_length=1, max_length=255)
    price: Decimal | None = Field(None, ge=0)
    is_active: bool | None = None
    end_date: date | None = None

    @model_validator(mode="after")
    def check_not_null(self) -> "RoomRateUpdate":
        """Only ``end_date`` may be cleared; the other fields can be omitted but not nulled."""
        nulled = [
            f for f in ("name", "price", "is_active") if f in self.model_fields_set and getattr(self, f) is None
        ]
        if nulled:
            raise ValueError(f"{', '.join(nulled)} cannot be null")
        return self


class RoomCreate(BaseModel):
    room_type_id: uuid.UUID
    room_number: str = Field(..., min_length=1, max_length=20)
    floor: int = 0
    notes: str | None = None


class InventoryBlockRequest(BaseModel):
    """Take rooms out of sale (maintenance, owner use) for ``[start_date, end_date)``."""

    room_type_id: uuid.UUID
    start_date: date
    end_date: date
    blocked_rooms: int = Field(..., ge=0)

    @model_validator(mode="after")
    def check_dates(self) -> "InventoryBlockRequest":
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class RoomTypeResponse(BaseModel):
    id: uuid.UUID
    hotel_id: uuid.UUID
    name: str
    description: str | None = None
    max_occupancy: int
    max_adults: int
    max_children: int
    bed_configuration: list | None = None
    base_price: Decimal
    currency: str
    total_rooms: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoomRateResponse(BaseModel):
    id: uuid.UUID
    hotel_id: uuid.UUID
    room_type_id: uuid.UUID
    name: str
    description: str | None = None
    rate_type: str
    price: Decimal
    currency: str
    start_date: date | None = None
    end_date: date | None = None
    days_of_week: list[int] | None = None
    min_stay: int
    max_stay: int | None = None
    is_active: bool
    inclusions: list | None = None

    model_config = ConfigDict(from_attributes=True)


class RoomResponse(BaseModel):
    id: uuid.UUID
    hotel_id: uuid.UUID
    room_type_id: uuid.UUID
    room_number: str
    floor: int
    status: str
    notes: str | None = None
    last_cleaned_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class InventoryDayResponse(BaseModel):
    room_type_id: uuid.UUID
    room_type_name: str
    stay_date: date
    total: int
    booked: int
    blocked: int
    available: int

    model_config = ConfigDict(from_attributes=True)
