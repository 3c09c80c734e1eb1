"""Pydantic v2 request/response schemas for hotel and discount-code endpoints."""

import uuid
from datetime import date, datetime, time
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, model_validator

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class HotelCreate(BaseModel):
    """Schema for registering a hotel. Currency, tax, and timezone fall back to settings."""

    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=255, pattern="^[a-z0-9-]+$")
    description: str | None = None
    city: str | None = Field(None, max_length=100)
    country: str | None = Field(None, max_length=100)
    currency: str | None = Field(None, min_length=3, max_length=3)
    timezone: str | None = Field(None, max_length=64)
    tax_percentage: Decimal | None = Field(None, ge=0, le=100)
    service_charge_percentage: Decimal | None = Field(None, ge=0, le=100)
    check_in_time: time = time(14, 0)
    check_out_time: time = time(12, 0)
    cancellation_policy: str = Field("free", pattern="^(free|partial|non-refundable)$")
    cancellation_deadline_hours: int = Field(48, ge=0)
    cancellation_refund_percentage: Decimal = Field(Decimal("100"), ge=0, le=100)
    late_cancellation_refund_percentage: Decimal = Field(Decimal("0"), ge=0, le=100)


class DiscountCodeCreate(BaseModel):
    """Schema for creating a discount code."""

    code: str = Field(..., min_length=1, max_length=50)
    kind: str = Field(..., pattern="^(flat|percentage)$")
    value: Decimal = Field(..., gt=0)
    valid_from: date | None = None
    valid_to: date | None = None

    @model_validator(mode="after")
    def check_values(self) -> "DiscountCodeCreate":
        """Percentages cannot exceed 100 and the validity window must be ordered."""
        if self.kind == "percentage" and self.value > 100:
            raise ValueError("percentage discounts cannot exceed 100")
        if self.valid_from is not None and self.valid_to is not None and self.valid_to < self.valid_from:
            raise ValueError("valid_to must not be before valid_from")
        return self


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class HotelResponse(BaseModel):
    """Hotel configuration returned from the API."""

    id: uuid.UUID
    name: str
    slug: str
    description: str | None = None
    city: str | None = None
    country: str | None = None
    currency: str
    timezone: str
    tax_percentage: Decimal
    service_charge_percentage: Decimal
    check_in_time: time
    check_out_time: time
    cancellation_policy: str
    cancellation_deadline_hours: int
    cancellation_refund_percentage: Decimal
    late_cancellation_refund_percentage: Decimal
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class HotelListResponse(BaseModel):
    """Paginated list of hotels."""

    items: list[HotelResponse]
    total: int


class DiscountCodeResponse(BaseModel):
    id: uuid.UUID
    hotel_id: uuid.UUID
    code: str
    kind: str
    value: Decimal
    valid_from: date | None = None
    valid_to: date | None = None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)
