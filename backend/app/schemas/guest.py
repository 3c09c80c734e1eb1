"""Pydantic v2 request/response schemas for guests."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class GuestDetails(BaseModel):
    """Guest details supplied with a booking when the guest is not yet on file."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=50)
    address: str | None = None
    city: str | None = Field(None, max_length=100)
    country: str | None = Field(None, max_length=100)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class GuestResponse(BaseModel):
    """Public guest information returned by the API."""

    id: uuid.UUID
    hotel_id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    phone: str | None = None
    city: str | None = None
    country: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
