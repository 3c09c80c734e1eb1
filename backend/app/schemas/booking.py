"""Pydantic v2 request/response schemas for booking endpoints."""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, RootModel, model_validator

from app.models.booking import Booking
from app.schemas.guest import GuestDetails, GuestResponse
from app.schemas.room import RoomRateResponse, RoomTypeResponse

SOURCE_PATTERN = "^(direct|website|phone|walk-in|booking.com|expedia|airbnb|agoda|other)$"
CHARGE_CATEGORY_PATTERN = "^(room-service|minibar|laundry|restaurant|damage|late-checkout|adjustment|other)$"
PAYMENT_METHOD_PATTERN = "^(cash|card|bank-transfer|cheque|room-charge|esewa|khalti|ime-pay)$"
GATEWAY_METHOD_PATTERN = "^(esewa|khalti|ime-pay)$"

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class RoomSelectionIn(BaseModel):
    """One line of a booking request: a room type, the rate to sell it at, and how many."""

    room_type_id: uuid.UUID
    rate_id: uuid.UUID
    quantity: int = Field(1, ge=1)


class BookingCreate(BaseModel):
    """Schema for creating a new booking.

    Exactly one of ``guest_id`` (a guest already on file) or ``guest_details``
    (matched to an existing guest by e-mail, otherwise created) is required.
    """

    hotel_id: uuid.UUID
    room_selections: list[RoomSelectionIn] = Field(..., min_length=1)
    check_in: date
    check_out: date
    guest_id: uuid.UUID | None = None
    guest_details: GuestDetails | None = None
    adults: int = Field(1, ge=1)
    children: int = Field(0, ge=0)
    discount_code: str | None = Field(None, max_length=50)
    source: str = Field("direct", pattern=SOURCE_PATTERN)
    special_requests: str | None = None
    internal_notes: str | None = None

    @model_validator(mode="after")
    def check_guest(self) -> "BookingCreate":
        if (self.guest_id is None) == (self.guest_details is None):
            raise ValueError("Provide exactly one of guest_id or guest_details")
        return self


class ConfirmTransition(BaseModel):
    """``pending -> confirmed``. Needs a payment unless ``manual_override`` is set."""

    status: Literal["confirmed"]
    manual_override: bool = False
    performed_by: str | None = None


class CheckInTransition(BaseModel):
    """``confirmed -> checked-in``. ``room_ids`` picks rooms; otherwise clean rooms are assigned."""

    status: Literal["checked-in"]
    checked_in_by: str = Field(..., min_length=1)
    id_verified: bool
    id_type: str | None = Field(None, pattern="^(passport|citizenship|driving-license|national-id|other)$")
    id_number: str | None = None
    vehicle_number: str | None = None
    key_card_numbers: list[str] = []
    room_ids: list[uuid.UUID] | None = None


class CheckOutTransition(BaseModel):
    """``checked-in -> checked-out``. Fees are posted to the charge ledger before closing."""

    status: Literal["checked-out"]
    checked_out_by: str = Field(..., min_length=1)
    room_inspected: bool
    minibar_charges: Decimal = Field(Decimal("0"), ge=0)
    damage_charges: Decimal = Field(Decimal("0"), ge=0)
    late_checkout_fee: Decimal = Field(Decimal("0"), ge=0)
    notes: str | None = None


class CancelTransition(BaseModel):
    status: Literal["cancelled"]
    reason: str = Field(..., min_length=1)
    cancelled_by: str = Field("guest", min_length=1)
    refund_percentage_override: Decimal | None = Field(None, ge=0, le=100)


class NoShowTransition(BaseModel):
    status: Literal["no-show"]
    performed_by: str | None = None


StatusTransition = Annotated[
    Union[ConfirmTransition, CheckInTransition, CheckOutTransition, CancelTransition, NoShowTransition],
    Field(discriminator="status"),
]


class BookingStatusUpdate(RootModel[StatusTransition]):
    """Target status plus the details that transition needs, discriminated on ``status``."""


class CancelRequest(BaseModel):
    reason: str = Field(..., min_length=1)
    cancelled_by: str = Field("guest", min_length=1)
    refund_percentage_override: Decimal | None = Field(None, ge=0, le=100)


class ExtraChargeCreate(BaseModel):
    """A ledger entry. Negative amounts are corrections and must use ``adjustment``."""

    category: str = Field(..., pattern=CHARGE_CATEGORY_PATTERN)
    description: str = Field(..., min_length=1, max_length=255)
    amount: Decimal
    quantity: int = Field(1, ge=1)
    charge_date: date | None = None


class PaymentCreate(BaseModel):
    """Record a payment.

    Manual methods are recorded as given. Gateway methods (eSewa, Khalti,
    IME Pay) need the gateway ``token``; the amount recorded is the one the
    gateway verifies.
    """

    amount: Decimal = Field(..., gt=0)
    method: str = Field(..., pattern=PAYMENT_METHOD_PATTERN)
    token: str | None = None
    transaction_id: str | None = Field(None, max_length=255)
    processed_by: str | None = Field(None, max_length=255)

    @model_validator(mode="after")
    def check_token(self) -> "PaymentCreate":
        if self.method in {"esewa", "khalti", "ime-pay"} and not self.token:
            raise ValueError(f"A gateway token is required for {self.method} payments")
        return self


class PaymentInitiate(BaseModel):
    """Start an online payment. ``amount`` defaults to what is still due."""

    method: str = Field(..., pattern=GATEWAY_METHOD_PATTERN)
    amount: Decimal | None = Field(None, gt=0)


class RefundSettle(BaseModel):
    refund_status: str = Field(..., pattern="^(processed|failed)$")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class AvailabilityResult(BaseModel):
    """A room type that can host the party for every night of the stay."""

    room_type: RoomTypeResponse
    available_count: int
    rates: list[RoomRateResponse]
    lowest_rate: Decimal | None = None
    total_price: Decimal | None = None

    model_config = ConfigDict(from_attributes=True)


class BookedRoomResponse(BaseModel):
    id: uuid.UUID
    room_type_id: uuid.UUID
    rate_id: uuid.UUID
    room_id: uuid.UUID | None = None
    room_number: str | None = None
    room_type_name: str
    rate_name: str
    rate_type: str
    price_per_night: Decimal
    total_price: Decimal

    model_config = ConfigDict(from_attributes=True)


class PricingResponse(BaseModel):
    """The booking's price snapshot, refreshed as charges and payments are posted."""

    currency: str
    room_total: Decimal
    tax_percentage: Decimal
    tax_amount: Decimal
    service_charge_percentage: Decimal
    service_charge: Decimal
    discount: Decimal
    discount_code: str | None = None
    extra_charges_total: Decimal
    subtotal: Decimal
    grand_total: Decimal
    amount_paid: Decimal
    amount_due: Decimal

    model_config = ConfigDict(from_attributes=True)


class ExtraChargeResponse(BaseModel):
    id: uuid.UUID
    category: str
    description: str
    amount: Decimal
    quantity: int
    total: Decimal
    charge_date: date
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PaymentResponse(BaseModel):
    id: uuid.UUID
    payment_number: str
    amount: Decimal
    method: str
    status: str
    transaction_id: str | None = None
    failure_reason: str | None = None
    processed_by: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PaymentInitiateResponse(BaseModel):
    redirect_url: str
    amount: Decimal
    method: str


class CheckInDetails(BaseModel):
    checked_in_at: datetime
    checked_in_by: str
    id_verified: bool
    id_type: str | None = None
    id_number: str | None = None
    vehicle_number: str | None = None
    key_card_numbers: list[str] | None = None
    early_check_in: bool

    model_config = ConfigDict(from_attributes=True)


class CheckOutDetails(BaseModel):
    checked_out_at: datetime
    checked_out_by: str
    room_inspected: bool
    minibar_charges: Decimal
    damage_charges: Decimal
    late_checkout_fee: Decimal
    notes: str | None = None
    released_nights: int

    model_config = ConfigDict(from_attributes=True)


class CancellationDetails(BaseModel):
    cancelled_at: datetime
    cancelled_by: str
    reason: str
    policy_type: str
    hours_before_check_in: Decimal
    refund_percentage: Decimal
    refund_amount: Decimal
    refund_status: str
    refund_settled_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


# Booking state: one variant per status, carrying only the records valid for it.


class PendingState(BaseModel):
    status: Literal["pending"] = "pending"


class ConfirmedState(BaseModel):
    status: Literal["confirmed"] = "confirmed"
    confirmed_at: datetime | None = None


class CheckedInState(BaseModel):
    status: Literal["checked-in"] = "checked-in"
    check_in_details: CheckInDetails


class CheckedOutState(BaseModel):
    status: Literal["checked-out"] = "checked-out"
    check_in_details: CheckInDetails
    check_out_details: CheckOutDetails


class CancelledState(BaseModel):
    status: Literal["cancelled"] = "cancelled"
    cancellation: CancellationDetails


class NoShowState(BaseModel):
    status: Literal["no-show"] = "no-show"


BookingState = Annotated[
    Union[PendingState, ConfirmedState, CheckedInState, CheckedOutState, CancelledState, NoShowState],
    Field(discriminator="status"),
]


def booking_state(booking: Booking) -> BaseModel:
    """Build the state variant matching ``booking.status``."""
    if booking.status == "confirmed":
        return ConfirmedState(confirmed_at=booking.confirmed_at)
    if booking.status == "checked-in":
        return CheckedInState(check_in_details=CheckInDetails.model_validate(booking.check_in_record))
    if booking.status == "checked-out":
        return CheckedOutState(
            check_in_details=CheckInDetails.model_validate(booking.check_in_record),
            check_out_details=CheckOutDetails.model_validate(booking.check_out_record),
        )
    if booking.status == "cancelled":
        return CancelledState(cancellation=CancellationDetails.model_validate(booking.cancellation))
    if booking.status == "no-show":
        return NoShowState()
    return PendingState()


class BookingResponse(BaseModel):
    """Full booking view returned by every booking endpoint."""

    id: uuid.UUID
    hotel_id: uuid.UUID
    booking_number: str
    status: str
    payment_status: str
    check_in: date
    check_out: date
    nights: int
    adults: int
    children: int
    source: str
    special_requests: str | None = None
    internal_notes: str | None = None
    guest: GuestResponse
    rooms: list[BookedRoomResponse]
    pricing: PricingResponse
    extra_charges: list[ExtraChargeResponse]
    payments: list[PaymentResponse]
    state: BookingState
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingResponse":
        return cls(
            id=booking.id,
            hotel_id=booking.hotel_id,
            booking_number=booking.booking_number,
            status=booking.status,
            payment_status=booking.payment_status,
            check_in=booking.check_in,
            check_out=booking.check_out,
            nights=booking.nights,
            adults=booking.adults,
            children=booking.children,
            source=booking.source,
            special_requests=booking.special_requests,
            internal_notes=booking.internal_notes,
            guest=GuestResponse.model_validate(booking.guest),
            rooms=[BookedRoomResponse.model_validate(r) for r in booking.rooms],
            pricing=PricingResponse.model_validate(booking),
            extra_charges=[ExtraChargeResponse.model_validate(c) for c in booking.extra_charges],
            payments=[PaymentResponse.model_validate(p) for p in booking.payments],
            state=booking_state(booking),
            created_at=booking.created_at,
            updated_at=booking.updated_at,
        )


class BookingListResponse(BaseModel):
    """Paginated list of bookings."""

    items: list[BookingResponse]
    total: int


class BookingStatistics(BaseModel):
    """Counts and ratios for a hotel over ``[period_start, period_end)``."""

    hotel_id: uuid.UUID
    period_start: date
    period_end: date
    total_bookings: int
    by_status: dict[str, int]
    upcoming_check_ins: int
    upcoming_check_outs: int
    cancellations: int
    no_shows: int
    average_stay_nights: Decimal
    occupancy_rate: Decimal
