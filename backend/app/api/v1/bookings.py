"""Bookings API router: creation, lifecycle transitions, ledger, payments, and queries.

Notifications and housekeeping calls are queued as background tasks after
the booking change is made; their failures are logged and never reach the
caller.
"""

import uuid
from datetime import date

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db, get_housekeeping, get_notifier, get_payment_gateway
from app.booking.collaborators import PaymentGateway, WebhookNotifier, booking_event_payload, dispatch
from app.booking.state_machine import CANCELLED, CHECKED_OUT, CONFIRMED
from app.models.booking import Booking
from app.schemas.booking import (
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingStatistics,
    BookingStatusUpdate,
    CancelRequest,
    ExtraChargeCreate,
    PaymentCreate,
    PaymentInitiate,
    PaymentInitiateResponse,
    RefundSettle,
)
from app.services import booking_service

router = APIRouter(prefix="/api/v1/bookings", tags=["bookings"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _queue_notifications(
    background_tasks: BackgroundTasks,
    booking: Booking,
    notifier: WebhookNotifier,
    housekeeping: WebhookNotifier,
) -> None:
    """Queue the collaborator calls that follow a successful transition."""
    if booking.status in (CONFIRMED, CANCELLED):
        background_tasks.add_task(dispatch, notifier, f"booking.{booking.status}", booking_event_payload(booking))
    elif booking.status == CHECKED_OUT:
        for room in booking.rooms:
            if room.room_id is None:
                continue
            background_tasks.add_task(
                dispatch,
                housekeeping,
                "room.needs_cleaning",
                {
                    "room_id": str(room.room_id),
                    "room_number": room.room_number,
                    "hotel_id": str(booking.hotel_id),
                    "booking_number": booking.booking_number,
                },
            )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a booking",
)
async def create_booking(
    body: BookingCreate,
    response: Response,
    idempotency_key: str | None = Header(None, alias="Idempotency-Key", max_length=255),
    db: AsyncSession = Depends(get_db),
) -> BookingResponse:
    """Price the stay, hold the rooms for every night, and create a ``pending`` booking.

    Repeating a request with the same ``Idempotency-Key`` returns the original
    booking with ``200 OK`` and holds no further rooms.
    """
    booking, created = await booking_service.create_booking(db, body, idempotency_key=idempotency_key)
    if not created:
        response.status_code = status.HTTP_200_OK
    return BookingResponse.from_booking(booking)


@router.get(
    "",
    response_model=BookingListResponse,
    summary="List bookings",
)
async def list_bookings(
    hotel_id: uuid.UUID | None = Query(None, description="Filter by hotel"),
    status_filter: str | None = Query(None, alias="status", description="Filter by booking status"),
    payment_status: str | None = Query(None, description="Filter by payment status"),
    source: str | None = Query(None, description="Filter by booking source"),
    check_in_from: date | None = Query(None, description="Bookings with check_in >= this date"),
    check_in_to: date | None = Query(None, description="Bookings with check_in <= this date"),
    search: str | None = Query(None, description="Booking number, guest name, e-mail or phone"),
    skip: int = Query(0, ge=0, description="Pagination offset"),
    limit: int = Query(20, ge=1, le=100, description="Pagination limit"),
    db: AsyncSession = Depends(get_db),
) -> BookingListResponse:
    items, total = await booking_service.list_bookings(
        db,
        hotel_id=hotel_id,
        status=status_filter,
        payment_status=payment_status,
        source=source,
        check_in_from=check_in_from,
        check_in_to=check_in_to,
        search=search,
        skip=skip,
        limit=limit,
    )
    return BookingListResponse(items=[BookingResponse.from_booking(b) for b in items], total=total)


@router.get(
    "/statistics",
    response_model=BookingStatistics,
    summary="Booking statistics for a hotel",
)
async def booking_statistics(
    hotel_id: uuid.UUID = Query(..., description="Hotel"),
    period_start: date = Query(..., description="First arrival date counted"),
    period_end: date = Query(..., description="Day after the last arrival date counted"),
    db: AsyncSession = Depends(get_db),
) -> dict:
    return await booking_service.booking_statistics(db, hotel_id, period_start, period_end)


@router.get(
    "/by-number/{booking_number}",
    response_model=BookingResponse,
    summary="Get a booking by its booking number",
)
async def get_booking_by_number(
    booking_number: str,
    db: AsyncSession = Depends(get_db),
) -> BookingResponse:
    booking = await booking_service.get_booking_by_number(db, booking_number)
    return BookingResponse.from_booking(booking)


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Get a booking",
)
async def get_booking(
    booking_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> BookingResponse:
    booking = await booking_service.get_booking(db, booking_id)
    return BookingResponse.from_booking(booking)


@router.patch(
    "/{booking_id}/status",
    response_model=BookingResponse,
    summary="Move a booking to a new status",
)
async def update_booking_status(
    booking_id: uuid.UUID,
    body: BookingStatusUpdate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    notifier: WebhookNotifier = Depends(get_notifier),
    housekeeping: WebhookNotifier = Depends(get_housekeeping),
) -> BookingResponse:
    """Apply one lifecycle transition.

    The body is discriminated on ``status`` and carries the details that
    transition needs (check-in identity, check-out inspection and fees,
    cancellation reason).
    """
    booking = await booking_service.update_booking_status(db, booking_id, body.root)
    _queue_notifications(background_tasks, booking, notifier, housekeeping)
    return BookingResponse.from_booking(booking)


@router.post(
    "/{booking_id}/cancel",
    response_model=BookingResponse,
    summary="Cancel a booking",
)
async def cancel_booking(
    booking_id: uuid.UUID,
    body: CancelRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    notifier: WebhookNotifier = Depends(get_notifier),
    housekeeping: WebhookNotifier = Depends(get_housekeeping),
) -> BookingResponse:
    """Cancel and compute the refund from the hotel's cancellation policy."""
    booking = await booking_service.cancel_booking(
        db,
        booking_id,
        reason=body.reason,
        cancelled_by=body.cancelled_by,
        refund_percentage_override=body.refund_percentage_override,
    )
    _queue_notifications(background_tasks, booking, notifier, housekeeping)
    return BookingResponse.from_booking(booking)


@router.post(
    "/{booking_id}/charges",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Post an extra charge",
)
async def add_extra_charge(
    booking_id: uuid.UUID,
    body: ExtraChargeCreate,
    db: AsyncSession = Depends(get_db),
) -> BookingResponse:
    booking = await booking_service.add_extra_charge(db, booking_id, body)
    return BookingResponse.from_booking(booking)


@router.post(
    "/{booking_id}/payments/initiate",
    response_model=PaymentInitiateResponse,
    summary="Start an online payment",
)
async def initiate_payment(
    booking_id: uuid.UUID,
    body: PaymentInitiate,
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> PaymentInitiateResponse:
    redirect_url, amount = await booking_service.initiate_payment(db, booking_id, body, gateway)
    return PaymentInitiateResponse(redirect_url=redirect_url, amount=amount, method=body.method)


@router.post(
    "/{booking_id}/payments",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a payment",
)
async def record_payment(
    booking_id: uuid.UUID,
    body: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> BookingResponse:
    """Record a manual payment, or a gateway payment once the gateway has verified it."""
    booking = await booking_service.record_payment(db, booking_id, body, gateway)
    return BookingResponse.from_booking(booking)


@router.post(
    "/{booking_id}/refund",
    response_model=BookingResponse,
    summary="Settle a pending refund",
)
async def settle_refund(
    booking_id: uuid.UUID,
    body: RefundSettle,
    db: AsyncSession = Depends(get_db),
) -> BookingResponse:
    booking = await booking_service.settle_refund(db, booking_id, body.refund_status)
    return BookingResponse.from_booking(booking)
