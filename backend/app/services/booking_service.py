"""Booking service: creates bookings and drives them through their lifecycle.

Every mutation runs inside a SAVEPOINT, so an operation that fails part-way
leaves the booking and the inventory counters exactly as they were.
"""

import logging
import uuid
from collections import Counter
from datetime import date, datetime, timedelta
from decimal import Decimal

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.booking.availability import ensure_rate_applicable, rate_terms, stay_dates, stay_nights
from app.booking.cancellation import resolve_refund
from app.booking.collaborators import GATEWAY_METHODS, GatewayError, PaymentGateway
from app.booking.errors import GatewayUnavailable, NotFound, PolicyViolation, PrematureCheckIn, ValidationError
from app.booking.inventory import hold_rooms, release_rooms
from app.booking.ledger import post_charge, recompute_totals
from app.booking.pricing import ZERO, RoomSelection, calculate_pricing, round_money
from app.booking.state_machine import (
    CANCELLED,
    CHECKED_IN,
    CHECKED_OUT,
    CONFIRMABLE_PAYMENT_STATUSES,
    CONFIRMED,
    NO_SHOW,
    OPEN_FOR_CHARGES,
    PAYMENT_FAILED,
    PAYMENT_PENDING,
    PAYMENT_REFUNDED,
    PENDING,
    ensure_transition,
)
from app.config import settings
from app.database import utcnow
from app.models.booking import (
    BookedRoom,
    Booking,
    BookingCancellation,
    CheckInRecord,
    CheckOutRecord,
    Payment,
)
from app.models.guest import Guest
from app.models.room import Room, RoomRate, RoomType
from app.schemas.booking import (
    BookingCreate,
    CancelTransition,
    CheckInTransition,
    CheckOutTransition,
    ConfirmTransition,
    ExtraChargeCreate,
    NoShowTransition,
    PaymentCreate,
    PaymentInitiate,
)
from app.services.catalog_service import (
    ROOM_AVAILABLE,
    ROOM_CLEANING,
    ROOM_OCCUPIED,
    active_discounts,
    cancellation_policy,
    get_hotel,
    get_rate,
    get_room_type,
    hotel_now,
)

logger = logging.getLogger(__name__)

UPCOMING_WINDOW_DAYS = 7


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _reference(prefix: str, today: date) -> str:
    return f"{prefix}-{today:%Y%m%d}-{uuid.uuid4().hex[:6].upper()}"


def _room_quantities(booking: Booking) -> Counter:
    return Counter(room.room_type_id for room in booking.rooms)


async def _find_by_idempotency_key(db: AsyncSession, hotel_id: uuid.UUID, key: str) -> Booking | None:
    result = await db.execute(
        select(Booking)
        .where(Booking.hotel_id == hotel_id, Booking.idempotency_key == key)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _find_guest(db: AsyncSession, hotel_id: uuid.UUID, email: str) -> Guest | None:
    result = await db.execute(
        select(Guest).where(Guest.hotel_id == hotel_id, func.lower(Guest.email) == email.lower())
    )
    return result.scalar_one_or_none()


async def _resolve_guest(db: AsyncSession, hotel_id: uuid.UUID, data: BookingCreate) -> Guest:
    """Return the guest on file, matching new guest details to an existing guest by e-mail."""
    if data.guest_id is not None:
        guest = await db.get(Guest, data.guest_id)
        if guest is None or guest.hotel_id != hotel_id:
            raise NotFound("Guest", data.guest_id)
        return guest

    details = data.guest_details
    guest = await _find_guest(db, hotel_id, details.email)
    if guest is not None:
        return guest

    guest = Guest(
        hotel_id=hotel_id,
        first_name=details.first_name,
        last_name=details.last_name,
        email=details.email.lower(),
        phone=details.phone,
        address=details.address,
        city=details.city,
        country=details.country,
    )
    try:
        async with db.begin_nested():
            db.add(guest)
    except IntegrityError:
        # Another booking registered the same e-mail first.
        guest = await _find_guest(db, hotel_id, details.email)
        if guest is None:
            raise
    else:
        logger.info("Registered guest %s for hotel %s", guest.email, hotel_id)
    return guest


async def _assign_rooms(db: AsyncSession, booking: Booking, room_ids: list[uuid.UUID] | None) -> None:
    """Take a clean physical room for every booked room.

    Each claim is ``UPDATE rooms SET status='occupied' WHERE status='available'``,
    so two front-desk operators can never hand out the same room.
    """
    if room_ids is not None and len(room_ids) != len(booking.rooms):
        raise ValidationError(
            f"Expected {len(booking.rooms)} room id(s), got {len(room_ids)}", field="room_ids"
        )

    async def claim(room_id: uuid.UUID) -> bool:
        result = await db.execute(
            update(Room)
            .where(Room.id == room_id, Room.status == ROOM_AVAILABLE)
            .values(status=ROOM_OCCUPIED)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    taken: set[uuid.UUID] = set()
    for index, booked in enumerate(booking.rooms):
        if room_ids is not None:
            room = await db.get(Room, room_ids[index])
            if room is None or room.hotel_id != booking.hotel_id:
                raise NotFound("Room", room_ids[index])
            if room.room_type_id != booked.room_type_id:
                raise ValidationError(
                    f"Room {room.room_number} is not a '{booked.room_type_name}' room", field="room_ids"
                )
            if room.id in taken or not await claim(room.id):
                raise PolicyViolation(f"Room {room.room_number} is not available", field="room_ids")
        else:
            result = await db.execute(
                select(Room.id, Room.room_number)
                .where(
                    Room.hotel_id == booking.hotel_id,
                    Room.room_type_id == booked.room_type_id,
                    Room.status == ROOM_AVAILABLE,
                )
                .order_by(Room.floor, Room.room_number)
            )
            for candidate in result.all():
                if candidate.id not in taken and await claim(candidate.id):
                    room = candidate
                    break
            else:
                raise PolicyViolation(
                    f"No clean '{booked.room_type_name}' room is available to assign", field="room_ids"
                )
        taken.add(room.id)
        booked.room_id = room.id
        booked.room_number = room.room_number


async def _release_to_cleaning(db: AsyncSession, booking: Booking) -> list[str]:
    """Move the booking's occupied rooms to ``cleaning``; returns their room numbers."""
    released: list[str] = []
    for booked in booking.rooms:
        if booked.room_id is None:
            continue
        result = await db.execute(
            update(Room)
            .where(Room.id == booked.room_id, Room.status == ROOM_OCCUPIED)
            .values(status=ROOM_CLEANING)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            released.append(booked.room_number)
        else:
            logger.warning("Room %s was not occupied at check-out of %s", booked.room_number, booking.booking_number)
    return released


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def get_booking(db: AsyncSession, booking_id: uuid.UUID) -> Booking:
    """Load a booking with its rooms, ledger, payments, and lifecycle records."""
    result = await db.execute(
        select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if booking is None:
        raise NotFound("Booking", booking_id)
    return booking


async def get_booking_by_number(db: AsyncSession, booking_number: str) -> Booking:
    result = await db.execute(
        select(Booking)
        .where(Booking.booking_number == booking_number.upper())
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if booking is None:
        raise NotFound("Booking", booking_number)
    return booking


async def list_bookings(
    db: AsyncSession,
    *,
    hotel_id: uuid.UUID | None = None,
    status: str | None = None,
    payment_status: str | None = None,
    source: str | None = None,
    check_in_from: date | None = None,
    check_in_to: date | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Booking], int]:
    """Return one page of bookings matching the filters, newest first, and the total count."""
    filters = []
    if hotel_id is not None:
        filters.append(Booking.hotel_id == hotel_id)
    if status is not None:
        filters.append(Booking.status == status)
    if payment_status is not None:
        filters.append(Booking.payment_status == payment_status)
    if source is not None:
        filters.append(Booking.source == source)
    if check_in_from is not None:
        filters.append(Booking.check_in >= check_in_from)
    if check_in_to is not None:
        filters.append(Booking.check_in <= check_in_to)
    if search:
        pattern = f"%{search.strip()}%"
        filters.append(
            or_(
                Booking.booking_number.ilike(pattern),
                Guest.first_name.ilike(pattern),
                Guest.last_name.ilike(pattern),
                Guest.email.ilike(pattern),
                Guest.phone.ilike(pattern),
            )
        )

    count_query = select(func.count()).select_from(Booking).join(Guest, Booking.guest_id == Guest.id)
    total = (await db.execute(count_query.where(*filters))).scalar_one()

    items_query = (
        select(Booking)
        .join(Guest, Booking.guest_id == Guest.id)
        .where(*filters)
        .order_by(Booking.created_at.desc())
        .offset(skip)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(items_query)
    return list(result.scalars().all()), total


async def booking_statistics(
    db: AsyncSession,
    hotel_id: uuid.UUID,
    period_start: date,
    period_end: date,
    today: date | None = None,
) -> dict:
    """Counts, average stay and occupancy for bookings arriving in ``[period_start, period_end)``.

    Occupancy is sold room-nights inside the period over the hotel's room
    capacity for the period, as a percentage. Cancelled and no-show bookings
    do not occupy rooms.
    """
    hotel = await get_hotel(db, hotel_id)
    if period_end <= period_start:
        raise ValidationError("period_end must be after period_start", field="period_end")
    today = today or hotel_now(hotel).date()

    counts = await db.execute(
        select(Booking.status, func.count())
        .where(
            Booking.hotel_id == hotel_id,
            Booking.check_in >= period_start,
            Booking.check_in < period_end,
        )
        .group_by(Booking.status)
    )
    by_status = {status: count for status, count in counts.all()}

    avg_nights = (
        await db.execute(
            select(func.avg(Booking.nights)).where(
                Booking.hotel_id == hotel_id,
                Booking.check_in >= period_start,
                Booking.check_in < period_end,
                Booking.status.notin_([CANCELLED, NO_SHOW]),
            )
        )
    ).scalar_one()

    window_end = today + timedelta(days=UPCOMING_WINDOW_DAYS)
    upcoming_check_ins = (
        await db.execute(
            select(func.count()).select_from(Booking).where(
                Booking.hotel_id == hotel_id,
                Booking.status.in_([PENDING, CONFIRMED]),
                Booking.check_in >= today,
                Booking.check_in < window_end,
            )
        )
    ).scalar_one()
    upcoming_check_outs = (
        await db.execute(
            select(func.count()).select_from(Booking).where(
                Booking.hotel_id == hotel_id,
                Booking.status == CHECKED_IN,
                Booking.check_out >= today,
                Booking.check_out < window_end,
            )
        )
    ).scalar_one()

    # Room-nights sold inside the period
    stays = await db.execute(
        select(Booking.check_in, Booking.check_out, func.count(BookedRoom.id))
        .join(BookedRoom, BookedRoom.booking_id == Booking.id)
        .where(
            Booking.hotel_id == hotel_id,
            Booking.check_in < period_end,
            Booking.check_out > period_start,
            Booking.status.notin_([CANCELLED, NO_SHOW]),
        )
        .group_by(Booking.id, Booking.check_in, Booking.check_out)
    )
    sold = 0
    for check_in, check_out, rooms in stays.all():
        overlap = (min(check_out, period_end) - max(check_in, period_start)).days
        sold += max(overlap, 0) * rooms
    capacity_rooms = (
        await db.execute(select(func.coalesce(func.sum(RoomType.total_rooms), 0)).where(RoomType.hotel_id == hotel_id))
    ).scalar_one()
    capacity = capacity_rooms * (period_end - period_start).days
    occupancy = Decimal(sold * 100) / Decimal(capacity) if capacity else ZERO

    return {
        "hotel_id": hotel_id,
        "period_start": period_start,
        "period_end": period_end,
        "total_bookings": sum(by_status.values()),
        "by_status": by_status,
        "upcoming_check_ins": upcoming_check_ins,
        "upcoming_check_outs": upcoming_check_outs,
        "cancellations": by_status.get(CANCELLED, 0),
        "no_shows": by_status.get(NO_SHOW, 0),
        "average_stay_nights": Decimal(str(avg_nights or 0)).quantize(Decimal("0.01")),
        "occupancy_rate": occupancy.quantize(Decimal("0.01")),
    }


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


async def create_booking(
    db: AsyncSession,
    data: BookingCreate,
    *,
    idempotency_key: str | None = None,
    now: datetime | None = None,
) -> tuple[Booking, bool]:
    """Price the stay, hold inventory for every night, and store a ``pending`` booking.

    Returns ``(booking, created)``. When ``idempotency_key`` was already used
    for this hotel the earlier booking is returned with ``created=False`` and
    no inventory is touched.
    """
    hotel = await get_hotel(db, data.hotel_id)
    if idempotency_key:
        existing = await _find_by_idempotency_key(db, hotel.id, idempotency_key)
        if existing is not None:
            logger.info("Idempotency key %s replayed; returning %s", idempotency_key, existing.booking_number)
            return existing, False

    nights = stay_nights(data.check_in, data.check_out)
    if not data.room_selections:
        raise ValidationError("At least one room must be selected", field="room_selections")
    today = (now or hotel_now(hotel)).date()
    if data.check_in < today:
        raise ValidationError("check_in cannot be in the past", field="check_in")

    # Re-validate every selection against the live catalog
    room_types: dict[uuid.UUID, RoomType] = {}
    rates: dict[uuid.UUID, RoomRate] = {}
    selections: list[RoomSelection] = []
    held: dict[uuid.UUID, tuple[RoomType, int]] = {}
    for line in data.room_selections:
        room_type = room_types.get(line.room_type_id) or await get_room_type(db, line.room_type_id, hotel.id)
        rate = await get_rate(db, line.rate_id)
        if rate.room_type_id != room_type.id:
            raise ValidationError(
                f"Rate '{rate.name}' is not offered for '{room_type.name}'", field="room_selections"
            )
        ensure_rate_applicable(rate, data.check_in, data.check_out)
        room_types[room_type.id] = room_type
        rates[rate.id] = rate
        selections.append(RoomSelection(rate=rate_terms(rate), quantity=line.quantity))
        _, quantity = held.get(room_type.id, (room_type, 0))
        held[room_type.id] = (room_type, quantity + line.quantity)

    max_occupancy = sum(room_types[rt].max_occupancy * qty for rt, (_, qty) in held.items())
    max_adults = sum(room_types[rt].max_adults * qty for rt, (_, qty) in held.items())
    if data.adults + data.children > max_occupancy or data.adults > max_adults:
        raise ValidationError(
            f"The selected rooms sleep at most {max_occupancy} guests ({max_adults} adults)", field="adults"
        )

    discounts = await active_discounts(db, hotel.id, today) if data.discount_code else None
    pricing = calculate_pricing(
        selections,
        nights,
        tax_percentage=hotel.tax_percentage,
        service_charge_percentage=hotel.service_charge_percentage,
        currency=hotel.currency,
        discount_code=data.discount_code,
        discounts=discounts,
    )
    guest = await _resolve_guest(db, hotel.id, data)

    booking = Booking(
        hotel_id=hotel.id,
        guest_id=guest.id,
        booking_number=_reference(settings.booking_number_prefix, today),
        idempotency_key=idempotency_key,
        check_in=data.check_in,
        check_out=data.check_out,
        nights=nights,
        adults=data.adults,
        children=data.children,
        status=PENDING,
        payment_status=PAYMENT_PENDING,
        source=data.source,
        special_requests=data.special_requests,
        internal_notes=data.internal_notes,
        currency=pricing.currency,
        room_total=pricing.room_total,
        tax_percentage=pricing.tax_percentage,
        tax_amount=pricing.tax_amount,
        service_charge_percentage=pricing.service_charge_percentage,
        service_charge=pricing.service_charge,
        discount=pricing.discount,
        discount_code=pricing.discount_code,
        extra_charges_total=pricing.extra_charges_total,
        subtotal=pricing.subtotal,
        grand_total=pricing.grand_total,
        amount_paid=pricing.amount_paid,
        amount_due=pricing.amount_due,
        rooms=[
            BookedRoom(
                position=position,
                room_type_id=terms.room_type_id,
                rate_id=terms.rate_id,
                room_type_name=room_types[terms.room_type_id].name,
                rate_name=terms.name,
                rate_type=rates[terms.rate_id].rate_type,
                price_per_night=price_per_night,
                total_price=stay_price,
            )
            for position, (terms, price_per_night, stay_price) in enumerate(pricing.room_lines)
        ],
        extra_charges=[],
        payments=[],
        cancellation=None,
        check_in_record=None,
        check_out_record=None,
    )

    try:
        async with db.begin_nested():
            await hold_rooms(db, held, data.check_in, data.check_out)
            db.add(booking)
    except IntegrityError:
        if not idempotency_key:
            raise
        # A concurrent request with the same key won; its hold stands, ours was rolled back.
        existing = await _find_by_idempotency_key(db, hotel.id, idempotency_key)
        if existing is None:
            raise
        logger.info("Idempotency key %s raced; returning %s", idempotency_key, existing.booking_number)
        return existing, False

    logger.info(
        "Created booking %s for %s: %d room(s), %s..%s, total %s %s",
        booking.booking_number,
        guest.email,
        len(booking.rooms),
        booking.check_in,
        booking.check_out,
        booking.grand_total,
        booking.currency,
    )
    return await get_booking(db, booking.id), True


# ---------------------------------------------------------------------------
# Lifecycle transitions
# ---------------------------------------------------------------------------


async def confirm_booking(
    db: AsyncSession,
    booking_id: uuid.UUID,
    *,
    manual_override: bool = False,
    performed_by: str | None = None,
) -> Booking:
    """``pending -> confirmed``; needs a partial or full payment unless overridden."""
    booking = await get_booking(db, booking_id)
    ensure_transition(booking.status, CONFIRMED)
    if booking.payment_status not in CONFIRMABLE_PAYMENT_STATUSES and not manual_override:
        raise PolicyViolation(
            "A booking needs a partial or full payment before it can be confirmed", field="payment_status"
        )

    async with db.begin_nested():
        booking.status = CONFIRMED
        booking.confirmed_at = utcnow()
    logger.info(
        "Booking %s confirmed%s",
        booking.booking_number,
        f" manually by {performed_by}" if manual_override and performed_by else "",
    )
    return booking


async def check_in_booking(
    db: AsyncSession,
    booking_id: uuid.UUID,
    details: CheckInTransition,
    *,
    now: datetime | None = None,
) -> Booking:
    """``confirmed -> checked-in``; verifies identity, timing, and assigns physical rooms."""
    booking = await get_booking(db, booking_id)
    ensure_transition(booking.status, CHECKED_IN)
    if not details.id_verified:
        raise PolicyViolation("The guest's identity must be verified before check-in", field="id_verified")

    hotel = await get_hotel(db, booking.hotel_id)
    today = (now or hotel_now(hotel)).date()
    early = today < booking.check_in
    if early and not settings.allow_early_check_in:
        raise PrematureCheckIn(f"Check-in opens on {booking.check_in.isoformat()}", field="check_in")
    if today >= booking.check_out:
        raise PolicyViolation("The stay has already ended", field="check_in")

    async with db.begin_nested():
        await _assign_rooms(db, booking, details.room_ids)
        booking.check_in_record = CheckInRecord(
            checked_in_at=utcnow(),
            checked_in_by=details.checked_in_by,
            id_verified=details.id_verified,
            id_type=details.id_type,
            id_number=details.id_number,
            vehicle_number=details.vehicle_number,
            key_card_numbers=details.key_card_numbers,
            early_check_in=early,
        )
        booking.status = CHECKED_IN

    logger.info(
        "Booking %s checked in by %s (rooms %s)",
        booking.booking_number,
        details.checked_in_by,
        ", ".join(r.room_number for r in booking.rooms if r.room_number),
    )
    return booking


async def check_out_booking(
    db: AsyncSession,
    booking_id: uuid.UUID,
    details: CheckOutTransition,
    *,
    now: datetime | None = None,
) -> Booking:
    """``checked-in -> checked-out``.

    Check-out fees go through the charge ledger first, rooms move to
    ``cleaning``, and on an early departure the unused nights go back to
    inventory.
    """
    booking = await get_booking(db, booking_id)
    ensure_transition(booking.status, CHECKED_OUT)
    if not details.room_inspected:
        raise PolicyViolation("Rooms must be inspected before check-out", field="room_inspected")

    hotel = await get_hotel(db, booking.hotel_id)
    today = (now or hotel_now(hotel)).date()
    unused_nights = (
        stay_dates(max(today, booking.check_in), booking.check_out) if today < booking.check_out else []
    )

    async with db.begin_nested():
        # Fees below one currency unit round to zero and are not posted
        fees = (
            ("minibar", "Minibar", round_money(details.minibar_charges, booking.currency)),
            ("damage", "Damage", round_money(details.damage_charges, booking.currency)),
            ("late-checkout", "Late check-out fee", round_money(details.late_checkout_fee, booking.currency)),
        )
        for category, description, amount in fees:
            if amount > 0:
                post_charge(booking, category=category, description=description, amount=amount, charge_date=today)
        await release_rooms(db, _room_quantities(booking), unused_nights)
        cleaning = await _release_to_cleaning(db, booking)
        booking.check_out_record = CheckOutRecord(
            checked_out_at=utcnow(),
            checked_out_by=details.checked_out_by,
            room_inspected=details.room_inspected,
            minibar_charges=round_money(details.minibar_charges, booking.currency),
            damage_charges=round_money(details.damage_charges, booking.currency),
            late_checkout_fee=round_money(details.late_checkout_fee, booking.currency),
            notes=details.notes,
            released_nights=len(unused_nights),
        )
        booking.status = CHECKED_OUT

    logger.info(
        "Booking %s checked out; %d room(s) to cleaning, %d unused night(s) released, due %s",
        booking.booking_number,
        len(cleaning),
        len(unused_nights),
        booking.amount_due,
    )
    return booking


async def cancel_booking(
    db: AsyncSession,
    booking_id: uuid.UUID,
    *,
    reason: str,
    cancelled_by: str = "guest",
    refund_percentage_override: Decimal | None = None,
    now: datetime | None = None,
) -> Booking:
    """``pending|confirmed -> cancelled``: compute the refund and give the nights back."""
    booking = await get_booking(db, booking_id)
    ensure_transition(booking.status, CANCELLED)
    if not reason.strip():
        raise ValidationError("A cancellation reason is required", field="reason")

    hotel = await get_hotel(db, booking.hotel_id)
    policy = cancellation_policy(hotel)
    decision = resolve_refund(
        policy,
        check_in=booking.check_in,
        check_in_time=hotel.check_in_time,
        now=now or hotel_now(hotel),
        amount_paid=booking.amount_paid,
        currency=booking.currency,
        refund_percentage_override=refund_percentage_override,
    )

    async with db.begin_nested():
        await release_rooms(db, _room_quantities(booking), stay_dates(booking.check_in, booking.check_out))
        booking.cancellation = BookingCancellation(
            cancelled_at=utcnow(),
            cancelled_by=cancelled_by,
            reason=reason.strip(),
            policy_type=policy.type,
            hours_before_check_in=decision.hours_before_check_in,
            refund_percentage=decision.refund_percentage,
            refund_amount=decision.refund_amount,
            refund_status=decision.refund_status,
        )
        booking.status = CANCELLED
        if booking.amount_paid > 0 and decision.refund_amount == booking.amount_paid:
            booking.payment_status = PAYMENT_REFUNDED

    logger.info(
        "Booking %s cancelled %sh before check-in (%s policy): refund %s of %s paid",
        booking.booking_number,
        decision.hours_before_check_in,
        policy.type,
        decision.refund_amount,
        booking.amount_paid,
    )
    return booking


async def mark_no_show(
    db: AsyncSession,
    booking_id: uuid.UUID,
    *,
    performed_by: str | None = None,
    now: datetime | None = None,
) -> Booking:
    """``confirmed -> no-show`` once the arrival date has passed; every night goes back to inventory."""
    booking = await get_booking(db, booking_id)
    ensure_transition(booking.status, NO_SHOW)
    hotel = await get_hotel(db, booking.hotel_id)
    today = (now or hotel_now(hotel)).date()
    if today <= booking.check_in:
        raise PolicyViolation(
            "A no-show can only be recorded after the arrival date has passed", field="status"
        )

    async with db.begin_nested():
        await release_rooms(db, _room_quantities(booking), stay_dates(booking.check_in, booking.check_out))
        booking.status = NO_SHOW
    logger.info("Booking %s marked no-show by %s", booking.booking_number, performed_by or "system")
    return booking


async def update_booking_status(
    db: AsyncSession,
    booking_id: uuid.UUID,
    transition: ConfirmTransition | CheckInTransition | CheckOutTransition | CancelTransition | NoShowTransition,
    *,
    now: datetime | None = None,
) -> Booking:
    """Apply one lifecycle transition, chosen by the request's target status."""
    if isinstance(transition, ConfirmTransition):
        return await confirm_booking(
            db, booking_id, manual_override=transition.manual_override, performed_by=transition.performed_by
        )
    if isinstance(transition, CheckInTransition):
        return await check_in_booking(db, booking_id, transition, now=now)
    if isinstance(transition, CheckOutTransition):
        return await check_out_booking(db, booking_id, transition, now=now)
    if isinstance(transition, CancelTransition):
        return await cancel_booking(
            db,
            booking_id,
            reason=transition.reason,
            cancelled_by=transition.cancelled_by,
            refund_percentage_override=transition.refund_percentage_override,
            now=now,
        )
    return await mark_no_show(db, booking_id, performed_by=transition.performed_by, now=now)


# ---------------------------------------------------------------------------
# Ledger, payments and refunds
# ---------------------------------------------------------------------------


async def add_extra_charge(
    db: AsyncSession,
    booking_id: uuid.UUID,
    data: ExtraChargeCreate,
    *,
    now: datetime | None = None,
) -> Booking:
    booking = await get_booking(db, booking_id)
    if booking.status not in OPEN_FOR_CHARGES:
        raise PolicyViolation(f"Charges cannot be posted to a {booking.status} booking", field="status")
    charge_date = data.charge_date
    if charge_date is None:
        hotel = await get_hotel(db, booking.hotel_id)
        charge_date = (now or hotel_now(hotel)).date()

    async with db.begin_nested():
        post_charge(
            booking,
            category=data.category,
            description=data.description,
            amount=data.amount,
            quantity=data.quantity,
            charge_date=charge_date,
        )
    return booking


async def initiate_payment(
    db: AsyncSession,
    booking_id: uuid.UUID,
    data: PaymentInitiate,
    gateway: PaymentGateway,
) -> tuple[str, Decimal]:
    """Ask the gateway for a redirect URL; returns ``(redirect_url, amount)``."""
    booking = await get_booking(db, booking_id)
    if booking.status in (CANCELLED, NO_SHOW):
        raise PolicyViolation(f"A {booking.status} booking cannot take payments", field="status")
    amount = round_money(data.amount if data.amount is not None else booking.amount_due, booking.currency)
    if amount <= 0:
        raise ValidationError("Nothing is due on this booking", field="amount")
    try:
        redirect_url = await gateway.initiate_payment(amount, booking.booking_number, data.method)
    except GatewayError as e:
        logger.warning("Could not initiate %s payment for %s: %s", data.method, booking.booking_number, e)
        raise GatewayUnavailable(str(e)) from e
    return redirect_url, amount


async def record_payment(
    db: AsyncSession,
    booking_id: uuid.UUID,
    data: PaymentCreate,
    gateway: PaymentGateway | None = None,
    *,
    now: datetime | None = None,
) -> Booking:
    """Record a payment and refresh the booking's amounts and payment status.

    Gateway payments are recorded from the gateway's verification only. A
    gateway that fails or declines produces a ``failed`` payment row; the
    booking stays valid and is marked ``failed`` if nothing has been paid yet.
    """
    booking = await get_booking(db, booking_id)
    if booking.status in (CANCELLED, NO_SHOW):
        raise PolicyViolation(f"A {booking.status} booking cannot take payments", field="status")

    amount = round_money(data.amount, booking.currency)
    status = "completed"
    transaction_id = data.transaction_id
    failure_reason = None
    if data.method in GATEWAY_METHODS:
        gateway = gateway or PaymentGateway()
        try:
            verification = await gateway.verify_payment(data.token, data.method)
        except GatewayError as e:
            logger.warning("Payment verification failed for %s: %s", booking.booking_number, e)
            status, failure_reason = "failed", str(e)
        else:
            transaction_id = verification.transaction_id or transaction_id
            if verification.status != "completed":
                status, failure_reason = "failed", "Payment was not completed at the gateway"
            else:
                verified = round_money(verification.amount, booking.currency)
                if verified != amount:
                    logger.warning(
                        "Gateway verified %s for %s, %s was claimed", verified, booking.booking_number, amount
                    )
                amount = verified
    elif amount > booking.amount_due:
        raise ValidationError(
            f"Payment of {amount} exceeds the {booking.amount_due} {booking.currency} due", field="amount"
        )

    hotel = await get_hotel(db, booking.hotel_id)
    today = (now or hotel_now(hotel)).date()
    async with db.begin_nested():
        booking.payments.append(
            Payment(
                payment_number=_reference("PAY", today),
                amount=amount,
                method=data.method,
                status=status,
                transaction_id=transaction_id,
                failure_reason=failure_reason,
                processed_by=data.processed_by,
            )
        )
        if status == "completed":
            booking.amount_paid = booking.amount_paid + amount
            recompute_totals(booking)
        elif booking.amount_paid <= 0:
            booking.payment_status = PAYMENT_FAILED

    logger.info(
        "Recorded %s %s payment of %s for %s (paid %s, due %s, status %s)",
        status,
        data.method,
        amount,
        booking.booking_number,
        booking.amount_paid,
        booking.amount_due,
        booking.payment_status,
    )
    return booking


async def settle_refund(db: AsyncSession, booking_id: uuid.UUID, refund_status: str) -> Booking:
    """Record the outcome of a pending refund; nothing else on the cancellation changes."""
    booking = await get_booking(db, booking_id)
    cancellation = booking.cancellation
    if booking.status != CANCELLED or cancellation is None:
        raise PolicyViolation("Only a cancelled booking has a refund to settle", field="status")
    if cancellation.refund_status != "pending":
        raise PolicyViolation(f"The refund is already {cancellation.refund_status}", field="refund_status")
    if refund_status not in ("processed", "failed"):
        raise ValidationError("refund_status must be 'processed' or 'failed'", field="refund_status")

    async with db.begin_nested():
        cancellation.refund_status = refund_status
        cancellation.refund_settled_at = utcnow()
    logger.info("Refund of %s for %s %s", cancellation.refund_amount, booking.booking_number, refund_status)
    return booking
