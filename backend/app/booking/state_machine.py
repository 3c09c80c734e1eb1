"""Booking lifecycle: statuses, legal transitions, and payment-status derivation.

    pending ──► confirmed ──► checked-in ──► checked-out
       │            │  └────► no-show
       └────────────┴───────► cancelled

``checked-out``, ``cancelled`` and ``no-show`` are terminal.
"""

from decimal import Decimal

from app.booking.errors import InvalidTransition

PENDING = "pending"
CONFIRMED = "confirmed"
CHECKED_IN = "checked-in"
CHECKED_OUT = "checked-out"
CANCELLED = "cancelled"
NO_SHOW = "no-show"

BOOKING_STATUSES = (PENDING, CONFIRMED, CHECKED_IN, CHECKED_OUT, CANCELLED, NO_SHOW)
TERMINAL_STATUSES = frozenset({CHECKED_OUT, CANCELLED, NO_SHOW})

TRANSITIONS: dict[str, frozenset[str]] = {
    PENDING: frozenset({CONFIRMED, CANCELLED}),
    CONFIRMED: frozenset({CHECKED_IN, CANCELLED, NO_SHOW}),
    CHECKED_IN: frozenset({CHECKED_OUT}),
    CHECKED_OUT: frozenset(),
    CANCELLED: frozenset(),
    NO_SHOW: frozenset(),
}

# Statuses in which extra charges may still be posted.
OPEN_FOR_CHARGES = frozenset({PENDING, CONFIRMED, CHECKED_IN})

# Payment statuses
PAYMENT_PENDING = "pending"
PAYMENT_PARTIAL = "partial"
PAYMENT_PAID = "paid"
PAYMENT_REFUNDED = "refunded"
PAYMENT_FAILED = "failed"

PAYMENT_STATUSES = (PAYMENT_PENDING, PAYMENT_PARTIAL, PAYMENT_PAID, PAYMENT_REFUNDED, PAYMENT_FAILED)
CONFIRMABLE_PAYMENT_STATUSES = frozenset({PAYMENT_PARTIAL, PAYMENT_PAID})


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def ensure_transition(current: str, target: str) -> None:
    """Raise ``InvalidTransition`` unless ``current -> target`` is an edge of the lifecycle."""
    if not can_transition(current, target):
        raise InvalidTransition(current, target)


def derive_payment_status(grand_total: Decimal, amount_paid: Decimal, current: str) -> str:
    """Payment status implied by the amounts.

    ``refunded`` is final. With nothing paid, a recorded gateway failure
    stays ``failed`` until a payment succeeds.
    """
    if current == PAYMENT_REFUNDED:
        return current
    if amount_paid <= 0:
        return PAYMENT_FAILED if current == PAYMENT_FAILED else PAYMENT_PENDING
    if amount_paid >= grand_total:
        return PAYMENT_PAID
    return PAYMENT_PARTIAL
