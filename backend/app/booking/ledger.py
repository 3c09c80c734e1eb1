"""Extra-charge ledger: append-only post-booking charges folded into the booking total."""

import logging
from datetime import date
from decimal import Decimal

from app.booking.errors import ValidationError
from app.booking.pricing import ZERO, ChargeLine, charge_total, round_money, summarize
from app.booking.state_machine import derive_payment_status
from app.models.booking import Booking, ExtraCharge

logger = logging.getLogger(__name__)

CHARGE_CATEGORIES = {
    "room-service",
    "minibar",
    "laundry",
    "restaurant",
    "damage",
    "late-checkout",
    "adjustment",
    "other",
}
# Corrections are negative entries and must say so.
CORRECTION_CATEGORY = "adjustment"


def recompute_totals(booking: Booking) -> None:
    """Refresh subtotal, grand total, amount due and payment status from the ledger."""
    extras = sum((charge.total for charge in booking.extra_charges), ZERO)
    subtotal, grand_total, due = summarize(
        room_total=booking.room_total,
        tax_amount=booking.tax_amount,
        service_charge=booking.service_charge,
        discount=booking.discount,
        extra_charges_total=extras,
        amount_paid=booking.amount_paid,
    )
    booking.extra_charges_total = extras
    booking.subtotal = subtotal
    booking.grand_total = grand_total
    booking.amount_due = due
    booking.payment_status = derive_payment_status(grand_total, booking.amount_paid, booking.payment_status)


def post_charge(
    booking: Booking,
    *,
    category: str,
    description: str,
    amount: Decimal,
    quantity: int = 1,
    charge_date: date,
) -> ExtraCharge:
    """Append a charge to ``booking`` and recompute its totals immediately."""
    if category not in CHARGE_CATEGORIES:
        raise ValidationError(
            f"Unknown charge category '{category}'. Must be one of: {', '.join(sorted(CHARGE_CATEGORIES))}",
            field="category",
        )
    if quantity < 1:
        raise ValidationError("quantity must be at least 1", field="quantity")
    amount = round_money(amount, booking.currency)
    if amount == ZERO:
        raise ValidationError("A charge cannot be zero", field="amount")
    if amount < ZERO and category != CORRECTION_CATEGORY:
        raise ValidationError(
            f"Negative amounts are corrections and must use the '{CORRECTION_CATEGORY}' category",
            field="amount",
        )
    if not description.strip():
        raise ValidationError("description is required", field="description")

    charge = ExtraCharge(
        category=category,
        description=description.strip(),
        amount=amount,
        quantity=quantity,
        total=charge_total(ChargeLine(amount=amount, quantity=quantity), booking.currency),
        charge_date=charge_date,
    )
    booking.extra_charges.append(charge)
    recompute_totals(booking)
    logger.info(
        "Posted %s charge %s x %d to booking %s (grand total now %s)",
        category,
        amount,
        quantity,
        booking.booking_number,
        booking.grand_total,
    )
    return charge
