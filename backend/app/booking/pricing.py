"""Pricing calculator: turns room/rate selections into a BookingPricing snapshot.

Everything here is a pure function of its inputs. Currency amounts are
rounded to the currency's smallest unit as each component is computed:

    room_total  = sum(round(price * quantity * nights))
    tax         = round(room_total * tax% / 100)
    service     = round(room_total * service% / 100)
    discount    = flat value, or round(pre-extras subtotal * value% / 100),
                  never more than the pre-extras subtotal
    subtotal    = max(0, room_total + tax + service - discount + extras)
    grand_total = subtotal
    amount_due  = max(0, grand_total - amount_paid)

Tax and service charge are both flat on ``room_total``; neither compounds on
the other.
"""

import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from app.booking.errors import InvalidDiscountCode, RateNotApplicable, ValidationError

ZERO = Decimal("0")
HUNDRED = Decimal("100")

# Smallest currency unit, as a power of ten. NPR is priced in whole rupees.
CURRENCY_MINOR_UNITS: dict[str, int] = {
    "NPR": 0,
    "INR": 2,
    "USD": 2,
    "EUR": 2,
    "GBP": 2,
    "JPY": 0,
}

DISCOUNT_KINDS = {"flat", "percentage"}


def currency_quantum(currency: str) -> Decimal:
    """Return the rounding step for a currency (``Decimal('1')`` for NPR)."""
    return Decimal(1).scaleb(-CURRENCY_MINOR_UNITS.get(currency.upper(), 2))


def round_money(value: Decimal | int | str, currency: str) -> Decimal:
    return Decimal(value).quantize(currency_quantum(currency), rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class RateTerms:
    """The parts of a RoomRate the calculator needs."""

    rate_id: uuid.UUID
    room_type_id: uuid.UUID
    price: Decimal
    min_stay: int = 1
    max_stay: int | None = None
    name: str = ""


@dataclass(frozen=True)
class RoomSelection:
    rate: RateTerms
    quantity: int = 1


@dataclass(frozen=True)
class DiscountRule:
    code: str
    kind: str  # flat, percentage
    value: Decimal


@dataclass(frozen=True)
class ChargeLine:
    amount: Decimal
    quantity: int = 1


@dataclass(frozen=True)
class PricingBreakdown:
    """Immutable BookingPricing snapshot."""

    currency: str
    nights: int
    room_total: Decimal
    tax_percentage: Decimal
    tax_amount: Decimal
    service_charge_percentage: Decimal
    service_charge: Decimal
    discount: Decimal
    discount_code: str | None
    extra_charges_total: Decimal
    subtotal: Decimal
    grand_total: Decimal
    amount_paid: Decimal
    amount_due: Decimal
    # Per-room nightly price and stay total, in selection order, one entry per unit of quantity.
    room_lines: tuple[tuple[RateTerms, Decimal, Decimal], ...] = field(default=())


def check_stay_length(rate: RateTerms, nights: int) -> None:
    """Raise ``RateNotApplicable`` when ``nights`` is outside the rate's min/max stay."""
    if nights < rate.min_stay:
        raise RateNotApplicable(
            f"Rate '{rate.name or rate.rate_id}' requires a minimum stay of {rate.min_stay} nights",
            field="nights",
        )
    if rate.max_stay is not None and nights > rate.max_stay:
        raise RateNotApplicable(
            f"Rate '{rate.name or rate.rate_id}' allows a maximum stay of {rate.max_stay} nights",
            field="nights",
        )


def resolve_discount(code: str | None, discounts: Mapping[str, DiscountRule] | None) -> DiscountRule | None:
    """Look up a discount code (case-insensitive). ``None`` means no code was given."""
    if code is None or not code.strip():
        return None
    rule = (discounts or {}).get(code.strip().upper())
    if rule is None or rule.kind not in DISCOUNT_KINDS:
        raise InvalidDiscountCode(code)
    return rule


def compute_discount(rule: DiscountRule | None, base: Decimal, currency: str) -> Decimal:
    """Discount off the pre-extras subtotal, clamped to ``[0, base]``."""
    if rule is None:
        return ZERO
    if rule.kind == "percentage":
        amount = round_money(base * rule.value / HUNDRED, currency)
    else:
        amount = round_money(rule.value, currency)
    return min(max(amount, ZERO), max(base, ZERO))


def charge_total(charge: ChargeLine, currency: str) -> Decimal:
    return round_money(Decimal(charge.amount) * charge.quantity, currency)


def amount_due(grand_total: Decimal, amount_paid: Decimal) -> Decimal:
    return max(ZERO, grand_total - amount_paid)


def summarize(
    *,
    room_total: Decimal,
    tax_amount: Decimal,
    service_charge: Decimal,
    discount: Decimal,
    extra_charges_total: Decimal,
    amount_paid: Decimal,
) -> tuple[Decimal, Decimal, Decimal]:
    """Return ``(subtotal, grand_total, amount_due)`` from already-rounded components."""
    subtotal = max(ZERO, room_total + tax_amount + service_charge - discount + extra_charges_total)
    grand_total = subtotal
    return subtotal, grand_total, amount_due(grand_total, amount_paid)


def calculate_pricing(
    selections: Iterable[RoomSelection],
    nights: int,
    *,
    tax_percentage: Decimal,
    service_charge_percentage: Decimal,
    currency: str,
    discount_code: str | None = None,
    discounts: Mapping[str, DiscountRule] | None = None,
    extra_charges: Iterable[ChargeLine] = (),
    amount_paid: Decimal = ZERO,
) -> PricingBreakdown:
    """Compute the full price breakdown for a stay.

    Raises:
        ValidationError: no selections, a non-positive quantity, or nights < 1.
        RateNotApplicable: a selection's rate does not allow ``nights``.
        InvalidDiscountCode: ``discount_code`` does not resolve.
    """
    selections = list(selections)
    if nights < 1:
        raise ValidationError("A stay must be at least one night", field="nights")
    if not selections:
        raise ValidationError("At least one room must be selected", field="room_selections")

    room_lines: list[tuple[RateTerms, Decimal, Decimal]] = []
    room_total = ZERO
    for selection in selections:
        if selection.quantity < 1:
            raise ValidationError("Room quantity must be at least 1", field="quantity")
        check_stay_length(selection.rate, nights)
        price_per_night = round_money(selection.rate.price, currency)
        stay_price = round_money(price_per_night * nights, currency)
        for _ in range(selection.quantity):
            room_lines.append((selection.rate, price_per_night, stay_price))
        room_total += stay_price * selection.quantity

    tax_amount = round_money(room_total * tax_percentage / HUNDRED, currency)
    service_charge = round_money(room_total * service_charge_percentage / HUNDRED, currency)

    rule = resolve_discount(discount_code, discounts)
    discount = compute_discount(rule, room_total + tax_amount + service_charge, currency)

    extras_total = sum((charge_total(c, currency) for c in extra_charges), ZERO)
    paid = round_money(amount_paid, currency)
    subtotal, grand_total, due = summarize(
        room_total=room_total,
        tax_amount=tax_amount,
        service_charge=service_charge,
        discount=discount,
        extra_charges_total=extras_total,
        amount_paid=paid,
    )

    return PricingBreakdown(
        currency=currency,
        nights=nights,
        room_total=room_total,
        tax_percentage=Decimal(tax_percentage),
        tax_amount=tax_amount,
        service_charge_percentage=Decimal(service_charge_percentage),
        service_charge=service_charge,
        discount=discount,
        discount_code=rule.code if rule else None,
        extra_charges_total=extras_total,
        subtotal=subtotal,
        grand_total=grand_total,
        amount_paid=paid,
        amount_due=due,
        room_lines=tuple(room_lines),
    )
