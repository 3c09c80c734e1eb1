"""Tests for the pricing calculator (pure functions, no database)."""

import uuid
from decimal import Decimal

import pytest

from app.booking.errors import InvalidDiscountCode, RateNotApplicable, ValidationError
from app.booking.pricing import (
    ChargeLine,
    DiscountRule,
    RateTerms,
    RoomSelection,
    calculate_pricing,
    compute_discount,
    currency_quantum,
    round_money,
)

DELUXE = RateTerms(rate_id=uuid.uuid4(), room_type_id=uuid.uuid4(), price=Decimal("9000"), name="BAR")
SUITE = RateTerms(rate_id=uuid.uuid4(), room_type_id=uuid.uuid4(), price=Decimal("16500"), name="BAR")


def _price(selections, nights=2, **kwargs):
    options = {
        "tax_percentage": Decimal("13"),
        "service_charge_percentage": Decimal("10"),
        "currency": "NPR",
    }
    options.update(kwargs)
    return calculate_pricing(selections, nights, **options)


class TestRounding:
    def test_npr_rounds_to_whole_rupees(self):
        assert currency_quantum("NPR") == Decimal("1")
        assert round_money(Decimal("1234.5"), "NPR") == Decimal("1235")
        assert round_money(Decimal("1234.49"), "NPR") == Decimal("1234")

    def test_usd_rounds_to_cents(self):
        assert round_money(Decimal("10.005"), "USD") == Decimal("10.01")

    def test_unknown_currency_defaults_to_two_places(self):
        assert currency_quantum("XYZ") == Decimal("0.01")


class TestCalculatePricing:
    """Totals for a stay, tax and service charge both on the room total."""

    def test_single_room_two_nights(self):
        pricing = _price([RoomSelection(rate=DELUXE)])
        assert pricing.room_total == Decimal("18000")
        assert pricing.tax_amount == Decimal("2340")
        assert pricing.service_charge == Decimal("1800")
        assert pricing.discount == Decimal("0")
        assert pricing.subtotal == Decimal("22140")
        assert pricing.grand_total == Decimal("22140")
        assert pricing.amount_due == Decimal("22140")

    def test_multiple_rooms_and_quantity(self):
        pricing = _price([RoomSelection(rate=DELUXE, quantity=2), RoomSelection(rate=SUITE)], nights=3)
        assert pricing.room_total == Decimal("9000") * 2 * 3 + Decimal("16500") * 3
        assert len(pricing.room_lines) == 3
        assert [line[0] for line in pricing.room_lines] == [DELUXE, DELUXE, SUITE]
        assert pricing.room_lines[2][1:] == (Decimal("16500"), Decimal("49500"))

    def test_two_deluxe_rooms_for_three_nights(self):
        pricing = _price([RoomSelection(rate=DELUXE, quantity=2)], nights=3)
        assert pricing.room_total == Decimal("54000")
        assert pricing.tax_amount == Decimal("7020")
        assert pricing.service_charge == Decimal("5400")
        assert pricing.grand_total == Decimal("66420")

    def test_components_are_rounded_individually(self):
        odd = RateTerms(rate_id=uuid.uuid4(), room_type_id=uuid.uuid4(), price=Decimal("1005"))
        pricing = _price([RoomSelection(rate=odd)], nights=1, tax_percentage=Decimal("12.5"))
        # 1005 * 12.5% = 125.625 -> 126; 1005 * 10% = 100.5 -> 101
        assert pricing.tax_amount == Decimal("126")
        assert pricing.service_charge == Decimal("101")
        assert pricing.grand_total == Decimal("1232")

    def test_amount_paid_reduces_amount_due(self):
        pricing = _price([RoomSelection(rate=DELUXE)], amount_paid=Decimal("10000"))
        assert pricing.amount_paid == Decimal("10000")
        assert pricing.amount_due == Decimal("12140")

    def test_overpayment_never_makes_amount_due_negative(self):
        pricing = _price([RoomSelection(rate=DELUXE)], amount_paid=Decimal("50000"))
        assert pricing.amount_due == Decimal("0")

    def test_extra_charges_are_added_after_discount(self):
        pricing = _price(
            [RoomSelection(rate=DELUXE)],
            extra_charges=[ChargeLine(amount=Decimal("450"), quantity=2)],
            discount_code="flat",
            discounts={"FLAT": DiscountRule(code="FLAT", kind="flat", value=Decimal("1000"))},
        )
        assert pricing.extra_charges_total == Decimal("900")
        assert pricing.grand_total == Decimal("22140") - Decimal("1000") + Decimal("900")

    def test_zero_nights_rejected(self):
        with pytest.raises(ValidationError):
            _price([RoomSelection(rate=DELUXE)], nights=0)

    def test_no_selection_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            _price([])
        assert exc_info.value.field == "room_selections"

    def test_zero_quantity_rejected(self):
        with pytest.raises(ValidationError):
            _price([RoomSelection(rate=DELUXE, quantity=0)])

    def test_min_stay_enforced(self):
        weekly = RateTerms(rate_id=uuid.uuid4(), room_type_id=uuid.uuid4(), price=Decimal("7000"), min_stay=7)
        with pytest.raises(RateNotApplicable):
            _price([RoomSelection(rate=weekly)], nights=3)

    def test_max_stay_enforced(self):
        short = RateTerms(rate_id=uuid.uuid4(), room_type_id=uuid.uuid4(), price=Decimal("7000"), max_stay=2)
        with pytest.raises(RateNotApplicable):
            _price([RoomSelection(rate=short)], nights=3)


class TestDiscounts:
    DISCOUNTS = {
        "DASHAIN10": DiscountRule(code="DASHAIN10", kind="percentage", value=Decimal("10")),
        "BIGFLAT": DiscountRule(code="BIGFLAT", kind="flat", value=Decimal("100000")),
    }

    def test_percentage_discount_on_pre_extras_subtotal(self):
        pricing = _price([RoomSelection(rate=DELUXE)], discount_code="DASHAIN10", discounts=self.DISCOUNTS)
        assert pricing.discount == Decimal("2214")
        assert pricing.discount_code == "DASHAIN10"
        assert pricing.grand_total == Decimal("19926")

    def test_code_lookup_is_case_insensitive(self):
        pricing = _price([RoomSelection(rate=DELUXE)], discount_code=" dashain10 ", discounts=self.DISCOUNTS)
        assert pricing.discount_code == "DASHAIN10"

    def test_flat_discount_is_capped_at_subtotal(self):
        pricing = _price([RoomSelection(rate=DELUXE)], discount_code="BIGFLAT", discounts=self.DISCOUNTS)
        assert pricing.discount == Decimal("22140")
        assert pricing.grand_total == Decimal("0")

    def test_unknown_code_rejected(self):
        with pytest.raises(InvalidDiscountCode) as exc_info:
            _price([RoomSelection(rate=DELUXE)], discount_code="NOPE", discounts=self.DISCOUNTS)
        assert exc_info.value.field == "discount_code"

    def test_blank_code_means_no_discount(self):
        pricing = _price([RoomSelection(rate=DELUXE)], discount_code="  ", discounts=self.DISCOUNTS)
        assert pricing.discount == Decimal("0")
        assert pricing.discount_code is None

    def test_compute_discount_without_rule(self):
        assert compute_discount(None, Decimal("500"), "NPR") == Decimal("0")
