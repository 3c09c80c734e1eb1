"""Tests for the booking lifecycle rules and payment-status derivation."""

from decimal import Decimal

import pytest

from app.booking.errors import InvalidTransition
from app.booking.state_machine import (
    BOOKING_STATUSES,
    TERMINAL_STATUSES,
    can_transition,
    derive_payment_status,
    ensure_transition,
)

ALLOWED = {
    ("pending", "confirmed"),
    ("pending", "cancelled"),
    ("confirmed", "checked-in"),
    ("confirmed", "cancelled"),
    ("confirmed", "no-show"),
    ("checked-in", "checked-out"),
}


class TestTransitions:
    @pytest.mark.parametrize("current", BOOKING_STATUSES)
    @pytest.mark.parametrize("target", BOOKING_STATUSES)
    def test_only_lifecycle_edges_are_allowed(self, current, target):
        assert can_transition(current, target) == ((current, target) in ALLOWED)

    @pytest.mark.parametrize("current", sorted(TERMINAL_STATUSES))
    def test_terminal_statuses_have_no_way_out(self, current):
        assert not any(can_transition(current, target) for target in BOOKING_STATUSES)

    def test_ensure_transition_raises_with_both_statuses(self):
        with pytest.raises(InvalidTransition) as exc_info:
            ensure_transition("checked-in", "cancelled")
        assert exc_info.value.current == "checked-in"
        assert exc_info.value.target == "cancelled"
        assert exc_info.value.status_code == 409

    def test_unknown_status_cannot_move(self):
        assert can_transition("archived", "confirmed") is False


class TestPaymentStatus:
    def test_nothing_paid_is_pending(self):
        assert derive_payment_status(Decimal("1000"), Decimal("0"), "pending") == "pending"

    def test_part_paid_is_partial(self):
        assert derive_payment_status(Decimal("1000"), Decimal("400"), "pending") == "partial"

    def test_fully_paid(self):
        assert derive_payment_status(Decimal("1000"), Decimal("1000"), "partial") == "paid"

    def test_new_charge_reopens_a_paid_booking(self):
        assert derive_payment_status(Decimal("1200"), Decimal("1000"), "paid") == "partial"

    def test_refunded_is_final(self):
        assert derive_payment_status(Decimal("1000"), Decimal("1000"), "refunded") == "refunded"

    def test_failure_sticks_until_something_is_paid(self):
        assert derive_payment_status(Decimal("1000"), Decimal("0"), "failed") == "failed"
        assert derive_payment_status(Decimal("1000"), Decimal("500"), "failed") == "partial"
