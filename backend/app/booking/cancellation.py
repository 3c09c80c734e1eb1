"""Cancellation & refund resolver: pure policy arithmetic."""

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal

from app.booking.errors import ValidationError
from app.booking.pricing import HUNDRED, ZERO, round_money

POLICY_TYPES = {"free", "partial", "non-refundable"}

REFUND_PENDING = "pending"
REFUND_PROCESSED = "processed"
REFUND_FAILED = "failed"


@dataclass(frozen=True)
class CancellationPolicy:
    """A hotel's cancellation terms.

    Cancelling at least ``deadline_hours`` before check-in refunds
    ``refund_percentage`` of what was paid; later cancellations refund
    ``late_refund_percentage`` (0 unless the hotel says otherwise).
    """

    type: str
    deadline_hours: int
    refund_percentage: Decimal
    late_refund_percentage: Decimal = ZERO

    def __post_init__(self) -> None:
        if self.type not in POLICY_TYPES:
            raise ValidationError(f"Unknown cancellation policy '{self.type}'", field="cancellation_policy")
        if self.type == "non-refundable" and self.refund_percentage != ZERO:
            raise ValidationError("A non-refundable policy cannot refund", field="cancellation_refund_percentage")


@dataclass(frozen=True)
class RefundDecision:
    hours_before_check_in: Decimal
    within_deadline: bool
    refund_percentage: Decimal
    refund_amount: Decimal
    refund_status: str


def hours_until(check_in: date, check_in_time: time, now: datetime) -> Decimal:
    """Hours from ``now`` to the check-in moment (negative once it has passed)."""
    arrival = datetime.combine(check_in, check_in_time)
    return (Decimal((arrival - now).total_seconds()) / Decimal(3600)).quantize(Decimal("0.01"))


def resolve_refund(
    policy: CancellationPolicy,
    *,
    check_in: date,
    check_in_time: time,
    now: datetime,
    amount_paid: Decimal,
    currency: str,
    refund_percentage_override: Decimal | None = None,
) -> RefundDecision:
    """Apply ``policy`` to a cancellation happening at ``now``.

    The refund is ``percentage × amount_paid``, rounded to the currency unit
    and clamped to ``[0, amount_paid]``. An operator override replaces the
    policy percentage.
    """
    hours = hours_until(check_in, check_in_time, now)
    within_deadline = hours >= policy.deadline_hours
    if refund_percentage_override is not None:
        percentage = refund_percentage_override
    elif within_deadline:
        percentage = policy.refund_percentage
    else:
        percentage = policy.late_refund_percentage
    percentage = min(max(Decimal(percentage), ZERO), HUNDRED)

    paid = max(Decimal(amount_paid), ZERO)
    refund = round_money(paid * percentage / HUNDRED, currency)
    refund = min(max(refund, ZERO), paid)

    return RefundDecision(
        hours_before_check_in=hours,
        within_deadline=within_deadline,
        refund_percentage=percentage,
        refund_amount=refund,
        refund_status=REFUND_PENDING if refund > 0 else REFUND_PROCESSED,
    )
