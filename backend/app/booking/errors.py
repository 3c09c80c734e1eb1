"""Booking engine error taxonomy.

Services raise these; ``app.main`` maps every ``BookingError`` to an HTTP
response using the class's ``status_code`` and ``code``.
"""


class BookingError(Exception):
    """Base class for every error the booking engine raises on purpose."""

    status_code: int = 400
    code: str = "booking_error"

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "field": self.field}


class ValidationError(BookingError):
    """Malformed input: date ordering, empty room list, unknown references."""

    status_code = 422
    code = "validation_error"


class InvalidDateRange(ValidationError):
    code = "invalid_date_range"

    def __init__(self, message: str = "check_out must be after check_in") -> None:
        super().__init__(message, field="check_out")


class InventoryUnavailable(BookingError):
    """Not enough free rooms of a type for every night of the stay."""

    status_code = 409
    code = "inventory_unavailable"


class InvalidTransition(BookingError):
    """The requested move is not allowed from the booking's current status."""

    status_code = 409
    code = "invalid_transition"

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot move booking from '{current}' to '{target}'", field="status")
        self.current = current
        self.target = target


class RateNotApplicable(BookingError):
    """The selected rate cannot be sold for this stay."""

    status_code = 422
    code = "rate_not_applicable"


class InvalidDiscountCode(BookingError):
    status_code = 422
    code = "invalid_discount_code"

    def __init__(self, discount_code: str) -> None:
        super().__init__(f"Discount code '{discount_code}' is not valid", field="discount_code")
        self.discount_code = discount_code


class PolicyViolation(BookingError):
    """A business precondition for the operation is not satisfied."""

    status_code = 409
    code = "policy_violation"


class PrematureCheckIn(PolicyViolation):
    code = "premature_check_in"


class NotFound(BookingError):
    status_code = 404
    code = "not_found"

    def __init__(self, entity: str, ref: object) -> None:
        super().__init__(f"{entity} not found: {ref}")
        self.entity = entity


class GatewayUnavailable(BookingError):
    """The payment gateway could not start a payment."""

    status_code = 502
    code = "gateway_unavailable"
