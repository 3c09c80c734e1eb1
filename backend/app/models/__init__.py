"""SQLAlchemy models for the booking engine.

All models are imported here so that Alembic's autogenerate can discover
them via Base.metadata. If you add a new model, import it in this file.
"""

from app.models.booking import (
    BookedRoom,
    Booking,
    BookingCancellation,
    CheckInRecord,
    CheckOutRecord,
    ExtraCharge,
    Payment,
)
from app.models.guest import Guest
from app.models.hotel import DiscountCode, Hotel
from app.models.room import Room, RoomInventory, RoomRate, RoomType

__all__ = [
    "BookedRoom",
    "Booking",
    "BookingCancellation",
    "CheckInRecord",
    "CheckOutRecord",
    "DiscountCode",
    "ExtraCharge",
    "Guest",
    "Hotel",
    "Payment",
    "Room",
    "RoomInventory",
    "RoomRate",
    "RoomType",
]
