"""Shared API dependencies: single import point for all routers.

Re-exports the database session and the collaborator clients so that router
modules can import everything they need from one place::

    from app.api.deps import get_db, get_payment_gateway
"""

from app.booking.collaborators import get_housekeeping, get_notifier, get_payment_gateway
from app.database import get_db

__all__ = [
    "get_db",
    "get_payment_gateway",
    "get_notifier",
    "get_housekeeping",
]
