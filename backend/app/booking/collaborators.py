"""HTTP clients for the services the engine calls but does not own.

- payment gateway: ``initiate_payment`` / ``verify_payment`` (eSewa, Khalti, IME Pay behind one API)
- notifications: booking confirmed / cancelled e-mails
- housekeeping: a checked-out room needs cleaning

Notification and housekeeping calls are fire-and-forget: ``dispatch`` logs
failures and never raises.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from app.config import settings
from app.models.booking import Booking

logger = logging.getLogger(__name__)

GATEWAY_METHODS = {"esewa", "khalti", "ime-pay"}


class GatewayError(Exception):
    """The payment gateway could not be reached or returned an unusable answer."""


@dataclass(frozen=True)
class PaymentVerification:
    status: str  # completed, failed
    amount: Decimal
    transaction_id: str | None = None


class PaymentGateway:
    """Thin async client for the payment gateway service."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = settings.payment_gateway_url if base_url is None else base_url
        self.timeout = settings.collaborator_timeout_seconds if timeout is None else timeout
        self.transport = transport

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        if not self.base_url:
            raise GatewayError("Payment gateway is not configured")
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.post(path, json=payload)
                response.raise_for_status()
                return response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise GatewayError(f"Payment gateway call {path} failed: {e}") from e

    async def initiate_payment(self, amount: Decimal, booking_ref: str, method: str) -> str:
        """Start a gateway payment and return the URL to redirect the guest to."""
        data = await self._post(
            "/payments/initiate",
            {"amount": str(amount), "booking_ref": booking_ref, "method": method},
        )
        redirect_url = data.get("redirect_url")
        if not redirect_url:
            raise GatewayError("Payment gateway returned no redirect_url")
        logger.info("Initiated %s payment of %s for booking %s", method, amount, booking_ref)
        return redirect_url

    async def verify_payment(self, token: str, method: str) -> PaymentVerification:
        """Ask the gateway what actually happened to a payment token."""
        data = await self._post("/payments/verify", {"token": token, "method": method})
        try:
            return PaymentVerification(
                status="completed" if data.get("status") == "completed" else "failed",
                amount=Decimal(str(data.get("amount", "0"))),
                transaction_id=data.get("transaction_id"),
            )
        except InvalidOperation as e:
            raise GatewayError(f"Payment gateway returned an invalid amount: {data.get('amount')!r}") from e


class WebhookNotifier:
    """Posts JSON events to a webhook; does nothing when no URL is configured."""

    def __init__(
        self,
        url: str,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self.timeout = settings.collaborator_timeout_seconds if timeout is None else timeout
        self.transport = transport

    async def send(self, event: str, payload: dict[str, Any]) -> None:
        if not self.url:
            logger.debug("No webhook configured for %s; skipping", event)
            return
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(self.url, json={"event": event, "data": payload})
            response.raise_for_status()


def booking_event_payload(booking: Booking) -> dict[str, Any]:
    """JSON-safe summary of a booking for notification e-mails."""
    guest = booking.guest
    return {
        "booking_id": str(booking.id),
        "booking_number": booking.booking_number,
        "hotel_id": str(booking.hotel_id),
        "status": booking.status,
        "guest_name": guest.full_name if guest else None,
        "guest_email": guest.email if guest else None,
        "check_in": booking.check_in.isoformat(),
        "check_out": booking.check_out.isoformat(),
        "nights": booking.nights,
        "grand_total": str(booking.grand_total),
        "currency": booking.currency,
        "refund_amount": str(booking.cancellation.refund_amount) if booking.cancellation else None,
    }


async def dispatch(sender: WebhookNotifier, event: str, payload: dict[str, Any]) -> None:
    """Deliver an event; log and swallow any failure so the booking operation stands."""
    try:
        await sender.send(event, payload)
        logger.info("Delivered %s for %s", event, payload.get("booking_number") or payload.get("room_id"))
    except Exception:
        logger.exception("Failed to deliver %s for %s", event, payload.get("booking_number") or payload.get("room_id"))


def get_payment_gateway() -> PaymentGateway:
    return PaymentGateway()


def get_notifier() -> WebhookNotifier:
    return WebhookNotifier(settings.notification_webhook_url)


def get_housekeeping() -> WebhookNotifier:
    return WebhookNotifier(settings.housekeeping_webhook_url)
