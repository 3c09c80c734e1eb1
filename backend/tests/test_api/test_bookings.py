"""Tests for the booking endpoints."""

from datetime import date, datetime, timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _hotel_today() -> date:
    return datetime.now(ZoneInfo("Asia/Kathmandu")).date()


def _stay(offset_start: int = 30, nights: int = 2) -> tuple[str, str]:
    """Return a (check_in, check_out) pair in hotel-local days as ISO strings."""
    check_in = _hotel_today() + timedelta(days=offset_start)
    check_out = check_in + timedelta(days=nights)
    return check_in.isoformat(), check_out.isoformat()


def _payload(catalog, *, offset_start: int = 30, nights: int = 2, room_type=None, rate=None, **overrides) -> dict:
    check_in, check_out = _stay(offset_start, nights)
    payload = {
        "hotel_id": str(catalog.hotel.id),
        "room_selections": [
            {
                "room_type_id": str((room_type or catalog.deluxe).id),
                "rate_id": str((rate or catalog.deluxe_rate).id),
                "quantity": 1,
            }
        ],
        "check_in": check_in,
        "check_out": check_out,
        "guest_details": {
            "first_name": "Tenzing",
            "last_name": "Sherpa",
            "email": "tenzing.sherpa@example.com",
            "phone": "+977 9851000002",
            "country": "Nepal",
        },
        "adults": 2,
        "source": "website",
    }
    payload.update(overrides)
    return payload


async def _create(client: AsyncClient, catalog, **kwargs) -> dict:
    response = await client.post("/api/v1/bookings", json=_payload(catalog, **kwargs))
    assert response.status_code == 201, response.text
    return response.json()


async def _confirm(client: AsyncClient, booking_id: str) -> dict:
    response = await client.patch(
        f"/api/v1/bookings/{booking_id}/status",
        json={"status": "confirmed", "manual_override": True, "performed_by": "manager"},
    )
    assert response.status_code == 200, response.text
    return response.json()


CHECK_IN_BODY = {
    "status": "checked-in",
    "checked_in_by": "front-desk",
    "id_verified": True,
    "id_type": "citizenship",
    "id_number": "27-01-75-01234",
    "key_card_numbers": ["KC-101-A"],
}


# ---------------------------------------------------------------------------
# POST /api/v1/bookings
# ---------------------------------------------------------------------------


class TestCreateBooking:
    async def test_create_success(self, client: AsyncClient, catalog) -> None:
        data = await _create(client, catalog, special_requests="Mountain view if possible")

        assert data["status"] == "pending"
        assert data["payment_status"] == "pending"
        assert data["state"] == {"status": "pending"}
        assert data["booking_number"].startswith("BK-")
        assert data["nights"] == 2
        assert data["source"] == "website"
        assert data["guest"]["email"] == "tenzing.sherpa@example.com"
        assert data["special_requests"] == "Mountain view if possible"
        assert len(data["rooms"]) == 1
        assert data["rooms"][0]["room_type_name"] == "Deluxe Double"
        assert Decimal(data["rooms"][0]["price_per_night"]) == Decimal("9000")

        pricing = data["pricing"]
        assert pricing["currency"] == "NPR"
        assert Decimal(pricing["room_total"]) == Decimal("18000")
        assert Decimal(pricing["tax_amount"]) == Decimal("2340")
        assert Decimal(pricing["service_charge"]) == Decimal("1800")
        assert Decimal(pricing["grand_total"]) == Decimal("22140")
        assert Decimal(pricing["amount_due"]) == Decimal("22140")

    async def test_idempotent_replay(self, client: AsyncClient, catalog) -> None:
        payload = _payload(catalog)
        headers = {"Idempotency-Key": "checkout-7f3a"}
        first = await client.post("/api/v1/bookings", json=payload, headers=headers)
        replay = await client.post("/api/v1/bookings", json=payload, headers=headers)

        assert first.status_code == 201
        assert replay.status_code == 200
        assert replay.json()["id"] == first.json()["id"]

        listing = await client.get("/api/v1/bookings", params={"hotel_id": str(catalog.hotel.id)})
        assert listing.json()["total"] == 1

    async def test_guest_required(self, client: AsyncClient, catalog) -> None:
        payload = _payload(catalog)
        del payload["guest_details"]
        response = await client.post("/api/v1/bookings", json=payload)
        assert response.status_code == 422

    async def test_empty_room_selection(self, client: AsyncClient, catalog) -> None:
        response = await client.post("/api/v1/bookings", json=_payload(catalog, room_selections=[]))
        assert response.status_code == 422

    async def test_check_out_before_check_in(self, client: AsyncClient, catalog) -> None:
        check_in, check_out = _stay(30, 2)
        response = await client.post(
            "/api/v1/bookings", json=_payload(catalog, check_in=check_out, check_out=check_in)
        )
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "invalid_date_range"
        assert response.json()["detail"]["field"] == "check_out"

    async def test_sold_out(self, client: AsyncClient, catalog) -> None:
        await _create(client, catalog, room_type=catalog.suite, rate=catalog.suite_rate)
        response = await client.post(
            "/api/v1/bookings", json=_payload(catalog, room_type=catalog.suite, rate=catalog.suite_rate)
        )
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "inventory_unavailable"

    async def test_invalid_discount_code(self, client: AsyncClient, catalog) -> None:
        response = await client.post("/api/v1/bookings", json=_payload(catalog, discount_code="NOPE"))
        assert response.status_code == 422
        assert response.json()["detail"] == {
            "code": "invalid_discount_code",
            "message": "Discount code 'NOPE' is not valid",
            "field": "discount_code",
        }

    async def test_unknown_hotel(self, client: AsyncClient, catalog) -> None:
        response = await client.post(
            "/api/v1/bookings", json=_payload(catalog, hotel_id=str(catalog.deluxe.id))
        )
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "not_found"


# ---------------------------------------------------------------------------
# GET /api/v1/bookings
# ---------------------------------------------------------------------------


class TestQueries:
    async def test_get_by_id_and_number(self, client: AsyncClient, catalog) -> None:
        created = await _create(client, catalog)

        by_id = await client.get(f"/api/v1/bookings/{created['id']}")
        by_number = await client.get(f"/api/v1/bookings/by-number/{created['booking_number'].lower()}")

        assert by_id.status_code == 200
        assert by_number.status_code == 200
        assert by_number.json()["id"] == created["id"]

    async def test_get_unknown(self, client: AsyncClient, catalog) -> None:
        response = await client.get(f"/api/v1/bookings/{catalog.hotel.id}")
        assert response.status_code == 404

    async def test_list_with_filters(self, client: AsyncClient, catalog) -> None:
        first = await _create(client, catalog)
        await _create(
            client,
            catalog,
            guest_details={
                "first_name": "Priya",
                "last_name": "Nair",
                "email": "priya.nair@example.com",
                "phone": "+91 9820000003",
            },
        )
        await _confirm(client, first["id"])

        everything = await client.get("/api/v1/bookings", params={"hotel_id": str(catalog.hotel.id)})
        confirmed = await client.get("/api/v1/bookings", params={"status": "confirmed"})
        search = await client.get("/api/v1/bookings", params={"search": "nair"})
        page = await client.get("/api/v1/bookings", params={"limit": 1})

        assert everything.json()["total"] == 2
        assert [b["id"] for b in confirmed.json()["items"]] == [first["id"]]
        assert search.json()["items"][0]["guest"]["last_name"] == "Nair"
        assert len(page.json()["items"]) == 1
        assert page.json()["total"] == 2

    async def test_statistics(self, client: AsyncClient, catalog) -> None:
        created = await _create(client, catalog, offset_start=3)
        await _confirm(client, created["id"])

        today = _hotel_today()
        response = await client.get(
            "/api/v1/bookings/statistics",
            params={
                "hotel_id": str(catalog.hotel.id),
                "period_start": today.isoformat(),
                "period_end": (today + timedelta(days=30)).isoformat(),
            },
        )
        assert response.status_code == 200
        stats = response.json()
        assert stats["total_bookings"] == 1
        assert stats["by_status"] == {"confirmed": 1}
        assert stats["upcoming_check_ins"] == 1
        assert Decimal(stats["average_stay_nights"]) == Decimal("2")


# ---------------------------------------------------------------------------
# PATCH /api/v1/bookings/{id}/status
# ---------------------------------------------------------------------------


class TestStatusTransitions:
    async def test_confirm_needs_payment(self, client: AsyncClient, catalog) -> None:
        created = await _create(client, catalog)
        response = await client.patch(f"/api/v1/bookings/{created['id']}/status", json={"status": "confirmed"})
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "policy_violation"

    async def test_confirm_notifies_guest(self, client: AsyncClient, catalog, notifier) -> None:
        created = await _create(client, catalog)
        data = await _confirm(client, created["id"])

        assert data["status"] == "confirmed"
        assert data["state"]["status"] == "confirmed"
        assert data["state"]["confirmed_at"] is not None
        assert [event for event, _ in notifier.events] == ["booking.confirmed"]
        payload = notifier.events[0][1]
        assert payload["booking_number"] == created["booking_number"]
        assert payload["guest_email"] == "tenzing.sherpa@example.com"

    async def test_failing_notifier_does_not_fail_the_request(self, client: AsyncClient, catalog, notifier) -> None:
        notifier.fail = True
        created = await _create(client, catalog)
        data = await _confirm(client, created["id"])
        assert data["status"] == "confirmed"
        assert len(notifier.events) == 1

    async def test_unknown_target_status(self, client: AsyncClient, catalog) -> None:
        created = await _create(client, catalog)
        response = await client.patch(f"/api/v1/bookings/{created['id']}/status", json={"status": "archived"})
        assert response.status_code == 422

    async def test_illegal_transition(self, client: AsyncClient, catalog) -> None:
        created = await _create(client, catalog)
        response = await client.patch(f"/api/v1/bookings/{created['id']}/status", json=CHECK_IN_BODY)
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "invalid_transition"

    async def test_check_in_before_arrival_day(self, client: AsyncClient, catalog) -> None:
        created = await _create(client, catalog, offset_start=5)
        await _confirm(client, created["id"])
        response = await client.patch(f"/api/v1/bookings/{created['id']}/status", json=CHECK_IN_BODY)
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "premature_check_in"

    async def test_full_stay(self, client: AsyncClient, catalog, housekeeping) -> None:
        created = await _create(client, catalog, offset_start=0, nights=1)
        await _confirm(client, created["id"])

        checked_in = await client.patch(f"/api/v1/bookings/{created['id']}/status", json=CHECK_IN_BODY)
        assert checked_in.status_code == 200, checked_in.text
        state = checked_in.json()["state"]
        assert state["status"] == "checked-in"
        assert state["check_in_details"]["id_type"] == "citizenship"
        assert state["check_in_details"]["key_card_numbers"] == ["KC-101-A"]
        assert checked_in.json()["rooms"][0]["room_number"] == "101"

        charge = await client.post(
            f"/api/v1/bookings/{created['id']}/charges",
            json={"category": "restaurant", "description": "Dal bhat set", "amount": "850"},
        )
        assert charge.status_code == 201

        checked_out = await client.patch(
            f"/api/v1/bookings/{created['id']}/status",
            json={
                "status": "checked-out",
                "checked_out_by": "front-desk",
                "room_inspected": True,
                "minibar_charges": "300",
            },
        )
        assert checked_out.status_code == 200, checked_out.text
        data = checked_out.json()
        assert data["state"]["status"] == "checked-out"
        assert data["state"]["check_out_details"]["released_nights"] == 1
        assert data["state"]["check_in_details"]["checked_in_by"] == "front-desk"
        # 9,000 + 1,170 tax + 900 service + 850 restaurant + 300 minibar
        assert Decimal(data["pricing"]["grand_total"]) == Decimal("12220")
        assert [event for event, _ in housekeeping.events] == ["room.needs_cleaning"]
        assert housekeeping.events[0][1]["room_number"] == "101"

        rooms = await client.get(f"/api/v1/hotels/{catalog.hotel.id}/rooms", params={"status": "cleaning"})
        assert [r["room_number"] for r in rooms.json()] == ["101"]


# ---------------------------------------------------------------------------
# Cancellation and refunds
# ---------------------------------------------------------------------------


class TestCancellation:
    async def test_cancel_with_refund(self, client: AsyncClient, catalog, notifier) -> None:
        created = await _create(client, catalog)
        paid = await client.post(
            f"/api/v1/bookings/{created['id']}/payments",
            json={"amount": "22140", "method": "bank-transfer", "transaction_id": "NIC-99812"},
        )
        assert paid.status_code == 201
        assert paid.json()["payment_status"] == "paid"

        response = await client.post(
            f"/api/v1/bookings/{created['id']}/cancel",
            json={"reason": "Trek postponed", "cancelled_by": "guest"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "cancelled"
        assert data["payment_status"] == "refunded"
        cancellation = data["state"]["cancellation"]
        assert cancellation["policy_type"] == "free"
        assert Decimal(cancellation["refund_amount"]) == Decimal("22140")
        assert cancellation["refund_status"] == "pending"
        assert notifier.events[-1][0] == "booking.cancelled"
        assert Decimal(notifier.events[-1][1]["refund_amount"]) == Decimal("22140")

        settled = await client.post(f"/api/v1/bookings/{created['id']}/refund", json={"refund_status": "processed"})
        assert settled.status_code == 200
        assert settled.json()["state"]["cancellation"]["refund_status"] == "processed"

    async def test_cancel_via_status_endpoint(self, client: AsyncClient, catalog) -> None:
        created = await _create(client, catalog)
        response = await client.patch(
            f"/api/v1/bookings/{created['id']}/status",
            json={"status": "cancelled", "reason": "Double booked"},
        )
        assert response.status_code == 200
        assert response.json()["state"]["cancellation"]["reason"] == "Double booked"

    async def test_cancelled_booking_takes_no_charges(self, client: AsyncClient, catalog) -> None:
        created = await _create(client, catalog)
        await client.post(f"/api/v1/bookings/{created['id']}/cancel", json={"reason": "Duplicate"})
        response = await client.post(
            f"/api/v1/bookings/{created['id']}/charges",
            json={"category": "other", "description": "Fee", "amount": "100"},
        )
        assert response.status_code == 409


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


class TestPayments:
    async def test_initiate_gateway_payment(self, client: AsyncClient, catalog, gateway) -> None:
        created = await _create(client, catalog)
        response = await client.post(
            f"/api/v1/bookings/{created['id']}/payments/initiate", json={"method": "khalti"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["method"] == "khalti"
        assert Decimal(data["amount"]) == Decimal("22140")
        assert data["redirect_url"] == f"https://pay.example.test/khalti/{created['booking_number']}"

    async def test_gateway_down(self, client: AsyncClient, catalog, gateway) -> None:
        gateway.unavailable = True
        created = await _create(client, catalog)
        response = await client.post(
            f"/api/v1/bookings/{created['id']}/payments/initiate", json={"method": "esewa"}
        )
        assert response.status_code == 502
        assert response.json()["detail"]["code"] == "gateway_unavailable"

    async def test_gateway_payment_needs_token(self, client: AsyncClient, catalog) -> None:
        created = await _create(client, catalog)
        response = await client.post(
            f"/api/v1/bookings/{created['id']}/payments", json={"amount": "5000", "method": "esewa"}
        )
        assert response.status_code == 422

    async def test_verified_gateway_payment(self, client: AsyncClient, catalog, gateway) -> None:
        from app.booking.collaborators import PaymentVerification

        gateway.verifications["esewa-tok"] = PaymentVerification(
            status="completed", amount=Decimal("11070"), transaction_id="000AB12"
        )
        created = await _create(client, catalog)
        response = await client.post(
            f"/api/v1/bookings/{created['id']}/payments",
            json={"amount": "11070", "method": "esewa", "token": "esewa-tok"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["payment_status"] == "partial"
        assert Decimal(data["pricing"]["amount_due"]) == Decimal("11070")
        assert data["payments"][0]["transaction_id"] == "000AB12"

    async def test_overpayment_rejected(self, client: AsyncClient, catalog) -> None:
        created = await _create(client, catalog)
        response = await client.post(
            f"/api/v1/bookings/{created['id']}/payments", json={"amount": "99999", "method": "cash"}
        )
        assert response.status_code == 422
        assert response.json()["detail"]["field"] == "amount"
