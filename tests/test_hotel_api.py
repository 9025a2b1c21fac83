"""Rooms, bookings, payments and the hotel dashboard."""

import pytest

from shiteni.models.hotel import Room
from shiteni.models.user import UserRole
from shiteni.models.vendor import ServiceType
from tests.conftest import auth_headers

HOTEL_URL = "/api/v1/hotel"


@pytest.fixture()
def hotel(vendor_setup):
    return vendor_setup(ServiceType.HOTEL, max_inventory_items=3)


@pytest.fixture()
def room(client, hotel):
    _vendor, _manager, headers = hotel
    response = client.post(f"{HOTEL_URL}/rooms", json={
        "room_number": "101",
        "room_type": "double",
        "capacity": 2,
        "price_per_night": 450.0,
        "amenities": ["wifi", "tv"],
    }, headers=headers)
    assert response.status_code == 201
    return response.json()


@pytest.fixture()
def customer(make_user):
    return make_user(None, UserRole.CUSTOMER, email="guest@gmail.co.zm")


def booking_payload(room, check_in="2030-06-01T14:00:00", check_out="2030-06-04T10:00:00", **extra):
    payload = {
        "room_id": room["id"],
        "guest_name": "Chanda Mulenga",
        "check_in_date": check_in,
        "check_out_date": check_out,
        "number_of_guests": 2,
    }
    payload.update(extra)
    return payload


class TestRooms:
    def test_create_and_list(self, client, hotel, room):
        _vendor, _manager, headers = hotel

        body = client.get(f"{HOTEL_URL}/rooms", headers=headers).json()

        assert body["total"] == 1
        assert body["rooms"][0]["room_number"] == "101"
        assert body["rooms"][0]["status"] == "available"
        assert body["rooms"][0]["amenities"] == ["wifi", "tv"]

    def test_duplicate_room_number(self, client, hotel, room):
        _vendor, _manager, headers = hotel

        response = client.post(f"{HOTEL_URL}/rooms", json={
            "room_number": "101", "room_type": "single", "price_per_night": 300.0,
        }, headers=headers)

        assert response.status_code == 409

    def test_inventory_limit(self, client, hotel, room):
        _vendor, _manager, headers = hotel
        for number in ("102", "103"):
            client.post(f"{HOTEL_URL}/rooms", json={
                "room_number": number, "room_type": "single", "price_per_night": 300.0,
            }, headers=headers)

        response = client.post(f"{HOTEL_URL}/rooms", json={
            "room_number": "104", "room_type": "single", "price_per_night": 300.0,
        }, headers=headers)

        assert response.status_code == 403
        assert "inventory items (3)" in response.json()["detail"]

    def test_pending_vendor_cannot_list_rooms(self, client, make_vendor, make_user, make_plan, subscribe):
        vendor = make_vendor(status="pending")
        manager = make_user(vendor, UserRole.MANAGER)
        subscribe(vendor, make_plan())

        response = client.post(f"{HOTEL_URL}/rooms", json={
            "room_number": "1", "room_type": "single", "price_per_night": 300.0,
        }, headers=auth_headers(manager, vendor))

        assert response.status_code == 403
        assert "pending admin approval" in response.json()["detail"]

    def test_unsubscribed_vendor_cannot_list_rooms(self, client, make_vendor, make_user):
        vendor = make_vendor()
        manager = make_user(vendor, UserRole.MANAGER)

        response = client.post(f"{HOTEL_URL}/rooms", json={
            "room_number": "1", "room_type": "single", "price_per_night": 300.0,
        }, headers=auth_headers(manager, vendor))

        assert response.status_code == 402

    def test_receptionist_cannot_manage_rooms(self, client, hotel, make_user):
        vendor, _manager, _headers = hotel
        receptionist = make_user(vendor, UserRole.RECEPTIONIST)

        response = client.post(f"{HOTEL_URL}/rooms", json={
            "room_number": "1", "room_type": "single", "price_per_night": 300.0,
        }, headers=auth_headers(receptionist, vendor))

        assert response.status_code == 403
        assert response.json()["detail"] == "Your role does not have access to room-management"

    def test_housekeeping_marks_room_for_maintenance(self, client, hotel, room, make_user):
        vendor, _manager, _headers = hotel
        housekeeping = make_user(vendor, UserRole.HOUSEKEEPING)

        response = client.patch(
            f"{HOTEL_URL}/rooms/{room['id']}", json={"status": "maintenance"},
            headers=auth_headers(housekeeping, vendor),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "maintenance"

    def test_customer_browses_rooms(self, client, hotel, room, customer):
        vendor, _manager, _headers = hotel

        response = client.get(f"{HOTEL_URL}/rooms/{room['id']}", headers=auth_headers(customer, vendor))

        assert response.status_code == 200
        assert response.json()["price_per_night"] == 450.0

    def test_other_hotels_manager_is_rejected(self, client, hotel, room, make_vendor, make_user):
        other = make_vendor(slug="rival-hotel")
        rival = make_user(other, UserRole.MANAGER)
        vendor, _manager, _headers = hotel

        headers = auth_headers(rival)
        headers["X-Vendor-Slug"] = vendor.slug
        response = client.get(f"{HOTEL_URL}/rooms/{room['id']}", headers=headers)

        assert response.status_code == 403
        assert response.json()["detail"] == "Token vendor mismatch"

    def test_delete_room(self, client, db, hotel, room):
        _vendor, _manager, headers = hotel

        assert client.delete(f"{HOTEL_URL}/rooms/{room['id']}", headers=headers).status_code == 204
        assert db.query(Room).count() == 0

    def test_room_with_open_booking_cannot_be_deleted(self, client, hotel, room):
        _vendor, _manager, headers = hotel
        client.post(f"{HOTEL_URL}/bookings", json=booking_payload(room), headers=headers)

        assert client.delete(f"{HOTEL_URL}/rooms/{room['id']}", headers=headers).status_code == 409


class TestBookings:
    def test_staff_booking(self, client, hotel, room):
        _vendor, _manager, headers = hotel

        response = client.post(f"{HOTEL_URL}/bookings", json=booking_payload(room), headers=headers)

        assert response.status_code == 201
        body = response.json()
        assert body["nights"] == 3
        assert body["total_amount"] == 1350.0
        assert body["status"] == "pending"
        assert body["customer_id"] is None
        assert body["booking_number"].startswith("BK-")

    def test_customer_booking_is_linked(self, client, hotel, room, customer):
        vendor, _manager, _headers = hotel

        response = client.post(
            f"{HOTEL_URL}/bookings", json=booking_payload(room), headers=auth_headers(customer, vendor)
        )

        assert response.status_code == 201
        assert response.json()["customer_id"] == customer.id

    def test_customer_cannot_browse_pending_vendor(self, client, make_vendor, customer):
        vendor = make_vendor(status="pending")

        response = client.get(f"{HOTEL_URL}/rooms", headers=auth_headers(customer, vendor))

        assert response.status_code == 403

    def test_offset_dates_are_stored_in_utc(self, client, hotel, room):
        _vendor, _manager, headers = hotel

        response = client.post(f"{HOTEL_URL}/bookings", json=booking_payload(
            room, check_in="2030-06-01T14:00:00Z", check_out="2030-06-04T12:00:00+02:00"
        ), headers=headers)
        listed = client.get(
            f"{HOTEL_URL}/bookings", params={"date_from": "2030-06-01T15:00:00+02:00"}, headers=headers
        ).json()

        assert response.status_code == 201
        assert response.json()["check_in_date"] == "2030-06-01T14:00:00"
        assert response.json()["check_out_date"] == "2030-06-04T10:00:00"
        assert response.json()["nights"] == 3
        assert listed["total"] == 1

    def test_same_day_checkout(self, client, hotel, room):
        _vendor, _manager, headers = hotel

        response = client.post(f"{HOTEL_URL}/bookings", json=booking_payload(
            room, check_in="2030-06-01T08:00:00", check_out="2030-06-01T20:00:00"
        ), headers=headers)

        assert response.status_code == 400

    def test_too_many_guests(self, client, hotel, room):
        _vendor, _manager, headers = hotel

        response = client.post(
            f"{HOTEL_URL}/bookings", json=booking_payload(room, number_of_guests=3), headers=headers
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Room 101 holds at most 2 guests"

    def test_overlapping_booking(self, client, hotel, room):
        _vendor, _manager, headers = hotel
        client.post(f"{HOTEL_URL}/bookings", json=booking_payload(room), headers=headers)

        overlap = client.post(f"{HOTEL_URL}/bookings", json=booking_payload(
            room, check_in="2030-06-03T14:00:00", check_out="2030-06-05T10:00:00"
        ), headers=headers)
        back_to_back = client.post(f"{HOTEL_URL}/bookings", json=booking_payload(
            room, check_in="2030-06-04T14:00:00", check_out="2030-06-06T10:00:00"
        ), headers=headers)

        assert overlap.status_code == 409
        assert back_to_back.status_code == 201

    def test_cancelled_booking_frees_the_dates(self, client, hotel, room):
        _vendor, _manager, headers = hotel
        first = client.post(f"{HOTEL_URL}/bookings", json=booking_payload(room), headers=headers).json()
        client.patch(f"{HOTEL_URL}/bookings/{first['id']}", json={"status": "cancelled"}, headers=headers)

        again = client.post(f"{HOTEL_URL}/bookings", json=booking_payload(room), headers=headers)

        assert again.status_code == 201

    def test_room_under_maintenance(self, client, hotel, room):
        _vendor, _manager, headers = hotel
        client.patch(f"{HOTEL_URL}/rooms/{room['id']}", json={"status": "maintenance"}, headers=headers)

        response = client.post(f"{HOTEL_URL}/bookings", json=booking_payload(room), headers=headers)

        assert response.status_code == 409


class TestBookingLifecycle:
    def test_check_in_and_out_moves_the_room(self, client, hotel, room):
        _vendor, _manager, headers = hotel
        booking = client.post(f"{HOTEL_URL}/bookings", json=booking_payload(room), headers=headers).json()
        booking_url = f"{HOTEL_URL}/bookings/{booking['id']}"
        room_url = f"{HOTEL_URL}/rooms/{room['id']}"

        client.patch(booking_url, json={"status": "confirmed"}, headers=headers)
        checked_in = client.patch(booking_url, json={"status": "checked_in"}, headers=headers)
        assert checked_in.json()["status"] == "checked_in"
        assert client.get(room_url, headers=headers).json()["status"] == "occupied"

        checked_out = client.patch(
            booking_url, json={"status": "checked_out", "payment_status": "paid"}, headers=headers
        )
        assert checked_out.json()["payment_status"] == "paid"
        assert client.get(room_url, headers=headers).json()["status"] == "available"

    def test_invalid_transition(self, client, hotel, room):
        _vendor, _manager, headers = hotel
        booking = client.post(f"{HOTEL_URL}/bookings", json=booking_payload(room), headers=headers).json()

        response = client.patch(
            f"{HOTEL_URL}/bookings/{booking['id']}", json={"status": "checked_out"}, headers=headers
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot change booking from pending to checked_out"

    def test_customer_may_only_cancel(self, client, hotel, room, customer):
        vendor, _manager, _headers = hotel
        headers = auth_headers(customer, vendor)
        booking = client.post(f"{HOTEL_URL}/bookings", json=booking_payload(room), headers=headers).json()
        booking_url = f"{HOTEL_URL}/bookings/{booking['id']}"

        assert client.patch(booking_url, json={"status": "confirmed"}, headers=headers).status_code == 403
        assert client.patch(booking_url, json={"status": "cancelled"}, headers=headers).status_code == 200

    def test_customers_only_see_their_own_bookings(self, client, hotel, room, customer):
        vendor, _manager, headers = hotel
        booking = client.post(f"{HOTEL_URL}/bookings", json=booking_payload(room), headers=headers).json()

        response = client.get(f"{HOTEL_URL}/bookings/{booking['id']}", headers=auth_headers(customer, vendor))

        assert response.status_code == 404

    def test_customer_cannot_list_all_bookings(self, client, hotel, customer):
        vendor, _manager, _headers = hotel

        response = client.get(f"{HOTEL_URL}/bookings", headers=auth_headers(customer, vendor))

        assert response.status_code == 403

    def test_list_filters(self, client, hotel, room):
        _vendor, _manager, headers = hotel
        first = client.post(f"{HOTEL_URL}/bookings", json=booking_payload(room), headers=headers).json()
        client.post(f"{HOTEL_URL}/bookings", json=booking_payload(
            room, check_in="2030-07-01T14:00:00", check_out="2030-07-02T10:00:00"
        ), headers=headers)
        client.patch(f"{HOTEL_URL}/bookings/{first['id']}", json={"status": "confirmed"}, headers=headers)

        confirmed = client.get(f"{HOTEL_URL}/bookings", params={"status": "confirmed"}, headers=headers).json()
        july = client.get(
            f"{HOTEL_URL}/bookings", params={"date_from": "2030-07-01T00:00:00"}, headers=headers
        ).json()

        assert confirmed["total"] == 1
        assert july["total"] == 1


class TestPayments:
    def test_bookings_are_listed_as_payments(self, client, hotel, room):
        _vendor, _manager, headers = hotel
        first = client.post(f"{HOTEL_URL}/bookings", json=booking_payload(room, payment_method="mobile_money"),
                            headers=headers).json()
        client.post(f"{HOTEL_URL}/bookings", json=booking_payload(
            room, check_in="2030-07-01T14:00:00", check_out="2030-07-02T10:00:00", guest_name="Mutale Tembo"
        ), headers=headers)
        client.patch(f"{HOTEL_URL}/bookings/{first['id']}", json={"payment_status": "paid"}, headers=headers)

        body = client.get(f"{HOTEL_URL}/payments", headers=headers).json()

        assert body["total"] == 2
        assert body["summary"]["total_amount"] == 1800.0
        assert body["summary"]["paid_amount"] == 1350.0
        assert body["summary"]["pending_count"] == 1
        paid = [p for p in body["payments"] if p["reference"] == first["booking_number"]][0]
        assert paid["source"] == "hotel_booking"
        assert paid["description"] == "Room 101, 3 night(s)"
        assert paid["payment_method"] == "mobile_money"

    def test_filter_by_payment_status(self, client, hotel, room):
        _vendor, _manager, headers = hotel
        client.post(f"{HOTEL_URL}/bookings", json=booking_payload(room), headers=headers)

        body = client.get(f"{HOTEL_URL}/payments", params={"payment_status": "paid"}, headers=headers).json()

        assert body["total"] == 0
        assert body["summary"]["total_amount"] == 0.0

    def test_receptionist_cannot_see_payments(self, client, hotel, make_user):
        vendor, _manager, _headers = hotel
        receptionist = make_user(vendor, UserRole.RECEPTIONIST)

        assert client.get(f"{HOTEL_URL}/payments", headers=auth_headers(receptionist, vendor)).status_code == 403


def test_dashboard(client, hotel, room, make_user):
    vendor, _manager, headers = hotel
    client.post(f"{HOTEL_URL}/bookings", json=booking_payload(room), headers=headers)
    receptionist = make_user(vendor, UserRole.RECEPTIONIST)

    response = client.get(f"{HOTEL_URL}/dashboard", headers=auth_headers(receptionist, vendor))

    assert response.status_code == 200
    body = response.json()
    assert body["stats"]["total_rooms"] == 1
    assert body["stats"]["total_bookings"] == 1
    assert body["stats"]["total_revenue"] == 1350.0
    assert body["currency"] == "ZMW"
    assert len(body["recent"]) == 1
