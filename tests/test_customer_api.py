"""Customer dashboard, purchase history and the public vendor directory."""

import pytest

from shiteni.models.user import UserRole
from shiteni.models.vendor import ServiceType
from tests.conftest import auth_headers

CUSTOMER_URL = "/api/v1/customer"


@pytest.fixture()
def customer(make_user):
    return make_user(None, UserRole.CUSTOMER, email="chanda@gmail.co.zm")


@pytest.fixture()
def purchases(client, vendor_setup, customer):
    """One hotel stay and one store order by the same customer."""
    hotel, _manager, hotel_headers = vendor_setup(ServiceType.HOTEL)
    store, _manager, store_headers = vendor_setup(ServiceType.STORE)

    room = client.post("/api/v1/hotel/rooms", json={
        "room_number": "7", "room_type": "suite", "price_per_night": 900.0,
    }, headers=hotel_headers).json()
    product = client.post("/api/v1/store/products", json={
        "name": "Chitenge", "sku": "CHT-1", "price": 150.0, "stock": 10,
    }, headers=store_headers).json()

    booking = client.post("/api/v1/hotel/bookings", json={
        "room_id": room["id"],
        "guest_name": "Chanda Mulenga",
        "check_in_date": "2030-08-01T14:00:00",
        "check_out_date": "2030-08-03T10:00:00",
    }, headers=auth_headers(customer, hotel))
    order = client.post("/api/v1/store/orders", json={
        "items": [{"product_id": product["id"], "quantity": 2}],
    }, headers=auth_headers(customer, store))
    assert booking.status_code == order.status_code == 201

    return booking.json(), order.json(), store_headers


class TestCustomerDashboard:
    def test_totals_across_vendors(self, client, customer, purchases):
        body = client.get(f"{CUSTOMER_URL}/dashboard", headers=auth_headers(customer)).json()

        assert body["stats"]["total_bookings"] == 1
        assert body["stats"]["total_orders"] == 1
        assert body["stats"]["total_tickets"] == 0
        assert body["stats"]["total_spent"] == 2100.0
        assert body["stats"]["upcoming_stays"] == 1
        assert {item["type"] for item in body["recent"]} == {"hotel_booking", "store_order"}
        assert body["currency"] == "ZMW"

    def test_cancelled_orders_do_not_count(self, client, customer, purchases):
        _booking, order, store_headers = purchases
        client.patch(f"/api/v1/store/orders/{order['id']}", json={"status": "cancelled"}, headers=store_headers)

        body = client.get(f"{CUSTOMER_URL}/dashboard", headers=auth_headers(customer)).json()

        assert body["stats"]["total_spent"] == 1800.0

    def test_new_customer(self, client, customer):
        body = client.get(f"{CUSTOMER_URL}/dashboard", headers=auth_headers(customer)).json()

        assert body["stats"]["total_spent"] == 0.0
        assert body["recent"] == []

    def test_requires_login(self, client):
        assert client.get(f"{CUSTOMER_URL}/dashboard").status_code in (401, 403)


def test_purchase_history(client, customer, purchases, make_user):
    booking, order, _store_headers = purchases
    stranger = make_user(None, UserRole.CUSTOMER, email="stranger@gmail.co.zm")

    mine = client.get(f"{CUSTOMER_URL}/orders", headers=auth_headers(customer)).json()
    theirs = client.get(f"{CUSTOMER_URL}/orders", headers=auth_headers(stranger)).json()

    assert [b["id"] for b in mine["hotel_bookings"]] == [booking["id"]]
    assert [o["id"] for o in mine["store_orders"]] == [order["id"]]
    assert mine["pharmacy_orders"] == mine["bus_tickets"] == []
    assert theirs["hotel_bookings"] == theirs["store_orders"] == []


class TestVendorDirectory:
    def test_only_approved_vendors(self, client, make_vendor):
        make_vendor(slug="sunrise-hotel")
        make_vendor(slug="pending-hotel", status="pending")
        make_vendor(slug="closed-hotel", status="suspended")

        body = client.get(f"{CUSTOMER_URL}/vendors").json()

        assert [v["slug"] for v in body["vendors"]] == ["sunrise-hotel"]
        assert "owner_email" not in body["vendors"][0]

    def test_filters(self, client, make_vendor):
        make_vendor(slug="sunrise-hotel")
        make_vendor(service_type=ServiceType.BUS, slug="mazhandu-family-bus")

        buses = client.get(f"{CUSTOMER_URL}/vendors", params={"service_type": "bus"}).json()
        search = client.get(f"{CUSTOMER_URL}/vendors", params={"search": "sunrise"}).json()

        assert [v["slug"] for v in buses["vendors"]] == ["mazhandu-family-bus"]
        assert search["total"] == 1
