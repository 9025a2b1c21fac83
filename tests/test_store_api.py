"""Products, orders, customers, payments and the store dashboard."""

import pytest

from shiteni.models.user import UserRole
from shiteni.models.vendor import ServiceType
from tests.conftest import auth_headers

STORE_URL = "/api/v1/store"


@pytest.fixture()
def store(vendor_setup):
    return vendor_setup(ServiceType.STORE)


@pytest.fixture()
def products(client, store):
    _vendor, _manager, headers = store
    rice = client.post(f"{STORE_URL}/products", json={
        "name": "Rice 5kg", "sku": "RICE-5", "category": "grocery", "price": 120.0, "stock": 5,
    }, headers=headers)
    oil = client.post(f"{STORE_URL}/products", json={
        "name": "Cooking Oil 2L", "sku": "OIL-2", "category": "grocery", "price": 45.5, "stock": 30,
    }, headers=headers)
    assert rice.status_code == oil.status_code == 201
    return rice.json(), oil.json()


@pytest.fixture()
def customer(make_user):
    return make_user(None, UserRole.CUSTOMER, email="shopper@gmail.co.zm")


def get_product(client, headers, product):
    return client.get(f"{STORE_URL}/products/{product['id']}", headers=headers).json()


class TestProducts:
    def test_duplicate_sku(self, client, store, products):
        _vendor, _manager, headers = store

        response = client.post(f"{STORE_URL}/products", json={
            "name": "Rice again", "sku": "RICE-5", "price": 99.0,
        }, headers=headers)

        assert response.status_code == 409

    def test_product_without_stock_starts_out_of_stock(self, client, store):
        _vendor, _manager, headers = store

        response = client.post(f"{STORE_URL}/products", json={
            "name": "Sugar 2kg", "sku": "SUGAR-2", "price": 60.0,
        }, headers=headers)

        assert response.json()["status"] == "out_of_stock"

    def test_search_and_low_stock(self, client, store, products):
        _vendor, _manager, headers = store

        by_sku = client.get(f"{STORE_URL}/products", params={"search": "oil"}, headers=headers).json()
        low = client.get(f"{STORE_URL}/products", params={"low_stock": True}, headers=headers).json()

        assert [p["sku"] for p in by_sku["products"]] == ["OIL-2"]
        assert [p["sku"] for p in low["products"]] == ["RICE-5"]

    def test_customers_do_not_see_inactive_products(self, client, store, products, customer):
        vendor, _manager, headers = store
        rice, _oil = products
        client.patch(f"{STORE_URL}/products/{rice['id']}", json={"status": "inactive"}, headers=headers)

        staff_view = client.get(f"{STORE_URL}/products", headers=headers).json()
        customer_view = client.get(f"{STORE_URL}/products", headers=auth_headers(customer, vendor)).json()

        assert staff_view["total"] == 2
        assert customer_view["total"] == 1

    def test_restocking_puts_product_back_on_sale(self, client, store):
        _vendor, _manager, headers = store
        sugar = client.post(f"{STORE_URL}/products", json={
            "name": "Sugar 2kg", "sku": "SUGAR-2", "price": 60.0,
        }, headers=headers).json()

        response = client.patch(f"{STORE_URL}/products/{sugar['id']}", json={"stock": 12}, headers=headers)

        assert response.json()["status"] == "active"

    def test_cashier_cannot_edit_catalogue(self, client, store, make_user):
        vendor, _manager, _headers = store
        cashier = make_user(vendor, UserRole.CASHIER)

        response = client.post(f"{STORE_URL}/products", json={
            "name": "Soap", "sku": "SOAP-1", "price": 12.0,
        }, headers=auth_headers(cashier, vendor))

        assert response.status_code == 403

    def test_inventory_manager_edits_catalogue(self, client, store, make_user):
        vendor, _manager, _headers = store
        stock_keeper = make_user(vendor, UserRole.INVENTORY_MANAGER)

        response = client.post(f"{STORE_URL}/products", json={
            "name": "Soap", "sku": "SOAP-1", "price": 12.0, "stock": 40,
        }, headers=auth_headers(stock_keeper, vendor))

        assert response.status_code == 201

    def test_delete_keeps_order_lines(self, client, store, products):
        _vendor, _manager, headers = store
        rice, _oil = products
        order = client.post(f"{STORE_URL}/orders", json={
            "items": [{"product_id": rice["id"], "quantity": 1}],
        }, headers=headers).json()

        assert client.delete(f"{STORE_URL}/products/{rice['id']}", headers=headers).status_code == 204

        line = client.get(f"{STORE_URL}/orders/{order['id']}", headers=headers).json()["items"][0]
        assert line["product_id"] is None
        assert line["name"] == "Rice 5kg"


class TestOrders:
    def test_totals_and_stock(self, client, store, products):
        _vendor, _manager, headers = store
        rice, oil = products

        response = client.post(f"{STORE_URL}/orders", json={
            "items": [
                {"product_id": rice["id"], "quantity": 1},
                {"product_id": oil["id"], "quantity": 1},
                {"product_id": rice["id"], "quantity": 1},
            ],
            "tax": 10.0,
            "discount": 5.0,
            "customer_name": "Walk-in",
        }, headers=headers)

        assert response.status_code == 201
        body = response.json()
        assert body["order_number"].startswith("ORD-")
        assert body["subtotal"] == 285.5
        assert body["total"] == 290.5
        assert {line["name"]: line["quantity"] for line in body["items"]} == {"Rice 5kg": 2, "Cooking Oil 2L": 1}
        assert get_product(client, headers, rice)["stock"] == 3
        assert get_product(client, headers, oil)["stock"] == 29

    def test_selling_out(self, client, store, products):
        _vendor, _manager, headers = store
        rice, _oil = products

        client.post(f"{STORE_URL}/orders", json={"items": [{"product_id": rice["id"], "quantity": 5}]},
                    headers=headers)

        assert get_product(client, headers, rice)["status"] == "out_of_stock"

    def test_insufficient_stock_leaves_stock_untouched(self, client, store, products):
        _vendor, _manager, headers = store
        rice, oil = products

        response = client.post(f"{STORE_URL}/orders", json={"items": [
            {"product_id": oil["id"], "quantity": 2},
            {"product_id": rice["id"], "quantity": 6},
        ]}, headers=headers)

        assert response.status_code == 409
        assert response.json()["detail"] == "Insufficient stock for Rice 5kg: 5 left"
        assert get_product(client, headers, oil)["stock"] == 30

    def test_discount_larger_than_the_order(self, client, store, products):
        _vendor, _manager, headers = store
        _rice, oil = products

        response = client.post(f"{STORE_URL}/orders", json={
            "items": [{"product_id": oil["id"], "quantity": 1}], "discount": 100.0,
        }, headers=headers)

        assert response.status_code == 400

    def test_empty_order(self, client, store):
        _vendor, _manager, headers = store

        assert client.post(f"{STORE_URL}/orders", json={"items": []}, headers=headers).status_code == 422

    def test_inactive_product_cannot_be_ordered(self, client, store, products):
        _vendor, _manager, headers = store
        rice, _oil = products
        client.patch(f"{STORE_URL}/products/{rice['id']}", json={"status": "inactive"}, headers=headers)

        response = client.post(f"{STORE_URL}/orders", json={
            "items": [{"product_id": rice["id"], "quantity": 1}],
        }, headers=headers)

        assert response.status_code == 400

    def test_customer_order(self, client, store, products, customer):
        vendor, _manager, _headers = store
        _rice, oil = products

        body = client.post(f"{STORE_URL}/orders", json={
            "items": [{"product_id": oil["id"], "quantity": 2}],
        }, headers=auth_headers(customer, vendor)).json()

        assert body["customer_id"] == customer.id
        assert body["customer_name"] == "Mwila Banda"
        assert body["total"] == 91.0


class TestOrderLifecycle:
    def test_cancel_restocks(self, client, store, products):
        _vendor, _manager, headers = store
        rice, _oil = products
        order = client.post(f"{STORE_URL}/orders", json={
            "items": [{"product_id": rice["id"], "quantity": 5}],
        }, headers=headers).json()

        response = client.patch(f"{STORE_URL}/orders/{order['id']}", json={"status": "cancelled"}, headers=headers)

        assert response.json()["status"] == "cancelled"
        restocked = get_product(client, headers, rice)
        assert restocked["stock"] == 5
        assert restocked["status"] == "active"

    def test_fulfilment(self, client, store, products):
        _vendor, _manager, headers = store
        _rice, oil = products
        order = client.post(f"{STORE_URL}/orders", json={
            "items": [{"product_id": oil["id"], "quantity": 1}],
        }, headers=headers).json()
        order_url = f"{STORE_URL}/orders/{order['id']}"

        for status in ("confirmed", "shipped", "delivered"):
            assert client.patch(order_url, json={"status": status}, headers=headers).status_code == 200

        paid = client.patch(order_url, json={"payment_status": "paid"}, headers=headers).json()
        assert paid["status"] == "delivered"
        assert paid["payment_status"] == "paid"

        # Delivered orders are final
        assert client.patch(order_url, json={"status": "cancelled"}, headers=headers).status_code == 400

    def test_skipping_straight_to_delivered(self, client, store, products):
        _vendor, _manager, headers = store
        _rice, oil = products
        order = client.post(f"{STORE_URL}/orders", json={
            "items": [{"product_id": oil["id"], "quantity": 1}],
        }, headers=headers).json()

        response = client.patch(f"{STORE_URL}/orders/{order['id']}", json={"status": "delivered"}, headers=headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot change order from pending to delivered"

    def test_customer_cancels_own_order_only(self, client, store, products, customer, make_user):
        vendor, _manager, headers = store
        _rice, oil = products
        other = make_user(None, UserRole.CUSTOMER, email="other@gmail.co.zm")
        order = client.post(f"{STORE_URL}/orders", json={
            "items": [{"product_id": oil["id"], "quantity": 1}],
        }, headers=auth_headers(customer, vendor)).json()
        order_url = f"{STORE_URL}/orders/{order['id']}"

        assert client.patch(order_url, json={"status": "cancelled"},
                            headers=auth_headers(other, vendor)).status_code == 404
        assert client.patch(order_url, json={"status": "shipped"},
                            headers=auth_headers(customer, vendor)).status_code == 403
        assert client.patch(order_url, json={"status": "cancelled"},
                            headers=auth_headers(customer, vendor)).status_code == 200

    def test_list_by_payment_status(self, client, store, products):
        _vendor, _manager, headers = store
        _rice, oil = products
        for _ in range(2):
            client.post(f"{STORE_URL}/orders", json={
                "items": [{"product_id": oil["id"], "quantity": 1}],
            }, headers=headers)
        first = client.get(f"{STORE_URL}/orders", headers=headers).json()["orders"][0]
        client.patch(f"{STORE_URL}/orders/{first['id']}", json={"payment_status": "paid"}, headers=headers)

        paid = client.get(f"{STORE_URL}/orders", params={"payment_status": "paid"}, headers=headers).json()

        assert paid["total"] == 1


class TestCustomers:
    def test_book_is_built_from_orders(self, client, store, products, customer, make_user):
        vendor, _manager, headers = store
        _rice, oil = products
        customer_headers = auth_headers(customer, vendor)
        line = {"items": [{"product_id": oil["id"], "quantity": 2}]}
        client.post(f"{STORE_URL}/orders", json=line, headers=customer_headers)
        dropped = client.post(f"{STORE_URL}/orders", json=line, headers=customer_headers).json()
        client.patch(f"{STORE_URL}/orders/{dropped['id']}", json={"status": "cancelled"}, headers=customer_headers)
        client.post(f"{STORE_URL}/orders", json={
            "items": [{"product_id": oil["id"], "quantity": 1}],
            "customer_name": "Chileshe Mulenga", "customer_phone": "0955000111",
        }, headers=headers)
        cashier = make_user(vendor, UserRole.CASHIER)

        body = client.get(f"{STORE_URL}/customers", params={"sort": "highest-spent"},
                          headers=auth_headers(cashier, vendor)).json()

        assert body["total"] == 2
        regular, walk_in = body["customers"]
        assert regular["customer_id"] == customer.id
        assert regular["total_orders"] == 2
        assert regular["total_spent"] == 91.0
        assert regular["loyalty_points"] == 9
        assert walk_in["name"] == "Chileshe Mulenga"
        assert walk_in["total_spent"] == 45.5

    def test_search_by_phone(self, client, store, products):
        _vendor, _manager, headers = store
        _rice, oil = products
        for name, phone in (("Chileshe Mulenga", "0955000111"), ("Natasha Zulu", "0977000222")):
            client.post(f"{STORE_URL}/orders", json={
                "items": [{"product_id": oil["id"], "quantity": 1}],
                "customer_name": name, "customer_phone": phone,
            }, headers=headers)

        body = client.get(f"{STORE_URL}/customers", params={"search": "0977"}, headers=headers).json()

        assert [c["name"] for c in body["customers"]] == ["Natasha Zulu"]

    def test_unknown_sort(self, client, store):
        _vendor, _manager, headers = store

        assert client.get(f"{STORE_URL}/customers", params={"sort": "name"}, headers=headers).status_code == 422


class TestPayments:
    def test_orders_are_listed_as_payments(self, client, store, products):
        _vendor, _manager, headers = store
        rice, oil = products
        paid = client.post(f"{STORE_URL}/orders", json={
            "items": [{"product_id": rice["id"], "quantity": 1}], "payment_method": "cash",
        }, headers=headers).json()
        client.post(f"{STORE_URL}/orders", json={"items": [{"product_id": oil["id"], "quantity": 1}]},
                    headers=headers)
        client.patch(f"{STORE_URL}/orders/{paid['id']}", json={"payment_status": "paid"}, headers=headers)

        body = client.get(f"{STORE_URL}/payments", headers=headers).json()

        assert body["total"] == 2
        assert body["summary"]["total_amount"] == 165.5
        assert body["summary"]["paid_amount"] == 120.0
        assert body["summary"]["pending_amount"] == 45.5

        only_paid = client.get(f"{STORE_URL}/payments", params={"payment_status": "paid"}, headers=headers).json()
        entry = only_paid["payments"][0]
        assert only_paid["total"] == 1
        assert entry["reference"] == paid["order_number"]
        assert entry["source"] == "store_order"
        assert entry["customer_name"] == "Walk-in customer"
        assert entry["payment_method"] == "cash"

    def test_sales_associate_cannot_see_payments(self, client, store, make_user):
        vendor, _manager, _headers = store
        associate = make_user(vendor, UserRole.SALES_ASSOCIATE)

        assert client.get(f"{STORE_URL}/payments", headers=auth_headers(associate, vendor)).status_code == 403


def test_dashboard(client, store, products, make_user):
    vendor, _manager, headers = store
    rice, oil = products
    client.post(f"{STORE_URL}/orders", json={
        "items": [{"product_id": rice["id"], "quantity": 2}, {"product_id": oil["id"], "quantity": 1}],
        "customer_name": "Walk-in",
    }, headers=headers)
    cashier = make_user(vendor, UserRole.CASHIER)

    body = client.get(f"{STORE_URL}/dashboard", headers=auth_headers(cashier, vendor)).json()

    assert body["stats"]["total_products"] == 2
    assert body["stats"]["low_stock_products"] == 1
    assert body["stats"]["total_orders"] == 1
    assert body["stats"]["pending_orders"] == 1
    assert body["stats"]["total_revenue"] == 285.5
    assert body["stats"]["inventory_value"] == 1679.5
    assert body["recent"][0]["name"] == "Walk-in"
