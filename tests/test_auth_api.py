"""Login, registration and profile endpoints."""

import pytest

from shiteni.models.user import User, UserRole
from shiteni.models.vendor import ServiceType, Vendor
from tests.conftest import PASSWORD, auth_headers


def login(client, email, password=PASSWORD):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


class TestLogin:
    def test_manager_login_returns_vendor_context(self, client, db, make_vendor, make_user):
        vendor = make_vendor(service_type=ServiceType.BUS, slug="power-tools")
        manager = make_user(vendor, UserRole.MANAGER)

        response = login(client, manager.email)

        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["role"] == "manager"
        assert body["vendor_id"] == vendor.id
        assert body["service_type"] == "bus"
        assert "schedule-trip" in body["modules"]

        db.expire_all()
        assert db.get(User, manager.id).last_login_at is not None

    def test_customer_login(self, client, make_user):
        customer = make_user(None, UserRole.CUSTOMER)

        body = login(client, customer.email).json()

        assert body["vendor_id"] is None
        assert body["service_type"] is None
        assert body["modules"] == []

    def test_wrong_password_and_unknown_email_look_the_same(self, client, make_user):
        customer = make_user(None, UserRole.CUSTOMER)

        wrong_password = login(client, customer.email, "not-the-password")
        unknown = login(client, "ghost@shiteni.co.zm")

        assert wrong_password.status_code == unknown.status_code == 401
        assert wrong_password.json()["detail"] == unknown.json()["detail"] == "Invalid credentials"

    def test_suspended_user(self, client, make_user):
        customer = make_user(None, UserRole.CUSTOMER, status="suspended", is_active=False)

        response = login(client, customer.email)

        assert response.status_code == 401
        assert response.json()["detail"] == "User account is suspended"


class TestRegistration:
    def test_register_customer(self, client, db):
        response = client.post("/api/v1/auth/register", json={
            "email": "chanda@shiteni.co.zm",
            "password": "securepassword123",
            "first_name": "Chanda",
            "last_name": "Mulenga",
        })

        assert response.status_code == 201
        body = response.json()
        assert body["role"] == "customer"
        assert body["vendor_id"] is None
        assert "hashed_password" not in body
        assert login(client, "chanda@shiteni.co.zm", "securepassword123").status_code == 200

    def test_duplicate_email(self, client, make_user):
        customer = make_user(None, UserRole.CUSTOMER)

        response = client.post("/api/v1/auth/register", json={
            "email": customer.email,
            "password": "securepassword123",
            "first_name": "Again",
            "last_name": "Again",
        })

        assert response.status_code == 409

    def test_short_password(self, client):
        response = client.post("/api/v1/auth/register", json={
            "email": "short@shiteni.co.zm",
            "password": "short",
            "first_name": "Short",
            "last_name": "Password",
        })

        assert response.status_code == 422

    def test_register_vendor_starts_pending(self, client, db):
        payload = {
            "email": "owner@sunrise.co.zm",
            "password": "securepassword123",
            "first_name": "Mwila",
            "last_name": "Banda",
            "phone": "0971234567",
            "business_name": "Sunrise Lodge & Spa",
            "service_type": "hotel",
        }

        response = client.post("/api/v1/auth/register-vendor", json=payload)

        assert response.status_code == 201
        body = response.json()
        assert body["vendor"]["status"] == "pending"
        assert body["vendor"]["slug"] == "sunrise-lodge-spa"
        assert body["vendor"]["subdomain"] == "sunrise-lodge-spa"
        assert body["vendor"]["phone"] == "0971234567"
        assert body["user"]["role"] == "manager"
        assert body["user"]["vendor_id"] == body["vendor"]["id"]

    def test_vendor_slugs_stay_unique(self, client, db, make_vendor):
        make_vendor(slug="corner-shop", service_type=ServiceType.STORE)

        response = client.post("/api/v1/auth/register-vendor", json={
            "email": "second@corner.co.zm",
            "password": "securepassword123",
            "first_name": "Tembo",
            "last_name": "Phiri",
            "business_name": "Corner Shop",
            "service_type": "store",
        })

        assert response.status_code == 201
        assert response.json()["vendor"]["slug"] == "corner-shop-2"
        assert db.query(Vendor).count() == 2

    @pytest.mark.parametrize("business_name", ["App", "API", "WWW"])
    def test_reserved_subdomains_are_never_handed_out(self, client, business_name):
        response = client.post("/api/v1/auth/register-vendor", json={
            "email": "owner@reserved.co.zm",
            "password": "securepassword123",
            "first_name": "Tembo",
            "last_name": "Phiri",
            "business_name": business_name,
            "service_type": "store",
        })

        assert response.status_code == 201
        assert response.json()["vendor"]["slug"] == f"{business_name.lower()}-2"

    def test_unknown_service_type(self, client):
        response = client.post("/api/v1/auth/register-vendor", json={
            "email": "owner@rockets.co.zm",
            "password": "securepassword123",
            "first_name": "Elon",
            "last_name": "Phiri",
            "business_name": "Rockets",
            "service_type": "spaceport",
        })

        assert response.status_code == 422


class TestMe:
    def test_me_for_staff(self, client, make_vendor, make_user):
        vendor = make_vendor()
        receptionist = make_user(vendor, UserRole.RECEPTIONIST)

        response = client.get("/api/v1/auth/me", headers=auth_headers(receptionist))

        assert response.status_code == 200
        body = response.json()
        assert body["user"]["email"] == receptionist.email
        assert body["vendor"]["slug"] == vendor.slug
        assert body["modules"] == ["bookings", "in-house", "customers"]
        assert body["role_display_name"] == "Receptionist"

    def test_me_requires_a_token(self, client):
        assert client.get("/api/v1/auth/me").status_code in (401, 403)

    def test_garbage_token(self, client):
        response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401
        assert response.json()["type"] == "authentication_error"

    def test_token_of_moved_user_is_rejected(self, client, db, make_vendor, make_user):
        first = make_vendor(slug="first-hotel")
        second = make_vendor(slug="second-hotel")
        user = make_user(first, UserRole.RECEPTIONIST)
        headers = auth_headers(user)

        user.vendor_id = second.id
        db.commit()

        response = client.get("/api/v1/auth/me", headers=headers)

        assert response.status_code == 401
        assert response.json()["detail"] == "Token no longer valid for this account"

    def test_deactivated_user_token_stops_working(self, client, db, make_user):
        customer = make_user(None, UserRole.CUSTOMER)
        headers = auth_headers(customer)
        customer.set_status("inactive")
        db.commit()

        assert client.get("/api/v1/auth/me", headers=headers).status_code == 401


class TestChangePassword:
    def test_change_password(self, client, make_user):
        customer = make_user(None, UserRole.CUSTOMER)

        response = client.post(
            "/api/v1/auth/change-password",
            json={"current_password": PASSWORD, "new_password": "brand-new-secret"},
            headers=auth_headers(customer),
        )

        assert response.status_code == 204
        assert login(client, customer.email).status_code == 401
        assert login(client, customer.email, "brand-new-secret").status_code == 200

    def test_wrong_current_password(self, client, make_user):
        customer = make_user(None, UserRole.CUSTOMER)

        response = client.post(
            "/api/v1/auth/change-password",
            json={"current_password": "wrong-password", "new_password": "brand-new-secret"},
            headers=auth_headers(customer),
        )

        assert response.status_code == 400

    def test_same_password(self, client, make_user):
        customer = make_user(None, UserRole.CUSTOMER)

        response = client.post(
            "/api/v1/auth/change-password",
            json={"current_password": PASSWORD, "new_password": PASSWORD},
            headers=auth_headers(customer),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "New password must differ from the current password"
