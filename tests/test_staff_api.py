"""Vendor staff management."""

import pytest

from shiteni.models.user import User, UserRole
from shiteni.models.vendor import ServiceType
from tests.conftest import auth_headers

STAFF_URL = "/api/v1/vendor/staff"


def new_staff(role="receptionist", email="front.desk@sunrise.co.zm"):
    return {
        "email": email,
        "password": "securepassword123",
        "first_name": "Front",
        "last_name": "Desk",
        "role": role,
    }


@pytest.fixture()
def hotel(vendor_setup):
    return vendor_setup(ServiceType.HOTEL, max_staff_accounts=2)


class TestCreateStaff:
    def test_manager_adds_staff(self, client, hotel):
        vendor, manager, headers = hotel

        response = client.post(STAFF_URL, json=new_staff(), headers=headers)

        assert response.status_code == 201
        body = response.json()
        assert body["role"] == "receptionist"
        assert body["vendor_id"] == vendor.id

    def test_role_must_fit_the_service_type(self, client, hotel):
        _vendor, _manager, headers = hotel

        response = client.post(STAFF_URL, json=new_staff(role="driver"), headers=headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Role driver is not available for hotel vendors"

    def test_duplicate_email(self, client, hotel):
        _vendor, manager, headers = hotel

        response = client.post(STAFF_URL, json=new_staff(email=manager.email), headers=headers)

        assert response.status_code == 409

    def test_plan_staff_limit(self, client, hotel):
        _vendor, _manager, headers = hotel

        for index in range(2):
            created = client.post(
                STAFF_URL, json=new_staff(email=f"staff{index}@sunrise.co.zm"), headers=headers
            )
            assert created.status_code == 201

        response = client.post(STAFF_URL, json=new_staff(email="one.more@sunrise.co.zm"), headers=headers)

        assert response.status_code == 403
        assert "staff accounts (2)" in response.json()["detail"]

    def test_requires_subscription(self, client, make_vendor, make_user):
        vendor = make_vendor()
        manager = make_user(vendor, UserRole.MANAGER)

        response = client.post(STAFF_URL, json=new_staff(), headers=auth_headers(manager, vendor))

        assert response.status_code == 402

    def test_staff_cannot_add_staff(self, client, hotel, make_user):
        vendor, _manager, _headers = hotel
        receptionist = make_user(vendor, UserRole.RECEPTIONIST)

        response = client.post(STAFF_URL, json=new_staff(), headers=auth_headers(receptionist, vendor))

        assert response.status_code == 403


class TestUpdateStaff:
    def test_manager_changes_role_and_status(self, client, db, hotel, make_user):
        vendor, _manager, headers = hotel
        member = make_user(vendor, UserRole.RECEPTIONIST)

        response = client.patch(
            f"{STAFF_URL}/{member.id}",
            json={"role": "housekeeping", "status": "suspended"},
            headers=headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["role"] == "housekeeping"
        assert body["status"] == "suspended"
        assert body["is_active"] is False

    def test_staff_edit_own_contact_details(self, client, hotel, make_user):
        vendor, _manager, _headers = hotel
        member = make_user(vendor, UserRole.RECEPTIONIST)

        response = client.patch(
            f"{STAFF_URL}/{member.id}", json={"phone": "0960000000"}, headers=auth_headers(member, vendor)
        )

        assert response.status_code == 200
        assert response.json()["phone"] == "0960000000"

    def test_staff_cannot_promote_themselves(self, client, hotel, make_user):
        vendor, _manager, _headers = hotel
        member = make_user(vendor, UserRole.RECEPTIONIST)

        response = client.patch(
            f"{STAFF_URL}/{member.id}", json={"role": "manager"}, headers=auth_headers(member, vendor)
        )

        assert response.status_code == 403

    def test_staff_cannot_edit_colleagues(self, client, hotel, make_user):
        vendor, _manager, _headers = hotel
        member = make_user(vendor, UserRole.RECEPTIONIST)
        colleague = make_user(vendor, UserRole.HOUSEKEEPING)

        response = client.patch(
            f"{STAFF_URL}/{colleague.id}", json={"phone": "0960000000"}, headers=auth_headers(member, vendor)
        )

        assert response.status_code == 403

    def test_manager_cannot_deactivate_themselves(self, client, hotel):
        _vendor, manager, headers = hotel

        response = client.patch(f"{STAFF_URL}/{manager.id}", json={"status": "inactive"}, headers=headers)

        assert response.status_code == 400

    def test_manager_cannot_change_own_role(self, client, hotel):
        _vendor, manager, headers = hotel

        response = client.patch(f"{STAFF_URL}/{manager.id}", json={"role": "receptionist"}, headers=headers)

        assert response.status_code == 400


class TestListAndDelete:
    def test_list_filters_by_role(self, client, hotel, make_user):
        vendor, _manager, headers = hotel
        make_user(vendor, UserRole.RECEPTIONIST)
        make_user(vendor, UserRole.HOUSEKEEPING)

        everyone = client.get(STAFF_URL, headers=headers).json()
        receptionists = client.get(STAFF_URL, params={"role": "receptionist"}, headers=headers).json()

        assert everyone["total"] == 3
        assert receptionists["total"] == 1
        assert receptionists["users"][0]["role"] == "receptionist"

    def test_other_vendors_staff_are_invisible(self, client, hotel, make_vendor, make_user):
        _vendor, _manager, headers = hotel
        other = make_vendor(slug="other-hotel")
        outsider = make_user(other, UserRole.RECEPTIONIST)

        assert client.get(f"{STAFF_URL}/{outsider.id}", headers=headers).status_code == 404
        assert client.delete(f"{STAFF_URL}/{outsider.id}", headers=headers).status_code == 404

    def test_delete(self, client, db, hotel, make_user):
        vendor, _manager, headers = hotel
        member_id = make_user(vendor, UserRole.HOUSEKEEPING).id

        response = client.delete(f"{STAFF_URL}/{member_id}", headers=headers)

        assert response.status_code == 204
        db.expire_all()
        assert db.query(User).filter(User.id == member_id).first() is None

    def test_cannot_delete_self(self, client, hotel):
        _vendor, manager, headers = hotel

        assert client.delete(f"{STAFF_URL}/{manager.id}", headers=headers).status_code == 400
