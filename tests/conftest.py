"""Shared pytest fixtures.

Settings are read once at import time, so the environment is pointed at a
throwaway SQLite file before anything from ``shiteni`` is imported.
"""

import json
import os
import tempfile
from datetime import datetime, timedelta
from pathlib import Path

_DB_PATH = Path(tempfile.gettempdir()) / f"shiteni-test-{os.getpid()}.sqlite"
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_PATH}"
os.environ["ENVIRONMENT"] = "testing"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LIPILA_MOCK_MODE"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key"

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import shiteni.models  # noqa: E402,F401
from shiteni.core.security import create_user_token, get_password_hash  # noqa: E402
from shiteni.database import Base, SessionLocal, engine  # noqa: E402
from shiteni.main import app  # noqa: E402
from shiteni.models.subscription import (  # noqa: E402
    PLAN_DEFAULT_LIMITS,
    PlanType,
    Subscription,
    SubscriptionPlan,
)
from shiteni.models.user import User, UserRole  # noqa: E402
from shiteni.models.vendor import ServiceType, Vendor  # noqa: E402
from shiteni.services.lipila import LipilaClient, get_lipila_client  # noqa: E402

PASSWORD = "password123"
PASSWORD_HASH = get_password_hash(PASSWORD)


@pytest.fixture(autouse=True)
def _schema():
    """Fresh tables for every test."""

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="session", autouse=True)
def _cleanup_database_file():
    yield
    engine.dispose()
    if _DB_PATH.exists():
        _DB_PATH.unlink()


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


class FakeLipila:
    """Scriptable stand-in for the Lipila API behind an httpx.MockTransport."""

    def __init__(self) -> None:
        self.status = "Pending"
        self.http_status = 200
        self.transaction_id = "LP-TX-1001"
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.http_status != 200:
            return httpx.Response(self.http_status, json={"message": "gateway says no"})

        if request.url.path == "/transactions/status":
            return httpx.Response(
                200,
                json={"status": self.status, "transactionId": request.url.params["transactionId"]},
            )

        body = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "status": self.status,
                "message": f"Collection {self.status.lower()}",
                "transactionId": self.transaction_id,
                "externalId": body["externalId"],
                "amount": body["amount"],
                "redirectUrl": "https://checkout.lipila.test/pay/1001" if "card" in request.url.path else None,
            },
        )

    def client(self) -> LipilaClient:
        return LipilaClient(
            base_url="https://lipila.test",
            secret_key="test-key",
            mock_mode=False,
            max_retries=0,
            retry_delay=0,
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture()
def gateway() -> FakeLipila:
    return FakeLipila()


@pytest.fixture()
def client(gateway: FakeLipila):
    app.dependency_overrides[get_lipila_client] = gateway.client
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture()
def make_vendor(db):
    def factory(service_type=ServiceType.HOTEL, slug="sunrise-hotel", status="active", **fields):
        vendor = Vendor(
            business_name=fields.pop("business_name", slug.replace("-", " ").title()),
            slug=slug,
            subdomain=fields.pop("subdomain", slug),
            service_type=service_type,
            status=status,
            owner_email=fields.pop("owner_email", f"owner@{slug}.co.zm"),
            phone=fields.pop("phone", "0971234567"),
            currency="ZMW",
            settings={},
            **fields,
        )
        db.add(vendor)
        db.commit()
        return vendor

    return factory


@pytest.fixture()
def make_user(db):
    def factory(vendor=None, role=UserRole.MANAGER, email=None, **fields):
        user = User(
            vendor_id=vendor.id if vendor else None,
            email=email or f"{role.value}@{vendor.slug if vendor else 'shiteni'}.co.zm",
            hashed_password=PASSWORD_HASH,
            first_name=fields.pop("first_name", "Mwila"),
            last_name=fields.pop("last_name", "Banda"),
            phone=fields.pop("phone", "0971234567"),
            role=role,
            status=fields.pop("status", "active"),
            is_active=fields.pop("is_active", True),
            **fields,
        )
        db.add(user)
        db.commit()
        return user

    return factory


@pytest.fixture()
def make_plan(db):
    def factory(vendor_type=ServiceType.HOTEL, plan_type=PlanType.BASIC, price=150.0, **limits):
        values = dict(PLAN_DEFAULT_LIMITS[plan_type])
        values.update(limits)
        plan = SubscriptionPlan(
            name=f"{plan_type.value.title()} {vendor_type.value.title()}",
            vendor_type=vendor_type,
            plan_type=plan_type.value,
            price=price,
            currency="ZMW",
            billing_cycle="monthly",
            features=[],
            is_active=True,
            **values,
        )
        db.add(plan)
        db.commit()
        return plan

    return factory


@pytest.fixture()
def subscribe(db):
    def factory(vendor, plan, days_left=20):
        now = datetime.utcnow()
        subscription = Subscription(
            vendor_id=vendor.id,
            plan_id=plan.id,
            plan_type=plan.plan_type,
            status="active",
            start_date=now - timedelta(days=30 - days_left),
            end_date=now + timedelta(days=days_left),
            billing_cycle="monthly",
            amount=plan.price,
            currency="ZMW",
        )
        db.add(subscription)
        db.commit()
        return subscription

    return factory


def auth_headers(user, vendor=None) -> dict:
    headers = {"Authorization": f"Bearer {create_user_token(user)}"}
    if vendor is not None:
        headers["X-Vendor-Slug"] = vendor.slug
    return headers


@pytest.fixture()
def vendor_setup(make_vendor, make_user, make_plan, subscribe):
    """Approved, subscribed vendor of a given type plus its manager."""

    def factory(service_type=ServiceType.HOTEL, slug=None, plan_type=PlanType.BASIC, **limits):
        vendor = make_vendor(service_type=service_type, slug=slug or f"test-{service_type.value}")
        manager = make_user(vendor, UserRole.MANAGER)
        plan = make_plan(service_type, plan_type, **limits)
        subscribe(vendor, plan)
        return vendor, manager, auth_headers(manager, vendor)

    return factory
