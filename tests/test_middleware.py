"""Vendor resolution and rate limiting middleware."""

import time
from unittest.mock import MagicMock

import pytest
import redis
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient

from shiteni.middleware import rate_limit
from shiteni.middleware.rate_limit import RateLimitMiddleware
from shiteni.models.vendor import ServiceType
from tests.conftest import auth_headers


class FakeRedis:
    """Just enough of redis.Redis for the token bucket."""

    def __init__(self):
        self.store = {}

    def ping(self):
        return True

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = str(value)


class TestVendorResolution:
    def test_vendor_routes_need_an_identifier(self, client):
        response = client.get("/api/v1/hotel/rooms")

        assert response.status_code == 400
        assert "Vendor identifier required" in response.json()["detail"]

    def test_unknown_vendor(self, client):
        response = client.get("/api/v1/hotel/rooms", headers={"X-Vendor-Slug": "nowhere"})

        assert response.status_code == 404

    @pytest.mark.parametrize("status", ["suspended", "inactive"])
    def test_blocked_vendor(self, client, make_vendor, status):
        make_vendor(status=status)

        response = client.get("/api/v1/hotel/rooms", headers={"X-Vendor-Slug": "sunrise-hotel"})

        assert response.status_code == 403
        assert response.json()["detail"] == f"Vendor account is {status}"

    def test_pending_vendor_gets_through(self, client, make_vendor):
        make_vendor(status="pending")

        response = client.get("/api/v1/vendor/approval-status", headers={"X-Vendor-Slug": "sunrise-hotel"})

        assert response.status_code in (401, 403)
        assert "Vendor" not in response.json()["detail"]

    def test_subdomain(self, client, make_vendor, make_user):
        vendor = make_vendor(slug="sunrise-hotel", subdomain="sunrise")
        headers = auth_headers(make_user(vendor))
        headers["Host"] = "sunrise.shiteni.com"

        response = client.get("/api/v1/hotel/rooms", headers=headers)

        assert response.status_code == 200

    def test_vendor_id_header(self, client, make_vendor, make_user):
        vendor = make_vendor()
        headers = auth_headers(make_user(vendor))
        headers["X-Vendor-ID"] = vendor.id

        response = client.get("/api/v1/hotel/rooms", headers=headers)

        assert response.status_code == 200

    def test_service_type_guard(self, client, make_vendor):
        make_vendor(service_type=ServiceType.STORE, slug="corner-shop")

        response = client.get("/api/v1/hotel/rooms", headers={"X-Vendor-Slug": "corner-shop"})

        assert response.status_code == 404
        assert response.json()["detail"] == "This endpoint is only available for hotel vendors"

    def test_platform_routes_skip_vendor_resolution(self, client):
        assert client.get("/health").status_code == 200
        assert client.get("/api/v1/customer/vendors").status_code == 200

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"
        assert "X-Process-Time" in response.headers


class TestTokenBucket:
    @pytest.fixture()
    def limiter(self):
        middleware = RateLimitMiddleware(app=None)
        middleware.redis_client = FakeRedis()
        return middleware

    def test_burst_then_refill(self, limiter):
        assert limiter._check_rate_limit("k", 60, 2) == (True, 0)
        assert limiter._check_rate_limit("k", 60, 2) == (True, 0)

        allowed, retry_after = limiter._check_rate_limit("k", 60, 2)
        assert not allowed
        assert retry_after >= 1

        # A second later one token (60/min) is back
        limiter.redis_client.store["k:timestamp"] = str(time.time() - 1.5)
        assert limiter._check_rate_limit("k", 60, 2)[0]

    def test_buckets_are_independent(self, limiter):
        limiter._check_rate_limit("a", 60, 1)
        assert not limiter._check_rate_limit("a", 60, 1)[0]
        assert limiter._check_rate_limit("b", 60, 1)[0]

    def test_redis_errors_fail_open(self, limiter):
        limiter.redis_client = MagicMock()
        limiter.redis_client.get.side_effect = redis.ConnectionError("down")

        assert limiter._check_rate_limit("k", 60, 1) == (True, 0)


class TestRateLimitMiddleware:
    @pytest.fixture()
    def limited_app(self, monkeypatch):
        monkeypatch.setattr(rate_limit.settings, "RATE_LIMIT_ENABLED", True)
        monkeypatch.setattr(rate_limit.settings, "RATE_LIMIT_BURST", 2)
        monkeypatch.setattr(rate_limit.settings, "RATE_LIMIT_PER_MINUTE", 60)

        app = FastAPI()
        app.add_middleware(RateLimitMiddleware, redis_client=FakeRedis())

        @app.get("/ping")
        async def ping(request: Request):
            return {"ok": True}

        @app.get("/health")
        async def health():
            return {"status": "healthy"}

        return app

    def test_third_request_is_throttled(self, limited_app):
        client = TestClient(limited_app)

        assert client.get("/ping").status_code == 200
        assert client.get("/ping").status_code == 200
        response = client.get("/ping")

        assert response.status_code == 429
        assert response.json()["detail"] == "Rate limit exceeded"
        assert int(response.headers["Retry-After"]) >= 1

    def test_excluded_paths(self, limited_app):
        client = TestClient(limited_app)

        for _ in range(5):
            assert client.get("/health").status_code == 200

    def test_unreachable_redis_disables_limiting(self, monkeypatch):
        monkeypatch.setattr(rate_limit.settings, "RATE_LIMIT_ENABLED", True)
        broken = MagicMock()
        broken.ping.side_effect = redis.ConnectionError("down")

        middleware = RateLimitMiddleware(app=None, redis_client=broken)

        assert middleware.enabled
        assert not middleware.redis_available
