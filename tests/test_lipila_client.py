"""Lipila gateway client against an httpx.MockTransport."""

import json

import httpx
import pytest

from shiteni.services.lipila import (
    LipilaClient,
    LipilaError,
    LipilaPaymentStatus,
    PaymentType,
    normalize_phone_number,
)


def make_client(handler, **overrides):
    options = dict(
        base_url="https://lipila.test",
        secret_key="sk-test",
        currency="ZMW",
        mock_mode=False,
        max_retries=0,
        retry_delay=0,
        transport=httpx.MockTransport(handler),
    )
    options.update(overrides)
    return LipilaClient(**options)


class TestConfiguration:
    def test_missing_secret_key_is_logged(self, caplog):
        with caplog.at_level("WARNING", logger="shiteni.services.lipila"):
            make_client(lambda request: httpx.Response(200), secret_key="")

        assert [r.name for r in caplog.records] == ["shiteni.services.lipila"]
        assert "LIPILA_SECRET_KEY is not set" in caplog.text

    def test_mock_mode_needs_no_key(self, caplog):
        with caplog.at_level("WARNING", logger="shiteni.services.lipila"):
            make_client(lambda request: httpx.Response(200), secret_key="", mock_mode=True)

        assert caplog.records == []


class TestPhoneNumbers:
    @pytest.mark.parametrize(
        "raw",
        ["0971234567", "971234567", "260971234567", "+260 97 123 4567", "(260) 97-123-4567"],
    )
    def test_normalizes_zambian_numbers(self, raw):
        assert normalize_phone_number(raw) == "260971234567"

    @pytest.mark.parametrize("raw", ["", "12345", "26097123456789", "abcdefghij"])
    def test_rejects_invalid_numbers(self, raw):
        with pytest.raises(LipilaError):
            normalize_phone_number(raw)


class TestEnums:
    def test_payment_type_accepts_both_spellings(self):
        assert PaymentType.normalize("mobile_money") == PaymentType.MOBILE_MONEY
        assert PaymentType.normalize(" Mobile-Money ") == PaymentType.MOBILE_MONEY
        assert PaymentType.normalize("card") == PaymentType.CARD

    def test_payment_type_rejects_unknown(self):
        with pytest.raises(ValueError):
            PaymentType.normalize("cheque")

    def test_unknown_status_is_pending(self):
        assert LipilaPaymentStatus.parse("successful") == LipilaPaymentStatus.SUCCESSFUL
        assert LipilaPaymentStatus.parse("Processing") == LipilaPaymentStatus.PENDING
        assert LipilaPaymentStatus.parse(None) == LipilaPaymentStatus.PENDING


class TestCollections:
    @pytest.mark.asyncio
    async def test_mobile_money_payload(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"status": "Pending", "transactionId": "TX-1"})

        result = await make_client(handler).collect_mobile_money(
            150, "0971234567", external_id="EXT-1", full_name="Mwila Banda"
        )

        assert result["transactionId"] == "TX-1"
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/transactions/mobile-money"
        assert request.headers["Authorization"] == "Bearer sk-test"
        body = json.loads(request.content)
        assert body["amount"] == 150.0
        assert body["currency"] == "ZMW"
        assert body["phoneNumber"] == "260971234567"
        assert body["accountNumber"] == "260971234567"
        assert body["externalId"] == "EXT-1"

    @pytest.mark.asyncio
    async def test_card_payload_splits_name(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"status": "Pending", "redirectUrl": "https://pay"})

        await make_client(handler).collect_card(
            300, "0961234567", full_name="Mwila Chanda Banda", redirect_url="https://back"
        )

        body = seen[0]
        assert body["customerFirstName"] == "Mwila"
        assert body["customerLastName"] == "Chanda Banda"
        assert body["clientRedirectUrl"] == "https://back"
        assert body["externalId"].startswith("CARD-")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -5, "abc"])
    async def test_invalid_amount_never_reaches_gateway(self, amount):
        def handler(request):
            raise AssertionError("gateway should not be called")

        with pytest.raises(LipilaError):
            await make_client(handler).collect_mobile_money(amount, "0971234567")

    @pytest.mark.asyncio
    async def test_subscription_payment_sets_external_id(self):
        def handler(request):
            return httpx.Response(200, json={"status": "Successful", "transactionId": "TX-9"})

        result = await make_client(handler).process_subscription_payment(
            reference="sub-1", amount=150, payment_type=PaymentType.MOBILE_MONEY,
            phone_number="0971234567",
        )

        assert result["status"] == "Successful"
        assert result["externalId"].startswith("SUB-sub-1-")


class TestErrors:
    @pytest.mark.asyncio
    async def test_auth_failure_is_flagged(self):
        def handler(request):
            return httpx.Response(401, json={"message": "bad key"})

        with pytest.raises(LipilaError) as exc_info:
            await make_client(handler).get_transaction_status("TX-1")

        assert exc_info.value.is_auth_error
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_gateway_errors_are_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(503, json={"message": "busy"})
            return httpx.Response(200, json={"status": "Successful", "transactionId": "TX-1"})

        result = await make_client(handler, max_retries=2).get_transaction_status("TX-1")

        assert result["status"] == "Successful"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_retries_give_up(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(502, json={"message": "bad gateway"})

        with pytest.raises(LipilaError) as exc_info:
            await make_client(handler, max_retries=1).get_transaction_status("TX-1")

        assert exc_info.value.status_code == 502
        assert str(exc_info.value) == "bad gateway"
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(400, json={"error": "Invalid msisdn"})

        with pytest.raises(LipilaError, match="Invalid msisdn"):
            await make_client(handler, max_retries=3).get_transaction_status("TX-1")

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_timeout_maps_to_408(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(LipilaError) as exc_info:
            await make_client(handler).get_transaction_status("TX-1")

        assert exc_info.value.is_timeout

    @pytest.mark.asyncio
    async def test_verify_payment(self):
        statuses = iter(["Successful", "Failed"])

        def handler(request):
            return httpx.Response(200, json={"status": next(statuses)})

        client = make_client(handler)
        assert await client.verify_payment("TX-1") is True
        assert await client.verify_payment("TX-2") is False

    @pytest.mark.asyncio
    async def test_verify_payment_swallows_lookup_errors(self):
        def handler(request):
            return httpx.Response(500, text="boom")

        assert await make_client(handler).verify_payment("TX-1") is False


class TestMockMode:
    @pytest.mark.asyncio
    async def test_mock_mode_never_calls_gateway(self):
        def handler(request):
            raise AssertionError("gateway should not be called")

        client = make_client(handler, mock_mode=True)

        payment = await client.process_subscription_payment(
            reference="sub-1", amount=150, payment_type=PaymentType.CARD, phone_number="0971234567"
        )
        status = await client.get_transaction_status(payment["transactionId"])
        cancelled = await client.cancel_transaction(payment["transactionId"])

        assert payment["status"] == "Successful"
        assert payment["transactionId"].startswith("MOCK-")
        assert status["status"] == "Successful"
        assert cancelled["status"] == "Cancelled"

    @pytest.mark.asyncio
    async def test_cancel_transaction(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"status": "Cancelled", "transactionId": "TX-1"})

        result = await make_client(handler).cancel_transaction("TX-1")

        assert result["status"] == "Cancelled"
        assert seen[0].url.path == "/transactions/cancel"
        assert json.loads(seen[0].content) == {"transactionId": "TX-1"}
