"""
Lipila payment gateway client

Async client for the Lipila collections API (mobile money and card).
Only subscription billing goes through here today.

Endpoints used:
- POST /transactions/mobile-money
- POST /transactions/card
- GET  /transactions/status?transactionId=...
- POST /transactions/cancel

Gateway 502/503/504 responses are retried with linear backoff. 401/403
mean our key is wrong and are surfaced as credential errors so the API
can answer 503 instead of blaming the customer.
"""

import asyncio
import enum
import re
import time
from typing import Any, Dict, Optional

import httpx

from shiteni.config import get_settings
from shiteni.utils.logging import get_logger

logger = get_logger(__name__)

PHONE_PATTERN = re.compile(r"^260[0-9]{9}$")
RETRYABLE_STATUS_CODES = {502, 503, 504}


class LipilaError(Exception):
    """Raised for any gateway failure the caller has to handle"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_auth_error(self) -> bool:
        return self.status_code in (401, 403)

    @property
    def is_timeout(self) -> bool:
        return self.status_code == 408


class LipilaPaymentStatus(str, enum.Enum):
    PENDING = "Pending"
    SUCCESSFUL = "Successful"
    FAILED = "Failed"
    CANCELLED = "Cancelled"

    @classmethod
    def parse(cls, value: Optional[str]) -> "LipilaPaymentStatus":
        """Unknown or missing statuses are treated as still pending"""
        for member in cls:
            if value and value.lower() == member.value.lower():
                return member
        return cls.PENDING


class PaymentType(str, enum.Enum):
    MOBILE_MONEY = "mobile-money"
    CARD = "card"

    @classmethod
    def normalize(cls, value: str) -> "PaymentType":
        """
        Accept the spellings clients send

        Args:
            value: mobile_money, mobile-money or card

        Raises:
            ValueError: for anything else
        """
        cleaned = (value or "").strip().lower().replace("_", "-")
        return cls(cleaned)


def normalize_phone_number(phone_number: str) -> str:
    """
    Normalize a Zambian phone number to 260XXXXXXXXX

    0971234567 -> 260971234567, 971234567 -> 260971234567,
    +260 97 123 4567 -> 260971234567

    Raises:
        LipilaError: if the result is not a valid Zambian number
    """
    digits = re.sub(r"[\s\-+()]", "", phone_number or "")
    if not digits.startswith("260"):
        digits = "260" + digits[1:] if digits.startswith("0") else "260" + digits

    if not PHONE_PATTERN.match(digits):
        raise LipilaError(
            "Invalid phone number format. Must be a valid Zambian number (e.g., 260XXXXXXXXX)"
        )
    return digits


def _split_name(full_name: Optional[str]) -> tuple:
    parts = (full_name or "").split()
    first = parts[0] if parts else "Customer"
    last = " ".join(parts[1:]) if len(parts) > 1 else "User"
    return first, last


class LipilaClient:
    """Client for the Lipila collections API"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        secret_key: Optional[str] = None,
        currency: Optional[str] = None,
        mock_mode: Optional[bool] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the Lipila client

        Args:
            base_url/secret_key/currency/...: override the LIPILA_* settings
            transport: optional httpx transport, used by tests
        """
        settings = get_settings()
        self.base_url = (base_url or settings.LIPILA_BASE_URL).rstrip("/")
        self.secret_key = secret_key if secret_key is not None else settings.LIPILA_SECRET_KEY
        self.currency = currency or settings.LIPILA_CURRENCY
        self.mock_mode = settings.LIPILA_MOCK_MODE if mock_mode is None else mock_mode
        self.timeout = timeout or settings.LIPILA_TIMEOUT_SECONDS
        self.max_retries = settings.LIPILA_MAX_RETRIES if max_retries is None else max_retries
        self.retry_delay = settings.LIPILA_RETRY_DELAY_SECONDS if retry_delay is None else retry_delay
        self.transport = transport

        if not self.mock_mode and not self.secret_key:
            logger.warning("LIPILA_SECRET_KEY is not set; gateway calls will be rejected")

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Send a request, retrying gateway errors

        Returns:
            Decoded JSON body

        Raises:
            LipilaError: with the HTTP status when one is available
        """
        attempt = 0
        async with self._client() as client:
            while True:
                try:
                    response = await client.request(method, path, json=json, params=params)
                except httpx.TimeoutException as e:
                    logger.error(f"Lipila {method} {path} timed out: {e}")
                    raise LipilaError("Payment gateway timed out", status_code=408)
                except httpx.HTTPError as e:
                    logger.error(f"Lipila {method} {path} failed: {e}")
                    raise LipilaError(f"Payment gateway unreachable: {e}")

                if response.status_code in RETRYABLE_STATUS_CODES and attempt < self.max_retries:
                    attempt += 1
                    delay = self.retry_delay * attempt
                    logger.warning(
                        f"Lipila {method} {path} returned {response.status_code}, "
                        f"retry {attempt}/{self.max_retries} in {delay}s"
                    )
                    await asyncio.sleep(delay)
                    continue

                if response.status_code >= 400:
                    message = self._error_message(response)
                    logger.error(f"Lipila {method} {path} failed with {response.status_code}: {message}")
                    raise LipilaError(message, status_code=response.status_code)

                return response.json()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        if response.status_code in (401, 403):
            return "Payment gateway rejected the API key"
        try:
            body = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        if isinstance(body, dict):
            return str(body.get("message") or body.get("error") or body)
        return str(body)

    @staticmethod
    def _validate_amount(amount: float) -> float:
        try:
            amount = float(amount)
        except (TypeError, ValueError):
            raise LipilaError("Invalid payment amount. Amount must be a positive number")
        if amount <= 0:
            raise LipilaError("Invalid payment amount. Amount must be a positive number")
        return amount

    def _mock_response(self, amount: float, external_id: str, payment_type: PaymentType) -> Dict[str, Any]:
        transaction_id = f"MOCK-{int(time.time() * 1000)}"
        logger.info(f"Lipila mock mode: returning successful {payment_type.value} transaction {transaction_id}")
        return {
            "status": LipilaPaymentStatus.SUCCESSFUL.value,
            "message": "Mock payment processed successfully",
            "transactionId": transaction_id,
            "externalId": external_id,
            "amount": amount,
            "currency": self.currency,
            "paymentType": payment_type.value,
        }

    async def collect_mobile_money(
        self,
        amount: float,
        phone_number: str,
        external_id: Optional[str] = None,
        narration: Optional[str] = None,
        full_name: Optional[str] = None,
        email: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Request a mobile money collection from the customer's wallet

        The customer approves the prompt on their phone, so the first
        response is usually Pending.
        """
        amount = self._validate_amount(amount)
        phone = normalize_phone_number(phone_number)
        external_id = external_id or f"MM-{int(time.time() * 1000)}"

        if self.mock_mode:
            return self._mock_response(amount, external_id, PaymentType.MOBILE_MONEY)

        payload = {
            "currency": currency or self.currency,
            "amount": amount,
            "accountNumber": phone,
            "phoneNumber": phone,
            "fullName": full_name or "",
            "email": email or "",
            "externalId": external_id,
            "narration": narration or "Mobile money payment",
        }
        return await self._request("POST", "/transactions/mobile-money", json=payload)

    async def collect_card(
        self,
        amount: float,
        phone_number: str,
        external_id: Optional[str] = None,
        narration: Optional[str] = None,
        full_name: Optional[str] = None,
        email: Optional[str] = None,
        redirect_url: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Start a hosted card payment

        The response carries a redirectUrl the customer must visit to
        enter card details.
        """
        amount = self._validate_amount(amount)
        phone = normalize_phone_number(phone_number)
        external_id = external_id or f"CARD-{int(time.time() * 1000)}"

        if self.mock_mode:
            return self._mock_response(amount, external_id, PaymentType.CARD)

        first_name, last_name = _split_name(full_name)
        payload = {
            "currency": currency or self.currency,
            "amount": amount,
            "phoneNumber": phone,
            "email": email or "",
            "customerFirstName": first_name,
            "customerLastName": last_name,
            "customerCity": "Lusaka",
            "customerCountry": "Zambia",
            "externalId": external_id,
            "narration": narration or "Card payment",
            "clientRedirectUrl": redirect_url,
        }
        return await self._request("POST", "/transactions/card", json=payload)

    async def get_transaction_status(self, transaction_id: str) -> Dict[str, Any]:
        """
        Look up a transaction

        Returns:
            Gateway document with at least status and transactionId
        """
        if self.mock_mode:
            return {
                "status": LipilaPaymentStatus.SUCCESSFUL.value,
                "message": "Mock transaction",
                "transactionId": transaction_id,
                "externalId": transaction_id,
            }
        return await self._request(
            "GET", "/transactions/status", params={"transactionId": transaction_id}
        )

    async def cancel_transaction(self, transaction_id: str) -> Dict[str, Any]:
        """Cancel a transaction that has not completed yet"""
        if self.mock_mode:
            return {
                "status": LipilaPaymentStatus.CANCELLED.value,
                "transactionId": transaction_id,
            }
        return await self._request(
            "POST", "/transactions/cancel", json={"transactionId": transaction_id}
        )

    async def process_subscription_payment(
        self,
        reference: str,
        amount: float,
        payment_type: PaymentType,
        phone_number: str,
        full_name: Optional[str] = None,
        email: Optional[str] = None,
        narration: Optional[str] = None,
        redirect_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Charge a subscription fee

        Args:
            reference: subscription or vendor id embedded in the external id
            payment_type: mobile money or card

        Returns:
            Gateway response with externalId filled in
        """
        external_id = f"SUB-{reference}-{int(time.time() * 1000)}"
        narration = narration or f"Subscription payment - {external_id}"

        if payment_type == PaymentType.MOBILE_MONEY:
            result = await self.collect_mobile_money(
                amount, phone_number, external_id=external_id, narration=narration,
                full_name=full_name, email=email,
            )
        else:
            result = await self.collect_card(
                amount, phone_number, external_id=external_id, narration=narration,
                full_name=full_name, email=email, redirect_url=redirect_url,
            )

        result.setdefault("externalId", external_id)
        return result

    async def verify_payment(self, transaction_id: str) -> bool:
        """
        Check if a transaction completed successfully

        Returns:
            True if Successful, False otherwise (including lookup errors)
        """
        try:
            result = await self.get_transaction_status(transaction_id)
        except LipilaError:
            return False
        return LipilaPaymentStatus.parse(result.get("status")) == LipilaPaymentStatus.SUCCESSFUL


def get_lipila_client() -> LipilaClient:
    """FastAPI dependency; tests override it with a client on a mock transport"""
    return LipilaClient()
