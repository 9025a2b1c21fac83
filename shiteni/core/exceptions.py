"""
Custom Exceptions

Centralized exception definitions for better error handling.
FastAPI converts these to HTTP responses; main.py registers handlers
for the ones that need logging or extra response fields.
"""
from typing import Optional
from fastapi import HTTPException, status


class VendorNotFoundError(HTTPException):
    """Raised when vendor cannot be found."""

    def __init__(self, vendor_identifier: str = ""):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Vendor not found: {vendor_identifier}" if vendor_identifier else "Vendor not found"
        )


class UserNotFoundError(HTTPException):
    """Raised when user cannot be found."""

    def __init__(self, user_id: str = ""):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User not found: {user_id}" if user_id else "User not found"
        )


class RecordNotFoundError(HTTPException):
    """Raised when a vendor-owned record (room, product, trip, ...) cannot be found."""

    def __init__(self, kind: str, record_id: str = ""):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{kind} not found: {record_id}" if record_id else f"{kind} not found"
        )


class AuthenticationError(HTTPException):
    """Raised when authentication fails."""

    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class VendorIsolationError(HTTPException):
    """
    Raised when a vendor isolation violation is detected.

    This is a CRITICAL security error and should be logged/alerted on.
    """

    def __init__(self, detail: str = "Vendor isolation violation"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )


class PermissionDenied(HTTPException):
    """Raised when the user's role does not grant the requested module or action."""

    def __init__(self, detail: str = "Permission denied"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )


class VendorApprovalRequired(HTTPException):
    """Raised when a vendor that is not yet approved tries to publish listings."""

    def __init__(self):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Vendor approval required. Your account is pending admin approval."
        )


class QuotaExceededError(HTTPException):
    """Raised when an action would exceed a subscription plan limit."""

    def __init__(self, limit_name: str, limit: int):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Plan limit reached: {limit_name} ({limit}). Upgrade your subscription to add more."
        )


class SubscriptionRequiredError(HTTPException):
    """Raised when an action needs an active subscription."""

    def __init__(self, detail: str = "Subscription required"):
        super().__init__(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail=detail
        )


class ConflictError(HTTPException):
    """Raised on double bookings, taken seats and duplicate keys."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail
        )


class RateLimitExceeded(HTTPException):
    """Raised when rate limit is exceeded."""

    def __init__(self, retry_after: int = 60):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Please try again later.",
            headers={"Retry-After": str(retry_after)}
        )


class InvalidInputError(HTTPException):
    """Raised when input validation fails beyond what the schemas check."""

    def __init__(self, detail: str = "Invalid input"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail
        )


class PaymentFailedError(HTTPException):
    """Raised when the gateway declines a subscription payment."""

    def __init__(self, detail: str = "Payment failed", transaction_id: Optional[str] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail
        )
        self.transaction_id = transaction_id


class PaymentServiceUnavailable(HTTPException):
    """Raised when the gateway rejects our credentials or cannot be reached."""

    def __init__(self, detail: str = "Payment service unavailable"):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail
        )
