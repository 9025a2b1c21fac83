"""
Vendor Middleware

Resolves the vendor a dashboard request is about and puts it on
request.state. Only vendor-scoped API prefixes need a vendor; auth,
admin, customer and webhook routes run without one.

ARCHITECTURE: vendors are addressed by
1. X-Vendor-Slug header (dashboard and API clients)
2. subdomain: sunrise.shiteni.com -> vendor with subdomain "sunrise"
3. X-Vendor-ID header

Suspended and rejected vendors are blocked here. Pending vendors get
through so they can finish setting up; listing actions check approval
separately (api/deps.py).
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import Optional
import logging

from shiteni.database import SessionLocal
from shiteni.models.vendor import Vendor

logger = logging.getLogger(__name__)

VENDOR_SCOPED_PREFIXES = (
    "/api/v1/hotel",
    "/api/v1/store",
    "/api/v1/pharmacy",
    "/api/v1/bus",
    "/api/v1/vendor",
)

NON_VENDOR_SUBDOMAINS = {"www", "api", "app"}


class VendorMiddleware(BaseHTTPMiddleware):
    """
    Middleware to extract and validate the vendor from a request.

    SECURITY: This is the first line of defense for vendor isolation.
    Route handlers still filter every query by vendor_id.
    """

    async def dispatch(self, request: Request, call_next):
        """Process each request and inject vendor context."""

        if not request.url.path.startswith(VENDOR_SCOPED_PREFIXES):
            return await call_next(request)

        vendor_identifier = self._extract_vendor_identifier(request)

        if not vendor_identifier:
            logger.warning(f"No vendor identifier in request: {request.url.path}")
            return JSONResponse(
                status_code=400,
                content={"detail": "Vendor identifier required (subdomain or X-Vendor-Slug header)"}
            )

        db = SessionLocal()
        try:
            vendor = self._load_vendor(db, vendor_identifier)
        finally:
            db.close()

        if not vendor:
            logger.warning(f"Vendor not found: {vendor_identifier}")
            return JSONResponse(
                status_code=404,
                content={"detail": f"Vendor not found: {vendor_identifier}"}
            )

        if vendor.is_blocked:
            logger.warning(
                f"Blocked vendor attempted access: {vendor.slug} ({vendor.status})",
                extra={"vendor_id": vendor.id}
            )
            return JSONResponse(
                status_code=403,
                content={"detail": f"Vendor account is {vendor.status}"}
            )

        request.state.vendor = vendor
        request.state.vendor_id = vendor.id

        logger.debug(f"Request for vendor: {vendor.slug} ({vendor.id})")

        return await call_next(request)

    def _extract_vendor_identifier(self, request: Request) -> Optional[str]:
        """
        Extract vendor identifier from request.

        Priority:
        1. X-Vendor-Slug header
        2. Subdomain from Host header
        3. X-Vendor-ID header
        """
        vendor_slug = request.headers.get("X-Vendor-Slug")
        if vendor_slug:
            return vendor_slug

        host = request.headers.get("Host", "").split(":")[0]
        if host:
            parts = host.split(".")
            if len(parts) >= 3:  # subdomain.domain.tld
                subdomain = parts[0]
                if subdomain not in NON_VENDOR_SUBDOMAINS:
                    return subdomain

        vendor_id = request.headers.get("X-Vendor-ID")
        if vendor_id:
            return vendor_id

        return None

    def _load_vendor(self, db: Session, identifier: str) -> Optional[Vendor]:
        """
        Load vendor by slug, then subdomain, then id.

        PERFORMANCE: This hits DB on every vendor request. Consider caching.
        """
        vendor = db.query(Vendor).filter(Vendor.slug == identifier).first()
        if vendor:
            return vendor

        vendor = db.query(Vendor).filter(Vendor.subdomain == identifier).first()
        if vendor:
            return vendor

        return db.query(Vendor).filter(Vendor.id == identifier).first()
