"""
Main FastAPI Application

Entry point for the Shiteni multi-vendor platform.
Configures middleware, routes, error handlers, and startup/shutdown events.

Request path through the middleware stack (outermost first):
    CORS -> request id/timing -> VendorMiddleware -> RateLimitMiddleware -> router
"""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
import time
import uuid
from contextlib import asynccontextmanager

from shiteni import __version__
from shiteni.config import get_settings
from shiteni.database import engine, init_db
from shiteni.middleware.vendor import VendorMiddleware
from shiteni.middleware.rate_limit import RateLimitMiddleware
from shiteni.utils.logging import setup_logging, get_logger
from shiteni.core.exceptions import (
    AuthenticationError,
    PaymentFailedError,
    RateLimitExceeded,
    VendorIsolationError,
)

# Import routers
from shiteni.api.endpoints import (
    admin,
    auth,
    bus,
    customer,
    hotel,
    pharmacy,
    staff,
    store,
    vendor,
    webhooks,
)

settings = get_settings()

# Setup logging
setup_logging(
    log_level=settings.LOG_LEVEL,
    json_format=(settings.ENVIRONMENT == "production")
)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    logger.info(f"Starting Shiteni API in {settings.ENVIRONMENT} mode")

    # Initialize database tables (dev only - use migrations in production)
    if settings.ENVIRONMENT == "development":
        init_db()

    if settings.LIPILA_MOCK_MODE:
        logger.warning("Lipila mock mode is ON: subscription payments always succeed")

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application")
    engine.dispose()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Shiteni",
    description="Multi-vendor SaaS for hotels, stores, pharmacies and bus operators",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


# ============================================================================
# MIDDLEWARE CONFIGURATION
# ============================================================================

# NOTE: Starlette runs the LAST added middleware first. RateLimitMiddleware
# is added before VendorMiddleware so the vendor is already on
# request.state when the rate limiter picks its bucket.
app.add_middleware(RateLimitMiddleware)
app.add_middleware(VendorMiddleware)


@app.middleware("http")
async def add_request_context(request: Request, call_next):
    """Tag every response with a request id and its duration."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time

    response.headers["X-Process-Time"] = str(process_time)
    response.headers["X-Request-ID"] = request_id
    return response


# CORS Middleware
# SECURITY: In production, restrict allowed_origins to specific domains
allowed_origins = [
    settings.PUBLIC_BASE_URL,
    "http://localhost:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins if settings.ENVIRONMENT == "production" else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================

@app.exception_handler(VendorIsolationError)
async def vendor_isolation_error_handler(request: Request, exc: VendorIsolationError):
    """
    Handle vendor isolation violations.

    CRITICAL: These should be alerted on. A token crossing vendors is
    either a bug or an attack.
    """
    logger.error(
        f"VENDOR ISOLATION VIOLATION: {exc.detail}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "vendor_id": getattr(request.state, "vendor_id", None),
            "request_id": getattr(request.state, "request_id", None),
        }
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "type": "vendor_isolation_error"}
    )


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError):
    """Handle authentication errors."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "type": "authentication_error"},
        headers=exc.headers or {}
    )


@app.exception_handler(PaymentFailedError)
async def payment_failed_handler(request: Request, exc: PaymentFailedError):
    """Declined payments carry the gateway transaction id for support."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.detail,
            "type": "payment_failed",
            "transaction_id": exc.transaction_id,
        }
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_error_handler(request: Request, exc: RateLimitExceeded):
    """Handle rate limit errors."""
    logger.warning(
        f"Rate limit exceeded: {request.url.path}",
        extra={"vendor_id": getattr(request.state, "vendor_id", None)}
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "type": "rate_limit_exceeded"},
        headers=exc.headers or {}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch-all exception handler.

    SECURITY: Don't expose internal errors in production.
    Log full details but return generic error to client.
    """
    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {str(exc)}",
        exc_info=True,
        extra={
            "path": request.url.path,
            "method": request.method,
            "vendor_id": getattr(request.state, "vendor_id", None),
            "request_id": getattr(request.state, "request_id", None),
        }
    )

    if settings.DEBUG:
        return JSONResponse(
            status_code=500,
            content={
                "detail": str(exc),
                "type": type(exc).__name__,
                "traceback": "See logs for traceback"
            }
        )
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "type": "internal_error"
        }
    )


# ============================================================================
# ROUTES
# ============================================================================

@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint for load balancers."""
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "version": __version__
    }


@app.get("/", tags=["root"])
async def root():
    """Root endpoint with API information."""
    return {
        "message": "Shiteni API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# All routes live under /api/v1
for module in (auth, staff, vendor, hotel, store, pharmacy, bus, admin, customer, webhooks):
    app.include_router(module.router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Shiteni {__version__} ({settings.ENVIRONMENT}, debug={settings.DEBUG})")

    uvicorn.run(
        "shiteni.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
