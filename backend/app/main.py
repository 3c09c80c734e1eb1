"""Hotel PMS booking engine: FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.bookings import router as bookings_router
from app.api.v1.hotels import router as hotels_router
from app.api.v1.rooms import router as rooms_router
from app.booking.errors import BookingError
from app.config import settings

# Configure root logger so all app.* loggers output to stderr.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup and shutdown events."""
    logger.info(
        "Booking engine starting (env=%s, defaults: %s, tax %s%%, service %s%%, tz %s)",
        settings.environment,
        settings.default_currency,
        settings.default_tax_percentage,
        settings.default_service_charge_percentage,
        settings.default_timezone,
    )
    for name, url in (
        ("notification", settings.notification_webhook_url),
        ("housekeeping", settings.housekeeping_webhook_url),
    ):
        if not url:
            logger.warning("No %s webhook configured; %s events will be dropped", name, name)
    yield
    # Shutdown: dispose engine connections
    from app.database import engine

    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Booking lifecycle and pricing engine for hotel property management.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    """Render engine errors as ``{"detail": {"code", "message", "field"}}``."""
    logger.info("%s %s -> %d %s: %s", request.method, request.url.path, exc.status_code, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})


# Routers
app.include_router(hotels_router)
app.include_router(rooms_router)
app.include_router(bookings_router)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str | bool]:
    """Health check endpoint. Also reports whether online payments can be taken."""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "payment_gateway": bool(settings.payment_gateway_url),
    }


@app.get("/", tags=["root"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
