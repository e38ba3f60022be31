"""FastAPI main application module."""

import asyncio
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ...domain.exceptions import ConflictError, DataAccessError, InvalidPinError, NotFoundError
from ...infrastructure.logging import configure_logging, get_logger
from ...infrastructure.services import initialize_services, run_expiry_sweeper, shutdown_services
from .config import get_settings
from .middleware import RequestResponseLoggingMiddleware
from .routes import availability, blocked_times, bookings, clients, health


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    # Startup
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_dir)
    logger.info("Starting Trainer Booking System API")
    factory = await initialize_services(settings)

    sweeper = None
    if settings.expire_sweep_interval_seconds > 0:
        sweeper = asyncio.create_task(
            run_expiry_sweeper(factory, settings.expire_sweep_interval_seconds)
        )

    yield

    # Shutdown
    logger.info("Shutting down Trainer Booking System API")
    if sweeper:
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper
    await shutdown_services()


def _error_body(detail, error_type: str, reason: str | None = None) -> dict:
    body = {"detail": detail, "type": error_type}
    if reason:
        body["reason"] = reason
    return body


def add_exception_handlers(app: FastAPI) -> None:
    """Add custom exception handlers to the FastAPI application."""

    @app.exception_handler(NotFoundError)
    async def not_found_error_handler(request: Request, exc: NotFoundError):
        """Handle references to missing clients or bookings."""
        logger.info(f"Not found on {request.url.path}: {str(exc)}")
        return JSONResponse(status_code=404, content=_error_body(str(exc), "not_found"))

    @app.exception_handler(ConflictError)
    async def conflict_error_handler(request: Request, exc: ConflictError):
        """Handle requests that conflict with current bookings or clients."""
        logger.warning(
            f"Conflict on {request.url.path}: {str(exc)}",
            extra={"conflict_reason": exc.reason}
        )
        return JSONResponse(status_code=409, content=_error_body(str(exc), "conflict", exc.reason))

    @app.exception_handler(InvalidPinError)
    async def invalid_pin_error_handler(request: Request, exc: InvalidPinError):
        """Handle failed PIN checks."""
        return JSONResponse(status_code=401, content=_error_body(str(exc), "invalid_pin"))

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError):
        """Handle malformed request bodies and parameters."""
        logger.warning(f"Request validation error on {request.url.path}")
        return JSONResponse(
            status_code=400,
            content=_error_body(jsonable_encoder(exc.errors()), "validation_error")
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        """Handle validation errors from business logic."""
        logger.warning(f"Validation error on {request.url.path}: {str(exc)}")
        return JSONResponse(status_code=400, content=_error_body(str(exc), "validation_error"))

    @app.exception_handler(DataAccessError)
    async def data_access_error_handler(request: Request, exc: DataAccessError):
        """Handle store failures."""
        logger.error(f"Data access error on {request.url.path}: {str(exc)}")
        return JSONResponse(
            status_code=500,
            content=_error_body("Something went wrong. Please try again.", "data_access_error")
        )

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(request: Request, exc: RuntimeError):
        """Handle runtime errors from business logic."""
        logger.error(f"Runtime error on {request.url.path}: {str(exc)}")
        return JSONResponse(
            status_code=500,
            content=_error_body("Internal server error occurred", "runtime_error")
        )


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Trainer Booking System",
        description="API for booking personal-training sessions against prepaid session packs",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    # Add custom exception handlers
    add_exception_handlers(app)

    # Request/response logging with correlation IDs
    app.add_middleware(RequestResponseLoggingMiddleware)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=settings.allowed_methods,
        allow_headers=settings.allowed_headers,
    )

    # Include routers
    app.include_router(health.router, tags=["health"])
    app.include_router(
        availability.router,
        prefix=f"{settings.api_prefix}/availability",
        tags=["availability"]
    )
    app.include_router(
        bookings.router,
        prefix=f"{settings.api_prefix}/bookings",
        tags=["bookings"]
    )
    app.include_router(
        clients.router,
        prefix=f"{settings.api_prefix}/clients",
        tags=["clients"]
    )
    app.include_router(
        blocked_times.router,
        prefix=f"{settings.api_prefix}/blocked-times",
        tags=["blocked-times"]
    )

    return app


# Create app instance
app = create_app()
