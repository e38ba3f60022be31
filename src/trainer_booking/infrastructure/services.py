"""Dependency injection and service factory."""

import asyncio
from typing import AsyncGenerator, Optional
from contextlib import asynccontextmanager

from src.trainer_booking.application.services.availability_service import AvailabilityService, DEFAULT_WINDOW_DAYS
from src.trainer_booking.application.services.booking_service import BookingService
from src.trainer_booking.application.services.client_service import ClientService
from src.trainer_booking.domain.services.civil_clock import CivilClock
from src.trainer_booking.infrastructure.database.connection import DatabaseManager
from src.trainer_booking.infrastructure.logging import get_logger
from src.trainer_booking.infrastructure.repositories.memory_repositories import (
    InMemoryBlockedTimeRepository,
    InMemoryBookingRepository,
    InMemoryClientRepository,
    InMemoryStore,
    InMemoryUnitOfWork
)
from src.trainer_booking.infrastructure.repositories.sql_repositories import (
    SQLAlchemyBlockedTimeRepository,
    SQLAlchemyBookingRepository,
    SQLAlchemyClientRepository,
    SQLAlchemyUnitOfWork
)

logger = get_logger(__name__)

STORAGE_BACKENDS = ("sql", "memory")


class _Repositories:
    """Repositories and unit of work bound to one request scope."""

    def __init__(self, clients, bookings, blocked_times, unit_of_work):
        self.clients = clients
        self.bookings = bookings
        self.blocked_times = blocked_times
        self.unit_of_work = unit_of_work


class ServiceFactory:
    """Factory for creating application services with proper dependencies."""

    def __init__(
        self,
        database_url: Optional[str] = None,
        storage_backend: str = "sql",
        clock: Optional[CivilClock] = None,
        window_days: int = DEFAULT_WINDOW_DAYS,
        use_blocked_times_table: bool = True,
        db_echo: bool = False,
        db_pool_size: int = 10,
        db_max_overflow: int = 20
    ):
        if storage_backend not in STORAGE_BACKENDS:
            raise ValueError(f"Unknown storage backend: {storage_backend}")
        if storage_backend == "sql" and not database_url:
            raise ValueError("database_url is required for the sql storage backend")

        self.storage_backend = storage_backend
        self.clock = clock or CivilClock()
        self.window_days = window_days
        self.use_blocked_times_table = use_blocked_times_table
        self.database_manager = (
            DatabaseManager(database_url, echo=db_echo, pool_size=db_pool_size, max_overflow=db_max_overflow)
            if storage_backend == "sql" else None
        )
        # Shared across requests so the memory backend behaves like one database
        self.memory_store = InMemoryStore() if storage_backend == "memory" else None
        self._connected = False

    async def initialize(self):
        """Initialize the service factory."""
        if not self._connected and self.database_manager:
            await self.database_manager.connect()
        self._connected = True
        logger.info(
            "Service factory initialized",
            extra={"storage_backend": self.storage_backend, "timezone": self.clock.timezone_name}
        )

    async def shutdown(self):
        """Shutdown the service factory."""
        if self._connected and self.database_manager:
            await self.database_manager.disconnect()
        self._connected = False

    @asynccontextmanager
    async def _repositories(self) -> AsyncGenerator[_Repositories, None]:
        """Open one request scope backed by a database session or the shared memory store.

        The memory backend has no request transaction; services group
        multi-row writes in unit-of-work scopes themselves.
        """
        if self.database_manager:
            async with self.database_manager.get_session() as session:
                yield _Repositories(
                    clients=SQLAlchemyClientRepository(session),
                    bookings=SQLAlchemyBookingRepository(session),
                    blocked_times=SQLAlchemyBlockedTimeRepository(session),
                    unit_of_work=SQLAlchemyUnitOfWork(session)
                )
        else:
            yield _Repositories(
                clients=InMemoryClientRepository(self.memory_store),
                bookings=InMemoryBookingRepository(self.memory_store),
                blocked_times=InMemoryBlockedTimeRepository(self.memory_store),
                unit_of_work=InMemoryUnitOfWork(self.memory_store)
            )

    def _availability_service(self, repositories: _Repositories) -> AvailabilityService:
        return AvailabilityService(
            booking_repository=repositories.bookings,
            blocked_time_repository=repositories.blocked_times,
            clock=self.clock,
            window_days=self.window_days,
            use_blocked_times_table=self.use_blocked_times_table
        )

    @asynccontextmanager
    async def get_availability_service(self) -> AsyncGenerator[AvailabilityService, None]:
        """Get availability service with request-scoped repositories."""
        async with self._repositories() as repositories:
            yield self._availability_service(repositories)

    @asynccontextmanager
    async def get_booking_service(self) -> AsyncGenerator[BookingService, None]:
        """Get booking service with request-scoped repositories."""
        async with self._repositories() as repositories:
            yield BookingService(
                booking_repository=repositories.bookings,
                client_repository=repositories.clients,
                unit_of_work=repositories.unit_of_work,
                availability_service=self._availability_service(repositories),
                clock=self.clock
            )

    @asynccontextmanager
    async def get_client_service(self) -> AsyncGenerator[ClientService, None]:
        """Get client service with request-scoped repositories."""
        async with self._repositories() as repositories:
            yield ClientService(
                client_repository=repositories.clients,
                booking_repository=repositories.bookings,
                blocked_time_repository=repositories.blocked_times,
                unit_of_work=repositories.unit_of_work
            )


async def run_expiry_sweeper(factory: ServiceFactory, interval_seconds: float) -> None:
    """Periodically complete bookings whose hour has ended, until cancelled."""
    logger.info("Expiry sweeper started", extra={"interval_seconds": interval_seconds})
    while True:
        try:
            async with factory.get_booking_service() as booking_service:
                await booking_service.expire_overdue()
        except Exception:
            # Keep sweeping; the next run retries the same bookings
            logger.exception("Expiry sweep failed")
        await asyncio.sleep(interval_seconds)


# Global service factory instance
_service_factory: ServiceFactory | None = None


def get_service_factory() -> ServiceFactory:
    """Get the global service factory instance."""
    if _service_factory is None:
        raise RuntimeError("Services not initialized. Call initialize_services() first.")
    return _service_factory


def set_service_factory(factory: Optional[ServiceFactory]) -> None:
    """Replace the global service factory instance."""
    global _service_factory
    _service_factory = factory


def build_service_factory(settings) -> ServiceFactory:
    """Create a service factory from application settings."""
    return ServiceFactory(
        database_url=settings.database_url,
        storage_backend=settings.storage_backend,
        clock=CivilClock(settings.timezone),
        window_days=settings.booking_window_days,
        use_blocked_times_table=settings.use_blocked_times_table,
        db_echo=settings.db_echo,
        db_pool_size=settings.db_pool_size,
        db_max_overflow=settings.db_max_overflow
    )


async def initialize_services(settings) -> ServiceFactory:
    """Initialize application services."""
    factory = _service_factory or build_service_factory(settings)
    await factory.initialize()
    set_service_factory(factory)
    return factory


async def shutdown_services():
    """Shutdown application services."""
    if _service_factory is not None:
        await _service_factory.shutdown()
        set_service_factory(None)
