"""SQLAlchemy repository implementations."""

from contextlib import asynccontextmanager
from datetime import date
from typing import AsyncIterator, List, Optional

from sqlalchemy import Select, and_, case, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.trainer_booking.application.ports.repositories import (
    BlockedTimeRepository,
    BookingRepository,
    ClientRepository,
    UnitOfWork
)
from src.trainer_booking.domain.entities.blocked_time import BlockedTime
from src.trainer_booking.domain.entities.booking import Booking, BookingStatus
from src.trainer_booking.domain.entities.client import Client
from src.trainer_booking.domain.exceptions import (
    ClientNameTakenError,
    ConflictError,
    DataAccessError,
    DuplicateBookingForDayError,
    SlotTakenError
)
from src.trainer_booking.domain.value_objects.pin import Pin
from src.trainer_booking.domain.value_objects.schedule_entry import ScheduleEntry
from src.trainer_booking.infrastructure.database.models import (
    CLIENT_NAME_CONSTRAINT,
    UPCOMING_CLIENT_DAY_INDEX,
    UPCOMING_SLOT_INDEX,
    BlockedTimeModel,
    BookingModel,
    ClientModel
)
from src.trainer_booking.infrastructure.logging import get_logger, log_database_operation

# Constraint name as reported by PostgreSQL, column list as reported by SQLite.
_CONFLICT_SIGNATURES = (
    ((UPCOMING_SLOT_INDEX, "bookings.date, bookings.hour"), SlotTakenError),
    ((UPCOMING_CLIENT_DAY_INDEX, "bookings.client_id, bookings.date"), DuplicateBookingForDayError),
    ((CLIENT_NAME_CONSTRAINT, "clients.name"), ClientNameTakenError),
)


def conflict_from_integrity_error(error: IntegrityError) -> Optional[ConflictError]:
    """Map a uniqueness violation to the matching domain conflict."""
    orig = getattr(error, "orig", None)
    constraint_name = getattr(getattr(orig, "diag", None), "constraint_name", None) or ""
    message = f"{constraint_name} {orig if orig is not None else error}"

    for signatures, conflict_class in _CONFLICT_SIGNATURES:
        if any(signature in message for signature in signatures):
            return conflict_class()
    return None


class SQLAlchemyRepository:
    """Shared session handling for SQLAlchemy repositories."""

    def __init__(self, session: AsyncSession):
        self._session = session
        self._logger = get_logger(__name__)

    async def _execute(self, stmt):
        if isinstance(stmt, Select):
            # Re-read rows so conditional UPDATEs in this session are never masked
            stmt = stmt.execution_options(populate_existing=True)
        try:
            return await self._session.execute(stmt)
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            self._logger.error("Database operation failed", exc_info=True)
            raise DataAccessError(str(e)) from e

    async def _flush_new(self, instance) -> None:
        """Insert one row inside a savepoint, translating uniqueness violations."""
        try:
            async with self._session.begin_nested():
                self._session.add(instance)
                await self._session.flush()
        except IntegrityError as e:
            conflict = conflict_from_integrity_error(e)
            if conflict is None:
                self._logger.error("Integrity violation on insert", exc_info=True)
                raise DataAccessError(str(e.orig)) from e
            raise conflict from e
        except SQLAlchemyError as e:
            self._logger.error("Database insert failed", exc_info=True)
            raise DataAccessError(str(e)) from e


class SQLAlchemyUnitOfWork(UnitOfWork):
    """Savepoint-backed atomic scope on the request's session."""

    def __init__(self, session: AsyncSession):
        self._session = session

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        try:
            async with self._session.begin_nested():
                yield
        except SQLAlchemyError as e:
            raise DataAccessError(str(e)) from e


class SQLAlchemyClientRepository(SQLAlchemyRepository, ClientRepository):
    """SQLAlchemy implementation of client repository."""

    async def add(self, client: Client) -> Client:
        """Insert a new client."""
        log_database_operation(self._logger, "INSERT", "ClientModel", client_name=client.name)

        model = ClientModel(
            name=client.name,
            pin=client.pin.value,
            sessions_remaining=client.sessions_remaining,
            sessions_expires_at=client.sessions_expires_at,
            created_at=client.created_at
        )
        await self._flush_new(model)
        client.assign_id(model.id)
        return client

    async def update(self, client: Client) -> Client:
        """Persist changes to an existing client."""
        log_database_operation(self._logger, "UPDATE", "ClientModel", client_id=client.id)

        stmt = update(ClientModel).where(ClientModel.id == client.id).values(
            name=client.name,
            pin=client.pin.value,
            sessions_remaining=client.sessions_remaining,
            sessions_expires_at=client.sessions_expires_at
        ).execution_options(synchronize_session=False)
        try:
            async with self._session.begin_nested():
                await self._execute(stmt)
        except IntegrityError as e:
            raise (conflict_from_integrity_error(e) or DataAccessError(str(e.orig))) from e
        return client

    async def find_by_id(self, client_id: int) -> Optional[Client]:
        """Find client by ID."""
        stmt = select(ClientModel).where(ClientModel.id == client_id)
        result = await self._execute(stmt)
        model = result.scalar_one_or_none()
        return self._model_to_entity(model) if model else None

    async def find_all(self) -> List[Client]:
        """Find all clients ordered by name."""
        result = await self._execute(select(ClientModel).order_by(ClientModel.name))
        return [self._model_to_entity(model) for model in result.scalars().all()]

    async def consume_session(self, client_id: int) -> bool:
        """Decrement sessions_remaining by one, floored at zero, in a single statement."""
        log_database_operation(self._logger, "UPDATE", "ClientModel", client_id=client_id, statement="consume_session")

        stmt = update(ClientModel).where(ClientModel.id == client_id).values(
            sessions_remaining=case(
                (ClientModel.sessions_remaining > 0, ClientModel.sessions_remaining - 1),
                else_=0
            )
        ).execution_options(synchronize_session=False)
        result = await self._execute(stmt)
        return result.rowcount > 0

    async def delete(self, client_id: int) -> bool:
        """Delete a client row."""
        log_database_operation(self._logger, "DELETE", "ClientModel", client_id=client_id)

        stmt = delete(ClientModel).where(ClientModel.id == client_id).execution_options(synchronize_session=False)
        result = await self._execute(stmt)
        success = result.rowcount > 0
        if not success:
            self._logger.warning("Client deletion failed - not found", extra={"client_id": client_id})
        return success

    def _model_to_entity(self, model: ClientModel) -> Client:
        """Convert database model to domain entity."""
        return Client(
            client_id=model.id,
            name=model.name,
            pin=Pin(model.pin),
            sessions_remaining=model.sessions_remaining,
            sessions_expires_at=model.sessions_expires_at,
            created_at=model.created_at
        )


class SQLAlchemyBookingRepository(SQLAlchemyRepository, BookingRepository):
    """SQLAlchemy implementation of booking repository."""

    async def add(self, booking: Booking) -> Booking:
        """Insert an upcoming booking; the partial unique indexes arbitrate races."""
        log_database_operation(
            self._logger,
            "INSERT",
            "BookingModel",
            client_id=booking.client_id,
            slot_date=str(booking.date),
            slot_hour=booking.hour
        )

        model = BookingModel(
            client_id=booking.client_id,
            date=booking.date,
            hour=booking.hour,
            status=booking.status,
            created_at=booking.created_at
        )
        await self._flush_new(model)
        booking.assign_id(model.id)
        return booking

    async def find_by_id(self, booking_id: int, for_update: bool = False) -> Optional[Booking]:
        """Find booking by ID."""
        stmt = select(BookingModel).where(BookingModel.id == booking_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._execute(stmt)
        model = result.scalar_one_or_none()
        return self._model_to_entity(model) if model else None

    async def find_upcoming_in_range(self, start_date: date, end_date: date) -> List[Booking]:
        """Find upcoming bookings in [start_date, end_date)."""
        log_database_operation(
            self._logger,
            "SELECT",
            "BookingModel",
            start_date=str(start_date),
            end_date=str(end_date)
        )

        stmt = select(BookingModel).where(
            and_(
                BookingModel.date >= start_date,
                BookingModel.date < end_date,
                BookingModel.status == BookingStatus.UPCOMING
            )
        ).order_by(BookingModel.date, BookingModel.hour)
        result = await self._execute(stmt)
        return [self._model_to_entity(model) for model in result.scalars().all()]

    async def find_upcoming_by_client(self, client_id: int) -> List[Booking]:
        """Find a client's upcoming bookings."""
        stmt = select(BookingModel).where(
            and_(
                BookingModel.client_id == client_id,
                BookingModel.status == BookingStatus.UPCOMING
            )
        ).order_by(BookingModel.date, BookingModel.hour)
        result = await self._execute(stmt)
        return [self._model_to_entity(model) for model in result.scalars().all()]

    async def find_schedule(self, today: date) -> List[ScheduleEntry]:
        """Find all upcoming bookings plus today's completed and cancelled ones."""
        stmt = self._with_client().where(
            or_(
                BookingModel.status == BookingStatus.UPCOMING,
                and_(
                    BookingModel.date == today,
                    BookingModel.status.in_([BookingStatus.COMPLETED, BookingStatus.CANCELLED])
                )
            )
        ).order_by(BookingModel.date, BookingModel.hour, BookingModel.id)
        return await self._fetch_entries(stmt)

    async def find_upcoming_at_hour(self, target_date: date, hour: int) -> List[ScheduleEntry]:
        """Find upcoming bookings at exactly (date, hour)."""
        stmt = self._with_client().where(
            and_(
                BookingModel.date == target_date,
                BookingModel.hour == hour,
                BookingModel.status == BookingStatus.UPCOMING
            )
        ).order_by(BookingModel.id)
        return await self._fetch_entries(stmt)

    async def find_ended_upcoming(self, today: date, current_hour: int) -> List[Booking]:
        """Find upcoming bookings whose hour has fully elapsed."""
        stmt = select(BookingModel).where(
            and_(
                BookingModel.status == BookingStatus.UPCOMING,
                or_(
                    BookingModel.date < today,
                    and_(BookingModel.date == today, BookingModel.hour < current_hour)
                )
            )
        ).order_by(BookingModel.date, BookingModel.hour)
        result = await self._execute(stmt)
        return [self._model_to_entity(model) for model in result.scalars().all()]

    async def is_slot_booked(self, target_date: date, hour: int) -> bool:
        """Check if any upcoming booking occupies (date, hour)."""
        stmt = select(func.count(BookingModel.id)).where(
            and_(
                BookingModel.date == target_date,
                BookingModel.hour == hour,
                BookingModel.status == BookingStatus.UPCOMING
            )
        )
        result = await self._execute(stmt)
        return result.scalar() > 0

    async def has_client_booking_on_date(self, client_id: int, target_date: date) -> bool:
        """Check if the client already holds an upcoming booking on the date."""
        stmt = select(func.count(BookingModel.id)).where(
            and_(
                BookingModel.client_id == client_id,
                BookingModel.date == target_date,
                BookingModel.status == BookingStatus.UPCOMING
            )
        )
        result = await self._execute(stmt)
        return result.scalar() > 0

    async def transition_status(
        self,
        booking_id: int,
        from_status: BookingStatus,
        to_status: BookingStatus
    ) -> bool:
        """Conditional UPDATE; only one of several concurrent callers sees a row change."""
        log_database_operation(
            self._logger,
            "UPDATE",
            "BookingModel",
            booking_id=booking_id,
            from_status=from_status.value,
            to_status=to_status.value
        )

        stmt = update(BookingModel).where(
            and_(BookingModel.id == booking_id, BookingModel.status == from_status)
        ).values(status=to_status).execution_options(synchronize_session=False)
        result = await self._execute(stmt)
        return result.rowcount == 1

    async def delete_by_client(self, client_id: int) -> int:
        """Delete every booking owned by the client."""
        log_database_operation(self._logger, "DELETE", "BookingModel", client_id=client_id)

        stmt = delete(BookingModel).where(BookingModel.client_id == client_id).execution_options(
            synchronize_session=False
        )
        result = await self._execute(stmt)
        return result.rowcount

    @staticmethod
    def _with_client():
        return select(BookingModel, ClientModel.name, ClientModel.sessions_remaining).join(
            ClientModel, BookingModel.client_id == ClientModel.id
        )

    async def _fetch_entries(self, stmt) -> List[ScheduleEntry]:
        result = await self._execute(stmt)
        return [
            ScheduleEntry(
                booking=self._model_to_entity(model),
                client_name=client_name,
                client_sessions=client_sessions
            )
            for model, client_name, client_sessions in result.all()
        ]

    def _model_to_entity(self, model: BookingModel) -> Booking:
        """Convert database model to domain entity."""
        return Booking(
            booking_id=model.id,
            client_id=model.client_id,
            session_date=model.date,
            hour=model.hour,
            status=model.status,
            created_at=model.created_at
        )


class SQLAlchemyBlockedTimeRepository(SQLAlchemyRepository, BlockedTimeRepository):
    """SQLAlchemy implementation of blocked time repository."""

    async def add(self, blocked_time: BlockedTime) -> BlockedTime:
        """Insert a blocked time window."""
        log_database_operation(self._logger, "INSERT", "BlockedTimeModel")

        model = BlockedTimeModel(
            start_time=blocked_time.start_time,
            end_time=blocked_time.end_time,
            day_of_week=blocked_time.day_of_week,
            created_at=blocked_time.created_at
        )
        await self._flush_new(model)
        return self._model_to_value(model)

    async def find_all(self) -> List[BlockedTime]:
        """Find all blocked time windows."""
        result = await self._execute(select(BlockedTimeModel).order_by(BlockedTimeModel.id))
        return [self._model_to_value(model) for model in result.scalars().all()]

    def _model_to_value(self, model: BlockedTimeModel) -> BlockedTime:
        return BlockedTime(
            id=model.id,
            start_time=model.start_time,
            end_time=model.end_time,
            day_of_week=model.day_of_week,
            created_at=model.created_at
        )
