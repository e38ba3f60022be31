"""SQLAlchemy database models."""

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.orm import declarative_base, relationship

from src.trainer_booking.domain.entities.booking import BookingStatus

Base = declarative_base()

# Names of the uniqueness guarantees; repositories map violations back to domain conflicts.
UPCOMING_SLOT_INDEX = "uq_bookings_upcoming_slot"
UPCOMING_CLIENT_DAY_INDEX = "uq_bookings_upcoming_client_day"
CLIENT_NAME_CONSTRAINT = "uq_clients_name"

_UPCOMING_ONLY = text("status = 'upcoming'")


class ClientModel(Base):
    """SQLAlchemy model for clients."""

    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, autoincrement=True)

    name = Column(String(100), nullable=False)
    pin = Column(String(4), nullable=False, default="0000", server_default="0000")
    sessions_remaining = Column(Integer, nullable=False, default=0, server_default="0")
    sessions_expires_at = Column(Date, nullable=True)  # advisory only

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    bookings = relationship(
        "BookingModel",
        back_populates="client",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    __table_args__ = (
        Index(CLIENT_NAME_CONSTRAINT, "name", unique=True),
        CheckConstraint("sessions_remaining >= 0", name="ck_clients_sessions_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<ClientModel(id={self.id}, name='{self.name}', sessions_remaining={self.sessions_remaining})>"


class BookingModel(Base):
    """SQLAlchemy model for bookings."""

    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)

    client_id = Column(Integer, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)

    # Civil date + starting hour (0-23) in the operator's local time
    date = Column(Date, nullable=False, index=True)
    hour = Column(Integer, nullable=False)
    status = Column(
        SQLEnum(
            BookingStatus,
            values_callable=lambda obj: [e.value for e in obj],
            native_enum=False,
            length=20,
            validate_strings=True
        ),
        nullable=False,
        default=BookingStatus.UPCOMING
    )

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    client = relationship("ClientModel", back_populates="bookings")

    __table_args__ = (
        # One upcoming booking per slot across all clients
        Index(
            UPCOMING_SLOT_INDEX, "date", "hour",
            unique=True,
            postgresql_where=_UPCOMING_ONLY,
            sqlite_where=_UPCOMING_ONLY
        ),
        # One upcoming booking per client per day
        Index(
            UPCOMING_CLIENT_DAY_INDEX, "client_id", "date",
            unique=True,
            postgresql_where=_UPCOMING_ONLY,
            sqlite_where=_UPCOMING_ONLY
        ),
        CheckConstraint("hour >= 0 AND hour <= 23", name="ck_bookings_hour_range"),
    )

    def __repr__(self) -> str:
        return f"<BookingModel(id={self.id}, client_id={self.client_id}, date={self.date}, hour={self.hour}, status='{self.status}')>"


class BlockedTimeModel(Base):
    """SQLAlchemy model for recurring blocked windows."""

    __tablename__ = "blocked_times"

    id = Column(Integer, primary_key=True, autoincrement=True)

    start_time = Column(String(5), nullable=False)  # "HH:MM"
    end_time = Column(String(5), nullable=False)
    day_of_week = Column(Integer, nullable=True)  # 0 = Sunday, NULL = every day

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<BlockedTimeModel(id={self.id}, {self.start_time}-{self.end_time}, day_of_week={self.day_of_week})>"
