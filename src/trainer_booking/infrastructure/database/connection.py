"""Database connection management."""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from .models import Base

SQLITE_BUSY_TIMEOUT_MS = 5000


class DatabaseManager:
    """Database connection manager."""

    def __init__(self, database_url: str, echo: bool = False, pool_size: int = 10, max_overflow: int = 20):
        """Initialize database manager."""
        # Convert postgresql:// to postgresql+asyncpg:// for async support
        if database_url.startswith("postgresql://"):
            database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

        self._engine: AsyncEngine | None = None
        self._database_url = database_url
        self._echo = echo
        self._pool_size = pool_size
        self._max_overflow = max_overflow
        self._session_factory: async_sessionmaker | None = None

    @property
    def is_sqlite(self) -> bool:
        return self._database_url.startswith("sqlite")

    async def connect(self) -> None:
        """Connect to database."""
        engine_options = {"echo": self._echo, "pool_pre_ping": True}
        if not self.is_sqlite:
            engine_options.update(pool_size=self._pool_size, max_overflow=self._max_overflow)

        self._engine = create_async_engine(self._database_url, **engine_options)

        if self.is_sqlite:
            self._enable_sqlite_savepoints(self._engine)

        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @staticmethod
    def _enable_sqlite_savepoints(engine: AsyncEngine) -> None:
        """Let SQLAlchemy control BEGIN so SAVEPOINT works on SQLite.

        Transactions start IMMEDIATE: a deferred BEGIN lets two writers both
        take read locks and then fail on the upgrade with "database is locked"
        instead of queueing behind each other.
        """

        @event.listens_for(engine.sync_engine, "connect")
        def _on_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}")
            cursor.close()

        @event.listens_for(engine.sync_engine, "begin")
        def _on_begin(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    async def create_schema(self) -> None:
        """Create all tables and indexes that do not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def disconnect(self) -> None:
        """Disconnect from database."""
        if self._engine:
            await self._engine.dispose()

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get database session. Commits on success, rolls back on any error."""
        if not self._session_factory:
            raise RuntimeError("Database not connected. Call connect() first.")

        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    @property
    def engine(self) -> AsyncEngine:
        """Get database engine."""
        if not self._engine:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._engine
