"""Database connection management for the suggestion and analytics stores."""

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, Optional

import aiosqlite
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..config.logging import get_logger
from .models import Base

logger = get_logger(__name__)

TABLES = ("search_suggestions", "search_queries", "search_result_clicks")


class ConnectionConfig:
    """Database connection settings."""

    def __init__(
        self,
        database_path: str = "hybrid_search.db",
        enable_wal: bool = True,
        connection_timeout: float = 30.0,
        busy_timeout: float = 30.0,
    ):
        self.database_path = database_path
        self.enable_wal = enable_wal
        self.connection_timeout = connection_timeout
        self.busy_timeout = busy_timeout

    @property
    def database_url(self) -> str:
        """Get the database URL for SQLAlchemy."""
        return f"sqlite+aiosqlite:///{self.database_path}"


class DatabaseManager:
    """Manages database connections and initialization."""

    def __init__(self, config: Optional[ConnectionConfig] = None):
        self.config = config or ConnectionConfig()
        self.logger = get_logger(__name__)
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None
        self._initialized = False
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Initialize the database and create the tables."""
        async with self._lock:
            if self._initialized:
                return

            try:
                self.logger.info(
                    "Initializing database",
                    database_path=self.config.database_path,
                )

                Path(self.config.database_path).parent.mkdir(
                    parents=True, exist_ok=True
                )

                await self._configure_sqlite()

                self._engine = create_async_engine(
                    self.config.database_url,
                    connect_args={"timeout": self.config.connection_timeout},
                    echo=False,
                )
                self._session_factory = async_sessionmaker(
                    self._engine, class_=AsyncSession, expire_on_commit=False
                )

                async with self._engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)

                self._initialized = True
                self.logger.info("Database initialization completed successfully")

            except Exception as e:
                self.logger.error("Database initialization failed", error=str(e))
                raise

    async def _configure_sqlite(self) -> None:
        """Configure SQLite-specific settings."""
        async with aiosqlite.connect(self.config.database_path) as conn:
            if self.config.enable_wal:
                await conn.execute("PRAGMA journal_mode=WAL")

            await conn.execute(
                f"PRAGMA busy_timeout={int(self.config.busy_timeout * 1000)}"
            )
            await conn.execute("PRAGMA synchronous=NORMAL")
            await conn.commit()

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get an async database session; the caller commits."""
        if not self._initialized:
            await self.initialize()

        async with self._session_factory() as session:
            try:
                yield session
            except Exception as e:
                await session.rollback()
                self.logger.error("Database session error, rolling back", error=str(e))
                raise

    async def health_check(self) -> Dict[str, Any]:
        """Perform database health check."""
        try:
            async with self.get_session() as session:
                result = await session.execute(text("SELECT 1"))
                result.scalar()

            db_path = Path(self.config.database_path)
            return {
                "status": "healthy",
                "database_path": self.config.database_path,
                "file_size_bytes": db_path.stat().st_size if db_path.exists() else 0,
                "wal_enabled": self.config.enable_wal,
                "table_counts": await self.get_table_counts(),
            }

        except Exception as e:
            return {
                "status": "unhealthy",
                "error": str(e),
                "database_path": self.config.database_path,
            }

    async def get_table_counts(self) -> Dict[str, int]:
        """Get row counts for all tables."""
        counts = {}
        try:
            async with self.get_session() as session:
                for table in TABLES:
                    result = await session.execute(text(f"SELECT COUNT(*) FROM {table}"))
                    counts[table] = result.scalar() or 0
        except Exception as e:
            self.logger.warning("Failed to get table counts", error=str(e))

        return counts

    async def close(self) -> None:
        """Close database connections."""
        if self._engine:
            await self._engine.dispose()
            self._engine = None

        self._session_factory = None
        self._initialized = False

        self.logger.info("Database connections closed")
