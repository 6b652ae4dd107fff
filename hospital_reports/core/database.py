import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import text
import structlog

from hospital_reports.core.config import DatabaseSettings, get_settings

logger = structlog.get_logger(__name__)

# SQLAlchemy Base class for models
Base = declarative_base()


class DatabaseManager:
    """Database connection and session manager.

    Reports only ever read, so sessions handed out here are never committed;
    they are rolled back and closed when the caller is done.
    """

    def __init__(self):
        self.engine: Optional[Engine] = None
        self.session_factory: Optional[sessionmaker] = None
        self._initialized = False

    def initialize(self, database_url: Optional[str] = None) -> None:
        """Initialize database connections"""
        if self._initialized:
            logger.warning("Database already initialized")
            return

        database = get_settings().database
        if database_url:
            database = database.model_copy(update={"DATABASE_URL": database_url})

        try:
            self.engine = self._create_engine(database)
            self.session_factory = sessionmaker(
                bind=self.engine,
                autocommit=False,
                autoflush=False,
                expire_on_commit=False
            )

            self._test_connection()

            self._initialized = True
            logger.info("Database manager initialized successfully", dialect=self.engine.dialect.name)

        except Exception as e:
            logger.error("Failed to initialize database", error=str(e), exc_info=True)
            raise

    @staticmethod
    def _create_engine(database: DatabaseSettings) -> Engine:
        database_url = database.DATABASE_URL

        if database.is_sqlite:
            engine_kwargs: Dict[str, Any] = {
                "connect_args": {"check_same_thread": False}
            }
            # One shared connection, otherwise every checkout sees an empty database
            if database.is_in_memory:
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs = {
                "pool_size": database.DB_POOL_SIZE,
                "max_overflow": database.DB_MAX_OVERFLOW,
                "pool_timeout": database.DB_POOL_TIMEOUT,
                "pool_recycle": database.DB_POOL_RECYCLE,
            }

        return create_engine(
            database_url,
            pool_pre_ping=True,  # Validate connections before use
            echo=database.DB_ECHO,
            **engine_kwargs
        )

    def _test_connection(self) -> None:
        """Test database connection"""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(text("SELECT 1")).fetchone()
                if row[0] != 1:
                    raise Exception("Database connection test failed")
            logger.debug("Database connection test passed")
        except Exception as e:
            logger.error("Database connection test failed", error=str(e))
            raise

    def close(self) -> None:
        """Close database connections"""
        if self.engine:
            self.engine.dispose()
            logger.debug("Engine disposed")

        self.engine = None
        self.session_factory = None
        self._initialized = False
        logger.info("Database connections closed")

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a read-only database session with automatic cleanup"""
        if not self._initialized:
            self.initialize()

        session = self.session_factory()
        try:
            yield session
        finally:
            session.rollback()
            session.close()


# Global database manager instance
db_manager = DatabaseManager()


def get_db() -> Generator[Session, None, None]:
    """Dependency function to get database session"""
    with db_manager.get_session() as session:
        yield session


def close_db_connection() -> None:
    """Close database connections"""
    db_manager.close()


def check_db_health() -> Dict[str, Any]:
    """Check database health and return status"""
    try:
        if not db_manager._initialized:
            db_manager.initialize()

        with db_manager.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

        return {
            "status": "healthy",
            "dialect": db_manager.engine.dialect.name,
            "tables": DatabaseHealthChecker.check_tables_exist(),
            "message": "Database connection is healthy"
        }

    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        return {
            "status": "unhealthy",
            "message": f"Database health check failed: {str(e)}"
        }


class DatabaseHealthChecker:
    """Utility class for database health monitoring"""

    @staticmethod
    def check_tables_exist() -> Dict[str, bool]:
        """Check if the reporting tables exist"""
        from hospital_reports.models import get_all_table_names

        existing = set(inspect(db_manager.engine).get_table_names())
        return {table: table in existing for table in get_all_table_names()}


@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Set database connection parameters"""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()


__all__ = [
    "Base",
    "DatabaseManager",
    "db_manager",
    "get_db",
    "close_db_connection",
    "check_db_health",
    "DatabaseHealthChecker",
]
