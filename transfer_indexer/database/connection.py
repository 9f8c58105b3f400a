# transfer_indexer/database/connection.py

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, Engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session

from ..core.errors import StoreError
from ..core.logging import IndexerLogger, log_with_context, INFO, DEBUG, ERROR
from ..types import DatabaseConfig
from .base import Base


def describe_url(url: str) -> str:
    """host:port/database without credentials, for logs"""
    try:
        parsed = make_url(url)
    except ArgumentError:
        return "unknown"
    if parsed.host:
        port = f":{parsed.port}" if parsed.port else ""
        return f"{parsed.host}{port}/{parsed.database}"
    return f"{parsed.drivername}:{parsed.database}"


class DatabaseManager:
    """
    Owns one SQLAlchemy engine and its session factory.

    Each sync engine and the API layer hold their own manager; a manager is
    never shared between them. After shutdown() the manager can be
    initialized again (used by reconnect()).
    """

    def __init__(self, config: DatabaseConfig):
        if not config:
            raise ValueError("DatabaseConfig is required")

        self.config = config
        self.logger = IndexerLogger.get_logger('database.manager')
        self._engine = None
        self._session_factory = None
        self._repositories = {}
        self._target = describe_url(config.url)

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    def initialize(self) -> None:
        """Create the engine and prove the store is reachable. Raises StoreError."""
        if self.is_initialized:
            self.logger.warning("Database already initialized")
            return

        options = {'pool_pre_ping': True}
        if make_url(self.config.url).get_backend_name() != 'sqlite':
            options.update(
                pool_size=self.config.pool_size,
                max_overflow=self.config.max_overflow,
                pool_timeout=30,
                pool_recycle=3600,
            )

        log_with_context(self.logger, INFO, "Connecting to database", endpoint=self._target)
        engine = create_engine(self.config.url, **options)
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            engine.dispose()
            log_with_context(self.logger, ERROR, "Failed to connect to database",
                             endpoint=self._target, error=str(e),
                             exception_type=type(e).__name__)
            raise StoreError(f"Could not connect to database at {self._target}: {e}") from e

        self._engine = engine
        # rows stay readable after the session that loaded them is closed
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    def ensure_schema(self) -> None:
        Base.metadata.create_all(self.engine, checkfirst=True)
        log_with_context(self.logger, DEBUG, "Schema checked", endpoint=self._target)

    def shutdown(self) -> None:
        engine, self._engine, self._session_factory = self._engine, None, None
        if engine is None:
            return

        try:
            engine.dispose()
        except SQLAlchemyError as e:
            log_with_context(self.logger, ERROR, "Error while closing database connections",
                             error=str(e), exception_type=type(e).__name__)
        log_with_context(self.logger, INFO, "Database connections closed", endpoint=self._target)

    def reconnect(self) -> None:
        self.shutdown()
        self.initialize()

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._engine

    @contextmanager
    def get_session(self) -> Iterator[Session]:
        """Session without an implicit commit; rolled back if the block raises."""
        if self._session_factory is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")

        session = self._session_factory()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @contextmanager
    def get_transaction(self) -> Iterator[Session]:
        """Session committed when the block exits cleanly."""
        with self.get_session() as session:
            yield session
            session.commit()

    def health_check(self) -> bool:
        if not self.is_initialized:
            return False
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            log_with_context(self.logger, ERROR, "Database health check failed",
                             endpoint=self._target, error=str(e))
            return False
        return True

    def get_transfer_repo(self):
        from .repositories.transfer_repository import TransferRepository

        if 'transfer' not in self._repositories:
            self._repositories['transfer'] = TransferRepository(self)
        return self._repositories['transfer']
