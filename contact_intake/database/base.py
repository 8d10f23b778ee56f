"""Database handle, session factory, and base model."""

import logging
from collections.abc import Generator, Iterator
from contextlib import contextmanager

from fastapi import Request
from sqlalchemy import Engine, create_engine, text
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from ..config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class Database:
    """Explicit store handle: owns the engine and the session factory.

    Nothing is connected until ``open()`` is called; ``close()`` disposes
    the pool. Every connection is bounded by ``statement_timeout_ms``.
    """

    def __init__(
        self,
        url: str,
        statement_timeout_ms: int = 5000,
        pool_timeout: int = 10,
        pool_size: int = 5,
        max_overflow: int = 10,
    ):
        self.url = url
        self.statement_timeout_ms = statement_timeout_ms
        self.pool_timeout = pool_timeout
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self._engine: Engine | None = None
        self._sessionmaker: sessionmaker | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(
            settings.effective_database_url,
            statement_timeout_ms=settings.db_statement_timeout_ms,
            pool_timeout=settings.db_pool_timeout,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
        )

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database is not open")
        return self._engine

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    def open(self) -> "Database":
        if self._engine is not None:
            return self
        if self.url.startswith("sqlite"):
            kwargs = {
                "connect_args": {
                    "check_same_thread": False,
                    "timeout": self.statement_timeout_ms / 1000,
                },
            }
            if ":memory:" in self.url or self.url in ("sqlite://", "sqlite:///"):
                kwargs["poolclass"] = StaticPool
        else:
            kwargs = {
                "poolclass": QueuePool,
                "pool_size": self.pool_size,
                "max_overflow": self.max_overflow,
                "pool_timeout": self.pool_timeout,
                "pool_pre_ping": True,
                "connect_args": {"options": f"-c statement_timeout={self.statement_timeout_ms}"},
            }
        self._engine = create_engine(self.url, **kwargs)
        self._sessionmaker = sessionmaker(bind=self._engine)
        logger.info("Database opened (%s)", self._engine.url.render_as_string(hide_password=True))
        return self

    def close(self) -> None:
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        logger.info("Database closed")

    def create_all(self) -> None:
        """Create tables directly from metadata (tests and local SQLite)."""
        Base.metadata.create_all(bind=self.engine)

    def new_session(self) -> Session:
        if self._sessionmaker is None:
            raise RuntimeError("Database is not open")
        return self._sessionmaker()

    @contextmanager
    def session(self) -> Iterator[Session]:
        db = self.new_session()
        try:
            yield db
        finally:
            db.close()

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception:
            logger.warning("Database ping failed", exc_info=True)
            return False


def get_db(request: Request) -> Generator[Session, None, None]:
    db = request.app.state.db.new_session()
    try:
        yield db
    finally:
        db.close()
