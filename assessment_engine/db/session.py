# assessment_engine/db/session.py
import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from assessment_engine.core.config import settings

logger = logging.getLogger(__name__)


class Database:
    """
    Process-wide database handle.

    Opened once at startup, disposed at shutdown, and handed to whoever needs
    sessions (request dependency, worker, tests) instead of being imported as
    a module global.
    """

    def __init__(self, url: str | None = None, *, echo: bool = False):
        self.url = url or settings.DATABASE_URL
        self.echo = echo
        self.engine: Engine | None = None
        self._session_factory: sessionmaker | None = None

    def open(self) -> "Database":
        if self.engine is not None:
            return self
        kwargs = {"echo": self.echo}
        # SQLite needs special configuration for multithreading
        if self.url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in self.url or self.url in ("sqlite://", "sqlite:///"):
                kwargs["poolclass"] = StaticPool
        self.engine = create_engine(self.url, **kwargs)
        self._session_factory = sessionmaker(
            autocommit=False, autoflush=False, bind=self.engine
        )
        logger.info(f"Database engine opened ({self.engine.url.get_backend_name()})")
        return self

    def create_all(self) -> None:
        from assessment_engine.db.base import Base
        from assessment_engine import models  # noqa

        Base.metadata.create_all(bind=self.engine)

    def drop_all(self) -> None:
        from assessment_engine.db.base import Base

        Base.metadata.drop_all(bind=self.engine)

    def session(self) -> Session:
        if self._session_factory is None:
            raise RuntimeError("Database is not open")
        return self._session_factory()

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
            logger.info("Database engine disposed")
        self.engine = None
        self._session_factory = None
