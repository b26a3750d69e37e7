"""Store handle for the Spendwise backend."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import Request
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

LOG = logging.getLogger(__name__)

Base = declarative_base()


class Database:
    """Own the engine and session factory for one relational store.

    The handle is created once at startup and passed explicitly to whoever
    needs sessions; :meth:`close` disposes of the connection pool.
    """

    def __init__(self, url: str, *, echo: bool = False) -> None:
        self.url = url
        connect_args: dict[str, object] = {}
        engine_kwargs: dict[str, object] = {}
        if url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            if url in {"sqlite://", "sqlite:///:memory:"}:
                # One shared connection, otherwise every session sees an empty database.
                engine_kwargs["poolclass"] = StaticPool
        self.engine: Engine = create_engine(url, connect_args=connect_args, echo=echo, **engine_kwargs)
        self.session_factory = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    def init_db(self) -> None:
        """Create database tables if they do not already exist."""
        from . import models  # noqa: F401  # registers tables on Base.metadata

        Base.metadata.create_all(bind=self.engine)
        LOG.info("Database ready at %s", self.engine.url.render_as_string(hide_password=True))

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Provide a transactional scope around a series of operations."""
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def close(self) -> None:
        self.engine.dispose()
        LOG.info("Database connections closed")


def get_db(request: Request) -> Iterator[Session]:
    """FastAPI dependency that provides a session from the app's store handle."""
    database: Database = request.app.state.database
    with database.session_scope() as session:
        yield session
