"""SQLAlchemy engine, session factory and unit-of-work helper."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import StaticPool

from cyberlab.core.config import settings
from cyberlab.core.errors import ConflictError, DependencyError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""

    pass


def _install_sqlite_hooks(engine: Engine) -> None:
    # pysqlite issues a deferred BEGIN lazily, which lets two writers both
    # read before either writes. Take the write lock up front instead.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute(f"PRAGMA busy_timeout={int(settings.sqlite_busy_timeout * 1000)}")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str | None = None, *, echo: bool = False) -> Engine:
    """Create an engine for *url* with the dialect-specific hooks applied."""
    url = url or settings.database_url
    if url.startswith("sqlite"):
        kwargs: dict = {
            "connect_args": {
                "check_same_thread": False,
                "timeout": settings.sqlite_busy_timeout,
            },
        }
        if ":memory:" in url or url.rstrip("/") == "sqlite:":
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, echo=echo, **kwargs)
        _install_sqlite_hooks(engine)
        return engine
    return create_engine(url, echo=echo, pool_pre_ping=True)


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(bind=engine, class_=Session, expire_on_commit=False)


def get_db() -> Iterator[Session]:
    """FastAPI dependency — yields a scoped DB session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """
    Run one service operation as a single transaction.

    Commits on success and rolls back on any exception. Storage failures
    are translated into the domain taxonomy so callers never see raw
    driver errors.
    """
    try:
        yield db
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        raise ConflictError(
            "Record was modified concurrently; reload and retry",
            reason=str(exc),
        ) from exc
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(
            "Write violates a uniqueness or integrity constraint",
            reason=str(exc.orig),
        ) from exc
    except OperationalError as exc:
        db.rollback()
        logger.error("Persistence unavailable: %s", exc)
        raise DependencyError("Persistence layer unavailable", reason=str(exc.orig)) from exc
    except Exception:
        db.rollback()
        raise
