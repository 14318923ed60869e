"""Database helpers using SQLAlchemy Core."""
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool


_engines: dict[str, Engine] = {}
_engines_lock = threading.Lock()


def get_engine(database_url: str) -> Engine:
    """Create (or reuse) the SQLAlchemy engine for a database URL."""
    with _engines_lock:
        engine = _engines.get(database_url)
        if engine is None:
            engine = _create_engine(database_url)
            _engines[database_url] = engine
        return engine


def _create_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # a single shared connection keeps the in-memory database alive
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, future=True, **kwargs)
    return create_engine(database_url, future=True, pool_pre_ping=True)


@contextmanager
def db_session(engine: Engine) -> Iterator[Connection]:
    """Context manager yielding a connection inside a transaction."""
    connection = engine.connect()
    transaction = connection.begin()
    try:
        yield connection
        transaction.commit()
    except SQLAlchemyError:
        transaction.rollback()
        raise
    finally:
        connection.close()


def execute_sql_file(engine: Engine, path: str) -> None:
    """Execute a raw SQL file against the database."""
    with open(path, "r", encoding="utf-8") as handle:
        sql = handle.read()
    with db_session(engine) as conn:
        for statement in (chunk.strip() for chunk in sql.split(";")):
            if statement:
                conn.execute(text(statement))
