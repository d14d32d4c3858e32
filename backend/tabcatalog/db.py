from __future__ import annotations
import os
from typing import Iterator

from dotenv import load_dotenv
from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from tabcatalog.logger import get_logger

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./tabs.db")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"
SQLITE_BUSY_TIMEOUT_MS = 5000

logger = get_logger("tabcatalog.db")


class Base(DeclarativeBase):
    pass


def _set_sqlite_pragmas(dbapi_conn, connection_record):
    cur = dbapi_conn.cursor()
    cur.execute("PRAGMA foreign_keys = ON")
    cur.execute(f"PRAGMA busy_timeout = {SQLITE_BUSY_TIMEOUT_MS}")
    cur.close()


def make_engine(url: str | None = None, echo: bool | None = None) -> Engine:
    """
    Open the store. SQLite connections get foreign keys switched on (so the
    rating -> tab FK and ON DELETE CASCADE are enforced) and a busy timeout so
    a second writer waits for the first instead of failing.
    """
    url = url or DATABASE_URL
    kwargs: dict = {"echo": SQL_ECHO if echo is None else echo, "future": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}

    engine = create_engine(url, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _set_sqlite_pragmas)

    logger.info(f"Store opened: {engine.url.render_as_string(hide_password=True)}")
    return engine


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create tables if missing (simple MVP; no migration history)."""
    # models must be imported so their tables are registered on Base.metadata
    from tabcatalog import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def close_db(engine: Engine) -> None:
    engine.dispose()
    logger.info("Store closed")


def get_db(request: Request) -> Iterator[Session]:
    """FastAPI dependency: one session per request from the app's store."""
    session_factory = request.app.state.session_factory
    with session_factory() as db:
        yield db
