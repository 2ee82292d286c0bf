from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .config import settings


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def enable_sqlite_foreign_keys(target: Engine) -> None:
    """SQLite ignores ON DELETE CASCADE unless the pragma is set per connection."""

    @event.listens_for(target, "connect")
    def _set_pragma(dbapi_connection, _connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(url: str, **kwargs) -> Engine:
    connect_args = {"check_same_thread": False} if _is_sqlite(url) else {}
    eng = create_engine(url, connect_args=connect_args, **kwargs)
    if _is_sqlite(url):
        enable_sqlite_foreign_keys(eng)
    return eng


engine = build_engine(settings.DB_URL)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
