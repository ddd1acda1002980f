"""Engine and session factories for the ingestion store."""

from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker

DEFAULT_DATABASE_PATH = Path(__file__).resolve().parent.parent / "sheets.db"

# (create_engine keyword, environment variable, default) for server databases.
POOL_SETTINGS = (
    ("pool_size", "DATABASE_POOL_SIZE", 5),
    ("max_overflow", "DATABASE_MAX_OVERFLOW", 10),
    ("pool_timeout", "DATABASE_POOL_TIMEOUT", 30),
    ("pool_recycle", "DATABASE_POOL_RECYCLE", 1800),
)


def resolve_database_url(raw_url: str | None = None) -> str:
    """Return ``raw_url`` or the local SQLite file, creating its folder if needed."""

    url = make_url(raw_url or f"sqlite:///{DEFAULT_DATABASE_PATH.as_posix()}")
    if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return url.render_as_string(hide_password=False)


def _pool_options() -> Dict[str, Any]:
    options: Dict[str, Any] = {"pool_pre_ping": True}
    for keyword, env_name, default in POOL_SETTINGS:
        raw = os.getenv(env_name)
        if raw is None:
            options[keyword] = default
            continue
        if not raw.strip().isdigit():
            raise ValueError(f"{env_name} must be a non-negative integer")
        options[keyword] = int(raw)
    return options


def build_engine(database_url: str) -> Engine:
    """Create an engine; SQLite connections are shared with the refresh thread."""

    if make_url(database_url).get_backend_name() == "sqlite":
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(database_url, **_pool_options())


SQLALCHEMY_DATABASE_URL = resolve_database_url(os.getenv("DATABASE_URL"))

engine = build_engine(SQLALCHEMY_DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Generator:
    """Commit on success, roll back on error; used by the scheduler and the CLI."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
