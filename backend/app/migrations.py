"""Bring the ingestion schema to the latest Alembic revision.

Several workers may boot against the same database, so upgrades run under an
exclusive lock file kept next to ``alembic.ini``.
"""

from __future__ import annotations

import logging
import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterator

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory

from .database import SQLALCHEMY_DATABASE_URL, build_engine

if os.name == "posix":  # pragma: no cover - platform specific
    import fcntl
else:  # pragma: no cover - platform specific
    import msvcrt

LOGGER = logging.getLogger(__name__)

BACKEND_DIR = Path(__file__).resolve().parent.parent
LOCK_PATH = BACKEND_DIR / ".alembic-migration.lock"
LOCK_TIMEOUT_ENV = "ALEMBIC_MIGRATION_LOCK_TIMEOUT"
DEFAULT_LOCK_TIMEOUT = 30.0
LOCK_POLL_INTERVAL = 0.25


def build_alembic_config(database_url: str | None = None) -> Config:
    config = Config(str(BACKEND_DIR / "alembic.ini"))
    config.set_main_option("script_location", str(BACKEND_DIR / "alembic"))
    config.set_main_option(
        "sqlalchemy.url", database_url or os.getenv("DATABASE_URL") or SQLALCHEMY_DATABASE_URL
    )
    return config


def head_revision(config: Config) -> str | None:
    return ScriptDirectory.from_config(config).get_current_head()


def current_revision(database_url: str) -> str | None:
    """Revision recorded in ``alembic_version``, or ``None`` for an unmanaged database."""

    engine = build_engine(database_url)
    try:
        with engine.connect() as connection:
            return MigrationContext.configure(connection).get_current_revision()
    finally:
        engine.dispose()


def _lock_timeout() -> float:
    raw = os.getenv(LOCK_TIMEOUT_ENV)
    try:
        value = float(raw) if raw else DEFAULT_LOCK_TIMEOUT
    except ValueError:
        value = 0.0
    if value <= 0:
        LOGGER.warning("Ignoring %s=%r; waiting %.0fs", LOCK_TIMEOUT_ENV, raw, DEFAULT_LOCK_TIMEOUT)
        return DEFAULT_LOCK_TIMEOUT
    return value


def _try_lock(handle: IO[str]) -> bool:
    try:
        if os.name == "posix":  # pragma: no cover - platform specific
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        else:  # pragma: no cover - platform specific
            msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)
    except OSError:
        return False
    return True


def _unlock(handle: IO[str]) -> None:
    if os.name == "posix":  # pragma: no cover - platform specific
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
    else:  # pragma: no cover - platform specific
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)


@contextmanager
def migration_lock(path: Path = LOCK_PATH, *, timeout: float | None = None) -> Iterator[None]:
    """Hold an exclusive lock on ``path``; raise ``TimeoutError`` after ``timeout`` seconds."""

    deadline = time.monotonic() + (timeout if timeout is not None else _lock_timeout())
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a+") as handle:
        while not _try_lock(handle):
            if time.monotonic() >= deadline:
                raise TimeoutError(f"Timed out waiting for migration lock {path}")
            time.sleep(LOCK_POLL_INTERVAL)
        try:
            yield
        finally:
            _unlock(handle)


def run_database_migrations(database_url: str | None = None) -> None:
    """Upgrade the database to head before the API starts serving requests.

    The initial revision only creates tables that are missing, so a schema
    built with ``Base.metadata.create_all`` is adopted rather than rebuilt.
    """

    config = build_alembic_config(database_url)
    url = config.get_main_option("sqlalchemy.url")
    with migration_lock():
        before = current_revision(url)
        target = head_revision(config)
        if before == target:
            LOGGER.debug("Database already at revision %s", target)
            return
        LOGGER.info("Upgrading database from %s to %s", before or "an empty schema", target)
        command.upgrade(config, "head")
