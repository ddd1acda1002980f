"""Column types shared by the ingestion models."""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import JSON
from sqlalchemy.dialects import postgresql
from sqlalchemy.dialects.sqlite import JSON as SQLiteJSON
from sqlalchemy.types import CHAR, TypeDecorator

# Raw snapshot payloads are stored as JSON documents on every backend.
JSONPayload = JSON().with_variant(SQLiteJSON(), "sqlite").with_variant(
    postgresql.JSONB(), "postgresql"
)


class GUID(TypeDecorator):
    """UUID primary keys: native ``UUID`` on PostgreSQL, ``CHAR(36)`` elsewhere.

    Values always come back as strings so callers never juggle both types.
    """

    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):  # type: ignore[override]
        if dialect.name == "postgresql":
            return dialect.type_descriptor(postgresql.UUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value: Any, dialect):  # type: ignore[override]
        if value is None:
            return value
        if dialect.name == "postgresql":
            return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
        return str(value)

    def process_result_value(self, value: Any, dialect):  # type: ignore[override]
        if value is None:
            return value
        return str(value)
