"""Operational events emitted by ingestion runs."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, Numeric, String, func

from ..database import Base
from ..db_types import GUID, JSONPayload


class IngestionEvent(Base):
    """Timed outcome of one refresh (or other pipeline step) for dashboards."""

    __tablename__ = "ingestion_events"

    id = Column("event_id", GUID(), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_type = Column(String(120), nullable=False, index=True)
    outcome = Column(String(32), nullable=False, index=True)
    period = Column(String(8), nullable=True, index=True)
    source = Column(String(64), nullable=True)
    duration_ms = Column(Numeric(14, 3), nullable=True)
    details = Column(JSONPayload, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )
