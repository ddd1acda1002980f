"""Raw spreadsheet snapshots captured by each ingestion run."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, func

from ..database import Base
from ..db_types import GUID, JSONPayload
from ._period_enum import PERIOD_ENUM


class SheetImport(Base):
    """Immutable capture of the decoded rows fetched in one run."""

    __tablename__ = "sheet_imports"

    id = Column("import_id", GUID(), primary_key=True, default=lambda: str(uuid.uuid4()))
    # Monotonic tie-breaker for snapshots created within the same clock tick.
    sequence = Column(Integer, nullable=False, default=0)
    period = Column(PERIOD_ENUM, nullable=True, index=True)
    source = Column(String(64), nullable=False)
    row_count = Column(Integer, nullable=False, default=0)
    data = Column("payload", JSONPayload, nullable=False, default=list)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        nullable=False,
        index=True,
    )
