"""Record timed outcomes of ingestion runs for dashboards and alerts."""

from __future__ import annotations

import logging
import time
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from .. import models

LOGGER = logging.getLogger(__name__)

EVENT_SHEETS_REFRESH = "sheets.refresh"


class EventOutcome:
    SUCCESS = "success"
    EMPTY = "empty"
    ERROR = "error"


class ObservabilityService:
    """Persists :class:`models.IngestionEvent` rows outside the caller's transaction."""

    @staticmethod
    def record_event(
        db: Session,
        event_type: str,
        outcome: str,
        *,
        period: str | None = None,
        source: str | None = None,
        duration_ms: float | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        event = models.IngestionEvent(
            event_type=event_type,
            outcome=outcome,
            period=period,
            source=source,
            duration_ms=Decimal(str(round(duration_ms, 3))) if duration_ms is not None else None,
            details=details or None,
        )
        ObservabilityService._persist(db, event)

    @staticmethod
    def recent_events(
        db: Session, *, event_type: str | None = None, limit: int = 20
    ) -> list[models.IngestionEvent]:
        query = db.query(models.IngestionEvent)
        if event_type:
            query = query.filter(models.IngestionEvent.event_type == event_type)
        return query.order_by(models.IngestionEvent.created_at.desc()).limit(limit).all()

    @staticmethod
    def timer() -> "_Stopwatch":
        return _Stopwatch()

    @staticmethod
    def _persist(db: Session, event: models.IngestionEvent) -> None:
        try:
            engine = db.get_bind()
            with Session(bind=engine) as events_session:
                events_session.add(event)
                events_session.commit()
        except Exception:  # pragma: no cover - event failures must not break refreshes
            LOGGER.exception("Failed to persist ingestion event")


class _Stopwatch:
    def __init__(self) -> None:
        self._start = time.perf_counter()

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._start) * 1000
