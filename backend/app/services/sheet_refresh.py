"""End-to-end refresh of one reporting period from the source spreadsheet.

``fetch -> parse -> persist -> recompute``. The snapshot is committed before
the period's records are replaced, and records are replaced in the same
transaction that recomputes the period aggregates, so derived rows always
describe one full generation of records.
"""

from __future__ import annotations

import enum
import logging
import os
import threading
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

from sqlalchemy.orm import Session

from ..database import session_scope
from ..periods import Period
from .metrics import MetricsService
from .observability import EVENT_SHEETS_REFRESH, EventOutcome, ObservabilityService
from .profitability import ProfitabilityService
from .scheduler_monitor import JOB_SHEETS_REFRESH, SchedulerMonitor
from .sheet_parser import decode_label_value_rows
from .sheet_sources import (
    SheetSource,
    SheetSourceError,
    build_fallback_source_from_env,
    build_primary_source_from_env,
)
from .snapshot_store import SnapshotStore
from .ticket_records import SkippedRow, build_ticket_records

LOGGER = logging.getLogger(__name__)

REFRESH_INTERVAL_ENV = "SHEETS_REFRESH_INTERVAL_SECONDS"
REFRESH_PERIOD_ENV = "SHEETS_REFRESH_PERIOD"
REFRESH_RUN_ON_START_ENV = "SHEETS_REFRESH_RUN_ON_START"

DEFAULT_REFRESH_INTERVAL = 30.0
MIN_REFRESH_INTERVAL = 5.0


class IngestionError(RuntimeError):
    """Raised when neither transport could deliver the spreadsheet."""


class RefreshState(str, enum.Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    PARSING = "parsing"
    PERSISTING = "persisting"
    RECOMPUTING = "recomputing"


@dataclass
class RefreshResult:
    """Summary of one orchestration run."""

    period: Period
    source: Optional[str] = None
    raw_row_count: int = 0
    record_count: int = 0
    discarded_count: int = 0
    skipped_rows: list[SkippedRow] = field(default_factory=list)
    snapshot_id: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.raw_row_count == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "period": self.period.value,
            "source": self.source,
            "raw_row_count": self.raw_row_count,
            "record_count": self.record_count,
            "discarded_count": self.discarded_count,
            "skipped_count": len(self.skipped_rows),
            "snapshot_id": self.snapshot_id,
        }


# One writer per period inside this process.
_PERIOD_LOCKS: dict[Period, threading.Lock] = {period: threading.Lock() for period in Period}


class SheetRefreshService:
    """Drives a refresh for one period against one database session."""

    def __init__(
        self,
        db: Session,
        *,
        primary: SheetSource | None = None,
        fallback: SheetSource | None = None,
    ) -> None:
        self.db = db
        self.primary = primary or build_primary_source_from_env()
        self.fallback = fallback or build_fallback_source_from_env()
        self.state = RefreshState.IDLE
        self.transitions: list[RefreshState] = []

    def _enter(self, state: RefreshState) -> None:
        self.state = state
        self.transitions.append(state)

    def refresh(self, period: Period | str | None = None) -> RefreshResult:
        """Run the whole pipeline for ``period`` (unknown codes mean ``30d``)."""

        target = Period.parse(period)
        stopwatch = ObservabilityService.timer()
        with _PERIOD_LOCKS[target]:
            try:
                result = self._run(target)
            except Exception as exc:
                self.db.rollback()
                LOGGER.error("Refresh failed for period %s: %s", target.value, exc)
                ObservabilityService.record_event(
                    self.db,
                    EVENT_SHEETS_REFRESH,
                    EventOutcome.ERROR,
                    period=target.value,
                    duration_ms=stopwatch.elapsed_ms,
                    details={"error": str(exc)},
                )
                raise
            finally:
                self._enter(RefreshState.IDLE)

        ObservabilityService.record_event(
            self.db,
            EVENT_SHEETS_REFRESH,
            EventOutcome.EMPTY if result.is_empty else EventOutcome.SUCCESS,
            period=target.value,
            source=result.source,
            duration_ms=stopwatch.elapsed_ms,
            details=result.to_dict(),
        )
        return result

    def _run(self, period: Period) -> RefreshResult:
        LOGGER.info("Fetching spreadsheet data for period %s", period.value)
        self._enter(RefreshState.FETCHING)
        source, cells = self._fetch(period)
        result = RefreshResult(period=period, source=source)

        self._enter(RefreshState.PARSING)
        raw_rows = decode_label_value_rows(cells)
        if not raw_rows:
            LOGGER.warning(
                "No usable rows returned by %s for period %s; keeping existing data",
                source,
                period.value,
            )
            return result
        result.raw_row_count = len(raw_rows)
        imported_at = datetime.now(timezone.utc)
        built = build_ticket_records(raw_rows, period, imported_at=imported_at)
        result.discarded_count = built.discarded
        result.skipped_rows = built.skipped

        self._enter(RefreshState.PERSISTING)
        snapshot = SnapshotStore.create_snapshot(
            self.db, raw_rows, source=source, period=period
        )
        result.snapshot_id = snapshot.id
        self.db.commit()
        result.record_count = SnapshotStore.replace_period_records(
            self.db, period, built.records
        )

        self._enter(RefreshState.RECOMPUTING)
        MetricsService.recalculate(self.db, period)
        ProfitabilityService.recalculate(self.db, period)
        self.db.commit()

        LOGGER.info(
            "Stored %s ticket records for period %s from %s (%s raw rows)",
            result.record_count,
            period.value,
            source,
            result.raw_row_count,
        )
        return result

    def _fetch(self, period: Period) -> tuple[str, Sequence[Sequence[Any]]]:
        try:
            return self.primary.name, self.primary.fetch_rows(period)
        except SheetSourceError as exc:
            LOGGER.warning(
                "Transport %s failed for period %s (%s); trying %s",
                self.primary.name,
                period.value,
                exc,
                self.fallback.name,
            )
        try:
            return self.fallback.name, self.fallback.fetch_rows(period)
        except SheetSourceError as exc:
            raise IngestionError(
                f"Could not fetch spreadsheet data for period {period.value}: {exc}"
            ) from exc


def _read_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        LOGGER.warning("Invalid value for %s=%s; using %s", name, raw, default)
        return default


def _read_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class SheetRefreshScheduler:
    """Owns the background thread that refreshes one period on a fixed interval.

    ``run_once`` is the same code path the thread uses, so tests can drive a
    tick without starting a timer.
    """

    def __init__(
        self,
        *,
        period: Period | str | None = None,
        interval_seconds: float = DEFAULT_REFRESH_INTERVAL,
        run_on_start: bool = True,
        session_factory: Callable[[], AbstractContextManager[Session]] = session_scope,
        service_factory: Callable[[Session], SheetRefreshService] = SheetRefreshService,
    ) -> None:
        self.period = Period.parse(period)
        self.interval_seconds = max(interval_seconds, MIN_REFRESH_INTERVAL)
        self.run_on_start = run_on_start
        self._session_factory = session_factory
        self._service_factory = service_factory
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @classmethod
    def from_env(cls) -> "SheetRefreshScheduler":
        return cls(
            period=os.getenv(REFRESH_PERIOD_ENV),
            interval_seconds=_read_float(REFRESH_INTERVAL_ENV, DEFAULT_REFRESH_INTERVAL),
            run_on_start=_read_bool(REFRESH_RUN_ON_START_ENV, True),
        )

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> RefreshResult | None:
        try:
            with self._session_factory() as session:
                result = self._service_factory(session).refresh(self.period)
        except Exception as exc:
            LOGGER.exception("Scheduled refresh failed for period %s", self.period.value)
            SchedulerMonitor.record_error(JOB_SHEETS_REFRESH, str(exc))
            return None
        finally:
            SchedulerMonitor.record_tick(JOB_SHEETS_REFRESH)

        SchedulerMonitor.record_success(JOB_SHEETS_REFRESH, result.to_dict())
        LOGGER.info("Scheduled refresh finished: %s", result.to_dict())
        return result

    def _worker(self) -> None:
        if self.run_on_start:
            self.run_once()
        while not self._stop.wait(self.interval_seconds):
            self.run_once()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._worker, name="sheets-refresh", daemon=True
        )
        self._thread.start()
        LOGGER.info(
            "Sheets refresh scheduled every %.0fs for period %s",
            self.interval_seconds,
            self.period.value,
        )

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)
            LOGGER.info("Sheets refresh scheduler stopped")
        self._thread = None


_scheduler: Optional[SheetRefreshScheduler] = None


def start_sheets_refresh_scheduler() -> None:
    """Start the process-wide refresh scheduler configured from the environment."""

    global _scheduler
    if _scheduler is not None and _scheduler.is_running:
        return
    _scheduler = SheetRefreshScheduler.from_env()
    _scheduler.start()


def stop_sheets_refresh_scheduler() -> None:
    global _scheduler
    if _scheduler is not None:
        _scheduler.stop()
    _scheduler = None
