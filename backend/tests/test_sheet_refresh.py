from __future__ import annotations

from contextlib import contextmanager
from decimal import Decimal

import pytest
from sqlalchemy import inspect
from sqlalchemy.orm import Session

from backend.app import models
from backend.app.periods import Period
from backend.app.services.metrics import MetricsService
from backend.app.services.observability import EVENT_SHEETS_REFRESH, ObservabilityService
from backend.app.services.profitability import ProfitabilityService
from backend.app.services.scheduler_monitor import JOB_SHEETS_REFRESH, SchedulerMonitor
from backend.app.services.sheet_refresh import (
    IngestionError,
    RefreshState,
    SheetRefreshScheduler,
    SheetRefreshService,
)
from backend.app.services.sheet_sources import (
    SOURCE_API,
    SOURCE_PUBLIC,
    SheetSourceConfigurationError,
    SheetSourceError,
)


def _record_count(db_session: Session, period: Period) -> int:
    return (
        db_session.query(models.TicketRecord)
        .filter(models.TicketRecord.period == period)
        .count()
    )


def _column_values(row, *, exclude: str) -> dict:
    return {
        attribute.key: getattr(row, attribute.key)
        for attribute in inspect(row).mapper.column_attrs
        if attribute.key != exclude
    }


def _aggregate_values(row) -> dict:
    return _column_values(row, exclude="calculated_at")


def _record_values(db_session: Session, period: Period) -> list[dict]:
    records = (
        db_session.query(models.TicketRecord)
        .filter(models.TicketRecord.period == period)
        .order_by(models.TicketRecord.ticket_id)
        .all()
    )
    return [_column_values(record, exclude="id") for record in records]


def test_refresh_persists_snapshot_records_and_aggregates(
    db_session, stub_source_factory, sample_sheet_rows
):
    primary = stub_source_factory(SOURCE_API, rows=sample_sheet_rows)
    fallback = stub_source_factory(SOURCE_PUBLIC, error=SheetSourceError("unused"))
    service = SheetRefreshService(db_session, primary=primary, fallback=fallback)

    result = service.refresh("30d")

    assert result.source == SOURCE_API
    assert result.raw_row_count == 4
    assert result.record_count == 3
    assert result.discarded_count == 1
    assert fallback.calls == []
    assert service.transitions == [
        RefreshState.FETCHING,
        RefreshState.PARSING,
        RefreshState.PERSISTING,
        RefreshState.RECOMPUTING,
        RefreshState.IDLE,
    ]
    assert service.state is RefreshState.IDLE

    snapshot = db_session.get(models.SheetImport, result.snapshot_id)
    assert snapshot.row_count == 4
    assert snapshot.period is Period.LAST_30_DAYS
    assert snapshot.data[0]["flag_urgente"] == "SIM ⚠️"

    metrics = MetricsService.get(db_session, Period.LAST_30_DAYS)
    assert metrics.total_tickets == 3
    assert metrics.open_tickets == 1
    assert metrics.urgent_tickets == 2
    assert Decimal(str(metrics.resolution_rate)) == Decimal("66.67")
    assert Decimal(str(metrics.cancellation_rate)) == Decimal("33.33")

    analysis = ProfitabilityService.get(db_session, Period.LAST_30_DAYS)
    assert analysis.total_customers == 3
    assert analysis.profitable_customers == 2
    assert Decimal(str(analysis.average_score)) == Decimal("76.67")

    events = ObservabilityService.recent_events(db_session, event_type=EVENT_SHEETS_REFRESH)
    assert events[0].outcome == "success"
    assert events[0].period == "30d"


def test_primary_failure_uses_fallback_transport(db_session, stub_source_factory, sample_sheet_rows):
    primary = stub_source_factory(SOURCE_API, error=SheetSourceConfigurationError("no key"))
    fallback = stub_source_factory(SOURCE_PUBLIC, rows=sample_sheet_rows)
    service = SheetRefreshService(db_session, primary=primary, fallback=fallback)

    result = service.refresh(Period.LAST_7_DAYS)

    assert result.source == SOURCE_PUBLIC
    assert primary.calls == [Period.LAST_7_DAYS]
    assert fallback.calls == [Period.LAST_7_DAYS]
    assert _record_count(db_session, Period.LAST_7_DAYS) == 3


def test_both_transports_failing_keeps_previous_data(
    db_session, stub_source_factory, sample_sheet_rows
):
    working = SheetRefreshService(
        db_session,
        primary=stub_source_factory(SOURCE_API, rows=sample_sheet_rows),
        fallback=stub_source_factory(SOURCE_PUBLIC, rows=[]),
    )
    first = working.refresh(Period.LAST_30_DAYS)

    failing = SheetRefreshService(
        db_session,
        primary=stub_source_factory(SOURCE_API, error=SheetSourceError("timeout")),
        fallback=stub_source_factory(SOURCE_PUBLIC, error=SheetSourceError("404")),
    )
    with pytest.raises(IngestionError):
        failing.refresh(Period.LAST_30_DAYS)

    assert failing.state is RefreshState.IDLE
    assert db_session.query(models.SheetImport).count() == 1
    assert _record_count(db_session, Period.LAST_30_DAYS) == first.record_count
    assert MetricsService.get(db_session, Period.LAST_30_DAYS).total_tickets == 3
    events = ObservabilityService.recent_events(db_session, event_type=EVENT_SHEETS_REFRESH)
    assert {event.outcome for event in events} == {"success", "error"}


def test_rerunning_refresh_replaces_records_instead_of_duplicating(
    db_session, stub_source_factory, sample_sheet_rows
):
    def _service() -> SheetRefreshService:
        return SheetRefreshService(
            db_session,
            primary=stub_source_factory(SOURCE_API, rows=sample_sheet_rows),
            fallback=stub_source_factory(SOURCE_PUBLIC),
        )

    _service().refresh(Period.LAST_30_DAYS)
    first_metrics = _aggregate_values(MetricsService.get(db_session, Period.LAST_30_DAYS))
    first_analysis = _aggregate_values(ProfitabilityService.get(db_session, Period.LAST_30_DAYS))
    first_records = _record_values(db_session, Period.LAST_30_DAYS)

    _service().refresh(Period.LAST_30_DAYS)

    assert _record_count(db_session, Period.LAST_30_DAYS) == 3
    assert _record_values(db_session, Period.LAST_30_DAYS) == first_records
    assert _aggregate_values(MetricsService.get(db_session, Period.LAST_30_DAYS)) == first_metrics
    assert (
        _aggregate_values(ProfitabilityService.get(db_session, Period.LAST_30_DAYS))
        == first_analysis
    )
    assert db_session.query(models.SheetImport).count() == 2
    assert db_session.query(models.PerformanceMetrics).count() == 1
    assert db_session.query(models.ProfitabilityAnalysis).count() == 1


def test_refresh_only_touches_its_own_period(db_session, stub_source_factory, sample_sheet_rows):
    for period in (Period.LAST_7_DAYS, Period.LAST_30_DAYS):
        SheetRefreshService(
            db_session,
            primary=stub_source_factory(SOURCE_API, rows=sample_sheet_rows),
            fallback=stub_source_factory(SOURCE_PUBLIC),
        ).refresh(period)

    SheetRefreshService(
        db_session,
        primary=stub_source_factory(SOURCE_API, rows=[["ID:", "900"]]),
        fallback=stub_source_factory(SOURCE_PUBLIC),
    ).refresh(Period.LAST_7_DAYS)

    assert _record_count(db_session, Period.LAST_7_DAYS) == 1
    assert _record_count(db_session, Period.LAST_30_DAYS) == 3


def test_empty_fetch_writes_nothing(db_session, stub_source_factory):
    service = SheetRefreshService(
        db_session,
        primary=stub_source_factory(SOURCE_API, rows=[["🚨 Seção", ""], []]),
        fallback=stub_source_factory(SOURCE_PUBLIC),
    )

    result = service.refresh(Period.LAST_30_DAYS)

    assert result.is_empty
    assert result.snapshot_id is None
    assert service.transitions == [
        RefreshState.FETCHING,
        RefreshState.PARSING,
        RefreshState.IDLE,
    ]
    assert db_session.query(models.SheetImport).count() == 0
    assert MetricsService.get(db_session, Period.LAST_30_DAYS) is None
    events = ObservabilityService.recent_events(db_session, event_type=EVENT_SHEETS_REFRESH)
    assert events[0].outcome == "empty"


def test_rows_without_signal_still_replace_the_period(
    db_session, stub_source_factory, sample_sheet_rows
):
    SheetRefreshService(
        db_session,
        primary=stub_source_factory(SOURCE_API, rows=sample_sheet_rows),
        fallback=stub_source_factory(SOURCE_PUBLIC),
    ).refresh(Period.LAST_30_DAYS)

    result = SheetRefreshService(
        db_session,
        primary=stub_source_factory(SOURCE_API, rows=[["Nome:", "Sem sinal"]]),
        fallback=stub_source_factory(SOURCE_PUBLIC),
    ).refresh(Period.LAST_30_DAYS)

    assert result.record_count == 0
    assert result.discarded_count == 1
    assert _record_count(db_session, Period.LAST_30_DAYS) == 0
    metrics = MetricsService.get(db_session, Period.LAST_30_DAYS)
    assert metrics.total_tickets == 0
    assert Decimal(str(metrics.resolution_rate)) == Decimal("0.00")


def _scheduler_for(db_session, service_factory) -> SheetRefreshScheduler:
    @contextmanager
    def _session_scope():
        yield db_session

    return SheetRefreshScheduler(
        period="7d",
        interval_seconds=1,
        run_on_start=False,
        session_factory=_session_scope,
        service_factory=service_factory,
    )


def test_scheduler_run_once_records_success(db_session, stub_source_factory, sample_sheet_rows):
    scheduler = _scheduler_for(
        db_session,
        lambda session: SheetRefreshService(
            session,
            primary=stub_source_factory(SOURCE_API, rows=sample_sheet_rows),
            fallback=stub_source_factory(SOURCE_PUBLIC),
        ),
    )

    result = scheduler.run_once()

    assert result is not None
    assert scheduler.interval_seconds == 5
    status = SchedulerMonitor.snapshot()[JOB_SHEETS_REFRESH]
    assert status["last_tick"] is not None
    assert status["last_success"] is not None
    assert status["last_summary"]["record_count"] == 3
    assert status["recent_errors"] == []


def test_scheduler_run_once_records_errors_without_raising(db_session, stub_source_factory):
    scheduler = _scheduler_for(
        db_session,
        lambda session: SheetRefreshService(
            session,
            primary=stub_source_factory(SOURCE_API, error=SheetSourceError("down")),
            fallback=stub_source_factory(SOURCE_PUBLIC, error=SheetSourceError("down too")),
        ),
    )

    assert scheduler.run_once() is None

    status = SchedulerMonitor.snapshot()[JOB_SHEETS_REFRESH]
    assert status["last_tick"] is not None
    assert status["last_success"] is None
    assert any("down too" in entry for entry in status["recent_errors"])


def test_scheduler_reads_settings_from_env(monkeypatch):
    monkeypatch.setenv("SHEETS_REFRESH_INTERVAL_SECONDS", "120")
    monkeypatch.setenv("SHEETS_REFRESH_PERIOD", "6m")
    monkeypatch.setenv("SHEETS_REFRESH_RUN_ON_START", "no")

    scheduler = SheetRefreshScheduler.from_env()

    assert scheduler.interval_seconds == 120
    assert scheduler.period is Period.LAST_6_MONTHS
    assert scheduler.run_on_start is False


def test_scheduler_start_and_stop_manage_worker_thread(monkeypatch):
    ticks: list[str] = []
    scheduler = SheetRefreshScheduler(period="1y", interval_seconds=60, run_on_start=True)
    monkeypatch.setattr(scheduler, "run_once", lambda: ticks.append("tick"))

    scheduler.start()
    try:
        assert scheduler.is_running
    finally:
        scheduler.stop(timeout=2)

    assert not scheduler.is_running
    assert ticks == ["tick"]
