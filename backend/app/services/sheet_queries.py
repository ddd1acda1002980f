"""Read side of the pipeline: snapshots, records, aggregates and exports."""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from .. import models
from ..periods import Period
from .metrics import MetricsService
from .profitability import ProfitabilityService
from .sheet_refresh import SheetRefreshService
from .snapshot_store import SnapshotStore

LOGGER = logging.getLogger(__name__)

DEFAULT_RECORD_LIMIT = 100
MAX_RECORD_LIMIT = 1000

EXPORT_COLUMNS = (
    "timestamp",
    "ticketId",
    "nome",
    "email",
    "assunto",
    "totalTickets",
    "urgente",
    "vip",
    "especializado",
    "scoreRisco",
    "scoreRecorrencia",
    "classificacao",
    "cancelou",
    "integracao",
    "problemaPagamento",
    "clienteDesde",
    "diasCliente",
    "status",
    "prazo",
)


@dataclass
class TicketFilters:
    """Optional equality filters applied to a period's records."""

    urgent: Optional[bool] = None
    vip: Optional[bool] = None
    specialized: Optional[bool] = None
    previously_cancelled: Optional[bool] = None
    classification: Optional[str] = None
    risk_score: Optional[str] = None
    status: Optional[str] = None
    limit: int = DEFAULT_RECORD_LIMIT


def _yes_no(value: bool) -> str:
    return "SIM" if value else "NÃO"


def _iso(value: datetime | None) -> str:
    return value.isoformat() if value else ""


class SheetQueryService:
    """Answers the questions the HTTP layer asks about a period.

    Aggregates missing for a period are produced on read by running a full
    refresh first, so a read may take as long as an ingestion run.
    """

    def __init__(
        self,
        db: Session,
        *,
        refresh_factory: Callable[[Session], SheetRefreshService] = SheetRefreshService,
    ) -> None:
        self.db = db
        self._refresh_factory = refresh_factory

    def refresh(self, period: Period):
        return self._refresh_factory(self.db).refresh(period)

    def latest_snapshot_rows(self, period: Period | None = None) -> list[dict[str, str]]:
        snapshot = SnapshotStore.latest_snapshot(self.db, period)
        return list(snapshot.data or []) if snapshot else []

    def list_imports(self, *, limit: int = 10) -> list[models.SheetImport]:
        return SnapshotStore.list_snapshots(self.db, limit=limit)

    def refresh_and_get_raw(self, period: Period) -> list[dict[str, str]]:
        self.refresh(period)
        return self.latest_snapshot_rows(period)

    def get_performance_metrics(self, period: Period) -> models.PerformanceMetrics:
        return self._read_through(period, MetricsService.get, MetricsService.recalculate)

    def get_profitability_analysis(self, period: Period) -> models.ProfitabilityAnalysis:
        return self._read_through(
            period, ProfitabilityService.get, ProfitabilityService.recalculate
        )

    def _read_through(
        self,
        period: Period,
        getter: Callable[[Session, Period], Any],
        recalculate: Callable[[Session, Period], Any],
    ) -> Any:
        row = getter(self.db, period)
        if row is not None:
            return row

        LOGGER.info("No aggregate stored for period %s; refreshing before reading", period.value)
        self.refresh(period)
        row = getter(self.db, period)
        if row is None:
            # The spreadsheet had nothing for this period: aggregate what is stored.
            row = recalculate(self.db, period)
            self.db.commit()
        return row

    def get_filtered_records(
        self, period: Period, filters: TicketFilters | None = None
    ) -> list[models.TicketRecord]:
        filters = filters or TicketFilters()
        query = self.db.query(models.TicketRecord).filter(models.TicketRecord.period == period)

        for attribute in ("urgent", "vip", "specialized", "previously_cancelled"):
            value = getattr(filters, attribute)
            if value is not None:
                query = query.filter(getattr(models.TicketRecord, attribute).is_(value))
        for attribute in ("classification", "risk_score", "status"):
            value = getattr(filters, attribute)
            if value:
                query = query.filter(getattr(models.TicketRecord, attribute) == value)

        limit = min(max(filters.limit or DEFAULT_RECORD_LIMIT, 1), MAX_RECORD_LIMIT)
        return (
            query.order_by(models.TicketRecord.timestamp.desc())
            .limit(limit)
            .all()
        )

    def export_csv(self, period: Period) -> str:
        """Render every record of ``period`` with the fixed export columns."""

        records = (
            self.db.query(models.TicketRecord)
            .filter(models.TicketRecord.period == period)
            .order_by(models.TicketRecord.timestamp.desc())
            .all()
        )
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(EXPORT_COLUMNS)
        for record in records:
            writer.writerow(
                [
                    _iso(record.timestamp),
                    record.ticket_id or "",
                    record.customer_name or "",
                    record.email or "",
                    record.subject or "",
                    record.total_tickets or 0,
                    _yes_no(record.urgent),
                    _yes_no(record.vip),
                    _yes_no(record.specialized),
                    record.risk_score or "",
                    record.recurrence_score or "",
                    record.classification or "",
                    _yes_no(record.previously_cancelled),
                    _yes_no(record.required_integration),
                    _yes_no(record.payment_issue),
                    _iso(record.customer_since),
                    record.days_as_customer or 0,
                    record.status or "",
                    _iso(record.deadline),
                ]
            )
        return buffer.getvalue()
