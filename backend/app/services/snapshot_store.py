"""Persistence helpers for snapshots, ticket records and derived aggregates."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Sequence, Type, TypeVar

from sqlalchemy import func
from sqlalchemy.orm import Session

from .. import models
from ..periods import Period
from .ticket_records import TicketRecordData

AggregateT = TypeVar("AggregateT", models.PerformanceMetrics, models.ProfitabilityAnalysis)


class SnapshotStore:
    """Read/write contract used by the refresh pipeline and query layer.

    Callers own the transaction: methods flush but never commit.
    """

    @staticmethod
    def create_snapshot(
        db: Session,
        rows: Sequence[Mapping[str, str]],
        *,
        source: str,
        period: Period | None = None,
    ) -> models.SheetImport:
        next_sequence = (db.query(func.max(models.SheetImport.sequence)).scalar() or 0) + 1
        snapshot = models.SheetImport(
            sequence=next_sequence,
            period=period,
            source=source,
            row_count=len(rows),
            data=[dict(row) for row in rows],
        )
        db.add(snapshot)
        db.flush()
        return snapshot

    @staticmethod
    def latest_snapshot(db: Session, period: Period | None = None) -> models.SheetImport | None:
        query = db.query(models.SheetImport)
        if period is not None:
            query = query.filter(models.SheetImport.period == period)
        return query.order_by(
            models.SheetImport.created_at.desc(), models.SheetImport.sequence.desc()
        ).first()

    @staticmethod
    def list_snapshots(db: Session, *, limit: int = 10) -> list[models.SheetImport]:
        return (
            db.query(models.SheetImport)
            .order_by(models.SheetImport.created_at.desc(), models.SheetImport.sequence.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def count_snapshots(db: Session) -> int:
        return db.query(func.count(models.SheetImport.id)).scalar() or 0

    @staticmethod
    def replace_period_records(
        db: Session, period: Period, records: Iterable[TicketRecordData]
    ) -> int:
        """Delete every record of ``period`` and insert ``records`` in its place."""

        (
            db.query(models.TicketRecord)
            .filter(models.TicketRecord.period == period)
            .delete(synchronize_session=False)
        )
        rows = [models.TicketRecord(**record.to_dict()) for record in records]
        db.add_all(rows)
        db.flush()
        return len(rows)

    @staticmethod
    def list_period_records(db: Session, period: Period) -> list[models.TicketRecord]:
        return (
            db.query(models.TicketRecord)
            .filter(models.TicketRecord.period == period)
            .all()
        )

    @staticmethod
    def get_aggregate(
        db: Session, model: Type[AggregateT], period: Period
    ) -> AggregateT | None:
        return db.query(model).filter(model.period == period).first()

    @staticmethod
    def upsert_aggregate(
        db: Session,
        model: Type[AggregateT],
        period: Period,
        values: Mapping[str, Any],
    ) -> AggregateT:
        """Overwrite (or create) the single aggregate row kept for ``period``."""

        row = (
            db.query(model)
            .filter(model.period == period)
            .with_for_update(of=model)
            .first()
        )
        if row is None:
            row = model(period=period)
            db.add(row)
        for column, value in values.items():
            setattr(row, column, value)
        db.flush()
        return row
