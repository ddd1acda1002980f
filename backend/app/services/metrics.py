"""Performance metrics aggregated from the ticket records of a period."""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional

from sqlalchemy.orm import Session

from .. import models
from ..periods import Period
from .snapshot_store import SnapshotStore

LOGGER = logging.getLogger(__name__)

OPEN_STATUSES = frozenset({"open", "aberto", "2"})
HIGH_RISK_LEVELS = frozenset({"ALTO", "HIGH"})
HIGH_RECURRENCE_LEVELS = frozenset({"ALTA", "HIGH"})
NEW_CUSTOMER_MAX_DAYS = 30

_CENT = Decimal("0.01")


def percentage(part: int, total: int) -> Decimal:
    """``part / total * 100`` rounded to cents; zero when ``total`` is zero."""

    if total <= 0:
        return Decimal("0.00")
    return (Decimal(part) * 100 / Decimal(total)).quantize(_CENT, rounding=ROUND_HALF_UP)


def score_level(value: Optional[str]) -> str:
    """Leading word of a score cell, upper-cased (``"alto 🔴"`` -> ``"ALTO"``)."""

    if not value:
        return ""
    words = str(value).strip().upper().split()
    return words[0] if words else ""


def is_high_risk(record: Any) -> bool:
    return score_level(record.risk_score) in HIGH_RISK_LEVELS


def is_high_recurrence(record: Any) -> bool:
    return score_level(record.recurrence_score) in HIGH_RECURRENCE_LEVELS


def is_open(record: Any) -> bool:
    return (record.status or "").strip().lower() in OPEN_STATUSES


class MetricsService:
    """Computes and stores the per-period performance aggregate."""

    @staticmethod
    def compute(records: Iterable[Any]) -> dict[str, Any]:
        tickets = list(records)
        total = len(tickets)
        open_tickets = sum(1 for ticket in tickets if is_open(ticket))
        closed_tickets = total - open_tickets
        cancelled = sum(1 for ticket in tickets if ticket.previously_cancelled)
        customers = {ticket.email for ticket in tickets if ticket.email}

        return {
            "total_tickets": total,
            "open_tickets": open_tickets,
            "closed_tickets": closed_tickets,
            "urgent_tickets": sum(1 for ticket in tickets if ticket.urgent),
            "vip_tickets": sum(1 for ticket in tickets if ticket.vip),
            "specialized_tickets": sum(1 for ticket in tickets if ticket.specialized),
            "resolution_rate": percentage(closed_tickets, total),
            "cancellation_rate": percentage(cancelled, total),
            "total_customers": len(customers),
            "new_customers": sum(
                1
                for ticket in tickets
                if (ticket.days_as_customer or 0) <= NEW_CUSTOMER_MAX_DAYS
            ),
            "high_risk_tickets": sum(1 for ticket in tickets if is_high_risk(ticket)),
            "high_recurrence_tickets": sum(
                1 for ticket in tickets if is_high_recurrence(ticket)
            ),
        }

    @staticmethod
    def recalculate(db: Session, period: Period) -> models.PerformanceMetrics:
        records = SnapshotStore.list_period_records(db, period)
        values = MetricsService.compute(records)
        metrics = SnapshotStore.upsert_aggregate(db, models.PerformanceMetrics, period, values)
        LOGGER.info("Performance metrics recalculated for period %s: %s", period.value, values)
        return metrics

    @staticmethod
    def get(db: Session, period: Period) -> models.PerformanceMetrics | None:
        return SnapshotStore.get_aggregate(db, models.PerformanceMetrics, period)
