"""Customer profitability heuristics per reporting period."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable

from sqlalchemy.orm import Session

from .. import models
from ..periods import Period
from .metrics import is_high_recurrence, is_high_risk, percentage
from .snapshot_store import SnapshotStore

LOGGER = logging.getLogger(__name__)

UNIT_TICKET_COST = Decimal("10")
VIP_SCORE = 100
SPECIALIZED_SCORE = 80
BASELINE_SCORE = 50


@dataclass
class _CustomerProfile:
    email: str
    tickets: int = 0
    urgent: bool = False
    vip: bool = False
    specialized: bool = False
    cancelled: bool = False
    high_risk: bool = False
    high_recurrence: bool = False

    def absorb(self, ticket: Any) -> None:
        self.tickets += 1
        self.urgent = self.urgent or bool(ticket.urgent)
        self.vip = self.vip or bool(ticket.vip)
        self.specialized = self.specialized or bool(ticket.specialized)
        self.cancelled = self.cancelled or bool(ticket.previously_cancelled)
        self.high_risk = self.high_risk or is_high_risk(ticket)
        self.high_recurrence = self.high_recurrence or is_high_recurrence(ticket)

    @property
    def is_profitable(self) -> bool:
        # Premium relationships (VIP or specialized) count as profitable
        # regardless of support load.
        if self.vip or self.specialized:
            return True
        return not self.urgent and not self.high_risk and not self.cancelled

    @property
    def score(self) -> int:
        if self.vip:
            return VIP_SCORE
        if self.specialized:
            return SPECIALIZED_SCORE
        return BASELINE_SCORE


class ProfitabilityService:
    """Computes and stores the per-period profitability analysis."""

    @staticmethod
    def group_by_customer(records: Iterable[Any]) -> list[_CustomerProfile]:
        customers: Dict[str, _CustomerProfile] = {}
        for ticket in records:
            email = (ticket.email or "").strip()
            if not email:
                continue
            profile = customers.setdefault(email, _CustomerProfile(email=email))
            profile.absorb(ticket)
        return list(customers.values())

    @staticmethod
    def compute(records: Iterable[Any]) -> dict[str, Any]:
        tickets = list(records)
        customers = ProfitabilityService.group_by_customer(tickets)
        profitable = sum(1 for customer in customers if customer.is_profitable)
        urgent_tickets = sum(1 for ticket in tickets if ticket.urgent)

        if customers:
            average_score = (
                Decimal(sum(customer.score for customer in customers)) / len(customers)
            ).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        else:
            average_score = Decimal("0.00")

        return {
            "total_customers": len(customers),
            "profitable_customers": profitable,
            "unprofitable_customers": len(customers) - profitable,
            "total_tickets": len(tickets),
            "urgent_tickets": urgent_tickets,
            "vip_tickets": sum(1 for ticket in tickets if ticket.vip),
            "effort_rate": percentage(urgent_tickets, len(tickets)),
            "estimated_cost": (UNIT_TICKET_COST * len(tickets)).quantize(Decimal("0.01")),
            "average_score": average_score,
        }

    @staticmethod
    def recalculate(db: Session, period: Period) -> models.ProfitabilityAnalysis:
        records = SnapshotStore.list_period_records(db, period)
        values = ProfitabilityService.compute(records)
        analysis = SnapshotStore.upsert_aggregate(
            db, models.ProfitabilityAnalysis, period, values
        )
        LOGGER.info("Profitability analysis recalculated for period %s: %s", period.value, values)
        return analysis

    @staticmethod
    def get(db: Session, period: Period) -> models.ProfitabilityAnalysis | None:
        return SnapshotStore.get_aggregate(db, models.ProfitabilityAnalysis, period)
