"""Per-period support performance aggregates."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, Integer, Numeric, UniqueConstraint, func

from ..database import Base
from ..db_types import GUID
from ._period_enum import PERIOD_ENUM


class PerformanceMetrics(Base):
    """Aggregates computed from the current ticket records of a period."""

    __tablename__ = "performance_metrics"
    __table_args__ = (
        UniqueConstraint("period", name="uq_performance_metrics_period"),
    )

    id = Column(GUID(), primary_key=True, default=lambda: str(uuid.uuid4()))
    period = Column(PERIOD_ENUM, nullable=False)
    total_tickets = Column(Integer, nullable=False, default=0)
    open_tickets = Column(Integer, nullable=False, default=0)
    closed_tickets = Column(Integer, nullable=False, default=0)
    urgent_tickets = Column(Integer, nullable=False, default=0)
    vip_tickets = Column(Integer, nullable=False, default=0)
    specialized_tickets = Column(Integer, nullable=False, default=0)
    resolution_rate = Column(Numeric(7, 2), nullable=False, default=0)
    cancellation_rate = Column(Numeric(7, 2), nullable=False, default=0)
    total_customers = Column(Integer, nullable=False, default=0)
    new_customers = Column(Integer, nullable=False, default=0)
    high_risk_tickets = Column(Integer, nullable=False, default=0)
    high_recurrence_tickets = Column(Integer, nullable=False, default=0)
    calculated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
