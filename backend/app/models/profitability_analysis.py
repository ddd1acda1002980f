"""Per-period customer profitability classification."""

from __future__ import annotations

import uuid

from sqlalchemy import Column, DateTime, Integer, Numeric, UniqueConstraint, func

from ..database import Base
from ..db_types import GUID
from ._period_enum import PERIOD_ENUM


class ProfitabilityAnalysis(Base):
    """Customer-level profitability rolled up for one period."""

    __tablename__ = "profitability_analyses"
    __table_args__ = (
        UniqueConstraint("period", name="uq_profitability_analyses_period"),
    )

    id = Column(GUID(), primary_key=True, default=lambda: str(uuid.uuid4()))
    period = Column(PERIOD_ENUM, nullable=False)
    total_customers = Column(Integer, nullable=False, default=0)
    profitable_customers = Column(Integer, nullable=False, default=0)
    unprofitable_customers = Column(Integer, nullable=False, default=0)
    total_tickets = Column(Integer, nullable=False, default=0)
    urgent_tickets = Column(Integer, nullable=False, default=0)
    vip_tickets = Column(Integer, nullable=False, default=0)
    effort_rate = Column(Numeric(7, 2), nullable=False, default=0)
    estimated_cost = Column(Numeric(14, 2), nullable=False, default=0)
    average_score = Column(Numeric(7, 2), nullable=False, default=0)
    calculated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
