"""Structured ticket rows derived from a spreadsheet snapshot."""

from __future__ import annotations

import uuid

from sqlalchemy import BigInteger, Boolean, Column, DateTime, Index, String, Text

from ..database import Base
from ..db_types import GUID
from ._period_enum import PERIOD_ENUM


class TicketRecord(Base):
    """One ticket-derived row, owned by exactly one reporting period."""

    __tablename__ = "ticket_records"
    __table_args__ = (
        Index("ticket_records_period_timestamp_idx", "period", "timestamp"),
    )

    id = Column("record_id", GUID(), primary_key=True, default=lambda: str(uuid.uuid4()))
    period = Column(PERIOD_ENUM, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    ticket_id = Column(BigInteger, nullable=False, default=0)
    customer_name = Column(Text, nullable=True)
    email = Column(Text, nullable=True, index=True)
    subject = Column(Text, nullable=True)
    total_tickets = Column(BigInteger, nullable=False, default=0)

    urgent = Column(Boolean, nullable=False, default=False)
    vip = Column(Boolean, nullable=False, default=False)
    specialized = Column(Boolean, nullable=False, default=False)
    previously_cancelled = Column(Boolean, nullable=False, default=False)
    required_integration = Column(Boolean, nullable=False, default=False)
    payment_issue = Column(Boolean, nullable=False, default=False)

    risk_score = Column(Text, nullable=True)
    recurrence_score = Column(Text, nullable=True)
    classification = Column(Text, nullable=True)
    recommended_action = Column(Text, nullable=True)

    customer_since = Column(DateTime(timezone=True), nullable=True)
    days_as_customer = Column(BigInteger, nullable=False, default=0)
    status = Column(Text, nullable=True)
    deadline = Column(DateTime(timezone=True), nullable=True)
    source = Column(String(64), nullable=False, default="google_sheets")
