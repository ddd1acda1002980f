"""Pydantic schemas for the spreadsheet ingestion resources."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from ..periods import Period

T = TypeVar("T")


class SheetImportRead(BaseModel):
    """Metadata of a stored snapshot, without its rows."""

    id: str
    period: Optional[Period] = None
    source: str
    row_count: int = Field(..., ge=0)
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TicketRecordRead(BaseModel):
    id: str
    period: Period
    timestamp: datetime
    ticket_id: int
    customer_name: Optional[str] = None
    email: Optional[str] = None
    subject: Optional[str] = None
    total_tickets: int = 0
    urgent: bool = False
    vip: bool = False
    specialized: bool = False
    previously_cancelled: bool = False
    required_integration: bool = False
    payment_issue: bool = False
    risk_score: Optional[str] = None
    recurrence_score: Optional[str] = None
    classification: Optional[str] = None
    recommended_action: Optional[str] = None
    customer_since: Optional[datetime] = None
    days_as_customer: int = 0
    status: Optional[str] = None
    deadline: Optional[datetime] = None
    source: str

    model_config = ConfigDict(from_attributes=True)


class PerformanceMetricsRead(BaseModel):
    """Support performance aggregate of one period."""

    period: Period
    total_tickets: int = Field(..., ge=0)
    open_tickets: int = Field(..., ge=0)
    closed_tickets: int = Field(..., ge=0)
    urgent_tickets: int = Field(..., ge=0)
    vip_tickets: int = Field(..., ge=0)
    specialized_tickets: int = Field(..., ge=0)
    resolution_rate: Decimal = Field(..., ge=0)
    cancellation_rate: Decimal = Field(..., ge=0)
    total_customers: int = Field(..., ge=0)
    new_customers: int = Field(..., ge=0)
    high_risk_tickets: int = Field(..., ge=0)
    high_recurrence_tickets: int = Field(..., ge=0)
    calculated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ProfitabilityAnalysisRead(BaseModel):
    """Customer profitability aggregate of one period."""

    period: Period
    total_customers: int = Field(..., ge=0)
    profitable_customers: int = Field(..., ge=0)
    unprofitable_customers: int = Field(..., ge=0)
    total_tickets: int = Field(..., ge=0)
    urgent_tickets: int = Field(..., ge=0)
    vip_tickets: int = Field(..., ge=0)
    effort_rate: Decimal = Field(..., ge=0)
    estimated_cost: Decimal = Field(..., ge=0)
    average_score: Decimal = Field(..., ge=0)
    calculated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SheetsEnvelope(BaseModel, Generic[T]):
    """Shape shared by every ``/sheets`` response."""

    success: bool = True
    periodo: Optional[Period] = None
    count: Optional[int] = None
    message: Optional[str] = None
    data: T


class RefreshSummary(BaseModel):
    period: Period
    source: Optional[str] = None
    raw_row_count: int = Field(..., ge=0)
    record_count: int = Field(..., ge=0)
    discarded_count: int = Field(..., ge=0)
    skipped_count: int = Field(..., ge=0)
    snapshot_id: Optional[str] = None


class SchedulerJobHealth(BaseModel):
    enabled: bool
    last_tick: datetime | None = None
    last_success: datetime | None = None
    last_summary: Dict[str, Any] | None = None
    recent_errors: List[str] = Field(default_factory=list)


class SchedulerHealthResponse(BaseModel):
    jobs: Dict[str, SchedulerJobHealth] = Field(default_factory=dict)


class DatabaseHealthResponse(BaseModel):
    success: bool
    message: str
    snapshots: Optional[int] = None
    error: Optional[str] = None
