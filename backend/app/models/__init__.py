"""Expose SQLAlchemy models for convenient imports."""

from ..periods import Period
from .ingestion_event import IngestionEvent
from .performance_metrics import PerformanceMetrics
from .profitability_analysis import ProfitabilityAnalysis
from .sheet_import import SheetImport
from .ticket_record import TicketRecord

__all__ = [
    "IngestionEvent",
    "Period",
    "PerformanceMetrics",
    "ProfitabilityAnalysis",
    "SheetImport",
    "TicketRecord",
]
