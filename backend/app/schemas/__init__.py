"""Expose Pydantic schemas for convenient imports."""

from .sheets import (
    DatabaseHealthResponse,
    PerformanceMetricsRead,
    ProfitabilityAnalysisRead,
    RefreshSummary,
    SchedulerHealthResponse,
    SchedulerJobHealth,
    SheetImportRead,
    SheetsEnvelope,
    TicketRecordRead,
)

__all__ = [
    "DatabaseHealthResponse",
    "PerformanceMetricsRead",
    "ProfitabilityAnalysisRead",
    "RefreshSummary",
    "SchedulerHealthResponse",
    "SchedulerJobHealth",
    "SheetImportRead",
    "SheetsEnvelope",
    "TicketRecordRead",
]
