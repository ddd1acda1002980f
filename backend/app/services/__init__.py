"""Service layer encapsulating business logic for API routers."""

from .metrics import MetricsService
from .observability import ObservabilityService
from .profitability import ProfitabilityService
from .scheduler_monitor import SchedulerMonitor
from .sheet_queries import SheetQueryService, TicketFilters
from .sheet_refresh import (
    IngestionError,
    RefreshResult,
    SheetRefreshScheduler,
    SheetRefreshService,
    start_sheets_refresh_scheduler,
    stop_sheets_refresh_scheduler,
)
from .sheet_sources import (
    GoogleSheetsApiSource,
    PublishedCsvSource,
    SheetSource,
    SheetSourceError,
)
from .snapshot_store import SnapshotStore

__all__ = [
    "MetricsService",
    "ObservabilityService",
    "ProfitabilityService",
    "SchedulerMonitor",
    "SheetQueryService",
    "TicketFilters",
    "IngestionError",
    "RefreshResult",
    "SheetRefreshScheduler",
    "SheetRefreshService",
    "start_sheets_refresh_scheduler",
    "stop_sheets_refresh_scheduler",
    "GoogleSheetsApiSource",
    "PublishedCsvSource",
    "SheetSource",
    "SheetSourceError",
    "SnapshotStore",
]
