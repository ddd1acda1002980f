"""Liveness and dependency health checks."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..services import SchedulerMonitor, SnapshotStore

SERVICE_NAME = "sheets-ticket-insights"

router = APIRouter()


@router.get("/health")
def health() -> dict[str, str]:
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/health/database", response_model=schemas.DatabaseHealthResponse)
def database_health(db: Session = Depends(get_db)) -> schemas.DatabaseHealthResponse:
    """Count stored snapshots to prove the database answers queries."""

    try:
        total = SnapshotStore.count_snapshots(db)
    except SQLAlchemyError as exc:
        return schemas.DatabaseHealthResponse(
            success=False, message="Erro ao conectar ao banco de dados", error=str(exc)
        )
    return schemas.DatabaseHealthResponse(
        success=True, message="Conexão com o banco de dados OK", snapshots=total
    )


@router.get("/health/scheduler", response_model=schemas.SchedulerHealthResponse)
def scheduler_health() -> schemas.SchedulerHealthResponse:
    return schemas.SchedulerHealthResponse(jobs=SchedulerMonitor.snapshot())
