"""Router exposing the spreadsheet ingestion pipeline and its derived data."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..periods import Period
from ..services import IngestionError, SheetQueryService, TicketFilters
from ..services.sheet_queries import DEFAULT_RECORD_LIMIT, MAX_RECORD_LIMIT

LOGGER = logging.getLogger(__name__)

router = APIRouter()

PERIOD_QUERY_DESCRIPTION = "Período do relatório: 7d, 30d, 1m, 3m, 6m ou 1y (padrão 30d)"


def get_query_service(db: Session = Depends(get_db)) -> SheetQueryService:
    return SheetQueryService(db)


@contextmanager
def _translate_errors(message: str) -> Iterator[None]:
    try:
        yield
    except IngestionError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"success": False, "message": message, "error": str(exc)},
        ) from exc
    except SQLAlchemyError as exc:
        LOGGER.exception("%s", message)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"success": False, "message": message, "error": str(exc)},
        ) from exc


@router.get("/fetch", response_model=schemas.SheetsEnvelope[List[Dict[str, str]]])
def fetch_sheet(service: SheetQueryService = Depends(get_query_service)) -> Dict[str, Any]:
    """Refresh the default period and return the raw rows of the new snapshot."""

    period = Period.default()
    with _translate_errors("Erro ao buscar dados da planilha"):
        rows = service.refresh_and_get_raw(period)
    return {"periodo": period, "count": len(rows), "data": rows}


@router.get("/imports", response_model=schemas.SheetsEnvelope[List[schemas.SheetImportRead]])
def list_imports(
    limit: int = Query(default=10, ge=1, le=100),
    service: SheetQueryService = Depends(get_query_service),
) -> Dict[str, Any]:
    with _translate_errors("Erro ao listar importações"):
        imports = service.list_imports(limit=limit)
    return {"count": len(imports), "data": imports}


@router.get("/latest", response_model=schemas.SheetsEnvelope[List[Dict[str, str]]])
def latest_import(service: SheetQueryService = Depends(get_query_service)) -> Dict[str, Any]:
    with _translate_errors("Erro ao buscar última importação"):
        rows = service.latest_snapshot_rows()
    if not rows:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"success": False, "message": "Nenhuma importação encontrada"},
        )
    return {"count": len(rows), "data": rows}


@router.get("/all", response_model=schemas.SheetsEnvelope[List[schemas.TicketRecordRead]])
def list_all_records(
    periodo: str | None = Query(default=None, description=PERIOD_QUERY_DESCRIPTION),
    service: SheetQueryService = Depends(get_query_service),
) -> Dict[str, Any]:
    period = Period.parse(periodo)
    with _translate_errors("Erro ao buscar registros"):
        records = service.get_filtered_records(period, TicketFilters(limit=MAX_RECORD_LIMIT))
    return {"periodo": period, "count": len(records), "data": records}


@router.get(
    "/performance",
    response_model=schemas.SheetsEnvelope[schemas.PerformanceMetricsRead],
)
def performance_metrics(
    periodo: str | None = Query(default=None, description=PERIOD_QUERY_DESCRIPTION),
    service: SheetQueryService = Depends(get_query_service),
) -> Dict[str, Any]:
    period = Period.parse(periodo)
    with _translate_errors("Erro ao calcular métricas de desempenho"):
        metrics = service.get_performance_metrics(period)
    return {"periodo": period, "data": metrics}


@router.get(
    "/profitability",
    response_model=schemas.SheetsEnvelope[schemas.ProfitabilityAnalysisRead],
)
def profitability_analysis(
    periodo: str | None = Query(default=None, description=PERIOD_QUERY_DESCRIPTION),
    service: SheetQueryService = Depends(get_query_service),
) -> Dict[str, Any]:
    period = Period.parse(periodo)
    with _translate_errors("Erro ao calcular análise de rentabilidade"):
        analysis = service.get_profitability_analysis(period)
    return {"periodo": period, "data": analysis}


@router.get("/tickets", response_model=schemas.SheetsEnvelope[List[schemas.TicketRecordRead]])
def filtered_tickets(
    periodo: str | None = Query(default=None, description=PERIOD_QUERY_DESCRIPTION),
    urgente: bool | None = Query(default=None),
    vip: bool | None = Query(default=None),
    especializado: bool | None = Query(default=None),
    cancelou: bool | None = Query(default=None),
    classificacao: str | None = Query(default=None),
    score_risco: str | None = Query(default=None, alias="scoreRisco"),
    status_filter: str | None = Query(default=None, alias="status"),
    limit: int = Query(default=DEFAULT_RECORD_LIMIT, ge=1, le=MAX_RECORD_LIMIT),
    service: SheetQueryService = Depends(get_query_service),
) -> Dict[str, Any]:
    period = Period.parse(periodo)
    filters = TicketFilters(
        urgent=urgente,
        vip=vip,
        specialized=especializado,
        previously_cancelled=cancelou,
        classification=classificacao,
        risk_score=score_risco,
        status=status_filter,
        limit=limit,
    )
    with _translate_errors("Erro ao buscar tickets"):
        records = service.get_filtered_records(period, filters)
    return {"periodo": period, "count": len(records), "data": records}


@router.get("/export")
def export_records(
    periodo: str | None = Query(default=None, description=PERIOD_QUERY_DESCRIPTION),
    formato: str = Query(default="csv", pattern="^(csv|json)$"),
    service: SheetQueryService = Depends(get_query_service),
):
    """Download every record of a period as CSV (default) or JSON."""

    period = Period.parse(periodo)
    if formato == "json":
        with _translate_errors("Erro ao exportar dados"):
            records = service.get_filtered_records(period, TicketFilters(limit=MAX_RECORD_LIMIT))
        return schemas.SheetsEnvelope[List[schemas.TicketRecordRead]](
            periodo=period,
            count=len(records),
            data=[schemas.TicketRecordRead.model_validate(record) for record in records],
        )

    with _translate_errors("Erro ao exportar dados"):
        csv_content = service.export_csv(period)
    headers = {
        "Content-Disposition": f"attachment; filename=tickets_{period.value}.csv",
        "Cache-Control": "no-store",
    }
    return StreamingResponse(
        iter([csv_content]), media_type="text/csv; charset=utf-8", headers=headers
    )


@router.api_route(
    "/refresh",
    methods=["GET", "POST"],
    response_model=schemas.SheetsEnvelope[schemas.RefreshSummary],
)
def refresh_period(
    periodo: str | None = Query(default=None, description=PERIOD_QUERY_DESCRIPTION),
    service: SheetQueryService = Depends(get_query_service),
) -> Dict[str, Any]:
    period = Period.parse(periodo)
    with _translate_errors("Erro ao atualizar dados da planilha"):
        result = service.refresh(period)
    message = (
        "Nenhum dado retornado pela planilha"
        if result.is_empty
        else "Dados atualizados com sucesso"
    )
    return {"periodo": period, "message": message, "data": result.to_dict()}
