from __future__ import annotations

import csv
import io
from decimal import Decimal

import pytest

from backend.app.main import app
from backend.app.routers.sheets import get_query_service
from backend.app.services.sheet_queries import EXPORT_COLUMNS, SheetQueryService
from backend.app.services.sheet_refresh import SheetRefreshService
from backend.app.services.sheet_sources import SOURCE_API, SOURCE_PUBLIC, SheetSourceError


@pytest.fixture
def sheet_transports(stub_source_factory, sample_sheet_rows):
    return {
        "primary": stub_source_factory(SOURCE_API, rows=sample_sheet_rows),
        "fallback": stub_source_factory(SOURCE_PUBLIC, error=SheetSourceError("unused")),
    }


@pytest.fixture
def sheets_client(client, db_session, sheet_transports):
    def _refresh_factory(session):
        return SheetRefreshService(
            session,
            primary=sheet_transports["primary"],
            fallback=sheet_transports["fallback"],
        )

    app.dependency_overrides[get_query_service] = lambda: SheetQueryService(
        db_session, refresh_factory=_refresh_factory
    )
    yield client
    app.dependency_overrides.pop(get_query_service, None)


def test_root_and_health_endpoints(client):
    assert client.get("/").json() == {"status": "ok"}

    payload = client.get("/health").json()
    assert payload["status"] == "ok"
    assert payload["service"] == "sheets-ticket-insights"
    assert "timestamp" in payload


def test_database_health_reports_snapshot_count(sheets_client):
    sheets_client.post("/sheets/refresh", params={"periodo": "7d"})

    response = sheets_client.get("/health/database")

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["snapshots"] == 1


def test_refresh_endpoint_returns_run_summary(sheets_client, sheet_transports):
    response = sheets_client.post("/sheets/refresh", params={"periodo": "7d"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["periodo"] == "7d"
    assert payload["data"]["record_count"] == 3
    assert payload["data"]["discarded_count"] == 1
    assert payload["data"]["source"] == SOURCE_API
    assert sheet_transports["primary"].calls[0].sheet_name == "7d"


def test_refresh_endpoint_maps_ingestion_failure_to_bad_gateway(sheets_client, sheet_transports):
    sheet_transports["primary"].error = SheetSourceError("timeout")

    response = sheets_client.get("/sheets/refresh")

    assert response.status_code == 502
    detail = response.json()["detail"]
    assert detail["success"] is False
    assert "unused" in detail["error"]


def test_performance_is_computed_on_first_read(sheets_client, sheet_transports):
    response = sheets_client.get("/sheets/performance", params={"periodo": "30d"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["periodo"] == "30d"
    metrics = payload["data"]
    assert metrics["total_tickets"] == 3
    assert metrics["urgent_tickets"] == 2
    assert Decimal(str(metrics["resolution_rate"])) == Decimal("66.67")
    assert len(sheet_transports["primary"].calls) == 1

    sheets_client.get("/sheets/performance", params={"periodo": "30d"})
    assert len(sheet_transports["primary"].calls) == 1


def test_profitability_falls_back_to_stored_records_when_sheet_is_empty(
    sheets_client, sheet_transports
):
    sheet_transports["primary"].rows = []

    response = sheets_client.get("/sheets/profitability", params={"periodo": "1y"})

    assert response.status_code == 200
    analysis = response.json()["data"]
    assert analysis["period"] == "1y"
    assert analysis["total_customers"] == 0
    assert Decimal(str(analysis["average_score"])) == Decimal("0.00")


def test_performance_read_surfaces_ingestion_failure(sheets_client, sheet_transports):
    sheet_transports["primary"].error = SheetSourceError("timeout")

    response = sheets_client.get("/sheets/performance", params={"periodo": "3m"})

    assert response.status_code == 502


def test_tickets_endpoint_filters_and_orders_by_timestamp(sheets_client):
    sheets_client.post("/sheets/refresh")

    response = sheets_client.get("/sheets/tickets", params={"periodo": "99x", "urgente": "true"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["periodo"] == "30d"
    assert payload["count"] == 2
    assert [item["ticket_id"] for item in payload["data"]] == [101, 102]

    vip_only = sheets_client.get("/sheets/tickets", params={"vip": "true", "limit": 1}).json()
    assert [item["ticket_id"] for item in vip_only["data"]] == [101]

    by_status = sheets_client.get("/sheets/tickets", params={"status": "closed"}).json()
    assert sorted(item["ticket_id"] for item in by_status["data"]) == [102, 103]


def test_tickets_endpoint_rejects_out_of_range_limit(sheets_client):
    response = sheets_client.get("/sheets/tickets", params={"limit": 5000})

    assert response.status_code == 422


def test_all_endpoint_lists_period_records(sheets_client):
    sheets_client.post("/sheets/refresh", params={"periodo": "6m"})

    payload = sheets_client.get("/sheets/all", params={"periodo": "6m"}).json()

    assert payload["count"] == 3
    assert {item["period"] for item in payload["data"]} == {"6m"}


def test_export_csv_uses_fixed_columns_and_portuguese_booleans(sheets_client):
    sheets_client.post("/sheets/refresh")

    response = sheets_client.get("/sheets/export")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "tickets_30d.csv" in response.headers["content-disposition"]
    lines = response.text.split("\n")
    assert lines[0] == ",".join(f'"{column}"' for column in EXPORT_COLUMNS)

    rows = list(csv.DictReader(io.StringIO(response.text)))
    assert len(rows) == 3
    first = rows[0]
    assert first["ticketId"] == "101"
    assert first["nome"] == "Ana Souza"
    assert first["urgente"] == "SIM"
    assert first["especializado"] == "NÃO"
    assert first["scoreRisco"] == "ALTO 🔴"
    assert first["timestamp"].startswith("2025-01-15T10:30:00")
    assert first["prazo"] == ""


def test_export_csv_for_empty_period_has_only_the_header(sheets_client):
    response = sheets_client.get("/sheets/export", params={"periodo": "1m"})

    assert response.status_code == 200
    assert response.text == ",".join(f'"{column}"' for column in EXPORT_COLUMNS) + "\n"


def test_export_json_returns_envelope(sheets_client):
    sheets_client.post("/sheets/refresh", params={"periodo": "7d"})

    payload = sheets_client.get("/sheets/export", params={"periodo": "7d", "formato": "json"}).json()

    assert payload["success"] is True
    assert payload["count"] == 3
    assert payload["data"][0]["customer_name"] == "Ana Souza"


def test_latest_and_imports_endpoints(sheets_client):
    assert sheets_client.get("/sheets/latest").status_code == 404

    fetched = sheets_client.get("/sheets/fetch").json()
    assert fetched["periodo"] == "30d"
    assert fetched["count"] == 4

    latest = sheets_client.get("/sheets/latest").json()
    assert latest["count"] == 4
    assert latest["data"][0]["nome"] == "Ana Souza"

    imports = sheets_client.get("/sheets/imports").json()
    assert imports["count"] == 1
    assert imports["data"][0]["row_count"] == 4
    assert imports["data"][0]["period"] == "30d"
