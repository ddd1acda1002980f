"""Transports that fetch the raw dashboard tab of the source spreadsheet."""

from __future__ import annotations

import abc
import logging
import os
from typing import Any, List, Sequence
from urllib.parse import quote

import httpx

from ..periods import Period
from .sheet_parser import parse_delimited_text

LOGGER = logging.getLogger(__name__)

SPREADSHEET_ID_ENV = "GOOGLE_SHEETS_SPREADSHEET_ID"
API_KEY_ENV = "GOOGLE_SHEETS_API_KEY"
ACCESS_TOKEN_ENV = "GOOGLE_SHEETS_ACCESS_TOKEN"
API_TIMEOUT_ENV = "GOOGLE_SHEETS_TIMEOUT"
PUBLISHED_ID_ENV = "GOOGLE_SHEETS_PUBLISHED_ID"

DEFAULT_PUBLISHED_ID = (
    "2PACX-1vSi5wZfoSCK6kCuMrBb9Ol48IgDQVPzisYS9Es-uOf5FGfFZoZAZ9gljpCSz_KHHFKZB8MhRa0cisrp"
)
DEFAULT_API_TIMEOUT = 30.0
PUBLIC_TIMEOUT = 15.0
PUBLIC_MAX_REDIRECTS = 5
PUBLIC_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

SOURCE_API = "google_sheets_api"
SOURCE_PUBLIC = "google_sheets_public"

CellMatrix = List[List[Any]]


class SheetSourceError(RuntimeError):
    """Raised when a transport cannot deliver the spreadsheet rows."""


class SheetSourceConfigurationError(SheetSourceError):
    """Raised when a transport is missing the settings it needs."""


class SheetSource(abc.ABC):
    """Interface shared by the authenticated and public transports."""

    name: str

    @abc.abstractmethod
    def fetch_rows(self, period: Period) -> Sequence[Sequence[Any]]:
        """Return the cell matrix of the tab backing ``period``."""


class GoogleSheetsApiSource(SheetSource):
    """Authenticated read through the Google Sheets v4 ``values.get`` endpoint."""

    name = SOURCE_API
    base_url = "https://sheets.googleapis.com/v4/spreadsheets"

    def __init__(
        self,
        *,
        spreadsheet_id: str | None,
        api_key: str | None = None,
        access_token: str | None = None,
        timeout: float = DEFAULT_API_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not spreadsheet_id:
            raise SheetSourceConfigurationError(
                f"{SPREADSHEET_ID_ENV} is required for the authenticated Sheets transport"
            )
        if not api_key and not access_token:
            raise SheetSourceConfigurationError(
                f"Configure {API_KEY_ENV} or {ACCESS_TOKEN_ENV} to call the Sheets API"
            )
        self.spreadsheet_id = spreadsheet_id
        self.api_key = api_key
        self.access_token = access_token
        self.timeout = timeout
        self._transport = transport

    def _values_url(self, sheet_name: str) -> str:
        return f"{self.base_url}/{self.spreadsheet_id}/values/{quote(sheet_name, safe='')}"

    def fetch_rows(self, period: Period) -> CellMatrix:
        headers = {}
        params = {"majorDimension": "ROWS"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        else:
            params["key"] = self.api_key

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.get(
                    self._values_url(period.sheet_name), headers=headers, params=params
                )
        except httpx.HTTPError as exc:
            raise SheetSourceError(f"Network error calling the Sheets API: {exc}") from exc

        if response.status_code >= 400:
            raise SheetSourceError(
                f"Sheets API returned {response.status_code}: {response.text[:200]}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise SheetSourceError("Sheets API returned a non-JSON body") from exc

        values = payload.get("values") or []
        return [list(row) for row in values]


class PublishedCsvSource(SheetSource):
    """Unauthenticated download of the spreadsheet published as CSV."""

    name = SOURCE_PUBLIC
    url_template = (
        "https://docs.google.com/spreadsheets/d/e/{published_id}/pub?output=csv&sheet={sheet}"
    )

    def __init__(
        self,
        *,
        published_id: str = DEFAULT_PUBLISHED_ID,
        timeout: float = PUBLIC_TIMEOUT,
        max_redirects: int = PUBLIC_MAX_REDIRECTS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not published_id:
            raise SheetSourceConfigurationError(f"{PUBLISHED_ID_ENV} must not be empty")
        self.published_id = published_id
        self.timeout = timeout
        self.max_redirects = max_redirects
        self._transport = transport

    def csv_url(self, period: Period) -> str:
        return self.url_template.format(
            published_id=self.published_id, sheet=quote(period.sheet_name, safe="")
        )

    def fetch_text(self, period: Period) -> str:
        try:
            with httpx.Client(
                timeout=self.timeout,
                follow_redirects=True,
                max_redirects=self.max_redirects,
                headers={"User-Agent": PUBLIC_USER_AGENT},
                transport=self._transport,
            ) as client:
                response = client.get(self.csv_url(period))
        except httpx.HTTPError as exc:
            raise SheetSourceError(f"Error downloading the published sheet: {exc}") from exc

        if response.status_code >= 400:
            raise SheetSourceError(
                f"Published sheet download returned {response.status_code}"
            )
        return response.text

    def fetch_rows(self, period: Period) -> CellMatrix:
        return list(parse_delimited_text(self.fetch_text(period)))


class UnconfiguredSource(SheetSource):
    """Placeholder that always fails, keeping configuration errors on the fetch path."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason

    def fetch_rows(self, period: Period) -> CellMatrix:
        raise SheetSourceConfigurationError(self.reason)


def _read_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        LOGGER.warning("Invalid value for %s=%s; using %s", name, raw, default)
        return default
    return value if value > 0 else default


def build_primary_source_from_env() -> SheetSource:
    try:
        return GoogleSheetsApiSource(
            spreadsheet_id=os.getenv(SPREADSHEET_ID_ENV),
            api_key=os.getenv(API_KEY_ENV),
            access_token=os.getenv(ACCESS_TOKEN_ENV),
            timeout=_read_float(API_TIMEOUT_ENV, DEFAULT_API_TIMEOUT),
        )
    except SheetSourceConfigurationError as exc:
        LOGGER.warning("Authenticated Sheets transport unavailable: %s", exc)
        return UnconfiguredSource(SOURCE_API, str(exc))


def build_fallback_source_from_env() -> SheetSource:
    published_id = os.getenv(PUBLISHED_ID_ENV) or DEFAULT_PUBLISHED_ID
    return PublishedCsvSource(published_id=published_id)
