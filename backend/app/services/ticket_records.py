"""Map decoded spreadsheet rows onto the ticket record schema."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Mapping, Optional

from ..periods import Period
from .field_normalizer import parse_bool, parse_datetime, parse_int

LOGGER = logging.getLogger(__name__)

DEFAULT_RECORD_SOURCE = "google_sheets"

# Label wording on the spreadsheet changed over time without migrating old
# exports; each field lists every key it has been published under, in order
# of preference.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "timestamp": ("timestamp", "criado_em", "criadoem"),
    "ticket_id": ("id", "ticket_id", "ticketid"),
    "customer_name": ("nome", "cliente"),
    "email": ("email",),
    "subject": ("assunto", "tipo"),
    "total_tickets": ("total_tickets", "totaltickets", "total_de_tickets", "total"),
    "urgent": ("flag_urgente", "urgente", "flagurgente"),
    "vip": ("flag_vip", "vip", "flagvip"),
    "specialized": ("flag_especializado", "especializado", "flagespecializado"),
    "previously_cancelled": ("ja_cancelou_antes", "cancelou", "jacancelouantes"),
    "required_integration": ("precisou_integracao", "integracao", "precisouintegracao"),
    "payment_issue": ("problema_pagamento", "problemapagamento", "pagamento"),
    "risk_score": ("score_risco", "scorerisco", "risco"),
    "recurrence_score": ("score_recorrencia", "scorerecorrencia", "recorrencia"),
    "classification": ("classificacao",),
    "recommended_action": ("recomendacao", "acao_sugerida", "acaosugerida"),
    "customer_since": ("cliente_desde", "clientedesde"),
    "days_as_customer": ("dias_cliente", "diascliente", "dias_como_cliente", "tempo_como_cliente"),
    "status": ("status", "status_do_ticket"),
    "deadline": ("prazo", "prazo_final", "prazofinal", "prazo_fr"),
}

FLAG_FIELDS = (
    "urgent",
    "vip",
    "specialized",
    "previously_cancelled",
    "required_integration",
    "payment_issue",
)

INTEGER_FIELDS = ("ticket_id", "total_tickets", "days_as_customer")

# Signed 64-bit range of the BIGINT columns.
MAX_STORED_INTEGER = 2**63 - 1


@dataclass
class TicketRecordData:
    """Typed ticket values ready to be persisted for one period."""

    period: Period
    timestamp: datetime
    ticket_id: int = 0
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
    source: str = DEFAULT_RECORD_SOURCE

    @property
    def has_signal(self) -> bool:
        return bool(
            self.ticket_id
            or self.total_tickets
            or any(getattr(self, flag) for flag in FLAG_FIELDS)
            or self.classification
        )

    def to_dict(self) -> dict:
        payload = asdict(self)
        payload["period"] = self.period.value
        return payload


@dataclass
class SkippedRow:
    row_number: int
    message: str


@dataclass
class TicketBuildResult:
    records: list[TicketRecordData] = field(default_factory=list)
    discarded: int = 0
    skipped: list[SkippedRow] = field(default_factory=list)


def resolve_field(row: Mapping[str, str], field_name: str) -> Optional[str]:
    """Return the first non-empty value among the aliases of ``field_name``."""

    for alias in FIELD_ALIASES[field_name]:
        value = row.get(alias)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def build_ticket_record(
    row: Mapping[str, str],
    period: Period,
    *,
    imported_at: datetime,
) -> Optional[TicketRecordData]:
    """Build a record from one decoded row, or ``None`` when it carries no signal."""

    record = TicketRecordData(
        period=period,
        timestamp=parse_datetime(resolve_field(row, "timestamp")) or imported_at,
        ticket_id=parse_int(resolve_field(row, "ticket_id")),
        customer_name=resolve_field(row, "customer_name"),
        email=resolve_field(row, "email"),
        subject=resolve_field(row, "subject"),
        total_tickets=parse_int(resolve_field(row, "total_tickets")),
        risk_score=resolve_field(row, "risk_score"),
        recurrence_score=resolve_field(row, "recurrence_score"),
        classification=resolve_field(row, "classification"),
        recommended_action=resolve_field(row, "recommended_action"),
        customer_since=parse_datetime(resolve_field(row, "customer_since")),
        days_as_customer=parse_int(resolve_field(row, "days_as_customer")),
        status=resolve_field(row, "status"),
        deadline=parse_datetime(resolve_field(row, "deadline")),
    )
    for flag in FLAG_FIELDS:
        setattr(record, flag, parse_bool(resolve_field(row, flag)))
    for name in INTEGER_FIELDS:
        if getattr(record, name) > MAX_STORED_INTEGER:
            raise ValueError(f"{name} is out of range: {resolve_field(row, name)[:40]}")

    if not record.has_signal:
        return None
    return record


def build_ticket_records(
    rows: Iterable[Mapping[str, str]],
    period: Period,
    *,
    imported_at: datetime | None = None,
) -> TicketBuildResult:
    """Build records for a whole snapshot; a bad row never aborts the batch."""

    run_timestamp = imported_at or datetime.now(timezone.utc)
    result = TicketBuildResult()
    for row_number, row in enumerate(rows, start=1):
        LOGGER.debug("Processing row %s with fields: %s", row_number, ", ".join(row))
        try:
            record = build_ticket_record(row, period, imported_at=run_timestamp)
        except Exception as exc:
            LOGGER.warning("Skipping row %s of period %s: %s", row_number, period.value, exc)
            result.skipped.append(SkippedRow(row_number=row_number, message=str(exc)))
            continue
        if record is None:
            result.discarded += 1
            continue
        result.records.append(record)

    LOGGER.info(
        "Built %s ticket records for period %s (%s discarded, %s skipped)",
        len(result.records),
        period.value,
        result.discarded,
        len(result.skipped),
    )
    return result
