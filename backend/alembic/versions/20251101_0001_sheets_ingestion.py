"""Create the spreadsheet ingestion tables."""

from __future__ import annotations

from typing import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "20251101_0001"
down_revision = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

PERIOD_VALUES = ("7d", "30d", "1m", "3m", "6m", "1y")


def _dialect_settings():
    bind = op.get_bind()
    dialect = bind.dialect.name if bind else "sqlite"

    uuid_type = sa.String(length=36)
    json_type = sa.JSON()
    if dialect == "postgresql":
        uuid_type = postgresql.UUID(as_uuid=True)
        json_type = postgresql.JSONB()
    return uuid_type, json_type


def _period_enum() -> sa.Enum:
    return sa.Enum(
        *PERIOD_VALUES,
        name="reporting_period_enum",
        native_enum=False,
        length=8,
    )


def upgrade() -> None:
    uuid_type, json_type = _dialect_settings()
    inspector = sa.inspect(op.get_bind())

    if not inspector.has_table("sheet_imports"):
        op.create_table(
            "sheet_imports",
            sa.Column("import_id", uuid_type, primary_key=True),
            sa.Column("sequence", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("period", _period_enum(), nullable=True),
            sa.Column("source", sa.String(length=64), nullable=False),
            sa.Column("row_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("payload", json_type, nullable=False),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
                nullable=False,
            ),
        )
        op.create_index("ix_sheet_imports_period", "sheet_imports", ["period"])
        op.create_index("ix_sheet_imports_created_at", "sheet_imports", ["created_at"])

    if not inspector.has_table("ticket_records"):
        op.create_table(
            "ticket_records",
            sa.Column("record_id", uuid_type, primary_key=True),
            sa.Column("period", _period_enum(), nullable=False),
            sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
            sa.Column("ticket_id", sa.BigInteger(), nullable=False, server_default="0"),
            sa.Column("customer_name", sa.Text(), nullable=True),
            sa.Column("email", sa.Text(), nullable=True),
            sa.Column("subject", sa.Text(), nullable=True),
            sa.Column("total_tickets", sa.BigInteger(), nullable=False, server_default="0"),
            sa.Column("urgent", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("vip", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("specialized", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column(
                "previously_cancelled", sa.Boolean(), nullable=False, server_default=sa.false()
            ),
            sa.Column(
                "required_integration", sa.Boolean(), nullable=False, server_default=sa.false()
            ),
            sa.Column("payment_issue", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("risk_score", sa.Text(), nullable=True),
            sa.Column("recurrence_score", sa.Text(), nullable=True),
            sa.Column("classification", sa.Text(), nullable=True),
            sa.Column("recommended_action", sa.Text(), nullable=True),
            sa.Column("customer_since", sa.DateTime(timezone=True), nullable=True),
            sa.Column("days_as_customer", sa.BigInteger(), nullable=False, server_default="0"),
            sa.Column("status", sa.Text(), nullable=True),
            sa.Column("deadline", sa.DateTime(timezone=True), nullable=True),
            sa.Column(
                "source", sa.String(length=64), nullable=False, server_default="google_sheets"
            ),
        )
        op.create_index(
            "ticket_records_period_timestamp_idx", "ticket_records", ["period", "timestamp"]
        )
        op.create_index("ix_ticket_records_email", "ticket_records", ["email"])

    if not inspector.has_table("performance_metrics"):
        op.create_table(
            "performance_metrics",
            sa.Column("id", uuid_type, primary_key=True),
            sa.Column("period", _period_enum(), nullable=False),
            sa.Column("total_tickets", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("open_tickets", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("closed_tickets", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("urgent_tickets", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("vip_tickets", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("specialized_tickets", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("resolution_rate", sa.Numeric(7, 2), nullable=False, server_default="0"),
            sa.Column("cancellation_rate", sa.Numeric(7, 2), nullable=False, server_default="0"),
            sa.Column("total_customers", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("new_customers", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("high_risk_tickets", sa.Integer(), nullable=False, server_default="0"),
            sa.Column(
                "high_recurrence_tickets", sa.Integer(), nullable=False, server_default="0"
            ),
            sa.Column(
                "calculated_at",
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
                nullable=False,
            ),
            sa.UniqueConstraint("period", name="uq_performance_metrics_period"),
        )

    if not inspector.has_table("profitability_analyses"):
        op.create_table(
            "profitability_analyses",
            sa.Column("id", uuid_type, primary_key=True),
            sa.Column("period", _period_enum(), nullable=False),
            sa.Column("total_customers", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("profitable_customers", sa.Integer(), nullable=False, server_default="0"),
            sa.Column(
                "unprofitable_customers", sa.Integer(), nullable=False, server_default="0"
            ),
            sa.Column("total_tickets", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("urgent_tickets", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("vip_tickets", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("effort_rate", sa.Numeric(7, 2), nullable=False, server_default="0"),
            sa.Column("estimated_cost", sa.Numeric(14, 2), nullable=False, server_default="0"),
            sa.Column("average_score", sa.Numeric(7, 2), nullable=False, server_default="0"),
            sa.Column(
                "calculated_at",
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
                nullable=False,
            ),
            sa.UniqueConstraint("period", name="uq_profitability_analyses_period"),
        )

    if not inspector.has_table("ingestion_events"):
        op.create_table(
            "ingestion_events",
            sa.Column("event_id", uuid_type, primary_key=True),
            sa.Column("event_type", sa.String(length=120), nullable=False),
            sa.Column("outcome", sa.String(length=32), nullable=False),
            sa.Column("period", sa.String(length=8), nullable=True),
            sa.Column("source", sa.String(length=64), nullable=True),
            sa.Column("duration_ms", sa.Numeric(14, 3), nullable=True),
            sa.Column("details", json_type, nullable=True),
            sa.Column(
                "created_at",
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
                nullable=False,
            ),
        )
        op.create_index("ix_ingestion_events_event_type", "ingestion_events", ["event_type"])
        op.create_index("ix_ingestion_events_outcome", "ingestion_events", ["outcome"])
        op.create_index("ix_ingestion_events_period", "ingestion_events", ["period"])
        op.create_index("ix_ingestion_events_created_at", "ingestion_events", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_ingestion_events_created_at", table_name="ingestion_events")
    op.drop_index("ix_ingestion_events_period", table_name="ingestion_events")
    op.drop_index("ix_ingestion_events_outcome", table_name="ingestion_events")
    op.drop_index("ix_ingestion_events_event_type", table_name="ingestion_events")
    op.drop_table("ingestion_events")
    op.drop_table("profitability_analyses")
    op.drop_table("performance_metrics")
    op.drop_index("ix_ticket_records_email", table_name="ticket_records")
    op.drop_index("ticket_records_period_timestamp_idx", table_name="ticket_records")
    op.drop_table("ticket_records")
    op.drop_index("ix_sheet_imports_created_at", table_name="sheet_imports")
    op.drop_index("ix_sheet_imports_period", table_name="sheet_imports")
    op.drop_table("sheet_imports")
