"""Shared SQLAlchemy enum column for reporting periods."""

from __future__ import annotations

from sqlalchemy import Enum as SAEnum

from ..periods import Period

PERIOD_ENUM = SAEnum(
    Period,
    name="reporting_period_enum",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
    native_enum=False,
    validate_strings=True,
    length=8,
)
