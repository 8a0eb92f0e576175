"""Database column type helpers."""
from __future__ import annotations

from datetime import date

from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import JSON, TypeDecorator


class JSONBCompat(TypeDecorator):
    """JSONB on PostgreSQL, plain JSON everywhere else (SQLite in tests)."""

    impl = JSONB
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(JSON())


class DateList(JSONBCompat):
    """JSON array of ISO dates; loads as a sorted list of `date` objects."""

    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return sorted({_iso(item) for item in value})

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return [date.fromisoformat(item) for item in value]


def _iso(value) -> str:
    if isinstance(value, date):
        return value.isoformat()
    return str(value)[:10]
