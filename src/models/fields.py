# src/models/fields.py

"""Conversions applied to raw store rows before they become models."""

from datetime import date, datetime


def clean_optional(value: object) -> str | None:
    """Map blank or missing text to ``None``; strip everything else."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_date(value: object) -> date:
    """Accept a ``date``, a ``datetime`` or an ISO ``yyyy-mm-dd`` string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def parse_timestamp(value: object) -> datetime:
    """Parse an ISO timestamp; a trailing ``Z`` is treated as UTC."""
    if isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)
