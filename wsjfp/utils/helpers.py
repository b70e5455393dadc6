"""Shared request-parsing helpers."""

from datetime import date, datetime


def parse_date(value):
    """Parse ``YYYY-MM-DD`` / ISO datetime / ``DD.MM.YYYY`` into a date.

    Returns None for empty or unparseable input.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    for parser in (date.fromisoformat, lambda v: datetime.fromisoformat(v).date()):
        try:
            return parser(str(value))
        except (ValueError, TypeError):
            continue
    try:
        return datetime.strptime(str(value), "%d.%m.%Y").date()
    except (ValueError, TypeError):
        return None


def parse_id_list(values, field: str) -> list[int]:
    """Coerce a JSON list of ids to ints, raising ValueError naming ``field``."""
    if values is None:
        return []
    if not isinstance(values, (list, tuple)):
        raise ValueError(f"{field} must be a list of ids")
    try:
        return [int(v) for v in values]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{field} must contain integer ids") from exc
