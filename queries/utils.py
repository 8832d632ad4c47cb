"""Small helpers shared by the query classes."""

from datetime import date, datetime
from typing import Dict, Iterable, Optional

from .errors import ValidationError

DATE_FORMATS = ('%Y-%m-%d', '%d/%m/%Y', '%m/%d/%Y', '%Y/%m/%d')


def parse_date(value) -> Optional[date]:
    """Accept a date, datetime, or common date string; None/blank stays None."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    # ISO timestamps ('2024-01-05T10:00:00')
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        raise ValidationError(f"Invalid date: {value}")


def parse_datetime(value) -> Optional[datetime]:
    """Like parse_date, but keeps (or adds midnight as) a time of day."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            pass
    parsed = parse_date(value)
    return datetime.combine(parsed, datetime.min.time())


def apply_fields(obj, data: Dict, allowed: Iterable[str], date_fields: Iterable[str] = (),
                 datetime_fields: Iterable[str] = ()):
    """Copy the allowed keys of `data` onto `obj`, parsing date columns."""
    date_fields = set(date_fields)
    datetime_fields = set(datetime_fields)
    changed = []
    for field in allowed:
        if field not in data:
            continue
        value = data[field]
        if field in date_fields:
            value = parse_date(value)
        elif field in datetime_fields:
            value = parse_datetime(value)
        setattr(obj, field, value)
        changed.append(field)
    return changed


def format_date(value) -> Optional[str]:
    return value.isoformat() if value else None
