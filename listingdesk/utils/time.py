from __future__ import annotations

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_naive_utc(dt: datetime) -> datetime:
    """Normalize to a naive UTC datetime, the form stored in DateTime columns."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_calendar_date(raw: str | date | datetime | None) -> date | None:
    """Parse YYYY-MM-DD (or a full ISO timestamp, truncated to its UTC date)."""
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return to_naive_utc(raw).date()
    if isinstance(raw, date):
        return raw
    text = str(raw).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return to_naive_utc(datetime.fromisoformat(text.replace("Z", "+00:00"))).date()
    except ValueError:
        return None


def format_date_for_input(value: date | datetime | None) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        value = to_naive_utc(value).date()
    return value.isoformat()
