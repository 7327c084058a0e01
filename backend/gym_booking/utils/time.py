from datetime import datetime, timezone
from zoneinfo import ZoneInfo


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: str) -> datetime:
    """Parse an ISO 8601 string into naive UTC. Values without an offset are taken as UTC."""
    parsed = datetime.fromisoformat(value.strip())
    if parsed.tzinfo is None:
        return parsed
    return to_utc_naive(parsed)


def utc_naive_to_iso(dt: datetime) -> str:
    return dt.replace(tzinfo=timezone.utc).isoformat().replace("+00:00", "Z")


def local_to_utc_naive(dt: datetime, tz_name: str) -> datetime:
    """Interpret a naive wall-clock datetime in `tz_name` and convert it to naive UTC."""
    return dt.replace(tzinfo=ZoneInfo(tz_name)).astimezone(timezone.utc).replace(tzinfo=None)
