"""Restore point parsing and timezone resolution."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from envrefresh.core.errors import ValidationError
from envrefresh.restore.models import RestoreRequest

DATETIME_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M",
)


def parse_local_datetime(value: str) -> datetime:
    """Parse a literal date/time.

    Wall-clock literals come back naive. A literal carrying its own UTC
    offset (the form used for the default restore point) comes back aware.
    """
    text = value.strip()
    for fmt in DATETIME_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        parsed = None
    if parsed is not None and parsed.tzinfo is not None:
        return parsed
    raise ValidationError(
        f"Invalid restore date/time '{value}'",
        {"expected_format": "yyyy-MM-dd HH:mm:ss"},
    )


def is_utc(timezone_id: str) -> bool:
    return timezone_id.strip().upper() in ("UTC", "Z", "ETC/UTC")


def resolve_zone(timezone_id: str) -> ZoneInfo:
    try:
        return ZoneInfo(timezone_id.strip())
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValidationError(f"Unknown timezone '{timezone_id}'") from exc


def resolve_restore_request(local_datetime: str, timezone_id: str) -> RestoreRequest:
    """Combine a literal local date/time with its zone into one UTC instant.

    A UTC zone is taken literally so the value is never shifted twice.
    """
    parsed = parse_local_datetime(local_datetime)
    zone = timezone.utc if is_utc(timezone_id) else resolve_zone(timezone_id)
    if parsed.tzinfo is not None:
        instant = parsed.astimezone(timezone.utc)
    else:
        instant = parsed.replace(tzinfo=zone).astimezone(timezone.utc)
    return RestoreRequest(
        local_datetime=local_datetime,
        timezone_id=timezone_id,
        resolved_utc_instant=instant,
    )


def default_restore_datetime(now: datetime, offset_minutes: int) -> str:
    """Restore point ``offset_minutes`` before ``now`` as a UTC literal with its offset.

    The offset pins the instant, so the requested zone never reinterprets it.
    """
    point = now.astimezone(timezone.utc).replace(microsecond=0) - timedelta(minutes=offset_minutes)
    return point.isoformat(sep=" ")
