from datetime import datetime, timezone
from typing import Optional

_ISO_Z_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
_ISO_Z_MICRO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def format_iso_utc_z(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(_ISO_Z_FORMAT)


def format_iso_utc_micro(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(_ISO_Z_MICRO_FORMAT)


def now_iso_utc_z() -> str:
    return format_iso_utc_z(now_utc())


now_iso = now_iso_utc_z


def parse_iso_utc(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored timestamp; naive values are taken as UTC."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


__all__ = [
    "format_iso_utc_micro",
    "format_iso_utc_z",
    "now_iso",
    "now_iso_utc_z",
    "now_utc",
    "parse_iso_utc",
]
