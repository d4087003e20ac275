import re
from datetime import datetime, timezone
from typing import Optional


# Timezone-less layouts Vantage uses for createTimeUtc, most precise first
_TICKS = re.compile(r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{6})\d$")
_LOCAL_FORMATS = ("%Y-%m-%dT%H:%M:%S.%f", "%Y-%m-%dT%H:%M:%S")
_RFC3339 = re.compile(
    r"^\d{4}-\d{2}-\d{2}[Tt ]\d{2}:\d{2}:\d{2}(\.\d+)?([Zz]|[+-]\d{2}:\d{2})$"
)


def _parse_rfc3339(value: str) -> Optional[datetime]:
    if not _RFC3339.match(value):
        return None
    if value[-1] in "Zz":
        value = value[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def _parse_ticks(value: str) -> Optional[datetime]:
    match = _TICKS.match(value)
    if not match:
        return None
    return datetime.strptime(match.group(1), _LOCAL_FORMATS[0])


def _parse_local(value: str, fmt: str) -> Optional[datetime]:
    try:
        return datetime.strptime(value, fmt)
    except ValueError:
        return None


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse an upstream timestamp, returning None when no layout matches.

    RFC3339 is tried first, then the timezone-less layouts with seven-digit,
    up-to-six-digit and no fractional seconds. Values without a timezone
    are taken as UTC.
    """
    if not value:
        return None

    parsed = _parse_rfc3339(value)
    if parsed is not None:
        return parsed

    parsed = _parse_ticks(value)
    if parsed is None:
        for fmt in _LOCAL_FORMATS:
            parsed = _parse_local(value, fmt)
            if parsed is not None:
                break

    if parsed is None:
        return None
    return parsed.replace(tzinfo=timezone.utc)
