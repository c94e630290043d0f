from __future__ import annotations

import re
from datetime import datetime, timezone

from weatherly.core.errors import QueryValidationError

NOW_LITERAL = "now()"
RELATIVE_TIME_PATTERN = r"^-?\d+[smhdw]$"
WINDOW_PERIOD_PATTERN = r"^\d+[smhdw]$"

_DURATION_RE = re.compile(r"(-?)(\d+)([smhdw])")
_UNIT_MS = {
    "s": 1_000,
    "m": 60 * 1_000,
    "h": 60 * 60 * 1_000,
    "d": 24 * 60 * 60 * 1_000,
    "w": 7 * 24 * 60 * 60 * 1_000,
}


def to_rfc3339(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def flux_str(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def parse_duration_ms(expr: str) -> int:
    """Magnitude of a duration expression such as ``-2h`` or ``5m``, in ms."""
    match = _DURATION_RE.fullmatch(expr.strip()) if isinstance(expr, str) else None
    if match is None:
        raise QueryValidationError(
            "Invalid duration expression",
            details=[{"field": "duration", "message": "expected <int><s|m|h|d|w>", "value": expr}],
        )
    _, amount, unit = match.groups()
    return int(amount) * _UNIT_MS[unit]


def _parse_absolute(expr: str) -> datetime | None:
    try:
        dt = datetime.fromisoformat(expr.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def is_valid_time_expression(expr: str) -> bool:
    if not isinstance(expr, str) or not expr:
        return False
    if expr == NOW_LITERAL or _DURATION_RE.fullmatch(expr):
        return True
    return _parse_absolute(expr) is not None


def is_valid_window_period(expr: str) -> bool:
    return isinstance(expr, str) and re.fullmatch(WINDOW_PERIOD_PATTERN, expr) is not None


def flux_time(expr: str, *, name: str = "time") -> str:
    """Render a validated time expression as a Flux ``range`` argument."""
    if expr == NOW_LITERAL:
        return NOW_LITERAL
    if _DURATION_RE.fullmatch(expr):
        return expr
    absolute = _parse_absolute(expr) if isinstance(expr, str) else None
    if absolute is None:
        raise QueryValidationError(
            "Invalid time range expression",
            details=[{"field": name, "message": "expected -?<int><s|m|h|d|w>, now() or ISO-8601", "value": expr}],
        )
    return f"time(v: {flux_str(to_rfc3339(absolute))})"


def flux_duration(expr: str, *, name: str = "windowPeriod") -> str:
    if not is_valid_window_period(expr):
        raise QueryValidationError(
            "Invalid aggregation window",
            details=[{"field": name, "message": "expected <int><s|m|h|d|w>", "value": expr}],
        )
    return expr

