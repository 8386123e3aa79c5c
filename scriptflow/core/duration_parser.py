"""
Duration string parsing.

Accepts ``90``, ``90s``, ``3m``, ``3min``, ``1m30s``, ``1h 5m``, ``02:30``
and the CJK unit forms (``3分钟``, ``90秒``, ``1小时``).
"""

import math
import re
from typing import Optional, Union

_UNIT_SECONDS = {
    "h": 3600, "hr": 3600, "hrs": 3600, "hour": 3600, "hours": 3600,
    "m": 60, "min": 60, "mins": 60, "minute": 60, "minutes": 60,
    "s": 1, "sec": 1, "secs": 1, "second": 1, "seconds": 1,
}

# Longest unit names first so "min" is not read as "m" + "in"
_SEGMENT_RE = re.compile(
    r"(\d+(?:\.\d+)?)(" + "|".join(sorted(_UNIT_SECONDS, key=len, reverse=True)) + r")"
)
_MMSS_RE = re.compile(r"^(\d{1,3}):(\d{1,2})$")
_NUMBER_RE = re.compile(r"^\d+(?:\.\d+)?$")

_CJK_UNITS = (
    ("：", ":"),
    ("小时", "h"), ("小時", "h"),
    ("分钟", "m"), ("分鐘", "m"),
    ("秒钟", "s"), ("秒", "s"),
)


def _round_seconds(value: float) -> int:
    # Half-up rounding, never below one second
    return max(1, math.floor(value + 0.5))


def parse_duration_to_seconds(value: Union[str, int, float, None]) -> Optional[int]:
    """Parse a user-facing duration into whole seconds, or None if unparseable."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if not math.isfinite(value) or value <= 0:
            return None
        return _round_seconds(value)

    raw = str(value or "").strip()
    if not raw:
        return None

    normalized = re.sub(r"\s+", "", raw.lower())
    for source, target in _CJK_UNITS:
        normalized = normalized.replace(source, target)

    mmss = _MMSS_RE.match(normalized)
    if mmss:
        minutes, seconds = int(mmss.group(1)), int(mmss.group(2))
        if seconds >= 60:
            return None
        return _round_seconds(minutes * 60 + seconds)

    if _NUMBER_RE.match(normalized):
        return _round_seconds(float(normalized))

    total = 0.0
    consumed = 0
    for match in _SEGMENT_RE.finditer(normalized):
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        consumed += len(match.group(0))

    if consumed and consumed == len(normalized):
        return _round_seconds(total)
    return None
