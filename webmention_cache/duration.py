from __future__ import annotations

import math
import re

_DURATION_RE = re.compile(r"^(?P<amount>\d+(?:\.\d+)?)\s*(?P<unit>[smhdwy])$")

_UNIT_SECONDS: dict[str, float] = {
    "s": 1.0,
    "m": 60.0,
    "h": 60.0 * 60,
    "d": 60.0 * 60 * 24,
    "w": 60.0 * 60 * 24 * 7,
    "y": 60.0 * 60 * 24 * 365,
}

# Long enough to mean "the cached value exists at all".
FOREVER = "9001y"


def parse_duration(value: str | int | float) -> float:
    """
    Convert a compact duration ("30s", "1d", "2w", "*") into seconds.

    "*" never expires and maps to infinity. Bare numbers are seconds.
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")

    if isinstance(value, (int, float)):
        if value < 0:
            raise ValueError(f"duration must be >= 0: {value!r}")
        return float(value)

    text = (value or "").strip().lower()
    if text == "*":
        return math.inf

    m = _DURATION_RE.fullmatch(text)
    if m is None:
        raise ValueError(f"invalid duration: {value!r}")

    return float(m.group("amount")) * _UNIT_SECONDS[m.group("unit")]
