from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Sequence, TypeVar

from .normalize import Record, get_published, get_received, get_source

R = TypeVar("R", bound=Record)


def parse_epoch(value: Any) -> float:
    """
    Seconds since the epoch for an ISO-8601 string or a numeric timestamp.

    Anything unparsable is treated as 0 so sorting never fails.
    """
    if isinstance(value, bool) or value is None:
        return 0.0

    if isinstance(value, (int, float)):
        # Millisecond timestamps.
        return float(value) / 1000.0 if value > 10_000_000_000 else float(value)

    text = str(value).strip()
    if not text:
        return 0.0
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"

    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return 0.0

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def dedupe_key(record: Record) -> str | None:
    """Source URL, "" for a record without one, None for a missing record."""
    if record is None:
        return None
    return get_source(record) or ""


def remove_duplicates(records: Sequence[R]) -> list[R]:
    """
    Keep the first record seen for each source URL, in input order.

    A missing record is kept once so malformed entries stay visible downstream.
    """
    seen: set[str | None] = set()
    out: list[R] = []
    for record in records:
        key = dedupe_key(record)
        if key in seen:
            continue
        seen.add(key)
        out.append(record)
    return out


def sort_by_received(records: Sequence[R]) -> list[R]:
    """Newest received first."""
    return sorted(records, key=lambda r: parse_epoch(get_received(r)), reverse=True)


def sort_by_published(records: Sequence[R]) -> list[R]:
    """Oldest published first."""
    return sorted(records, key=lambda r: parse_epoch(get_published(r)))
