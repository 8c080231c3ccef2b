from __future__ import annotations

from typing import Sequence

from .dedupe import R
from .normalize import get_source
from .urls import ensure_trailing_slash


def _prefixes(entries: Sequence[str]) -> list[str]:
    return [ensure_trailing_slash(e.strip()) for e in entries if (e or "").strip()]


def _matches(source: str | None, prefixes: Sequence[str]) -> bool:
    if not source:
        return False
    candidate = ensure_trailing_slash(source)
    return any(candidate.startswith(p) for p in prefixes)


def apply_blocklist(records: Sequence[R], blocklist: Sequence[str]) -> list[R]:
    prefixes = _prefixes(blocklist)
    if not prefixes:
        return list(records)
    return [r for r in records if not _matches(get_source(r), prefixes)]


def apply_allowlist(records: Sequence[R], allowlist: Sequence[str]) -> list[R]:
    """An empty allow-list disables filtering; it does not reject everything."""
    prefixes = _prefixes(allowlist)
    if not prefixes:
        return list(records)
    return [r for r in records if _matches(get_source(r), prefixes)]
