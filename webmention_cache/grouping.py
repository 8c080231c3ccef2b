from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from .errors import MalformedRecordError
from .mention import Mention
from .normalize import get_source, mention_from_item
from .run_log import RunLogger
from .urls import normalize_target


@dataclass
class TargetGroups:
    by_url: dict[str, list[Mention]] = field(default_factory=dict)
    malformed: list[MalformedRecordError] = field(default_factory=list)

    def all(self) -> list[Mention]:
        return [m for group in self.by_url.values() for m in group]


def group_by_target(
    items: Sequence[Any],
    *,
    url_replacements: Mapping[str, str] | None = None,
    logger: RunLogger | None = None,
) -> TargetGroups:
    """
    Normalize cached items into Mentions and bucket them by normalized target URL.

    Items without a target are left out and reported in `malformed`.
    """
    groups = TargetGroups()

    for item in items:
        mention = mention_from_item(item) if item is not None else None
        if mention is None or not mention.target:
            source = get_source(item) if item is not None else None
            err = MalformedRecordError(f"Mention from {source or '<unknown>'} has no target URL")
            groups.malformed.append(err)
            if logger is not None:
                logger.warning("mention_missing_target", source=source)
            continue

        key = normalize_target(mention.target, url_replacements)
        groups.by_url.setdefault(key, []).append(mention)

    return groups
