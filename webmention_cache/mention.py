from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Mapping

MentionShape = Literal["jf2", "links", "plain"]


@dataclass(frozen=True)
class Mention:
    """
    A mention record normalized once from whichever upstream shape it arrived in.

    `raw` keeps the original item so the cache can be written back untouched.
    `content_sanitized` is only ever set on query-time copies.
    """

    shape: MentionShape
    source: str | None
    target: str | None
    url: str | None = None
    type: str | None = None
    published: str | None = None
    received: str | None = None
    content: str = ""
    content_sanitized: str | None = None
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)
