from __future__ import annotations

import html
from dataclasses import replace
from typing import Mapping, Sequence, Union

from .config_schema import SyncOptions
from .dedupe import sort_by_published
from .mention import Mention
from .run_log import RunLogger
from .sanitize import sanitize_html
from .urls import absolute_url, normalize_target

TypeFilter = Union[str, Sequence[str], None]


def matches_types(mention: Mention, types: TypeFilter) -> bool:
    if types is None:
        return True
    if isinstance(types, str):
        return not types or mention.type == types
    if not types:
        return True
    return mention.type in types


def truncated_content(mention: Mention, text: str) -> str:
    source = mention.source or ""
    return f'{text} <a href="{html.escape(source, quote=True)}">{html.escape(source)}</a>'


def render_mention(mention: Mention, options: SyncOptions) -> Mention:
    """Return a copy carrying sanitized content; the cached record is untouched."""
    raw = mention.content
    if not raw:
        return mention

    if len(raw) > options.maximum_html_length:
        sanitized = truncated_content(mention, options.maximum_html_text)
    else:
        sanitized = sanitize_html(raw, options.allowed_html)
    return replace(mention, content_sanitized=sanitized)


def get_webmentions(
    by_url: Mapping[str, Sequence[Mention]],
    options: SyncOptions,
    url: str,
    types: TypeFilter = None,
    *,
    logger: RunLogger | None = None,
) -> list[Mention]:
    """
    Mentions of `url`, optionally limited to some types, sanitized and sorted
    oldest published first. An unknown URL yields an empty list.
    """
    absolute = absolute_url(url, options.domain, logger=logger)
    if not absolute:
        return []

    group = by_url.get(normalize_target(absolute))
    if not group:
        return []

    rendered = [render_mention(m, options) for m in group if matches_types(m, types)]
    return sort_by_published(rendered)
