from __future__ import annotations

from typing import Any, Mapping, Sequence, Union

from .mention import Mention, MentionShape

Record = Union[Mapping[str, Any], Mention, None]


def _coerce_str(value: Any) -> str | None:
    if isinstance(value, str):
        s = value.strip()
        return s if s else None
    return None


def _nested(item: Mapping[str, Any], envelope: str, key: str) -> Any:
    inner = item.get(envelope)
    if isinstance(inner, Mapping):
        return inner.get(key)
    return None


def _first(*values: Any) -> str | None:
    for value in values:
        s = _coerce_str(value)
        if s is not None:
            return s
    return None


def _as_mapping(record: Record) -> Mapping[str, Any] | None:
    if isinstance(record, Mapping):
        return record
    return None


def get_source(record: Record) -> str | None:
    if isinstance(record, Mention):
        return record.source
    item = _as_mapping(record)
    if item is None:
        return None
    return _first(
        item.get("wm-source"),
        item.get("source"),
        _nested(item, "data", "url"),
        item.get("url"),
    )


def get_url(record: Record) -> str | None:
    """Origin URL of the mentioning post, preferring the post's own URL over the source."""
    if isinstance(record, Mention):
        return record.url
    item = _as_mapping(record)
    if item is None:
        return None
    return _first(
        _nested(item, "data", "url"),
        item.get("url"),
        item.get("wm-source"),
        item.get("source"),
    )


def get_target(record: Record) -> str | None:
    if isinstance(record, Mention):
        return record.target
    item = _as_mapping(record)
    if item is None:
        return None
    return _first(item.get("wm-target"), item.get("target"))


def get_type(record: Record) -> str | None:
    if isinstance(record, Mention):
        return record.type
    item = _as_mapping(record)
    if item is None:
        return None
    return _first(
        item.get("wm-property"),
        _nested(item, "activity", "type"),
        item.get("type"),
    )


def get_published(record: Record) -> str | None:
    if isinstance(record, Mention):
        return record.published
    item = _as_mapping(record)
    if item is None:
        return None
    return _first(
        _nested(item, "data", "published"),
        item.get("published"),
        item.get("wm-received"),
        item.get("verified_date"),
    )


def get_received(record: Record) -> str | None:
    if isinstance(record, Mention):
        return record.received
    item = _as_mapping(record)
    if item is None:
        return None
    return _first(
        item.get("wm-received"),
        item.get("verified_date"),
        item.get("published"),
        _nested(item, "data", "published"),
    )


def get_content(record: Record) -> str:
    """
    Raw content as a single string.

    A sanitized copy wins when present, then structured `{html, value}` content,
    a bare content string, and finally content nested under `data`.
    """
    if isinstance(record, Mention):
        return record.content_sanitized or record.content
    item = _as_mapping(record)
    if item is None:
        return ""

    content = item.get("content")
    return (
        _first(
            item.get("contentSanitized"),
            _nested(item, "content", "html"),
            _nested(item, "content", "value"),
            content if isinstance(content, str) else None,
            _nested(item, "data", "content"),
        )
        or ""
    )


def get_by_types(records: Sequence[Record], types: str | Sequence[str]) -> list[Record]:
    if isinstance(types, str):
        return [r for r in records if get_type(r) == types]
    wanted = set(types)
    return [r for r in records if get_type(r) in wanted]


def detect_shape(item: Mapping[str, Any]) -> MentionShape:
    if any(isinstance(k, str) and k.startswith("wm-") for k in item):
        return "jf2"
    if isinstance(item.get("data"), Mapping) or isinstance(item.get("activity"), Mapping):
        return "links"
    if "verified_date" in item:
        return "links"
    return "plain"


def mention_from_item(item: Mapping[str, Any]) -> Mention | None:
    """
    Normalize a raw feed item into a Mention.

    Returns None for anything that is not a mapping; missing fields stay None.
    """
    if not isinstance(item, Mapping):
        return None

    return Mention(
        shape=detect_shape(item),
        source=get_source(item),
        target=get_target(item),
        url=get_url(item),
        type=get_type(item),
        published=get_published(item),
        received=get_received(item),
        content=get_content(item),
        raw=item,
    )
