from __future__ import annotations

from typing import Any

from jinja2 import Environment

from .config_schema import SyncOptions
from .normalize import (
    get_by_types,
    get_content,
    get_published,
    get_received,
    get_source,
    get_target,
    get_type,
    get_url,
)
from .pipeline import MentionPipeline
from .query import TypeFilter


def default_options_data() -> dict[str, Any]:
    """Option defaults, without the required fields, as plain data for templates."""
    data: dict[str, Any] = {}
    for name, info in SyncOptions.model_fields.items():
        if info.is_required():
            continue
        value = info.get_default(call_default_factory=True)
        data[name] = value.model_dump(mode="json") if hasattr(value, "model_dump") else value
    return data


def register_webmentions(env: Environment, pipeline: MentionPipeline) -> Environment:
    """
    Expose the synced mentions to templates rendered by `env`.

    Runs the pipeline once, here, so rendering never touches the network.
    """
    groups = pipeline.groups()

    def _get_webmentions(url: str, types: TypeFilter = None) -> list[Any]:
        return pipeline.get_webmentions(url, types)

    env.globals.update(
        {
            "webmentions_defaults": default_options_data(),
            "webmentions_options": pipeline.options.model_dump(mode="json"),
            "webmentions_by_url": groups.by_url,
            "webmentions_all": groups.all(),
            "get_webmentions": _get_webmentions,
        }
    )

    env.filters.update(
        {
            "webmentions_by_type": get_by_types,
            "webmentions_by_types": get_by_types,
            "webmention_published": get_published,
            "webmention_received": get_received,
            "webmention_content": get_content,
            "webmention_source": get_source,
            "webmention_url": get_url,
            "webmention_target": get_target,
            "webmention_type": get_type,
        }
    )
    return env
