from __future__ import annotations

import hashlib
import json
import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from .config_schema import REQUIRED_FIELDS, SyncOptions
from .errors import ConfigError
from .urls import hostname

DEFAULT_CACHE_DIRECTORY = ".cache"


def build_options(
    overrides: Mapping[str, Any] | None = None, *, source: str = "<options>"
) -> SyncOptions:
    """
    Merge caller overrides onto the defaults and validate them.

    Missing required fields are reported by name before anything else.
    """
    data = dict(overrides or {})

    for name in REQUIRED_FIELDS:
        value = data.get(name)
        if not isinstance(value, str) or not value.strip():
            raise ConfigError(
                f"`{name}` is a required field when attempting to retrieve Webmentions."
            )

    try:
        return SyncOptions.model_validate(data)
    except ValidationError as e:
        raise ConfigError(_format_pydantic_errors(e, source)) from e


def load_options(
    path: str | Path, overrides: Mapping[str, Any] | None = None
) -> SyncOptions:
    """
    Load a YAML options file, apply overrides, and validate into SyncOptions.

    Raises ConfigError with a readable validation message on failure.
    """
    p = Path(path)

    if not p.exists():
        raise ConfigError(f"Config file not found: {p}")

    try:
        raw_text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {p}") from e

    try:
        data = yaml.safe_load(raw_text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML in {p}: {e}") from e

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise ConfigError(f"Top-level YAML in {p} must be a mapping/object")

    data.update(overrides or {})
    return build_options(data, source=str(p))


def cache_key(options: SyncOptions) -> str:
    key = (options.unique_key or "").strip()
    return key or f"webmentions-{hostname(options.domain)}"


def cache_directory(options: SyncOptions) -> Path:
    return Path(options.cache_directory or DEFAULT_CACHE_DIRECTORY)


def resolve_feed_url(
    options: SyncOptions, *, environ: Mapping[str, str] | None = None
) -> str:
    """
    Fill the `{token}` and `{domain}` placeholders of the feed template.

    The token comes from the environment variable named by `token_env`.
    """
    feed = options.feed

    if "{token}" in feed:
        if not options.token_env:
            raise ConfigError("`feed` contains {token} but `token_env` is not set")
        env = os.environ if environ is None else environ
        token = (env.get(options.token_env) or "").strip()
        if not token:
            raise ConfigError(f"Missing required environment variable: {options.token_env}")
        feed = feed.replace("{token}", token)

    return feed.replace("{domain}", hostname(options.domain))


def options_sha256(options: SyncOptions) -> str:
    payload = json.dumps(
        options.model_dump(mode="json"),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


def _format_pydantic_errors(err: ValidationError, source: str) -> str:
    lines: list[str] = [f"Invalid configuration in {source}:"]
    for item in err.errors():
        loc = ".".join(str(part) for part in item.get("loc", [])) or "<root>"
        msg = item.get("msg", "invalid value")
        lines.append(f"- {loc}: {msg}")
    return "\n".join(lines)
