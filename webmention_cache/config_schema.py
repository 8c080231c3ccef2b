from __future__ import annotations

import re
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .duration import parse_duration

_ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

REQUIRED_FIELDS = ("domain", "feed", "key")

PositiveInt = Annotated[int, Field(ge=1)]
NonNegativeInt = Annotated[int, Field(ge=0)]


def _normalize_url_list(values: list[str]) -> list[str]:
    out: list[str] = []
    seen: set[str] = set()
    for item in values:
        url = (item or "").strip()
        if not url or url in seen:
            continue
        seen.add(url)
        out.append(url)
    return out


def _require_text(value: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValueError("must be a non-empty string")
    return text


class AllowedHTML(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    allowed_tags: list[str] = Field(default_factory=lambda: ["a", "b", "em", "i", "strong"])
    allowed_attributes: dict[str, list[str]] = Field(default_factory=lambda: {"a": ["href"]})
    allowed_schemes: list[str] = Field(
        default_factory=lambda: ["http", "https", "ftp", "mailto", "tel"]
    )

    @field_validator("allowed_tags", "allowed_schemes")
    @classmethod
    def _lowercase_names(cls, v: list[str]) -> list[str]:
        return [s.strip().lower() for s in v if (s or "").strip()]


class SyncOptions(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    domain: str
    feed: str
    key: str

    refresh: bool = False
    duration: str = "1d"
    unique_key: str = "webmentions"
    cache_directory: str | None = None

    allowed_html: AllowedHTML = Field(default_factory=AllowedHTML)
    allowlist: list[str] = Field(default_factory=list)
    blocklist: list[str] = Field(default_factory=list)
    url_replacements: dict[str, str] = Field(default_factory=dict)
    maximum_html_length: NonNegativeInt = 1000
    maximum_html_text: str = "mentioned this in"

    paginate: bool | None = None  # None: decided from the feed host
    per_page: PositiveInt | None = None
    throttle_seconds: float = Field(1.0, ge=0.0)
    timeout_seconds: float = Field(30.0, gt=0.0)
    token_env: str | None = None

    @field_validator("domain", "feed", "key")
    @classmethod
    def _required_non_empty(cls, v: str) -> str:
        return _require_text(v)

    @field_validator("duration")
    @classmethod
    def _duration_must_parse(cls, v: str) -> str:
        parse_duration(v)
        return v.strip()

    @field_validator("allowlist", "blocklist")
    @classmethod
    def _normalize_lists(cls, v: list[str]) -> list[str]:
        return _normalize_url_list(v)

    @field_validator("token_env")
    @classmethod
    def _token_env_must_be_valid(cls, v: str | None) -> str | None:
        if v is None:
            return None
        name = v.strip()
        if not _ENV_NAME_RE.fullmatch(name):
            raise ValueError("must be a valid environment variable name")
        return name
