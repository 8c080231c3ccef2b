from __future__ import annotations

from typing import TYPE_CHECKING, Mapping
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

if TYPE_CHECKING:
    from .run_log import RunLogger


def hostname(url: str) -> str:
    value = (url or "").strip()
    if "//" not in value:
        return value
    try:
        return urlsplit(value).hostname or value
    except ValueError:
        return value


def ensure_trailing_slash(url: str) -> str:
    return (url or "").rstrip("/") + "/"


def base_url(url: str) -> str:
    """Drop the fragment and query string, in that order."""
    return (url or "").split("#", 1)[0].split("?", 1)[0]


def fix_url(url: str, replacements: Mapping[str, str] | None) -> str:
    out = url or ""
    for find, replace in (replacements or {}).items():
        if find:
            out = out.replace(find, replace)
    return out


def lower_scheme_and_host(url: str) -> str:
    """Lower-case the scheme and host; path, query and userinfo keep their case."""
    try:
        parts = urlsplit(url or "")
    except ValueError:
        return url
    if not parts.scheme or not parts.netloc:
        return url
    userinfo, at, hostport = parts.netloc.rpartition("@")
    netloc = f"{userinfo}{at}{hostport.lower()}"
    return urlunsplit((parts.scheme.lower(), netloc, parts.path, parts.query, parts.fragment))


def normalize_target(url: str, replacements: Mapping[str, str] | None = None) -> str:
    return ensure_trailing_slash(lower_scheme_and_host(base_url(fix_url(url, replacements))))


def absolute_url(url: str, domain: str, *, logger: RunLogger | None = None) -> str:
    """
    Resolve `url` against `domain`.

    When the result is still not absolute (e.g. a domain without a scheme),
    the input is returned unchanged and a diagnostic is logged.
    """
    value = (url or "").strip()
    try:
        resolved = urljoin(domain or "", value)
        parts = urlsplit(resolved)
    except ValueError:
        resolved, parts = "", None

    if parts is None or not parts.scheme or not parts.netloc:
        if logger is not None:
            logger.warning("url_not_absolute", url=value, base=domain)
        return value

    return resolved


_SECRET_PARAMS = ("token", "access_token", "api_key")


def redact_url(url: str) -> str:
    """Mask credential query parameters so URLs can be logged."""
    try:
        parts = urlsplit(url or "")
    except ValueError:
        return url
    if not parts.query:
        return url
    query = [
        (k, "***" if k.lower() in _SECRET_PARAMS else v)
        for k, v in parse_qsl(parts.query, keep_blank_values=True)
    ]
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))
