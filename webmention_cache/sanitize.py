from __future__ import annotations

import re
from urllib.parse import urlsplit

from bs4 import BeautifulSoup, Tag
from bs4.element import CData, Comment, Declaration, Doctype, ProcessingInstruction

from .config_schema import AllowedHTML

# Dropped together with their text; every other disallowed tag is unwrapped.
_DROP_WITH_CONTENT = frozenset({"script", "style", "textarea", "option", "noscript", "iframe"})

_URL_ATTRIBUTES = frozenset({"href", "src", "cite", "action"})

_IGNORED_IN_SCHEME = re.compile(r"[\x00-\x20]+")


def _scheme_allowed(value: str, schemes: frozenset[str]) -> bool:
    compact = _IGNORED_IN_SCHEME.sub("", value or "")
    try:
        scheme = urlsplit(compact).scheme.lower()
    except ValueError:
        return False
    # Relative URLs have no scheme.
    return not scheme or scheme in schemes


def _clean(node: Tag, policy: AllowedHTML, schemes: frozenset[str]) -> None:
    for child in list(node.children):
        if isinstance(child, (Comment, CData, Declaration, Doctype, ProcessingInstruction)):
            child.extract()
            continue
        if not isinstance(child, Tag):
            continue

        name = (child.name or "").lower()
        if name in _DROP_WITH_CONTENT:
            child.decompose()
            continue

        _clean(child, policy, schemes)

        if name not in policy.allowed_tags:
            child.unwrap()
            continue

        allowed = set(policy.allowed_attributes.get(name, ()))
        allowed.update(policy.allowed_attributes.get("*", ()))
        for attr in list(child.attrs):
            value = child.attrs[attr]
            if attr.lower() not in allowed:
                del child.attrs[attr]
            elif attr.lower() in _URL_ATTRIBUTES and not _scheme_allowed(str(value), schemes):
                del child.attrs[attr]


def sanitize_html(html: str, policy: AllowedHTML) -> str:
    """
    Reduce `html` to the tags and attributes the policy allows.

    Disallowed tags are unwrapped so their text survives; script-like tags are
    removed with their content. Pure: no network or file access.
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")
    _clean(soup, policy, frozenset(policy.allowed_schemes))
    return str(soup)
