from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from webmention_cache.config import (
    build_options,
    cache_directory,
    cache_key,
    load_options,
    options_sha256,
    resolve_feed_url,
)
from webmention_cache.errors import ConfigError


_VALID_YAML = """\
domain: https://example.com
feed: https://webmention.io/api/mentions.jf2?domain={domain}&token={token}&per-page=500
key: children
token_env: WEBMENTION_IO_TOKEN
duration: 2h
cache_directory: .cache/webmentions
blocklist:
  - https://spam.example
  - https://spam.example
url_replacements:
  http://old.example.com: https://example.com
"""

_REQUIRED = {
    "domain": "https://example.com",
    "feed": "https://example.com/mentions.json",
    "key": "children",
}


class TestLoadOptions(unittest.TestCase):
    def test_load_options_ok(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "webmentions.yaml"
            path.write_text(_VALID_YAML, encoding="utf-8")

            options = load_options(path)
            self.assertEqual(options.domain, "https://example.com")
            self.assertEqual(options.key, "children")
            self.assertEqual(options.duration, "2h")
            self.assertEqual(options.blocklist, ["https://spam.example"])
            self.assertEqual(options.maximum_html_length, 1000)
            self.assertEqual(options.allowed_html.allowed_tags, ["a", "b", "em", "i", "strong"])
            self.assertEqual(cache_directory(options), Path(".cache/webmentions"))

    def test_overrides_win(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "webmentions.yaml"
            path.write_text(_VALID_YAML, encoding="utf-8")

            options = load_options(path, {"refresh": True})
            self.assertTrue(options.refresh)

    def test_missing_file(self) -> None:
        with self.assertRaises(ConfigError):
            load_options("/nonexistent/webmentions.yaml")

    def test_non_mapping_yaml(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "webmentions.yaml"
            path.write_text("- a\n- b\n", encoding="utf-8")
            with self.assertRaises(ConfigError):
                load_options(path)


class TestBuildOptions(unittest.TestCase):
    def test_defaults(self) -> None:
        options = build_options(_REQUIRED)
        self.assertFalse(options.refresh)
        self.assertEqual(options.duration, "1d")
        self.assertEqual(options.unique_key, "webmentions")
        self.assertEqual(options.allowlist, [])
        self.assertEqual(options.maximum_html_text, "mentioned this in")
        self.assertEqual(options.throttle_seconds, 1.0)
        self.assertEqual(cache_directory(options), Path(".cache"))

    def test_required_fields_named(self) -> None:
        for name in ("domain", "feed", "key"):
            data = dict(_REQUIRED)
            data[name] = "  "
            with self.subTest(name=name):
                with self.assertRaises(ConfigError) as ctx:
                    build_options(data)
                self.assertIn(f"`{name}`", str(ctx.exception))

    def test_invalid_values(self) -> None:
        with self.assertRaises(ConfigError):
            build_options({**_REQUIRED, "duration": "soon"})
        with self.assertRaises(ConfigError):
            build_options({**_REQUIRED, "unknown_option": 1})
        with self.assertRaises(ConfigError):
            build_options({**_REQUIRED, "token_env": "not a name"})

    def test_options_are_frozen(self) -> None:
        options = build_options(_REQUIRED)
        with self.assertRaises(Exception):
            options.refresh = True  # type: ignore[misc]

    def test_cache_key_falls_back_to_hostname(self) -> None:
        options = build_options({**_REQUIRED, "unique_key": ""})
        self.assertEqual(cache_key(options), "webmentions-example.com")
        self.assertEqual(cache_key(build_options(_REQUIRED)), "webmentions")

    def test_options_hash_is_stable(self) -> None:
        self.assertEqual(options_sha256(build_options(_REQUIRED)), options_sha256(build_options(_REQUIRED)))
        self.assertNotEqual(
            options_sha256(build_options(_REQUIRED)),
            options_sha256(build_options({**_REQUIRED, "refresh": True})),
        )


class TestResolveFeedUrl(unittest.TestCase):
    def test_fills_token_and_domain(self) -> None:
        options = build_options(
            {
                **_REQUIRED,
                "feed": "https://webmention.io/api/mentions.jf2?domain={domain}&token={token}",
                "token_env": "WEBMENTION_IO_TOKEN",
            }
        )
        url = resolve_feed_url(options, environ={"WEBMENTION_IO_TOKEN": " abc "})
        self.assertEqual(url, "https://webmention.io/api/mentions.jf2?domain=example.com&token=abc")

    def test_missing_token_is_config_error(self) -> None:
        options = build_options(
            {**_REQUIRED, "feed": "https://webmention.io/api?token={token}", "token_env": "WM_TOKEN"}
        )
        with self.assertRaises(ConfigError):
            resolve_feed_url(options, environ={})

        no_env = build_options({**_REQUIRED, "feed": "https://webmention.io/api?token={token}"})
        with self.assertRaises(ConfigError):
            resolve_feed_url(no_env, environ={})

    def test_plain_feed_unchanged(self) -> None:
        options = build_options(_REQUIRED)
        self.assertEqual(resolve_feed_url(options, environ={}), "https://example.com/mentions.json")


if __name__ == "__main__":
    unittest.main()
