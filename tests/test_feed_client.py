from __future__ import annotations

import json
import unittest
from typing import Any

import requests

from webmention_cache.errors import TransportError
from webmention_cache.feed_client import FeedClient
from webmention_cache.retry import RetryConfig, RetryEvent

_NO_JITTER = RetryConfig(max_attempts=3, base_delay_seconds=0.5, max_delay_seconds=10.0, jitter_ratio=0.0)


def _response(status: int, payload: Any = None, *, body: bytes | None = None, headers: dict[str, str] | None = None) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp.url = "https://example.com/mentions.json"
    if body is None:
        body = json.dumps(payload if payload is not None else {}).encode("utf-8")
    resp._content = body
    resp.headers.update(headers or {})
    return resp


class _FakeSession:
    def __init__(self, responses: list[Any]) -> None:
        self._responses = list(responses)
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def get(self, url: str, *, timeout: float | None = None) -> requests.Response:
        self.calls.append({"url": url, "timeout": timeout})
        item = self._responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def close(self) -> None:
        self.closed = True


class TestFeedClient(unittest.TestCase):
    def _client(self, session: _FakeSession, **kwargs: Any) -> tuple[FeedClient, list[float], list[RetryEvent]]:
        sleeps: list[float] = []
        events: list[RetryEvent] = []
        client = FeedClient(
            session=session,  # type: ignore[arg-type]
            timeout_seconds=12,
            retry=_NO_JITTER,
            on_retry=events.append,
            sleep_fn=sleeps.append,
            **kwargs,
        )
        return client, sleeps, events

    def test_get_json_ok(self) -> None:
        session = _FakeSession([_response(200, {"children": [1, 2]})])
        client, sleeps, _ = self._client(session)

        self.assertEqual(client.get_json("https://example.com/mentions.json"), {"children": [1, 2]})
        self.assertEqual(session.calls, [{"url": "https://example.com/mentions.json", "timeout": 12.0}])
        self.assertEqual(sleeps, [])

    def test_retries_server_errors(self) -> None:
        session = _FakeSession([_response(503), _response(200, {"children": []})])
        client, sleeps, events = self._client(session)

        self.assertEqual(client.get_json("https://example.com/mentions.json"), {"children": []})
        self.assertEqual(len(session.calls), 2)
        self.assertEqual(sleeps, [0.5])
        self.assertEqual(events[0].reason, "http_503")

    def test_honours_retry_after(self) -> None:
        session = _FakeSession([_response(429, headers={"Retry-After": "7"}), _response(200, {"children": []})])
        client, sleeps, _ = self._client(session)

        client.get_json("https://example.com/mentions.json")
        self.assertEqual(sleeps, [7.0])

    def test_client_error_not_retried(self) -> None:
        session = _FakeSession([_response(404)])
        client, sleeps, _ = self._client(session)

        with self.assertRaises(TransportError):
            client.get_json("https://example.com/mentions.json")
        self.assertEqual(len(session.calls), 1)
        self.assertEqual(sleeps, [])

    def test_connection_errors_exhaust_attempts(self) -> None:
        session = _FakeSession([requests.ConnectionError("boom")] * 3)
        client, sleeps, _ = self._client(session)

        with self.assertRaises(TransportError):
            client.get_json("https://example.com/mentions.json")
        self.assertEqual(len(session.calls), 3)
        self.assertEqual(sleeps, [0.5, 1.0])

    def test_invalid_json(self) -> None:
        session = _FakeSession([_response(200, body=b"<html>oops</html>")])
        client, _, _ = self._client(session)

        with self.assertRaises(TransportError):
            client.get_json("https://example.com/mentions.json")

    def test_error_message_hides_token(self) -> None:
        session = _FakeSession([_response(401)])
        client, _, _ = self._client(session)

        with self.assertRaises(TransportError) as ctx:
            client.get_json("https://webmention.io/api/mentions.jf2?token=s3cret")
        self.assertNotIn("s3cret", str(ctx.exception))

    def test_close_closes_session(self) -> None:
        session = _FakeSession([])
        with FeedClient(session=session) as _:  # type: ignore[arg-type]
            pass
        self.assertTrue(session.closed)


class TestRetryConfig(unittest.TestCase):
    def test_backoff_and_cap(self) -> None:
        cfg = RetryConfig(base_delay_seconds=1.0, max_delay_seconds=5.0, jitter_ratio=0.0, retry_after_cap_seconds=60.0)
        self.assertEqual(cfg.delay_for(1), 1.0)
        self.assertEqual(cfg.delay_for(2), 2.0)
        self.assertEqual(cfg.delay_for(10), 5.0)
        self.assertEqual(cfg.delay_for(1, retry_after=600), 60.0)

    def test_validation(self) -> None:
        with self.assertRaises(ValueError):
            RetryConfig(max_attempts=0)
        with self.assertRaises(ValueError):
            RetryConfig(base_delay_seconds=5.0, max_delay_seconds=1.0)


if __name__ == "__main__":
    unittest.main()
