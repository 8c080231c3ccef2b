from __future__ import annotations

from typing import Any

import requests

from .errors import TransportError
from .http_retry import is_retryable_http_exception
from .retry import OnRetryFn, RetryConfig, SleepFn, call_with_retries
from .urls import redact_url

_DEFAULT_FEED_RETRY = RetryConfig()

_USER_AGENT = "webmention-cache (+https://pypi.org/project/webmention-cache/)"


class FeedClient:
    """
    Thin wrapper around a requests Session for GETting JSON feed pages.

    Any failure surfaces as TransportError; deciding what to do about it is
    the sync engine's job.
    """

    def __init__(
        self,
        *,
        session: requests.Session | None = None,
        timeout_seconds: float = 30.0,
        retry: RetryConfig | None = None,
        on_retry: OnRetryFn | None = None,
        sleep_fn: SleepFn | None = None,
    ) -> None:
        self._timeout = float(timeout_seconds)
        self._retry = retry or _DEFAULT_FEED_RETRY
        self._on_retry = on_retry
        self._sleep_fn = sleep_fn

        if session is not None:
            self._session = session
        else:
            self._session = requests.Session()
            self._session.headers.update(
                {"Accept": "application/json", "User-Agent": _USER_AGENT}
            )

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "FeedClient":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def get_json(self, url: str) -> Any:
        def _do_get() -> requests.Response:
            response = self._session.get(url, timeout=self._timeout)
            response.raise_for_status()
            return response

        try:
            response = call_with_retries(
                _do_get,
                cfg=self._retry,
                is_retryable=is_retryable_http_exception,
                operation="feed.get",
                url=redact_url(url),
                on_retry=self._on_retry,
                sleep_fn=self._sleep_fn,
            )
        except requests.HTTPError as e:
            code = e.response.status_code if e.response is not None else "?"
            raise TransportError(f"Feed request failed with HTTP {code}: {redact_url(url)}") from e
        except requests.RequestException as e:
            raise TransportError(f"Feed request failed ({type(e).__name__}): {redact_url(url)}") from e
        except OSError as e:
            raise TransportError(f"Feed request failed ({type(e).__name__}): {redact_url(url)}") from e

        try:
            return response.json()
        except ValueError as e:
            raise TransportError(f"Feed response is not valid JSON: {redact_url(url)}") from e
