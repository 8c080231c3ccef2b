from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Literal, Mapping, Protocol, Sequence
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from .config import cache_directory, cache_key, options_sha256, resolve_feed_url
from .config_schema import REQUIRED_FIELDS, SyncOptions
from .dedupe import remove_duplicates, sort_by_received
from .duration import FOREVER
from .errors import ConfigError, FeedContractError, TransportError
from .feed_client import FeedClient
from .filters import apply_allowlist, apply_blocklist
from .normalize import get_received
from .retry import OnRetryFn, RetryEvent, SleepFn
from .run_log import RunLogger
from .storage import AssetCache, SQLiteAssetCache
from .urls import hostname, redact_url

DEFAULT_PER_PAGE = 1000

PAGINATED_HOSTS = ("webmention.io",)


class JSONFetcher(Protocol):
    def get_json(self, url: str) -> Any: ...


@dataclass(frozen=True)
class FetchFailure:
    kind: Literal["transport", "feed_contract"]
    url: str
    message: str


@dataclass(frozen=True)
class FetchResult:
    """
    Outcome of one feed request merged into the working set.

    On failure `mentions` is the working set exactly as it was passed in and
    `found` is 0.
    """

    found: int
    mentions: list[Any]
    failure: FetchFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass(frozen=True)
class SyncResult:
    mentions: list[Any]
    cached_count: int
    fetched: bool
    requests: int = 0
    failures: tuple[FetchFailure, ...] = field(default_factory=tuple)

    @property
    def new_count(self) -> int:
        return max(0, len(self.mentions) - self.cached_count)


def require_options(options: SyncOptions) -> None:
    for name in REQUIRED_FIELDS:
        value = getattr(options, name, None)
        if not isinstance(value, str) or not value.strip():
            raise ConfigError(
                f"`{name}` is a required field when attempting to retrieve Webmentions."
            )


def is_paginated(options: SyncOptions, feed_url: str) -> bool:
    if options.paginate is not None:
        return options.paginate
    host = (hostname(feed_url) or "").lower()
    return any(host == h or host.endswith("." + h) for h in PAGINATED_HOSTS)


def compute_since(mentions: Sequence[Any]) -> str | None:
    """Received time of the newest cached mention; the cache is kept newest first."""
    if not mentions:
        return None
    return get_received(mentions[0])


def _with_params(
    url: str, add: Sequence[tuple[str, str]], *, drop: Sequence[str] = ()
) -> str:
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in drop]
    query.extend(add)
    return urlunsplit(
        (parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment)
    )


def build_feed_url(feed_url: str, since: str | None) -> str:
    if not since:
        return feed_url
    return _with_params(feed_url, [("since", since)], drop=("since",))


def page_size(options: SyncOptions, feed_url: str) -> int:
    if options.per_page is not None:
        return int(options.per_page)
    for k, v in parse_qsl(urlsplit(feed_url).query):
        if k == "per-page":
            try:
                n = int(v)
            except ValueError:
                break
            if n > 0:
                return n
    return DEFAULT_PER_PAGE


def page_url(url: str, *, page: int, per_page: int) -> str:
    return _with_params(
        url,
        [("per-page", str(per_page)), ("page", str(page))],
        drop=("per-page", "page"),
    )


def merge_mentions(
    fetched: Sequence[Any], existing: Sequence[Any], options: SyncOptions
) -> list[Any]:
    """
    Put freshly fetched mentions in front of the existing ones, dedupe by source
    (first seen wins, so fetched data replaces cached data), filter and re-sort
    newest received first.
    """
    merged = remove_duplicates([*fetched, *existing])
    merged = apply_blocklist(merged, options.blocklist)
    merged = apply_allowlist(merged, options.allowlist)
    return sort_by_received(merged)


def _fetch_page(client: JSONFetcher, url: str, key: str) -> list[Any]:
    feed = client.get_json(url)

    if not isinstance(feed, Mapping) or key not in feed:
        raise FeedContractError(f"{key} was not found as a key in the response from {hostname(url)}")

    items = feed[key]
    if not isinstance(items, list):
        raise FeedContractError(f"{key} in the response from {hostname(url)} is not a list")
    return items


def fetch_mentions(
    options: SyncOptions,
    mentions: Sequence[Any],
    url: str,
    *,
    client: JSONFetcher,
    logger: RunLogger | None = None,
) -> FetchResult:
    """Request one feed page and merge it into `mentions`; never raises for feed failures."""
    safe_url = redact_url(url)
    try:
        items = _fetch_page(client, url, options.key)
    except FeedContractError as e:
        if logger is not None:
            logger.warning("feed_key_missing", url=safe_url, key=options.key, message=str(e))
        return FetchResult(
            found=0,
            mentions=list(mentions),
            failure=FetchFailure(kind="feed_contract", url=safe_url, message=str(e)),
        )
    except TransportError as e:
        if logger is not None:
            logger.warning("feed_request_failed", url=safe_url, message=str(e))
        return FetchResult(
            found=0,
            mentions=list(mentions),
            failure=FetchFailure(kind="transport", url=safe_url, message=str(e)),
        )

    merged = merge_mentions(items, mentions, options)
    if logger is not None:
        logger.info("feed_page_fetched", url=safe_url, found=len(items), total=len(merged))
    return FetchResult(found=len(items), mentions=merged)


def _load_cached(cache: AssetCache, key: str, logger: RunLogger | None) -> list[Any]:
    if not cache.is_valid(key, FOREVER):
        return []

    value = cache.load(key)
    if value is None:
        return []
    if not isinstance(value, list):
        if logger is not None:
            logger.warning("cache_value_ignored", key=key, value_type=type(value).__name__)
        return []
    return value


def _sync(
    options: SyncOptions,
    *,
    cache: AssetCache,
    client: JSONFetcher,
    logger: RunLogger | None,
    sleep_fn: SleepFn,
    feed_url: str,
) -> SyncResult:
    key = cache_key(options)

    mentions = _load_cached(cache, key, logger)
    cached_count = len(mentions)
    if logger is not None:
        logger.info("cache_loaded", key=key, count=cached_count)

    if not options.refresh and cache.is_valid(key, options.duration):
        if logger is not None:
            logger.info("cache_fresh", key=key, duration=options.duration)
        return SyncResult(mentions=mentions, cached_count=cached_count, fetched=False)

    started = time.perf_counter()
    since = compute_since(mentions)
    url = build_feed_url(feed_url, since)
    failures: list[FetchFailure] = []
    requests = 0

    if is_paginated(options, feed_url):
        per_page = page_size(options, feed_url)
        page = 0
        while True:
            fetched = fetch_mentions(
                options,
                mentions,
                page_url(url, page=page, per_page=per_page),
                client=client,
                logger=logger,
            )
            requests += 1

            if fetched.failure is not None:
                failures.append(fetched.failure)
                break
            if fetched.found == 0:
                break

            mentions = fetched.mentions
            if fetched.found < per_page:
                break

            page += 1
            if options.throttle_seconds > 0:
                sleep_fn(options.throttle_seconds)
    else:
        fetched = fetch_mentions(options, mentions, url, client=client, logger=logger)
        requests += 1
        if fetched.failure is not None:
            failures.append(fetched.failure)
        mentions = fetched.mentions

    mentions = apply_blocklist(mentions, options.blocklist)
    mentions = apply_allowlist(mentions, options.allowlist)

    cache.save(key, mentions)

    result = SyncResult(
        mentions=mentions,
        cached_count=cached_count,
        fetched=True,
        requests=requests,
        failures=tuple(failures),
    )
    if logger is not None:
        logger.info(
            "sync_completed",
            key=key,
            since=since,
            requests=requests,
            failures=len(failures),
            total=len(mentions),
            new_count=result.new_count,
            elapsed_seconds=round(time.perf_counter() - started, 3),
        )
    return result


def retrieve_mentions(
    options: SyncOptions,
    *,
    cache: AssetCache | None = None,
    client: JSONFetcher | None = None,
    logger: RunLogger | None = None,
    sleep_fn: SleepFn | None = None,
    environ: Mapping[str, str] | None = None,
) -> SyncResult:
    """
    Bring the cached mention set up to date and return it.

    Only mentions received after the newest cached one are requested. Feed
    failures are logged and leave the working set as it was; configuration
    problems raise ConfigError before any I/O.
    """
    require_options(options)
    feed_url = resolve_feed_url(options, environ=environ)

    if logger is not None:
        logger.info(
            "sync_started",
            feed=hostname(feed_url),
            refresh=options.refresh,
            options_sha256=options_sha256(options),
        )

    owned_cache: SQLiteAssetCache | None = None
    owned_client: FeedClient | None = None

    if cache is None:
        owned_cache = SQLiteAssetCache.in_directory(cache_directory(options))
        cache = owned_cache

    if client is None:
        owned_client = FeedClient(
            timeout_seconds=options.timeout_seconds,
            on_retry=_retry_logger(logger),
            sleep_fn=sleep_fn,
        )
        client = owned_client

    try:
        return _sync(
            options,
            cache=cache,
            client=client,
            logger=logger,
            sleep_fn=sleep_fn or time.sleep,
            feed_url=feed_url,
        )
    finally:
        if owned_client is not None:
            owned_client.close()
        if owned_cache is not None:
            owned_cache.close()


def _retry_logger(logger: RunLogger | None) -> OnRetryFn | None:
    if logger is None:
        return None

    def _on_retry(event: RetryEvent) -> None:
        logger.warning(
            "feed_request_retry",
            url=event.url,
            attempt=event.failure_attempt,
            max_attempts=event.max_attempts,
            delay_seconds=round(event.delay_seconds, 3),
            reason=event.reason,
            error_type=event.error_type,
        )

    return _on_retry
