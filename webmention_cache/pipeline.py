from __future__ import annotations

from threading import Lock
from typing import Mapping

from .config_schema import SyncOptions
from .errors import MalformedRecordError
from .grouping import TargetGroups, group_by_target
from .mention import Mention
from .query import TypeFilter, get_webmentions
from .retry import SleepFn
from .run_log import RunLogger
from .storage import AssetCache
from .sync import JSONFetcher, SyncResult, retrieve_mentions


class MentionPipeline:
    """
    One sync pass plus the grouped view built from it.

    The first call to `sync()` or `groups()` does the work; later calls, from
    any thread, get the same result until `clear()` is called. Nothing is
    recomputed when the cache changes underneath.
    """

    def __init__(
        self,
        options: SyncOptions,
        *,
        cache: AssetCache | None = None,
        client: JSONFetcher | None = None,
        logger: RunLogger | None = None,
        sleep_fn: SleepFn | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.options = options
        self._cache = cache
        self._client = client
        self._logger = logger
        self._sleep_fn = sleep_fn
        self._environ = environ

        self._lock = Lock()
        self._result: SyncResult | None = None
        self._groups: TargetGroups | None = None

    def sync(self) -> SyncResult:
        with self._lock:
            if self._result is None:
                self._result = retrieve_mentions(
                    self.options,
                    cache=self._cache,
                    client=self._client,
                    logger=self._logger,
                    sleep_fn=self._sleep_fn,
                    environ=self._environ,
                )
            return self._result

    def groups(self) -> TargetGroups:
        result = self.sync()
        with self._lock:
            if self._groups is None:
                self._groups = group_by_target(
                    result.mentions,
                    url_replacements=self.options.url_replacements,
                    logger=self._logger,
                )
            return self._groups

    def by_url(self) -> dict[str, list[Mention]]:
        return self.groups().by_url

    def all(self) -> list[Mention]:
        return self.groups().all()

    @property
    def malformed(self) -> list[MalformedRecordError]:
        return self.groups().malformed

    def get_webmentions(self, url: str, types: TypeFilter = None) -> list[Mention]:
        return get_webmentions(self.by_url(), self.options, url, types, logger=self._logger)

    def clear(self) -> None:
        with self._lock:
            self._result = None
            self._groups = None
