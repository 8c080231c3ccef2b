from __future__ import annotations

import json
import math
import sqlite3
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Protocol

from .duration import parse_duration
from .errors import StorageError
from .storage_schema import initialize_sqlite

CACHE_FILENAME = "webmentions.sqlite"

NowFn = Callable[[], float]


class AssetCache(Protocol):
    def is_valid(self, key: str, duration: str | float) -> bool: ...

    def load(self, key: str) -> Any | None: ...

    def save(self, key: str, value: Any) -> None: ...


def _json_dumps(value: Any) -> str:
    return json.dumps(
        value,
        ensure_ascii=False,
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )


class SQLiteAssetCache:
    """
    Key-value cache of JSON values with a per-key save time.

    Freshness is judged against the save time only; values never expire on
    their own, so a stale value is still loadable.
    """

    def __init__(self, conn: sqlite3.Connection, *, now_fn: NowFn | None = None) -> None:
        self._conn = conn
        self._conn.row_factory = sqlite3.Row
        self._now = now_fn or time.time

    @classmethod
    def open(cls, path: str | Path, *, now_fn: NowFn | None = None) -> "SQLiteAssetCache":
        db_path = str(path)
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            conn = sqlite3.connect(db_path)
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to open sqlite database: {db_path}: {e}") from e

        try:
            initialize_sqlite(conn)
        except sqlite3.DatabaseError as e:
            conn.close()
            raise StorageError(f"Failed to initialize sqlite schema: {e}") from e

        return cls(conn, now_fn=now_fn)

    @classmethod
    def in_directory(
        cls, directory: str | Path, *, now_fn: NowFn | None = None
    ) -> "SQLiteAssetCache":
        return cls.open(Path(directory) / CACHE_FILENAME, now_fn=now_fn)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "SQLiteAssetCache":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def cached_at(self, key: str) -> float | None:
        try:
            row = self._conn.execute(
                "SELECT cached_at FROM assets WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to read cache entry {key!r}: {e}") from e
        return float(row["cached_at"]) if row is not None else None

    def is_valid(self, key: str, duration: str | float) -> bool:
        saved = self.cached_at(key)
        if saved is None:
            return False
        window = parse_duration(duration)
        if math.isinf(window):
            return True
        return (self._now() - saved) < window

    def load(self, key: str) -> Any | None:
        try:
            row = self._conn.execute(
                "SELECT value_json FROM assets WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to read cache entry {key!r}: {e}") from e

        if row is None:
            return None
        try:
            return json.loads(row["value_json"])
        except ValueError as e:
            raise StorageError(f"Cache entry {key!r} is not valid JSON") from e

    def save(self, key: str, value: Any) -> None:
        now = float(self._now())
        now_iso = datetime.fromtimestamp(now, tz=timezone.utc).isoformat()

        try:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO assets(key, value_json, cached_at, cached_at_iso)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                      value_json = excluded.value_json,
                      cached_at = excluded.cached_at,
                      cached_at_iso = excluded.cached_at_iso
                    """.strip(),
                    (key, _json_dumps(value), now, now_iso),
                )
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to save cache entry {key!r}: {e}") from e
