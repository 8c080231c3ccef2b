from __future__ import annotations

import json
import sys
import traceback
import uuid
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, TextIO

from .urls import redact_url


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _truncate(text: str, *, limit: int) -> str:
    s = str(text or "")
    if limit <= 0:
        return ""
    if len(s) <= limit:
        return s
    return s[: max(0, limit - 1)] + "…"


class RunLogger:
    """
    JSONL logger for sync passes.

    Writes one JSON object per line either to a file it owns or to a stream it
    was handed (stderr by default). Every record carries the site hostname so
    logs from several sites can share one stream. Credential query parameters
    in `url` are masked before writing.
    """

    def __init__(
        self,
        *,
        path: str | Path | None = None,
        stream: TextIO | None = None,
        domain: str | None = None,
        session_id: str | None = None,
    ) -> None:
        if path is not None and stream is not None:
            raise ValueError("pass either path or stream, not both")

        self._path = Path(path) if path is not None else None
        self._fp: TextIO | None = stream
        self._owns_fp = False
        self._domain = (domain or "").strip() or None
        self._session_id = (session_id or "").strip() or uuid.uuid4().hex
        self._lock = Lock()

    @classmethod
    def open(cls, path: str | Path, *, domain: str | None = None) -> "RunLogger":
        logger = cls(path=path, domain=domain)
        logger._ensure_open()
        return logger

    @classmethod
    def to_stderr(cls, *, domain: str | None = None) -> "RunLogger":
        return cls(stream=sys.stderr, domain=domain)

    def close(self) -> None:
        with self._lock:
            if self._fp is None:
                return
            try:
                self._fp.flush()
            finally:
                if self._owns_fp:
                    self._fp.close()
                    self._fp = None

    def __enter__(self) -> "RunLogger":
        self._ensure_open()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def set_domain(self, domain: str) -> None:
        d = (domain or "").strip()
        if d:
            self._domain = d

    def info(self, event: str, *, url: str | None = None, **data: Any) -> None:
        self.log("INFO", event, url=url, **data)

    def warning(self, event: str, *, url: str | None = None, **data: Any) -> None:
        self.log("WARN", event, url=url, **data)

    def error(self, event: str, *, url: str | None = None, **data: Any) -> None:
        self.log("ERROR", event, url=url, **data)

    def exception(
        self,
        event: str,
        *,
        exc: BaseException,
        url: str | None = None,
        **data: Any,
    ) -> None:
        err = {
            "type": type(exc).__name__,
            "message": _truncate(str(exc), limit=2000),
            "traceback": _truncate(
                "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
                limit=12000,
            ),
        }
        self.log("ERROR", event, url=url, error=err, **data)

    def log(self, level: str, event: str, *, url: str | None = None, **data: Any) -> None:
        record: dict[str, Any] = {
            "ts": _utc_now_iso(),
            "level": (level or "").strip().upper() or "INFO",
            "event": (event or "").strip() or "event",
            "session_id": self._session_id,
        }

        if self._domain:
            record["domain"] = self._domain

        u = redact_url((url or "").strip())
        if u:
            record["url"] = u

        if data:
            record["data"] = data

        self._write(record)

    def _ensure_open(self) -> None:
        if self._fp is not None or self._path is None:
            return

        with self._lock:
            if self._fp is not None:
                return
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._fp = self._path.open("a", encoding="utf-8", newline="\n")
            self._owns_fp = True

    def _write(self, record: dict[str, Any]) -> None:
        self._ensure_open()

        payload = json.dumps(
            record,
            ensure_ascii=False,
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )

        with self._lock:
            if self._fp is None:
                return
            self._fp.write(payload + "\n")
            self._fp.flush()
