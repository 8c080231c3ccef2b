from __future__ import annotations

import requests


def _retry_after_seconds(response: requests.Response | None) -> float | None:
    if response is None:
        return None
    value = (response.headers.get("Retry-After") or "").strip()
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        # HTTP-date form is not worth parsing for a politeness delay.
        return None
    return seconds if seconds >= 0 else None


def is_retryable_http_exception(exc: BaseException) -> tuple[bool, float | None, str | None]:
    """
    Feed retry policy:
    - connection errors and timeouts
    - HTTP 429 (honouring Retry-After)
    - HTTP 500+
    """
    if isinstance(exc, requests.HTTPError):
        response = exc.response
        code = response.status_code if response is not None else None
        reason = f"http_{code}" if code is not None else "http_status"
        if code == 429:
            return True, _retry_after_seconds(response), reason
        if isinstance(code, int) and code >= 500:
            return True, _retry_after_seconds(response), reason
        return False, None, reason

    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return True, None, "network_error"

    if isinstance(exc, (ConnectionError, TimeoutError)):
        return True, None, "network_error"

    return False, None, None
