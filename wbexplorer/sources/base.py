"""Shared HTTP plumbing for reading the split files from a static host.

Request/response handling lives here so the static host source stays small
and every fetch logs and retries the same way.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
import logging
import time
import requests
from requests import Response
from wbexplorer.config import config

logger = logging.getLogger(__name__)


@dataclass
class RawFetchResult:
    """Normalized representation of one GET against the static host.

    Carries the URL, status, timing and raw body so a failed fetch can be
    replayed or inspected without re-running the UI.
    """

    url: str
    status_code: Optional[int]
    ok: bool
    error: Optional[str]
    duration_ms: int
    payload_text: Optional[str]
    fetched_at_utc: str


def _should_retry(resp: Response) -> bool:
    return resp.status_code >= 500 or resp.status_code == 429


def _do_request(url: str) -> tuple[Optional[Response], Optional[str], int]:
    """Perform a GET request with bounded retries and basic diagnostics.

    Returns the ``requests.Response`` (if any), an error message (``None`` on
    success) and the total duration in milliseconds. Connection errors and
    5xx/429 responses are retried up to ``MAX_RETRIES`` times with a linear
    backoff; other responses are returned as they are.
    """

    headers = {"User-Agent": config.USER_AGENT}
    start = time.time()
    resp: Optional[Response] = None
    error = None
    for attempt in range(config.MAX_RETRIES + 1):
        try:
            logger.debug("GET %s attempt=%s", url, attempt + 1)
            resp = requests.get(url, headers=headers, timeout=config.REQUEST_TIMEOUT)
            logger.debug("Response %s in %sms", resp.status_code, int((time.time() - start) * 1000))
            if resp.ok:
                return resp, None, int((time.time() - start) * 1000)
            error = f"HTTP {resp.status_code}: {resp.reason}"
            if not _should_retry(resp):
                break
        except requests.RequestException as exc:
            error = str(exc)
        if attempt < config.MAX_RETRIES:
            logger.warning("Request error (attempt %s/%s): %s", attempt + 1, config.MAX_RETRIES + 1, error)
            time.sleep(config.RETRY_BACKOFF_SECONDS * (1 + attempt))
    duration_ms = int((time.time() - start) * 1000)
    logger.error("Failed GET %s after %sms: %s", url, duration_ms, error)
    return resp, error, duration_ms


def fetch_text(url: str) -> RawFetchResult:
    now = datetime.now(timezone.utc).isoformat()
    resp, error, duration_ms = _do_request(url)
    ok = error is None and resp is not None
    return RawFetchResult(
        url=url,
        status_code=resp.status_code if resp is not None else None,
        ok=ok,
        error=error,
        duration_ms=duration_ms,
        payload_text=resp.text if resp is not None and ok else None,
        fetched_at_utc=now,
    )
