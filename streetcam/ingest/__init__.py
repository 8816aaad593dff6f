"""Remote catalog ingestion: HTTP helper, clients and the tile loader."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

import requests

log = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 20  # seconds


@dataclass(frozen=True)
class RetryPolicy:
    """How many times a transient failure is retried, and how long to wait.

    The default never retries: a failed catalog page is simply skipped.
    """
    retries: int = 0
    backoff: float = 2.0   # seconds, multiplied by the attempt number


NO_RETRY = RetryPolicy()


def fetch_with_retry(
    url: str,
    *,
    method: str = "GET",
    params: Optional[dict] = None,
    data: Optional[dict] = None,
    headers: Optional[dict] = None,
    timeout: float = _DEFAULT_TIMEOUT,
    policy: RetryPolicy = NO_RETRY,
    session: Optional[requests.Session] = None,
) -> requests.Response:
    """Send a request to *url*, retrying transient failures per *policy*.

    Retries on connection errors, timeouts, and 5xx responses.
    Raises on non-retryable errors (4xx) immediately.
    """
    http = session or requests
    attempts = policy.retries + 1
    last_exc: Optional[Exception] = None
    for attempt in range(1, attempts + 1):
        try:
            resp = http.request(
                method, url, params=params, data=data,
                headers=headers, timeout=timeout,
            )
            if resp.status_code < 500:
                resp.raise_for_status()
                return resp
            last_exc = requests.HTTPError(
                f"HTTP {resp.status_code} from {url[:80]}", response=resp,
            )
            log.warning("HTTP %d from %s (attempt %d/%d)",
                        resp.status_code, url[:80], attempt, attempts)
        except (requests.ConnectionError, requests.Timeout) as exc:
            last_exc = exc
            log.warning("Network error on %s (attempt %d/%d): %s",
                        url[:80], attempt, attempts, exc)
        except requests.HTTPError:
            raise

        if attempt < attempts:
            time.sleep(policy.backoff * attempt)

    raise last_exc or requests.ConnectionError(f"Failed after {attempts} attempts")
