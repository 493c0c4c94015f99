"""GET requests with a timeout and exponential backoff for lookup services."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import requests

from errors import SourceLookupError

LOGGER = logging.getLogger(__name__)

USER_AGENT = "citation-verifier/0.1 (+https://github.com/)"

HttpGet = Callable[..., requests.Response]


def is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


def get_with_retry(
    url: str,
    *,
    source: str,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    timeout: float,
    attempts: int,
    backoff_base: float,
    backoff_ceiling: float,
    http_get: HttpGet | None = None,
    sleep: Callable[[float], None] | None = None,
) -> requests.Response | None:
    """Fetch ``url`` and return the successful response.

    Returns None for a non-retryable 4xx ("no match"). 5xx, 429 and network
    errors are retried up to ``attempts`` times, sleeping
    ``min(backoff_base * 2**i, backoff_ceiling)`` between tries; when the budget
    runs out SourceLookupError is raised.
    """
    http_get = http_get or requests.get
    sleep = sleep or time.sleep
    merged_headers = {"User-Agent": USER_AGENT}
    if headers:
        merged_headers.update(headers)

    last_error = "no attempts made"
    for attempt in range(attempts):
        try:
            response = http_get(url, params=params, headers=merged_headers, timeout=timeout)
        except requests.RequestException as exc:
            last_error = f"request error: {exc}"
        else:
            status = response.status_code
            if status < 400:
                return response
            if not is_retryable_status(status):
                LOGGER.debug("%s returned HTTP %s for %s; treating as no match", source, status, url)
                return None
            last_error = f"HTTP {status}"

        if attempt < attempts - 1:
            delay = min(backoff_base * (2 ** attempt), backoff_ceiling)
            LOGGER.warning(
                "%s lookup failed (%s) on attempt %s/%s; retrying in %.2fs",
                source,
                last_error,
                attempt + 1,
                attempts,
                delay,
            )
            sleep(delay)

    raise SourceLookupError(source, f"failed after {attempts} attempts: {last_error}")
