"""Shared HTTP client and retry policy for backend and catalog requests."""

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from watchtrack.core.config import Settings

RETRY_STATUSES = {429, 500, 502, 503, 504}


def build_client(settings: Settings, base_url: str | None = None) -> httpx.AsyncClient:
    """Create an async client honouring the configured timeout and proxy."""
    return httpx.AsyncClient(
        base_url=base_url or settings.backend_base_url,
        timeout=settings.request_timeout,
        proxy=settings.proxy,
        headers={"Accept": "application/json"},
        follow_redirects=True,
    )


def is_transient(exc: BaseException) -> bool:
    """Connection problems, timeouts, 429 and 5xx are worth another attempt."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRY_STATUSES
    return isinstance(exc, httpx.TransportError)


def retrying(retries: int, wait=None) -> AsyncRetrying:
    """Retry controller for ``retries`` extra attempts on transient errors.

    Progress writes set an absolute watched value, so replaying a PUT/POST
    after a dropped connection or a 5xx is safe.
    """
    return AsyncRetrying(
        stop=stop_after_attempt(retries + 1),
        wait=wait if wait is not None else wait_exponential(multiplier=0.5, max=8),
        retry=retry_if_exception(is_transient),
        reraise=True,
    )
