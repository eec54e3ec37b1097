import asyncio
import logging
from typing import Optional
from urllib.parse import urlparse

import httpx

logger = logging.getLogger("pickem.http_client")

# Statuses worth another attempt when retries are enabled
_RETRYABLE_STATUSES = {429, 500, 502, 503, 504}


def _parse_retry_after(response: httpx.Response) -> Optional[float]:
    """Extract wait time from Retry-After or X-RateLimit-Retry-After headers."""
    for header in ("retry-after", "x-ratelimit-retry-after"):
        value = response.headers.get(header)
        if value is None:
            continue
        try:
            return float(value)
        except (ValueError, TypeError):
            continue
    return None


def _safe_url(url: str) -> str:
    """Strip query params for logging."""
    parsed = urlparse(str(url))
    return f"{parsed.scheme}://{parsed.netloc}{parsed.path}"


class ResilientClient:
    """httpx.AsyncClient wrapper with optional retry and exponential backoff.

    With ``max_retries=0`` every request is attempted exactly once and the
    caller owns retry policy (the scheduler re-runs the job on its next tick).
    """

    def __init__(
        self,
        name: str,
        timeout: float = 15.0,
        max_retries: int = 0,
        base_delay: float = 2.0,
    ):
        self._client = httpx.AsyncClient(timeout=timeout)
        self._name = name
        self._max_retries = max(0, max_retries)
        self._base_delay = base_delay

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Execute an HTTP request, retrying transient failures if configured."""
        last_exc: Optional[Exception] = None
        last_resp: Optional[httpx.Response] = None
        attempts = self._max_retries + 1

        for attempt in range(attempts):
            try:
                resp = await self._client.request(method, url, **kwargs)

                if resp.status_code not in _RETRYABLE_STATUSES:
                    return resp

                last_resp = resp
                logger.warning(
                    "[%s] Status %d on %s %s (attempt %d/%d)",
                    self._name, resp.status_code, method, _safe_url(url),
                    attempt + 1, attempts,
                )

                if attempt < self._max_retries:
                    delay = _parse_retry_after(resp)
                    if delay is None:
                        delay = self._base_delay * (2 ** attempt)
                    await asyncio.sleep(min(delay, 60.0))

            except httpx.TransportError as exc:
                last_exc = exc
                logger.warning(
                    "[%s] Network error on %s %s (attempt %d/%d): %s",
                    self._name, method, _safe_url(url), attempt + 1, attempts, exc,
                )
                if attempt < self._max_retries:
                    await asyncio.sleep(self._base_delay * (2 ** attempt))

        if last_resp is not None:
            return last_resp

        raise last_exc  # type: ignore[misc]

    async def get(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()
