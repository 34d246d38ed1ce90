"""
backend/app/providers/http_client.py

Purpose:
    Shared outbound HTTP client for upstream odds providers: bounded retries
    with exponential backoff on 5xx and network errors, plus a per-client
    circuit breaker the provider consults before each fetch.

Notes:
    - 429 is returned to the caller untouched; the provider decides whether
      to stop paginating.
    - Query strings are stripped from logged URLs (they carry filters and,
      for some providers, keys).

Dependencies:
    - httpx
    - app.config
"""

import asyncio
import logging
import time
from typing import Optional
from urllib.parse import urlparse

import httpx

from app.config import settings

logger = logging.getLogger("sharpledger.http_client")

_RETRYABLE_STATUSES = frozenset({500, 502, 503, 504})
_NETWORK_ERRORS = (httpx.TimeoutException, httpx.ConnectError, httpx.RemoteProtocolError)
_MAX_BACKOFF_SECONDS = 60.0


class CircuitBreaker:
    """closed -> open after N consecutive failures -> half-open after cooldown."""

    def __init__(self, name: str, failure_threshold: int, recovery_seconds: float):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_seconds = recovery_seconds
        self.failure_count = 0
        self._opened_at: Optional[float] = None

    @property
    def is_open(self) -> bool:
        return self._opened_at is not None

    @property
    def state(self) -> str:
        if self._opened_at is None:
            return "closed"
        if time.monotonic() - self._opened_at >= self.recovery_seconds:
            return "half_open"
        return "open"

    def record_success(self) -> None:
        if self._opened_at is not None:
            logger.info("[%s] Circuit closed again", self.name)
        self.failure_count = 0
        self._opened_at = None

    def record_failure(self) -> None:
        self.failure_count += 1
        if self.failure_count >= self.failure_threshold:
            if self._opened_at is None:
                logger.warning("[%s] Circuit OPEN after %d failures", self.name, self.failure_count)
            self._opened_at = time.monotonic()

    def can_attempt(self) -> bool:
        return self.state != "open"


def _safe_url(url: str) -> str:
    parsed = urlparse(str(url))
    return f"{parsed.scheme}://{parsed.netloc}{parsed.path}"


def _backoff(attempt: int, base: float) -> float:
    return min(base * (2 ** attempt), _MAX_BACKOFF_SECONDS)


class ResilientClient:
    """httpx.AsyncClient with retry/backoff and a circuit breaker.

    `transport` lets tests plug in an `httpx.MockTransport`.
    """

    def __init__(
        self,
        name: str,
        timeout: float = 15.0,
        headers: Optional[dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_retries: Optional[int] = None,
        backoff_base: Optional[float] = None,
    ):
        self.name = name
        self.max_retries = settings.HTTP_MAX_RETRIES if max_retries is None else max_retries
        self.backoff_base = settings.HTTP_BACKOFF_BASE_SECONDS if backoff_base is None else backoff_base
        self.circuit = CircuitBreaker(
            name, settings.CIRCUIT_FAILURE_THRESHOLD, settings.CIRCUIT_RECOVERY_SECONDS,
        )
        self._client = httpx.AsyncClient(timeout=timeout, headers=headers, transport=transport)

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Send with retries. Returns the last response, or re-raises the last network error."""
        attempts = self.max_retries + 1
        response: Optional[httpx.Response] = None
        for attempt in range(attempts):
            try:
                response = await self._client.request(method, url, **kwargs)
            except _NETWORK_ERRORS as exc:
                logger.warning(
                    "[%s] %s %s failed (attempt %d/%d): %s",
                    self.name, method, _safe_url(url), attempt + 1, attempts, exc,
                )
                if attempt + 1 == attempts:
                    raise
            else:
                if response.status_code not in _RETRYABLE_STATUSES:
                    return response
                logger.warning(
                    "[%s] %s %s returned %d (attempt %d/%d)",
                    self.name, method, _safe_url(url), response.status_code, attempt + 1, attempts,
                )
            if attempt + 1 < attempts:
                await asyncio.sleep(_backoff(attempt, self.backoff_base))

        logger.error("[%s] Giving up on %s %s after %d attempts", self.name, method, _safe_url(url), attempts)
        return response

    async def get(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()
