"""httpx transport honoring GitLab rate limits, with opt-in retries."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass

import httpx

_LOG = logging.getLogger(__name__)

_RETRYABLE_STATUS_CODES = frozenset({429, 502, 503, 504})
DEFAULT_RATE_LIMIT_DELAY = 1.0


def rate_limit_delay(response: httpx.Response, *, now: float | None = None) -> float:
    """Seconds to wait after *response*.

    ``Retry-After`` (seconds) wins; GitLab's ``RateLimit-Reset`` (epoch seconds)
    is used otherwise. Missing or malformed headers give the default delay.
    """
    retry_after = response.headers.get("Retry-After")
    if retry_after is not None:
        try:
            return max(0.0, float(retry_after))
        except ValueError:
            return DEFAULT_RATE_LIMIT_DELAY

    reset = response.headers.get("RateLimit-Reset")
    if reset is not None:
        try:
            return max(0.0, float(reset) - (time.time() if now is None else now))
        except ValueError:
            return DEFAULT_RATE_LIMIT_DELAY
    return DEFAULT_RATE_LIMIT_DELAY


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 0
    base_delay: float = 1.0
    max_delay: float = 4.0
    jitter: float = 0.25

    def backoff(self, attempt: int) -> float:
        return min(self.max_delay, self.base_delay * 2**attempt) + random.uniform(0.0, self.jitter)

    def can_retry(self, attempt: int) -> bool:
        return attempt < self.max_retries


class RateLimitGate:
    """Shared pause: once closed, every request waits until the latest deadline passes."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._open = asyncio.Event()
        self._open.set()
        self._until = 0.0

    @property
    def is_open(self) -> bool:
        return self._open.is_set()

    async def wait(self) -> None:
        await self._open.wait()

    async def pause(self, seconds: float) -> None:
        async with self._lock:
            until = time.monotonic() + max(0.0, seconds)
            if until <= self._until:
                return
            self._until = until
            self._open.clear()

        await asyncio.sleep(max(0.0, self._until - time.monotonic()))

        async with self._lock:
            if time.monotonic() >= self._until:
                self._open.set()


class RetryingTransport(httpx.AsyncBaseTransport):
    """Wraps an httpx transport for the GitLab API.

    A 429 closes the shared :class:`RateLimitGate` for the advertised delay, so
    concurrent fetches back off together. Retries of 429/502/503/504 and
    transport errors happen only when ``max_retries`` is positive.
    """

    def __init__(
        self,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        max_retries: int = 0,
        gate: RateLimitGate | None = None,
    ) -> None:
        self._transport = transport or httpx.AsyncHTTPTransport()
        self._policy = RetryPolicy(max_retries=max_retries)
        self._gate = gate or RateLimitGate()

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    @property
    def gate(self) -> RateLimitGate:
        return self._gate

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        attempt = 0
        while True:
            await self._gate.wait()
            try:
                response = await self._transport.handle_async_request(request)
            except httpx.TransportError as exc:
                if not self._policy.can_retry(attempt):
                    raise
                _LOG.warning("Transport error on %s: %s", request.url.path, exc)
                await self._backoff(attempt)
                attempt += 1
                continue

            if response.status_code == 429:
                delay = rate_limit_delay(response)
                _LOG.warning("Rate limited by GitLab, pausing %.1fs", delay, extra={"url": str(request.url)})
                await self._gate.pause(delay)
            elif response.status_code not in _RETRYABLE_STATUS_CODES:
                return response

            if not self._policy.can_retry(attempt):
                return response
            await response.aclose()
            await self._backoff(attempt)
            attempt += 1

    async def aclose(self) -> None:
        await self._transport.aclose()

    async def _backoff(self, attempt: int) -> None:
        _LOG.warning("Retrying GitLab request (attempt %d of %d)", attempt + 1, self._policy.max_retries)
        await asyncio.sleep(self._policy.backoff(attempt))
