"""
Rate Limiter - Pace outbound calls to the completion provider.

The provider enforces a per-account ceiling on requests per second and
tokens per minute. This limiter is a gate, not a scheduler: callers await
``acquire()`` before each request and are released once both budgets allow it.

One instance should be shared by every pipeline talking to the same account.
"""
import time
import asyncio
from loguru import logger
from typing import Any, Awaitable, Callable, Dict, Optional

from builder.config import settings


Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[Any]]


class RateLimiter:
    """
    Minimum-interval plus rolling token window limiter.

    Features:
    - Minimum gap between requests (1/rps plus a safety margin)
    - Token budget per fixed window, reset when the window rolls over
    - Injectable clock and sleep for simulated-time tests
    - Safe to share across concurrent callers (asyncio.Lock)
    """

    def __init__(
        self,
        requests_per_second: Optional[float] = None,
        tokens_per_minute: Optional[int] = None,
        safety_margin: Optional[float] = None,
        window_seconds: Optional[float] = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        self.requests_per_second = (
            settings.rate_limit_requests_per_second if requests_per_second is None else requests_per_second
        )
        self.tokens_per_minute = (
            settings.rate_limit_tokens_per_minute if tokens_per_minute is None else tokens_per_minute
        )
        self.safety_margin = (
            settings.rate_limit_safety_margin if safety_margin is None else safety_margin
        )
        self.window_seconds = (
            settings.rate_limit_window_seconds if window_seconds is None else window_seconds
        )

        if self.requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")
        if self.tokens_per_minute <= 0:
            raise ValueError("tokens_per_minute must be positive")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.min_interval = (1.0 / self.requests_per_second) * (1.0 + self.safety_margin)

        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()

        self._last_request_at: Optional[float] = None
        self._window_started_at = clock()
        self._tokens_in_window = 0

        # Stats
        self.total_requests = 0
        self.total_tokens = 0
        self.total_wait_seconds = 0.0
        self.window_resets = 0

        logger.debug(
            f"Rate limiter ready: min_interval={self.min_interval:.3f}s, "
            f"tokens_per_window={self.tokens_per_minute}, window={self.window_seconds}s"
        )

    async def acquire(self, estimated_tokens: int = 0) -> float:
        """
        Wait until the next request may be issued.

        Args:
            estimated_tokens: Expected token usage of the request

        Returns:
            Seconds spent waiting
        """
        estimated_tokens = max(0, int(estimated_tokens))

        async with self._lock:
            waited = 0.0
            now = self._clock()

            # Roll the token window over if it has elapsed on its own
            if now - self._window_started_at >= self.window_seconds:
                self._reset_window(now)

            # Token budget exhausted - wait for the window to roll over
            if (
                self._tokens_in_window > 0
                and self._tokens_in_window + estimated_tokens > self.tokens_per_minute
            ):
                delay = self.window_seconds - (now - self._window_started_at)
                if delay > 0:
                    logger.info(
                        f"Token budget exhausted ({self._tokens_in_window}/"
                        f"{self.tokens_per_minute}), waiting {delay:.2f}s for window reset"
                    )
                    await self._sleep(delay)
                    waited += delay
                now = self._clock()
                self._reset_window(now)

            # Minimum interval between requests
            if self._last_request_at is not None:
                elapsed = now - self._last_request_at
                if elapsed < self.min_interval:
                    delay = self.min_interval - elapsed
                    logger.debug(f"Rate limit pacing: waiting {delay:.3f}s")
                    await self._sleep(delay)
                    waited += delay
                    now = self._clock()

            self._last_request_at = now
            self._tokens_in_window += estimated_tokens

            self.total_requests += 1
            self.total_tokens += estimated_tokens
            self.total_wait_seconds += waited

            return waited

    def _reset_window(self, now: float) -> None:
        self._window_started_at = now
        self._tokens_in_window = 0
        self.window_resets += 1

    def stats(self) -> Dict[str, Any]:
        """Current limiter counters"""
        return {
            "min_interval_seconds": self.min_interval,
            "tokens_per_minute": self.tokens_per_minute,
            "tokens_in_window": self._tokens_in_window,
            "total_requests": self.total_requests,
            "total_tokens": self.total_tokens,
            "total_wait_seconds": round(self.total_wait_seconds, 3),
            "window_resets": self.window_resets,
        }
