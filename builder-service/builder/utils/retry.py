"""
Retry policy and a generic async retry combinator.

Backoff is bounded exponential: the delay doubles per attempt, starting at
``base_delay`` and capped at ``max_delay``. Non-retryable errors abort
immediately without consuming further attempts.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, TypeVar

from loguru import logger

from builder.config import settings

T = TypeVar("T")


def default_is_retryable(error: BaseException) -> bool:
    """
    Errors opt in to retries through a ``retryable`` attribute.

    ProviderError carries it per instance; ParseFailure is always retryable.
    Anything else (programming errors included) is not retried.
    """
    return bool(getattr(error, "retryable", False))


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff settings"""
    max_attempts: int = field(default_factory=lambda: settings.retry_max_attempts)
    base_delay: float = field(default_factory=lambda: settings.retry_base_delay)
    max_delay: float = field(default_factory=lambda: settings.retry_max_delay)
    is_retryable: Callable[[BaseException], bool] = default_is_retryable

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be non-negative")

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given (1-based) failed attempt"""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)


async def retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
    should_continue: Optional[Callable[[], bool]] = None,
) -> T:
    """
    Call ``operation`` until it succeeds or the policy gives up.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        policy: Attempt ceiling, backoff and retryability rules
        sleep: Awaitable sleep (injected in tests)
        on_retry: Called with (attempt, error, delay) before each backoff
        should_continue: Checked before every retry; False stops early

    Returns:
        The operation's result

    Raises:
        The last error raised by ``operation``
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except Exception as e:
            if not policy.is_retryable(e):
                logger.debug(f"Non-retryable error on attempt {attempt}: {type(e).__name__}")
                raise

            if attempt >= policy.max_attempts:
                logger.warning(
                    f"Giving up after {attempt} attempts: {type(e).__name__}: {e}"
                )
                raise

            delay = policy.delay_for(attempt)

            if on_retry is not None:
                on_retry(attempt, e, delay)

            await sleep(delay)

            if should_continue is not None and not should_continue():
                logger.debug(f"Retry loop stopped before attempt {attempt + 1}")
                raise
