"""
Tests for the rate limiter under a simulated clock.
"""
import asyncio

import pytest

from builder.config import settings
from builder.utils.rate_limiter import RateLimiter
from conftest import FakeClock


def make_limiter(clock: FakeClock, **overrides) -> RateLimiter:
    options = dict(
        requests_per_second=2.0,
        tokens_per_minute=10_000,
        safety_margin=0.1,
        window_seconds=60.0,
    )
    options.update(overrides)
    return RateLimiter(clock=clock, sleep=clock.sleep, **options)


def test_min_interval_includes_safety_margin(clock):
    limiter = make_limiter(clock)
    assert limiter.min_interval == pytest.approx(0.55)


@pytest.mark.parametrize("field,value", [
    ("requests_per_second", -1.0),
    ("requests_per_second", 0),
    ("tokens_per_minute", -5),
    ("tokens_per_minute", 0),
    ("window_seconds", 0),
])
def test_rejects_non_positive_limits(clock, field, value):
    with pytest.raises(ValueError):
        make_limiter(clock, **{field: value})


def test_omitted_limits_come_from_settings(clock):
    limiter = RateLimiter(clock=clock, sleep=clock.sleep)

    assert limiter.requests_per_second == settings.rate_limit_requests_per_second
    assert limiter.tokens_per_minute == settings.rate_limit_tokens_per_minute
    assert limiter.window_seconds == settings.rate_limit_window_seconds


@pytest.mark.asyncio
async def test_first_acquire_does_not_wait(clock):
    limiter = make_limiter(clock)

    waited = await limiter.acquire(100)

    assert waited == 0.0
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_consecutive_acquires_respect_min_interval(clock):
    limiter = make_limiter(clock)
    completed_at = []

    for _ in range(50):
        await limiter.acquire(10)
        completed_at.append(clock())

    gaps = [b - a for a, b in zip(completed_at, completed_at[1:])]
    assert len(gaps) == 49
    assert all(gap >= limiter.min_interval - 1e-9 for gap in gaps)


@pytest.mark.asyncio
async def test_no_wait_when_caller_is_already_slow(clock):
    limiter = make_limiter(clock)

    await limiter.acquire()
    clock.advance(5.0)
    waited = await limiter.acquire()

    assert waited == 0.0


@pytest.mark.asyncio
async def test_token_budget_waits_for_window_reset(clock):
    limiter = make_limiter(clock, tokens_per_minute=1000)

    await limiter.acquire(800)
    clock.advance(10.0)
    waited = await limiter.acquire(300)

    assert waited == pytest.approx(50.0)
    stats = limiter.stats()
    assert stats["tokens_in_window"] == 300
    assert stats["window_resets"] == 1


@pytest.mark.asyncio
async def test_oversized_first_request_is_not_blocked(clock):
    limiter = make_limiter(clock, tokens_per_minute=1000)

    waited = await limiter.acquire(5000)

    assert waited == 0.0


@pytest.mark.asyncio
async def test_window_rolls_over_on_its_own(clock):
    limiter = make_limiter(clock, tokens_per_minute=1000)

    await limiter.acquire(900)
    clock.advance(61.0)
    waited = await limiter.acquire(900)

    assert waited == 0.0
    assert limiter.stats()["tokens_in_window"] == 900


@pytest.mark.asyncio
async def test_shared_limiter_serializes_concurrent_callers(clock):
    limiter = make_limiter(clock)
    completed_at = []

    async def caller():
        await limiter.acquire(1)
        completed_at.append(clock())

    await asyncio.gather(*(caller() for _ in range(10)))

    completed_at.sort()
    gaps = [b - a for a, b in zip(completed_at, completed_at[1:])]
    assert all(gap >= limiter.min_interval - 1e-9 for gap in gaps)
    assert limiter.stats()["total_requests"] == 10
