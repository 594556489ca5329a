"""
Tests for the retry policy and combinator.
"""
import pytest

from builder.llm.base import CompletionTimeoutError, ProviderError
from builder.services.generation.response_parser import ParseFailure
from builder.utils.retry import RetryPolicy, default_is_retryable, retry
from conftest import FakeClock


class Flaky:
    """Fails with the scripted errors, then returns 'ok'"""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


def test_delay_doubles_and_caps():
    policy = RetryPolicy(max_attempts=5, base_delay=2.0, max_delay=10.0)

    assert [policy.delay_for(n) for n in range(1, 5)] == [2.0, 4.0, 8.0, 10.0]


def test_policy_validation():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
    with pytest.raises(ValueError):
        RetryPolicy(base_delay=-1.0)


def test_default_retryability():
    assert default_is_retryable(ProviderError("boom")) is True
    assert default_is_retryable(ProviderError("denied", retryable=False)) is False
    assert default_is_retryable(CompletionTimeoutError("slow")) is True
    assert default_is_retryable(ParseFailure("empty")) is True
    assert default_is_retryable(KeyError("bug")) is False


@pytest.mark.asyncio
async def test_succeeds_after_transient_failures():
    clock = FakeClock()
    operation = Flaky(ProviderError("503"), ProviderError("503"))
    policy = RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=8.0)

    result = await retry(operation, policy, sleep=clock.sleep)

    assert result == "ok"
    assert operation.calls == 3
    assert clock.sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_reraises_last_error_when_exhausted():
    clock = FakeClock()
    last = ProviderError("third")
    operation = Flaky(ProviderError("first"), ProviderError("second"), last)
    policy = RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=8.0)

    with pytest.raises(ProviderError) as exc_info:
        await retry(operation, policy, sleep=clock.sleep)

    assert exc_info.value is last
    assert operation.calls == 3
    assert len(clock.sleeps) == 2


@pytest.mark.asyncio
async def test_non_retryable_error_aborts_immediately():
    clock = FakeClock()
    operation = Flaky(ProviderError("401", retryable=False, http_status=401))
    policy = RetryPolicy(max_attempts=5, base_delay=1.0, max_delay=8.0)

    with pytest.raises(ProviderError):
        await retry(operation, policy, sleep=clock.sleep)

    assert operation.calls == 1
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_on_retry_receives_attempt_and_delay():
    clock = FakeClock()
    seen = []
    operation = Flaky(ParseFailure("empty"))
    policy = RetryPolicy(max_attempts=2, base_delay=3.0, max_delay=8.0)

    await retry(
        operation,
        policy,
        sleep=clock.sleep,
        on_retry=lambda attempt, error, delay: seen.append((attempt, type(error), delay)),
    )

    assert seen == [(1, ParseFailure, 3.0)]


@pytest.mark.asyncio
async def test_should_continue_stops_before_next_attempt():
    clock = FakeClock()
    operation = Flaky(ProviderError("a"), ProviderError("b"))
    policy = RetryPolicy(max_attempts=5, base_delay=1.0, max_delay=8.0)

    with pytest.raises(ProviderError):
        await retry(operation, policy, sleep=clock.sleep, should_continue=lambda: False)

    assert operation.calls == 1
