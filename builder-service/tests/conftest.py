"""
Shared fakes: simulated clock, scripted completion client, progress sink.
"""
import json
from typing import Any, Dict, List, Mapping, Sequence, Union

import pytest

from builder.llm.base import BaseCompletionClient
from builder.models.schemas.progress import ProgressEvent, ProgressKind
from builder.utils.rate_limiter import RateLimiter
from builder.utils.retry import RetryPolicy


class FakeClock:
    """Monotonic clock that only moves when something sleeps"""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += max(0.0, seconds)

    def advance(self, seconds: float) -> None:
        self.now += seconds


Scripted = Union[str, BaseException]


class ScriptedCompletionClient(BaseCompletionClient):
    """
    Returns (or raises) scripted responses in call order.

    The last entry repeats once the script runs out.
    """

    def __init__(self, responses: Sequence[Scripted]):
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        self.calls.append({
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "max_tokens": max_tokens,
            "temperature": temperature,
        })
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        response = self.responses[index]
        if isinstance(response, BaseException):
            raise response
        return response

    def get_stats(self) -> Dict[str, Any]:
        return {"calls": len(self.calls)}


class ProgressRecorder:
    """Progress callback that keeps every event"""

    def __init__(self):
        self.events: List[ProgressEvent] = []

    def __call__(self, event: ProgressEvent) -> None:
        self.events.append(event)

    def of_kind(self, kind: ProgressKind) -> List[ProgressEvent]:
        return [event for event in self.events if event.kind == kind]


def files_json(files: Mapping[str, str]) -> str:
    """Encode a file set in the structured response convention"""
    return json.dumps({"files": dict(files)})


def delimited(files: Mapping[str, str]) -> str:
    """Encode a file set as ===FILE=== blocks"""
    return "\n".join(
        f"===FILE: {path}===\n{content}\n===END===" for path, content in files.items()
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fast_limiter(clock):
    return RateLimiter(
        requests_per_second=1.0,
        tokens_per_minute=1_000_000,
        safety_margin=0.1,
        window_seconds=60.0,
        clock=clock,
        sleep=clock.sleep,
    )


@pytest.fixture
def fast_policy():
    return RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=4.0)


@pytest.fixture
def recorder():
    return ProgressRecorder()

