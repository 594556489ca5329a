"""
builder/llm/base.py
Abstract base class for completion providers, plus the provider error taxonomy
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from dataclasses import dataclass


class ProviderError(Exception):
    """
    Failure talking to the completion provider.

    ``retryable`` is False for authentication/authorization failures and
    other client errors; network trouble, throttling and 5xx are retryable.
    """

    def __init__(
        self,
        message: str,
        retryable: bool = True,
        http_status: Optional[int] = None,
    ):
        super().__init__(message)
        self.retryable = retryable
        self.http_status = http_status

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({str(self)!r}, retryable={self.retryable}, "
            f"http_status={self.http_status})"
        )


class CompletionTimeoutError(ProviderError):
    """The hard wall-clock timeout expired before the provider answered"""

    def __init__(self, message: str, timeout_seconds: Optional[float] = None):
        super().__init__(message, retryable=True, http_status=None)
        self.timeout_seconds = timeout_seconds


@dataclass
class CompletionRequest:
    """Wire request sent to the provider"""
    system_prompt: str
    user_prompt: str
    max_tokens: int
    temperature: float

    def to_messages(self) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": self.system_prompt},
            {"role": "user", "content": self.user_prompt},
        ]

    def summary(self) -> Dict[str, Any]:
        """Loggable view without prompt bodies"""
        return {
            "system_prompt_chars": len(self.system_prompt),
            "user_prompt_chars": len(self.user_prompt),
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }


class BaseCompletionClient(ABC):
    """
    One network round trip to a text-completion service.

    Implementations must not retry; retry policy belongs to the caller.
    """

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        """
        Generate raw text.

        Returns:
            The completion text

        Raises:
            ProviderError: on any failure (CompletionTimeoutError on timeout)
        """
        pass

    def get_stats(self) -> Dict[str, Any]:
        return {}
