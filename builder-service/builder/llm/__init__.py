"""
builder/llm/__init__.py
Completion client exports
"""
from .base import (
    BaseCompletionClient,
    CompletionRequest,
    CompletionTimeoutError,
    ProviderError,
)
from .openai_compatible_provider import OpenAICompatibleClient, translate_provider_exception

__all__ = [
    "BaseCompletionClient",
    "CompletionRequest",
    "CompletionTimeoutError",
    "ProviderError",
    "OpenAICompatibleClient",
    "translate_provider_exception",
]
