"""
builder/llm/openai_compatible_provider.py
Completion client for any OpenAI-compatible chat completions API (Mistral by default)
"""
import logging
import asyncio
from typing import Any, Dict, Optional
from datetime import datetime

from openai import (
    AsyncOpenAI,
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AuthenticationError,
    PermissionDeniedError,
)

from builder.config import settings
from .base import BaseCompletionClient, CompletionRequest, CompletionTimeoutError, ProviderError

logger = logging.getLogger(__name__)

# 4xx statuses that are worth another attempt
RETRYABLE_CLIENT_STATUSES = {408, 409, 429}


def translate_provider_exception(error: Exception) -> ProviderError:
    """Map an SDK exception onto ProviderError with the right retryability"""
    if isinstance(error, ProviderError):
        return error

    if isinstance(error, APITimeoutError):
        return CompletionTimeoutError(f"Provider request timed out: {error}")

    if isinstance(error, APIConnectionError):
        return ProviderError(f"Provider connection failed: {error}", retryable=True)

    if isinstance(error, (AuthenticationError, PermissionDeniedError)):
        return ProviderError(
            f"Provider rejected credentials: {error.message}",
            retryable=False,
            http_status=error.status_code,
        )

    if isinstance(error, APIStatusError):
        status = error.status_code
        retryable = status >= 500 or status in RETRYABLE_CLIENT_STATUSES
        return ProviderError(
            f"Provider returned HTTP {status}: {error.message}",
            retryable=retryable,
            http_status=status,
        )

    return ProviderError(f"Unexpected provider failure: {type(error).__name__}: {error}", retryable=True)


class OpenAICompatibleClient(BaseCompletionClient):

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        model: Optional[str] = None,
        request_timeout: Optional[float] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.api_url = api_url or settings.completion_api_url
        self.model = model or settings.completion_model
        self.api_key = api_key or settings.completion_api_key
        self.request_timeout = request_timeout or settings.completion_timeout

        # Stats
        self.total_requests = 0
        self.successful_requests = 0
        self.failed_requests = 0
        self.timeouts = 0

        if client is None and not self.api_key:
            raise ValueError("Completion API key (APP_COMPLETION_API_KEY) is required")

        # base_url strips trailing /chat/completions if present
        base_url = self.api_url.rstrip("/")
        if base_url.endswith("/chat/completions"):
            base_url = base_url[: -len("/chat/completions")]
        self.base_url = base_url

        self._client = client or AsyncOpenAI(
            api_key=self.api_key,
            base_url=base_url,
            timeout=self.request_timeout,
            max_retries=0,  # Retries belong to the pipeline
        )

        logger.info(
            f"Completion client initialized (OpenAI SDK): model={self.model}, "
            f"base_url={base_url}, timeout={self.request_timeout}s"
        )

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        request = CompletionRequest(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            max_tokens=max_tokens,
            temperature=max(0.0, min(2.0, temperature)),
        )
        self.total_requests += 1
        start = datetime.now()

        try:
            content = await asyncio.wait_for(
                self._make_request(request),
                timeout=self.request_timeout,
            )
        except asyncio.TimeoutError as e:
            self.failed_requests += 1
            self.timeouts += 1
            logger.warning(f"Completion timed out after {self.request_timeout}s")
            raise CompletionTimeoutError(
                f"No response within {self.request_timeout}s",
                timeout_seconds=self.request_timeout,
            ) from e
        except Exception as e:
            self.failed_requests += 1
            error = translate_provider_exception(e)
            if isinstance(error, CompletionTimeoutError):
                self.timeouts += 1
            logger.warning(
                f"Completion failed: {error} (retryable={error.retryable}, "
                f"status={error.http_status})"
            )
            raise error from e

        if not content.strip():
            self.failed_requests += 1
            logger.warning("Completion returned empty content")
            raise ProviderError("Provider returned an empty completion", retryable=True)

        self.successful_requests += 1
        elapsed = (datetime.now() - start).total_seconds()
        logger.info(f"Completion success: chars={len(content)}, time={elapsed:.2f}s")
        return content

    async def _make_request(self, request: CompletionRequest) -> str:
        logger.debug(f"Completion request: {request.summary()}")

        completion = await self._client.chat.completions.create(
            model=self.model,
            messages=request.to_messages(),
            temperature=request.temperature,
            max_tokens=request.max_tokens,
        )

        if not completion.choices:
            return ""

        choice = completion.choices[0]
        usage = completion.usage
        logger.debug(
            f"Completion finish_reason={choice.finish_reason}, "
            f"tokens={usage.total_tokens if usage else '?'}"
        )
        return choice.message.content or ""

    def get_stats(self) -> Dict[str, Any]:
        return {
            "provider": "openai-compatible",
            "model": self.model,
            "base_url": self.base_url,
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "timeouts": self.timeouts,
            "success_rate": (
                self.successful_requests / self.total_requests * 100
                if self.total_requests > 0 else 0
            ),
        }
