"""
LiteLLM-backed implementation of LLMProviderProtocol.

Transient failures are retried with capped exponential backoff:

    delay_ms = min(backoff_max_ms, backoff_base_ms * 2 ** attempt)

After ``max_retries`` retries the last error is raised as LLMRequestError.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import litellm
import structlog

from airsspec.core.domain.errors import LLMRequestError
from airsspec.core.domain.models import TokenUsage
from airsspec.core.interfaces.llm import CompletionRequest, CompletionResponse


@dataclass
class RetryPolicy:
    """Retry policy configuration."""

    max_retries: int = 3
    backoff_base_ms: int = 500
    backoff_max_ms: int = 10_000
    # Error type names / message fragments that are worth retrying.
    # Empty means every error is retried.
    retry_on_errors: List[str] = field(default_factory=list)

    def delay_ms(self, attempt: int) -> int:
        return min(self.backoff_max_ms, self.backoff_base_ms * 2**attempt)

    def should_retry(self, error: Exception) -> bool:
        if not self.retry_on_errors:
            return True
        error_type = type(error).__name__
        error_msg = str(error)
        return any(e in error_type or e in error_msg for e in self.retry_on_errors)


class LiteLLMProvider:
    def __init__(
        self,
        model: str,
        retry_policy: Optional[RetryPolicy] = None,
        timeout: float = 60,
        default_params: Optional[Dict[str, Any]] = None,
    ):
        self.model = model
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout
        self.default_params = default_params or {}
        self.logger = structlog.get_logger().bind(component="litellm_provider", model=model)

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        params = dict(self.default_params)
        if request.max_tokens is not None:
            params["max_tokens"] = request.max_tokens
        if request.temperature is not None:
            params["temperature"] = request.temperature
        messages = [m.to_dict() for m in request.messages]

        attempts = self.retry_policy.max_retries + 1
        for attempt in range(attempts):
            start_time = time.time()
            self.logger.info(
                "llm_completion_started", attempt=attempt + 1, message_count=len(messages)
            )
            try:
                response = await litellm.acompletion(
                    model=self.model,
                    messages=messages,
                    timeout=self.timeout,
                    **params,
                )
            except Exception as e:
                error_type = type(e).__name__
                if attempt < attempts - 1 and self.retry_policy.should_retry(e):
                    delay_ms = self.retry_policy.delay_ms(attempt)
                    self.logger.warning(
                        "llm_completion_retry",
                        error_type=error_type,
                        error=str(e),
                        attempt=attempt + 1,
                        backoff_ms=delay_ms,
                    )
                    await asyncio.sleep(delay_ms / 1000)
                    continue

                self.logger.error(
                    "llm_completion_failed", error_type=error_type, error=str(e), attempts=attempt + 1
                )
                raise LLMRequestError(f"{error_type}: {e}", attempts=attempt + 1) from e

            text = response.choices[0].message.content or ""
            usage = _token_usage(getattr(response, "usage", None))
            self.logger.info(
                "llm_completion_success",
                tokens=usage.total_tokens,
                latency_ms=int((time.time() - start_time) * 1000),
            )
            return CompletionResponse(text=text, token_usage=usage)

        raise LLMRequestError("no attempts made", attempts=0)


def _token_usage(usage: Any) -> TokenUsage:
    # litellm returns either a dict or a Usage object
    if usage is None:
        return TokenUsage()
    if isinstance(usage, dict):
        return TokenUsage(
            prompt_tokens=usage.get("prompt_tokens", 0) or 0,
            completion_tokens=usage.get("completion_tokens", 0) or 0,
        )
    return TokenUsage(
        prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
        completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
    )
