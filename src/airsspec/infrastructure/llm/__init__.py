from airsspec.infrastructure.llm.litellm_provider import LiteLLMProvider, RetryPolicy

__all__ = ["LiteLLMProvider", "RetryPolicy"]
