"""Shared LLM client utilities.

Provides common functions for interacting with LLM APIs (Anthropic, OpenAI),
used by the interpretation jobs, the question former and the embedding
provider.
"""

from src.llm.client import (
    get_anthropic_client,
    get_openai_client,
    parse_llm_json_response,
)
from src.llm.backends import (
    LLMCallResult,
    ModelBackend,
    AnthropicBackend,
    OpenAIBackend,
)
from src.llm.errors import (
    ProviderError,
    CredentialError,
    ProviderRateLimited,
    ProviderTimeout,
    ProviderUnavailable,
    classify_provider_error,
)
from src.llm.factory import backend_factory_for, get_backend

__all__ = [
    "get_anthropic_client",
    "get_openai_client",
    "parse_llm_json_response",
    "LLMCallResult",
    "ModelBackend",
    "AnthropicBackend",
    "OpenAIBackend",
    "ProviderError",
    "CredentialError",
    "ProviderRateLimited",
    "ProviderTimeout",
    "ProviderUnavailable",
    "classify_provider_error",
    "backend_factory_for",
    "get_backend",
]
