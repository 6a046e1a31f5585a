"""Provider error taxonomy.

Every generation backend raises (or has its SDK exceptions translated into)
one of the ProviderError subclasses below. Classification happens once,
here, so that jobs and routes never inspect SDK-specific exception types.
"""

import asyncio
import logging
from typing import Optional

import anthropic
import httpx
import openai

logger = logging.getLogger(__name__)


class ProviderError(RuntimeError):
    """Base class for failures of an external model provider."""

    kind = "provider"
    retryable = True

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CredentialError(ProviderError):
    """No credential configured, or the provider rejected it (401/403)."""

    kind = "credential"
    retryable = False


class ProviderRateLimited(ProviderError):
    """The provider throttled the request (429)."""

    kind = "rate_limited"


class ProviderTimeout(ProviderError):
    """The request did not complete within the configured timeout."""

    kind = "timeout"


class ProviderUnavailable(ProviderError):
    """Any other transport or server-side failure."""

    kind = "provider"


_TIMEOUT_TYPES = (
    anthropic.APITimeoutError,
    openai.APITimeoutError,
    httpx.TimeoutException,
    asyncio.TimeoutError,
    TimeoutError,
)

_CREDENTIAL_TYPES = (
    anthropic.AuthenticationError,
    anthropic.PermissionDeniedError,
    openai.AuthenticationError,
    openai.PermissionDeniedError,
)

_RATE_LIMIT_TYPES = (
    anthropic.RateLimitError,
    openai.RateLimitError,
)


def classify_provider_error(exc: BaseException) -> ProviderError:
    """Translate an SDK or transport exception into a ProviderError.

    Args:
        exc: Exception raised while calling a provider

    Returns:
        The matching ProviderError subclass instance (exc itself if it
        is already classified)
    """
    if isinstance(exc, ProviderError):
        return exc

    message = str(exc) or exc.__class__.__name__
    status_code = getattr(exc, "status_code", None)

    # Timeouts first: the SDK timeout errors subclass connection errors
    if isinstance(exc, _TIMEOUT_TYPES) or status_code in (408, 504):
        return ProviderTimeout(message, status_code=status_code)
    if isinstance(exc, _CREDENTIAL_TYPES) or status_code in (401, 403):
        return CredentialError(message, status_code=status_code)
    if isinstance(exc, _RATE_LIMIT_TYPES) or status_code == 429:
        return ProviderRateLimited(message, status_code=status_code)

    # Fall back to message inspection for wrapped errors
    error_str = message.lower()
    if "invalid_api_key" in error_str or "authentication" in error_str or "api key" in error_str:
        return CredentialError(message, status_code=status_code)
    if "rate limit" in error_str or "rate_limit" in error_str:
        return ProviderRateLimited(message, status_code=status_code)
    if "timed out" in error_str or "timeout" in error_str:
        return ProviderTimeout(message, status_code=status_code)

    return ProviderUnavailable(message, status_code=status_code)
