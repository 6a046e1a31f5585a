"""Model backend factory.

Resolves model IDs to the appropriate backend implementation.
"""

import logging
from typing import Callable, Optional, Union

from src import config
from src.llm.backends import AnthropicBackend, ModelBackend, OpenAIBackend

logger = logging.getLogger(__name__)

OPENAI_PREFIXES = ("gpt-", "o1", "o3", "o4")

BackendFactory = Callable[[Optional[str]], ModelBackend]


def get_backend(
    model_id: str,
    api_key: Optional[str] = None,
) -> Union[AnthropicBackend, OpenAIBackend]:
    """Get the appropriate backend for a model ID.

    Args:
        model_id: Full model identifier (e.g. 'claude-haiku-4-5-20251001', 'gpt-4o')
        api_key: Optional caller credential overriding the server-side key

    Returns:
        Backend instance for the model

    Raises:
        ValueError: If model_id is not recognized
    """
    if model_id.startswith("claude-"):
        return AnthropicBackend(model_id=model_id, api_key=api_key)
    elif model_id.startswith(OPENAI_PREFIXES):
        return OpenAIBackend(model_id=model_id, api_key=api_key)
    else:
        raise ValueError(
            f"Unknown model: '{model_id}'. "
            f"Expected a model ID starting with 'claude-', 'gpt-', 'o1', 'o3' or 'o4'."
        )


def backend_factory_for(model_id: str = config.INTERPRETATION_MODEL) -> BackendFactory:
    """Build a credential -> backend callable bound to one model.

    Controllers hold one of these so every dispatch can use the credential
    supplied with the request that triggered it.
    """
    # Fail at startup on a misconfigured model id, not on first dispatch
    get_backend(model_id)

    def factory(api_key: Optional[str] = None) -> ModelBackend:
        return get_backend(model_id, api_key=api_key)

    return factory
