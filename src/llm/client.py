"""Shared provider clients and response parsing.

Used by:
- Generation backends (interpretation jobs, question former)
- Embedding provider (query and ingestion embeddings)
"""

import json
import logging
from typing import Optional

import httpx
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from src import config
from src.llm.errors import CredentialError

logger = logging.getLogger(__name__)


def _timeout(read_seconds: float) -> httpx.Timeout:
    return httpx.Timeout(
        connect=10.0,
        read=read_seconds,
        write=30.0,
        pool=10.0,
    )


def get_anthropic_client(
    api_key: Optional[str] = None,
    timeout_seconds: float = config.LLM_TIMEOUT_SECONDS,
) -> AsyncAnthropic:
    """Get an async Anthropic client.

    Args:
        api_key: Caller-supplied credential; overrides ANTHROPIC_API_KEY

    Raises:
        CredentialError: If no credential is available
    """
    key = api_key or config.ANTHROPIC_API_KEY
    if not key:
        raise CredentialError(
            "No Anthropic API key configured. Set ANTHROPIC_API_KEY or supply your own key."
        )
    # Retries are driven by the user (per-framework retry), not the SDK
    return AsyncAnthropic(api_key=key, timeout=_timeout(timeout_seconds), max_retries=0)


def get_openai_client(
    api_key: Optional[str] = None,
    timeout_seconds: float = config.LLM_TIMEOUT_SECONDS,
) -> AsyncOpenAI:
    """Get an async OpenAI client.

    Args:
        api_key: Caller-supplied credential; overrides OPENAI_API_KEY

    Raises:
        CredentialError: If no credential is available
    """
    key = api_key or config.OPENAI_API_KEY
    if not key:
        raise CredentialError(
            "No OpenAI API key configured. Set OPENAI_API_KEY or supply your own key."
        )
    return AsyncOpenAI(api_key=key, timeout=_timeout(timeout_seconds), max_retries=0)


def parse_llm_json_response(raw_text: str) -> dict:
    """Parse JSON from LLM response, handling markdown code fences.

    LLMs sometimes wrap JSON in ```json ... ``` fences despite being
    told not to. This function strips those fences before parsing.

    Args:
        raw_text: Raw text from LLM response

    Returns:
        Parsed dict from JSON

    Raises:
        json.JSONDecodeError: If the text cannot be parsed as JSON
        ValueError: If the JSON is not an object
    """
    content = raw_text.strip()

    if content.startswith("```"):
        content = content.split("\n", 1)[1] if "\n" in content else content[3:]

    if content.endswith("```"):
        content = content.rsplit("```", 1)[0]

    parsed = json.loads(content.strip())
    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed
