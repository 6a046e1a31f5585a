"""LLM backend abstraction for multi-provider support.

Provides a unified async interface for calling different LLM providers
(Anthropic Claude, OpenAI GPT) with a consistent response format.

Each backend handles provider-specific concerns:
- Client creation with the caller's credential and timeout configuration
- JSON-mode request flags where the provider supports them
- Response parsing and token counting
- Streaming text increments

Every provider exception leaves a backend as a ProviderError
(see src/llm/errors.py).
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional, Protocol, runtime_checkable

from src import config
from src.llm.client import get_anthropic_client, get_openai_client
from src.llm.errors import ProviderUnavailable, classify_provider_error

logger = logging.getLogger(__name__)


@dataclass
class LLMCallResult:
    """Normalized response from any LLM backend."""

    content: str
    model_id: str
    input_tokens: int
    output_tokens: int
    duration_ms: int


@runtime_checkable
class ModelBackend(Protocol):
    """Protocol for LLM backend implementations."""

    @property
    def model_id(self) -> str: ...

    async def complete(
        self,
        system_prompt: str,
        user_message: str,
        *,
        max_tokens: int,
        temperature: float = config.INTERPRETATION_TEMPERATURE,
        json_mode: bool = False,
        label: str = "",
    ) -> LLMCallResult: ...

    def stream(
        self,
        system_prompt: str,
        user_message: str,
        *,
        max_tokens: int,
        temperature: float = config.INTERPRETATION_TEMPERATURE,
        label: str = "",
    ) -> AsyncIterator[str]: ...


class AnthropicBackend:
    """Anthropic Claude backend.

    Claude has no JSON response mode; json_mode is satisfied by the prompt
    and by fence-tolerant parsing downstream.
    """

    def __init__(
        self,
        model_id: str = config.INTERPRETATION_MODEL,
        api_key: Optional[str] = None,
        timeout_seconds: float = config.LLM_TIMEOUT_SECONDS,
    ):
        self._model_id = model_id
        self._api_key = api_key
        self._timeout_seconds = timeout_seconds

    @property
    def model_id(self) -> str:
        return self._model_id

    def _request(self, system_prompt: str, user_message: str, max_tokens: int, temperature: float) -> dict[str, Any]:
        return {
            "model": self._model_id,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_message}],
        }

    async def complete(
        self,
        system_prompt: str,
        user_message: str,
        *,
        max_tokens: int,
        temperature: float = config.INTERPRETATION_TEMPERATURE,
        json_mode: bool = False,
        label: str = "",
    ) -> LLMCallResult:
        """Execute a single non-streaming Anthropic call."""
        start_time = time.time()
        logger.info(
            f"[{label}] Anthropic call: model={self._model_id}, max_tokens={max_tokens}, "
            f"~{(len(system_prompt) + len(user_message)) // 4:,} input tokens"
        )

        try:
            client = get_anthropic_client(self._api_key, self._timeout_seconds)
            response = await client.messages.create(
                **self._request(system_prompt, user_message, max_tokens, temperature)
            )
        except Exception as e:
            raise classify_provider_error(e) from e

        raw_text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        if not raw_text.strip():
            raise ProviderUnavailable(f"[{label}] Empty response from {self._model_id}")

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"[{label}] Completed: {response.usage.input_tokens}+"
            f"{response.usage.output_tokens} tokens, {duration_ms}ms"
        )

        return LLMCallResult(
            content=raw_text.strip(),
            model_id=self._model_id,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            duration_ms=duration_ms,
        )

    async def stream(
        self,
        system_prompt: str,
        user_message: str,
        *,
        max_tokens: int,
        temperature: float = config.INTERPRETATION_TEMPERATURE,
        label: str = "",
    ) -> AsyncIterator[str]:
        """Yield text increments from an Anthropic streaming call."""
        logger.info(f"[{label}] Anthropic stream: model={self._model_id}")
        chunk_count = 0
        try:
            client = get_anthropic_client(self._api_key, self._timeout_seconds)
            async with client.messages.stream(
                **self._request(system_prompt, user_message, max_tokens, temperature)
            ) as stream:
                async for text in stream.text_stream:
                    chunk_count += 1
                    yield text
        except Exception as e:
            raise classify_provider_error(e) from e
        logger.info(f"[{label}] Stream finished after {chunk_count} chunks")


class OpenAIBackend:
    """OpenAI chat-completions backend."""

    def __init__(
        self,
        model_id: str = "gpt-4o",
        api_key: Optional[str] = None,
        timeout_seconds: float = config.LLM_TIMEOUT_SECONDS,
    ):
        self._model_id = model_id
        self._api_key = api_key
        self._timeout_seconds = timeout_seconds

    @property
    def model_id(self) -> str:
        return self._model_id

    def _messages(self, system_prompt: str, user_message: str) -> list[dict[str, str]]:
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_message},
        ]

    async def complete(
        self,
        system_prompt: str,
        user_message: str,
        *,
        max_tokens: int,
        temperature: float = config.INTERPRETATION_TEMPERATURE,
        json_mode: bool = False,
        label: str = "",
    ) -> LLMCallResult:
        """Execute a single non-streaming OpenAI call."""
        start_time = time.time()
        kwargs: dict[str, Any] = {
            "model": self._model_id,
            "messages": self._messages(system_prompt, user_message),
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        logger.info(f"[{label}] OpenAI call: model={self._model_id}, max_tokens={max_tokens}, json={json_mode}")

        try:
            client = get_openai_client(self._api_key, self._timeout_seconds)
            response = await client.chat.completions.create(**kwargs)
        except Exception as e:
            raise classify_provider_error(e) from e

        raw_text = response.choices[0].message.content if response.choices else None
        if not raw_text or not raw_text.strip():
            raise ProviderUnavailable(f"[{label}] Empty response from {self._model_id}")

        duration_ms = int((time.time() - start_time) * 1000)
        input_tokens = response.usage.prompt_tokens if response.usage else 0
        output_tokens = response.usage.completion_tokens if response.usage else 0
        logger.info(f"[{label}] Completed: {input_tokens}+{output_tokens} tokens, {duration_ms}ms")

        return LLMCallResult(
            content=raw_text.strip(),
            model_id=self._model_id,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            duration_ms=duration_ms,
        )

    async def stream(
        self,
        system_prompt: str,
        user_message: str,
        *,
        max_tokens: int,
        temperature: float = config.INTERPRETATION_TEMPERATURE,
        label: str = "",
    ) -> AsyncIterator[str]:
        """Yield text increments from an OpenAI streaming call."""
        logger.info(f"[{label}] OpenAI stream: model={self._model_id}")
        try:
            client = get_openai_client(self._api_key, self._timeout_seconds)
            response = await client.chat.completions.create(
                model=self._model_id,
                messages=self._messages(system_prompt, user_message),
                max_tokens=max_tokens,
                temperature=temperature,
                stream=True,
            )
            async for chunk in response:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        except Exception as e:
            raise classify_provider_error(e) from e
