"""Tests for provider error classification, backend selection and JSON parsing."""

import json

import anthropic
import httpx
import openai
import pytest

from src.llm.backends import AnthropicBackend, OpenAIBackend
from src.llm.client import get_anthropic_client, parse_llm_json_response
from src.llm.errors import (
    CredentialError,
    ProviderRateLimited,
    ProviderTimeout,
    ProviderUnavailable,
    classify_provider_error,
)
from src.llm.factory import backend_factory_for, get_backend

REQUEST = httpx.Request("POST", "https://api.example.test/v1/messages")


def status_error(cls, status: int):
    return cls("provider said no", response=httpx.Response(status, request=REQUEST), body=None)


class TestClassifyProviderError:

    @pytest.mark.parametrize("exc", [
        anthropic.APITimeoutError(request=REQUEST),
        openai.APITimeoutError(request=REQUEST),
        httpx.ReadTimeout("read timed out"),
        TimeoutError(),
    ])
    def test_timeouts(self, exc):
        assert isinstance(classify_provider_error(exc), ProviderTimeout)

    @pytest.mark.parametrize("exc", [
        status_error(anthropic.AuthenticationError, 401),
        status_error(openai.PermissionDeniedError, 403),
        RuntimeError("Error code: 401 - invalid_api_key"),
    ])
    def test_credentials(self, exc):
        classified = classify_provider_error(exc)
        assert isinstance(classified, CredentialError)
        assert classified.retryable is False

    def test_rate_limit(self):
        classified = classify_provider_error(status_error(anthropic.RateLimitError, 429))
        assert isinstance(classified, ProviderRateLimited)
        assert classified.status_code == 429

    def test_everything_else_is_unavailable(self):
        classified = classify_provider_error(status_error(anthropic.InternalServerError, 500))
        assert isinstance(classified, ProviderUnavailable)
        assert classified.kind == "provider"

    def test_already_classified_passes_through(self):
        original = ProviderTimeout("slow")
        assert classify_provider_error(original) is original


class TestBackendFactory:

    def test_selects_backend_by_prefix(self):
        assert isinstance(get_backend("claude-haiku-4-5-20251001"), AnthropicBackend)
        assert isinstance(get_backend("gpt-4o-mini"), OpenAIBackend)
        assert isinstance(get_backend("o3-mini"), OpenAIBackend)

    def test_unknown_model(self):
        with pytest.raises(ValueError, match="Unknown model"):
            get_backend("llama-3")

    def test_factory_binds_model_and_credential(self):
        factory = backend_factory_for("claude-haiku-4-5-20251001")
        backend = factory("user-key")
        assert backend.model_id == "claude-haiku-4-5-20251001"
        assert backend._api_key == "user-key"

    def test_factory_rejects_unknown_model_eagerly(self):
        with pytest.raises(ValueError):
            backend_factory_for("mystery-model")

    def test_missing_key_is_a_credential_error(self, monkeypatch):
        monkeypatch.setattr("src.config.ANTHROPIC_API_KEY", None)
        with pytest.raises(CredentialError):
            get_anthropic_client()


class TestParseLLMJsonResponse:

    def test_plain_json(self):
        assert parse_llm_json_response('{"a": 1}') == {"a": 1}

    def test_fenced_json(self):
        assert parse_llm_json_response('```json\n{"a": 1}\n```') == {"a": 1}

    def test_not_an_object(self):
        with pytest.raises(ValueError):
            parse_llm_json_response("[1, 2]")

    def test_invalid(self):
        with pytest.raises(json.JSONDecodeError):
            parse_llm_json_response("not json")
