"""Tests for prompt composition, output parsing and interpretation jobs."""

import json

import pytest

from src.interpretation.job import (
    CREDENTIAL_MESSAGE,
    RATE_LIMITED_MESSAGE,
    parse_structured_output,
    run_interpretation_job,
    stream_interpretation,
)
from src.interpretation.prompts import MAX_PASSAGES, excerpt
from src.interpretation.question_former import QuestionFormatError, improve_question
from src.interpretation.schemas import (
    NO_KEY_INSIGHTS,
    NO_MAIN_INTERPRETATION,
    UNSTRUCTURED_INSIGHT,
    JobErrorKind,
)
from src.llm.errors import CredentialError, ProviderRateLimited, ProviderTimeout, ProviderUnavailable
from src.retrieval.schemas import Citation, CitationOrigin


def passages(count: int, origin: CitationOrigin = CitationOrigin.PRIMARY, length: int = 40) -> list[Citation]:
    return [
        Citation(
            id=f"{origin.value}-{i}",
            text=f"passage {i} " + "x" * length,
            source=f"Source {i}",
            section=str(i + 1) if origin == CitationOrigin.PRIMARY else None,
            origin=origin,
        )
        for i in range(count)
    ]


class TestPromptComposer:

    def test_templates_present(self, composer):
        assert set(composer.list_templates()) >= {
            "interpretation_system", "interpretation_user",
            "synthesis_system", "synthesis_user",
            "question_former_system", "question_former_user",
        }

    def test_standard_prompt_embeds_bounded_excerpts(self, composer, framework_registry):
        framework = framework_registry.get("resolute")
        prompt = composer.compose_interpretation(framework, "What is nonsense?", passages(5, length=400))

        assert "Resolute Reading" in prompt.system
        assert "What is nonsense?" in prompt.user
        assert len(prompt.passages) == MAX_PASSAGES
        assert "passage 2" in prompt.user
        assert "passage 3" not in prompt.user
        assert "x" * 251 not in prompt.user
        assert prompt.theory_passages == []

    def test_standard_prompt_ignores_theory_passages(self, composer, framework_registry):
        framework = framework_registry.get("early")
        prompt = composer.compose_interpretation(
            framework, "q", passages(2), passages(2, CitationOrigin.SECONDARY),
        )
        assert prompt.theory_passages == []
        assert "Source 0" in prompt.user

    def test_synthesis_prompt_embeds_both_sets(self, composer, framework_registry):
        framework = framework_registry.get("transactional")
        prompt = composer.compose_interpretation(
            framework, "q", passages(2), passages(4, CitationOrigin.SECONDARY),
        )
        assert "[W1]" in prompt.user and "[T3]" in prompt.user
        assert "[T4]" not in prompt.user
        assert len(prompt.theory_passages) == MAX_PASSAGES
        assert "fromPrimary" in prompt.system

    def test_synthesis_prompt_without_theory_passages(self, composer, framework_registry):
        framework = framework_registry.get("transactional")
        prompt = composer.compose_interpretation(framework, "q", passages(1))
        assert "passages were found for this question" in prompt.user

    def test_unknown_template(self, composer):
        with pytest.raises(ValueError, match="not found"):
            composer.render("missing")

    def test_excerpt(self):
        assert excerpt("short   text", 50) == "short text"
        assert excerpt("a" * 20, 10) == "a" * 10 + "..."


class TestParseStructuredOutput:

    def test_complete_output(self):
        raw = json.dumps({
            "mainInterpretation": "Main.",
            "keyInsights": ["one", "two"],
            "relevantQuotes": [{"text": "q", "explanation": "e", "fromPrimary": True}],
        })
        structured, parsed = parse_structured_output(raw)

        assert parsed is True
        assert structured.main_interpretation == "Main."
        assert structured.key_insights == ["one", "two"]
        assert structured.relevant_quotes[0].from_primary is True

    def test_missing_fields_get_placeholders(self):
        structured, parsed = parse_structured_output('```json\n{"keyInsights": []}\n```')

        assert parsed is True
        assert structured.main_interpretation == NO_MAIN_INTERPRETATION
        assert structured.key_insights == [NO_KEY_INSIGHTS]
        assert len(structured.relevant_quotes) == 1

    def test_legacy_quote_flag_and_bad_entries(self):
        raw = json.dumps({
            "mainInterpretation": "M",
            "keyInsights": ["k"],
            "relevantQuotes": [{"text": "a", "isWittgenstein": False}, {"explanation": "no text"}, 7, "plain"],
        })
        structured, _ = parse_structured_output(raw)

        assert [q.text for q in structured.relevant_quotes] == ["a", "plain"]
        assert structured.relevant_quotes[0].from_primary is False

    def test_unparseable_output_is_kept_verbatim(self):
        structured, parsed = parse_structured_output("Just prose about language games.")

        assert parsed is False
        assert structured.main_interpretation == "Just prose about language games."
        assert structured.key_insights == [UNSTRUCTURED_INSIGHT]


class TestRunInterpretationJob:

    async def test_success(self, backend, composer, framework_registry):
        framework = framework_registry.get("later")
        outcome = await run_interpretation_job(
            framework, "What is a rule?", passages(4), backend=backend, composer=composer,
        )

        assert outcome.ok
        assert outcome.error is None
        assert outcome.result.framework_id == "later"
        assert outcome.result.main_interpretation.startswith("Meaning is use")
        assert [p.id for p in outcome.result.reference_passages] == ["primary-0", "primary-1", "primary-2"]
        assert backend.calls[0]["label"] == "later"
        assert backend.calls[0]["json_mode"] is True

    async def test_synthesis_reference_passages_include_theory(self, backend, composer, framework_registry):
        framework = framework_registry.get("transactional")
        outcome = await run_interpretation_job(
            framework, "q", passages(2), passages(2, CitationOrigin.SECONDARY), backend=backend, composer=composer,
        )
        origins = [p.origin for p in outcome.result.reference_passages]
        assert origins == [CitationOrigin.PRIMARY] * 2 + [CitationOrigin.SECONDARY] * 2

    @pytest.mark.parametrize("failure, kind, retryable", [
        (CredentialError("no key"), JobErrorKind.CREDENTIAL, False),
        (ProviderRateLimited("slow down"), JobErrorKind.RATE_LIMITED, True),
        (ProviderTimeout("timed out"), JobErrorKind.TIMEOUT, True),
        (ProviderUnavailable("503"), JobErrorKind.PROVIDER, True),
        (KeyError("bug"), JobErrorKind.INTERNAL, True),
    ])
    async def test_failures_become_job_errors(self, backend, composer, framework_registry, failure, kind, retryable):
        framework = framework_registry.get("pragmatic")
        backend.failures["pragmatic"] = failure

        outcome = await run_interpretation_job(framework, "q", passages(1), backend=backend, composer=composer)

        assert not outcome.ok
        assert outcome.error.kind == kind
        assert outcome.error.retryable is retryable

    async def test_error_messages(self, backend, composer, framework_registry):
        framework = framework_registry.get("pragmatic")

        backend.failures["pragmatic"] = CredentialError("no key")
        credential = await run_interpretation_job(framework, "q", passages(1), backend=backend, composer=composer)
        assert credential.error.message == CREDENTIAL_MESSAGE
        assert credential.error.requires_credential is True

        backend.failures["pragmatic"] = ProviderRateLimited("429")
        limited = await run_interpretation_job(framework, "q", passages(1), backend=backend, composer=composer)
        assert limited.error.message == RATE_LIMITED_MESSAGE

        backend.failures["pragmatic"] = ProviderTimeout("timed out")
        timed_out = await run_interpretation_job(framework, "q", passages(1), backend=backend, composer=composer)
        assert "Pragmatic Reading interpretation timed out" in timed_out.error.message

    async def test_malformed_output_still_succeeds(self, backend, composer, framework_registry):
        framework = framework_registry.get("ethical")
        backend.responses["ethical"] = "Not JSON at all"

        outcome = await run_interpretation_job(framework, "q", passages(1), backend=backend, composer=composer)

        assert outcome.ok
        assert outcome.result.structured is False
        assert outcome.result.main_interpretation == "Not JSON at all"

    async def test_stream_yields_full_output(self, backend, composer, framework_registry):
        framework = framework_registry.get("early")
        chunks = [c async for c in stream_interpretation(framework, "q", passages(1), backend=backend, composer=composer)]

        structured, parsed = parse_structured_output("".join(chunks))
        assert len(chunks) > 1
        assert parsed is True
        assert backend.calls[0]["label"] == "early:stream"


class TestQuestionFormer:

    async def test_improves_question(self, backend, composer):
        backend.responses["question-former"] = json.dumps({
            "improvedQuestion": "How does Wittgenstein connect meaning and use in PI 43?",
            "explanation": "More specific.",
        })

        improved = await improve_question("meaning?", backend, composer=composer)

        assert improved.improved_question.startswith("How does Wittgenstein")
        assert improved.explanation == "More specific."
        assert '"meaning?"' in backend.calls[0]["user"]

    async def test_unparseable_answer(self, backend, composer):
        backend.responses["question-former"] = "I think you mean..."
        with pytest.raises(QuestionFormatError):
            await improve_question("meaning?", backend, composer=composer)

    async def test_empty_question(self, backend, composer):
        with pytest.raises(ValueError):
            await improve_question("  ", backend, composer=composer)
