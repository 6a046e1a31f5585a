"""Question former: rewrites a user's question into a sharper one before submission."""

import json
import logging
from typing import Optional

from src.interpretation.prompts import PromptComposer, get_prompt_composer
from src.interpretation.schemas import ImprovedQuestion
from src.llm.backends import ModelBackend
from src.llm.client import parse_llm_json_response

logger = logging.getLogger(__name__)


class QuestionFormatError(ValueError):
    """The model's answer did not contain an improved question."""


async def improve_question(
    question: str,
    backend: ModelBackend,
    composer: Optional[PromptComposer] = None,
    max_tokens: int = 600,
) -> ImprovedQuestion:
    """Ask the model for a more precise version of the question.

    Raises:
        ValueError: If the question is empty
        QuestionFormatError: If the response cannot be parsed
        ProviderError: If the provider call fails
    """
    question = question.strip()
    if not question:
        raise ValueError("Question is required")

    composer = composer or get_prompt_composer()
    prompt = composer.compose_question_former(question)
    call = await backend.complete(
        prompt.system,
        prompt.user,
        max_tokens=max_tokens,
        json_mode=True,
        label="question-former",
    )

    try:
        data = parse_llm_json_response(call.content)
    except (json.JSONDecodeError, ValueError) as e:
        raise QuestionFormatError(f"Error parsing the improved question: {e}") from e

    improved = data.get("improvedQuestion")
    if not isinstance(improved, str) or not improved.strip():
        raise QuestionFormatError("Error parsing the improved question: 'improvedQuestion' missing")

    logger.info(f"[question-former] {len(question)} -> {len(improved)} chars")
    return ImprovedQuestion(
        improved_question=improved.strip(),
        explanation=str(data.get("explanation") or "").strip(),
    )
