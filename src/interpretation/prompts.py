"""Prompt composition using Jinja2 templates.

Templates live in src/interpretation/templates/*.md.j2; each prompt is a
(system, user) pair rendered from `<name>_system` and `<name>_user`.
"""

import logging
from pathlib import Path
from typing import Optional

from jinja2 import BaseLoader, Environment
from pydantic import BaseModel

from src.frameworks.schemas import FrameworkDefinition, FrameworkKind
from src.retrieval.schemas import Citation

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"

MAX_PASSAGES = 3
EXCERPT_CHARS = {
    FrameworkKind.STANDARD: 250,
    FrameworkKind.SYNTHESIS: 200,
}


class ComposedPrompt(BaseModel):
    """A rendered prompt pair plus the passages it embeds."""

    system: str
    user: str
    passages: list[Citation] = []
    theory_passages: list[Citation] = []


class PassageView(BaseModel):
    """Template-facing view of a citation."""

    source: str
    section: Optional[str] = None
    excerpt: str


def excerpt(text: str, max_chars: int) -> str:
    """Shorten text to max_chars, marking the cut with an ellipsis."""
    text = " ".join(text.split())
    if len(text) <= max_chars:
        return text
    return text[:max_chars].rstrip() + "..."


class PromptComposer:
    """Renders interpretation and question-former prompts.

    Usage:
        composer = PromptComposer()
        prompt = composer.compose_interpretation(framework, query, passages)
    """

    def __init__(self, templates_dir: Optional[Path] = None):
        self.templates_dir = templates_dir or TEMPLATES_DIR
        self._templates: dict[str, str] = {}

        self.env = Environment(
            loader=BaseLoader(),
            autoescape=False,  # We're generating markdown, not HTML
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._load_templates()

    def _load_templates(self) -> None:
        """Load all Jinja2 templates from the templates directory."""
        if not self.templates_dir.exists():
            logger.warning(f"Templates directory not found: {self.templates_dir}")
            return

        for template_file in self.templates_dir.glob("*.md.j2"):
            name = template_file.name.removesuffix(".md.j2")
            self._templates[name] = template_file.read_text()
        logger.debug(f"Loaded {len(self._templates)} prompt templates")

    def list_templates(self) -> list[str]:
        return sorted(self._templates)

    def render(self, name: str, **context) -> str:
        """Render one template by name.

        Raises:
            ValueError: If the template does not exist
        """
        source = self._templates.get(name)
        if source is None:
            raise ValueError(f"Prompt template not found: {name}. Available: {self.list_templates()}")
        return self.env.from_string(source).render(**context).strip()

    def compose_interpretation(
        self,
        framework: FrameworkDefinition,
        query: str,
        passages: list[Citation],
        theory_passages: Optional[list[Citation]] = None,
    ) -> ComposedPrompt:
        """Compose the prompt for one framework job.

        At most MAX_PASSAGES passages from each set are embedded, each as a
        bounded excerpt. Standard frameworks ignore theory_passages.
        """
        is_synthesis = framework.kind == FrameworkKind.SYNTHESIS
        template = "synthesis" if is_synthesis else "interpretation"
        max_chars = EXCERPT_CHARS[framework.kind]

        used = list(passages[:MAX_PASSAGES])
        used_theory = list((theory_passages or [])[:MAX_PASSAGES]) if is_synthesis else []

        context = {
            "framework": framework,
            "query": query,
            "passages": [self._view(p, max_chars) for p in used],
            "theory_passages": [self._view(p, max_chars) for p in used_theory],
        }
        return ComposedPrompt(
            system=self.render(f"{template}_system", **context),
            user=self.render(f"{template}_user", **context),
            passages=used,
            theory_passages=used_theory,
        )

    def compose_question_former(self, question: str) -> ComposedPrompt:
        return ComposedPrompt(
            system=self.render("question_former_system"),
            user=self.render("question_former_user", question=question),
        )

    @staticmethod
    def _view(passage: Citation, max_chars: int) -> PassageView:
        return PassageView(
            source=passage.source,
            section=passage.section,
            excerpt=excerpt(passage.text, max_chars),
        )


_composer: Optional[PromptComposer] = None


def get_prompt_composer() -> PromptComposer:
    """Get the global prompt composer instance."""
    global _composer
    if _composer is None:
        _composer = PromptComposer()
    return _composer
