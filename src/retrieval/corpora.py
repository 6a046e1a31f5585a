"""Registry for logical corpora.

Loads corpus definitions from YAML and provides lookup methods.
"""

import logging
from pathlib import Path
from typing import Optional

import yaml

from .schemas import CitationOrigin, CorpusSpec

logger = logging.getLogger(__name__)

DEFINITIONS_DIR = Path(__file__).parent / "definitions"


class CorpusRegistry:
    """Loads and serves corpus definitions."""

    def __init__(self, definitions_file: Optional[Path] = None) -> None:
        self._definitions_file = definitions_file or DEFINITIONS_DIR / "corpora.yaml"
        self._corpora: dict[str, CorpusSpec] = {}
        self._load_corpora()

    def _load_corpora(self) -> None:
        """Load corpora from YAML file."""
        if not self._definitions_file.exists():
            logger.warning(f"Corpora file not found: {self._definitions_file}")
            return

        with open(self._definitions_file) as f:
            data = yaml.safe_load(f) or {}

        for corpus_data in data.get("corpora", []):
            try:
                corpus = CorpusSpec(**corpus_data)
                self._corpora[corpus.key] = corpus
                logger.debug(f"Loaded corpus: {corpus.key}")
            except Exception as e:
                logger.error(f"Failed to load corpus: {e}")

        logger.info(f"Loaded {len(self._corpora)} corpora")

    def get(self, key: str) -> Optional[CorpusSpec]:
        """Get a corpus by key."""
        return self._corpora.get(key)

    def list_all(self) -> list[CorpusSpec]:
        return list(self._corpora.values())

    def list_keys(self) -> list[str]:
        return list(self._corpora.keys())

    def by_origin(self, origin: CitationOrigin) -> CorpusSpec:
        """Get the corpus that produces citations of the given origin.

        Raises:
            ValueError: If no corpus is configured for that origin
        """
        for corpus in self._corpora.values():
            if corpus.origin == origin:
                return corpus
        raise ValueError(f"No corpus configured for origin '{origin.value}'")

    @property
    def primary(self) -> CorpusSpec:
        return self.by_origin(CitationOrigin.PRIMARY)

    @property
    def secondary(self) -> CorpusSpec:
        return self.by_origin(CitationOrigin.SECONDARY)

    def count(self) -> int:
        return len(self._corpora)


_registry: Optional[CorpusRegistry] = None


def get_corpus_registry() -> CorpusRegistry:
    """Get the global corpus registry instance."""
    global _registry
    if _registry is None:
        _registry = CorpusRegistry()
    return _registry
