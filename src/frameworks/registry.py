"""Framework registry - loads and serves framework definitions from YAML.

The framework set is closed: definitions are loaded once, in file order,
and the order is the display and dispatch order of every run.
"""

import logging
from pathlib import Path
from typing import Optional

import yaml

from src.frameworks.schemas import FrameworkDefinition, FrameworkKind, FrameworkSummary

logger = logging.getLogger(__name__)


class UnknownFrameworkError(KeyError):
    """Raised when a framework id is not in the registry."""

    def __init__(self, framework_id: str, available: list[str]):
        super().__init__(framework_id)
        self.framework_id = framework_id
        self.available = available

    def __str__(self) -> str:
        return f"Framework not found: {self.framework_id}. Available: {self.available}"


class FrameworkRegistry:
    """Registry of framework definitions loaded from definitions/frameworks.yaml."""

    def __init__(self, definitions_file: Optional[Path] = None):
        if definitions_file is None:
            definitions_file = Path(__file__).parent / "definitions" / "frameworks.yaml"
        self.definitions_file = definitions_file
        self._frameworks: dict[str, FrameworkDefinition] = {}
        self._loaded = False

    def load(self) -> None:
        """Load all framework definitions."""
        if self._loaded:
            return

        if not self.definitions_file.exists():
            logger.warning(f"Framework definitions not found: {self.definitions_file}")
            self._loaded = True
            return

        with open(self.definitions_file, "r") as f:
            data = yaml.safe_load(f) or {}

        for entry in data.get("frameworks", []):
            try:
                framework = FrameworkDefinition.model_validate(entry)
            except Exception as e:
                logger.error(f"Failed to load framework {entry.get('id', '?')}: {e}")
                continue
            if framework.id in self._frameworks:
                logger.error(f"Duplicate framework id ignored: {framework.id}")
                continue
            self._frameworks[framework.id] = framework
            logger.debug(f"Loaded framework: {framework.id}")

        self._loaded = True
        logger.info(f"Loaded {len(self._frameworks)} frameworks")

    def get(self, framework_id: str) -> Optional[FrameworkDefinition]:
        """Get framework definition by id."""
        self.load()
        return self._frameworks.get(framework_id)

    def get_validated(self, framework_id: str) -> FrameworkDefinition:
        """Get framework definition by id, raising if not found."""
        framework = self.get(framework_id)
        if framework is None:
            raise UnknownFrameworkError(framework_id, list(self._frameworks.keys()))
        return framework

    def resolve(self, name_or_id: str) -> FrameworkDefinition:
        """Look up a framework by id or display name (case-insensitive)."""
        framework = self.get(name_or_id)
        if framework is not None:
            return framework
        lowered = name_or_id.strip().lower()
        for candidate in self._frameworks.values():
            if candidate.name.lower() == lowered:
                return candidate
        raise UnknownFrameworkError(name_or_id, list(self._frameworks.keys()))

    def list_all(self) -> list[FrameworkDefinition]:
        """List all framework definitions in dispatch order."""
        self.load()
        return list(self._frameworks.values())

    def list_summaries(self) -> list[FrameworkSummary]:
        self.load()
        return [
            FrameworkSummary(id=f.id, name=f.name, description=f.description, kind=f.kind)
            for f in self._frameworks.values()
        ]

    def list_keys(self) -> list[str]:
        self.load()
        return list(self._frameworks.keys())

    def list_by_kind(self, kind: FrameworkKind) -> list[FrameworkDefinition]:
        self.load()
        return [f for f in self._frameworks.values() if f.kind == kind]

    def count(self) -> int:
        """Get total number of frameworks."""
        self.load()
        return len(self._frameworks)

    def reload(self) -> None:
        """Force reload all definitions."""
        self._loaded = False
        self._frameworks.clear()
        self.load()


_registry: Optional[FrameworkRegistry] = None


def get_framework_registry() -> FrameworkRegistry:
    """Get the global framework registry instance."""
    global _registry
    if _registry is None:
        _registry = FrameworkRegistry()
        _registry.load()
    return _registry
