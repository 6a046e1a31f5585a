"""Interpretative framework definitions."""

from src.frameworks.registry import FrameworkRegistry, UnknownFrameworkError, get_framework_registry
from src.frameworks.schemas import FrameworkDefinition, FrameworkKind, FrameworkSummary

__all__ = [
    "FrameworkDefinition",
    "FrameworkKind",
    "FrameworkRegistry",
    "FrameworkSummary",
    "UnknownFrameworkError",
    "get_framework_registry",
]
