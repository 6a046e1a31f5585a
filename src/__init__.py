"""Wittgenstein Interpreter - multi-framework interpretation service.

This service answers philosophical questions by:
- Retrieving passages from a vector-searched corpus (primary and secondary)
- Fanning out one LLM interpretation job per interpretative framework
- Aggregating partial results into an immutable, progressively updated snapshot
"""

__version__ = "0.1.0"
