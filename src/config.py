"""Runtime configuration read from environment variables.

Every setting has a default suitable for local development. Values are
read once at import time; tests override them by passing explicit
arguments to the constructors that consume them.
"""

import os

# Vector store
QDRANT_URL = os.environ.get("QDRANT_URL", "http://localhost:6333")
QDRANT_API_KEY = os.environ.get("QDRANT_API_KEY") or None
QDRANT_COLLECTION = os.environ.get("QDRANT_COLLECTION", "second-brain-docs")
QDRANT_TIMEOUT_SECONDS = int(os.environ.get("QDRANT_TIMEOUT_SECONDS", "30"))

# Embeddings
OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY") or None
EMBEDDING_MODEL = os.environ.get("EMBEDDING_MODEL", "text-embedding-3-small")

# Generation
ANTHROPIC_API_KEY = os.environ.get("ANTHROPIC_API_KEY") or None
INTERPRETATION_MODEL = os.environ.get("INTERPRETATION_MODEL", "claude-haiku-4-5-20251001")
QUESTION_FORMER_MODEL = os.environ.get("QUESTION_FORMER_MODEL", INTERPRETATION_MODEL)
INTERPRETATION_MAX_TOKENS = int(os.environ.get("INTERPRETATION_MAX_TOKENS", "1500"))
INTERPRETATION_TEMPERATURE = float(os.environ.get("INTERPRETATION_TEMPERATURE", "0.7"))
LLM_TIMEOUT_SECONDS = float(os.environ.get("LLM_TIMEOUT_SECONDS", "60"))

# Orchestration
SUBMISSION_COOLDOWN_SECONDS = float(os.environ.get("SUBMISSION_COOLDOWN_SECONDS", "60"))
SESSION_TTL_SECONDS = float(os.environ.get("SESSION_TTL_SECONDS", "3600"))

# Per-client limit on the search endpoints
SEARCH_RATE_LIMIT_MAX_REQUESTS = int(os.environ.get("SEARCH_RATE_LIMIT_MAX_REQUESTS", "30"))
SEARCH_RATE_LIMIT_WINDOW_SECONDS = float(os.environ.get("SEARCH_RATE_LIMIT_WINDOW_SECONDS", "60"))
