"""Wittgenstein Interpreter API.

Answers questions about Wittgenstein through fourteen philosophical
frameworks in parallel:
- Passage search over the primary and transaction-theory corpora
- Single-framework and synthesis interpretations (plain and streamed)
- Sessions that run the full retrieval + fan-out pipeline with per-framework retry
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src import __version__
from src.api.routes import frameworks, interpret, search, sessions
from src.api.services import get_services
from src.frameworks.registry import get_framework_registry
from src.interpretation.prompts import get_prompt_composer
from src.retrieval.corpora import get_corpus_registry

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup: Pre-load registries and wire services
    logger.info("Loading framework definitions...")
    framework_registry = get_framework_registry()
    logger.info(f"Loaded {framework_registry.count()} frameworks")

    logger.info("Loading corpus definitions...")
    corpus_registry = get_corpus_registry()
    logger.info(f"Loaded {corpus_registry.count()} corpora")

    logger.info("Loading prompt templates...")
    composer = get_prompt_composer()
    logger.info(f"Loaded {len(composer.list_templates())} prompt templates")

    get_services()
    logger.info("Wittgenstein Interpreter API ready")
    yield
    # Shutdown
    logger.info("Shutting down Wittgenstein Interpreter API")


# Create FastAPI app
app = FastAPI(
    title="Wittgenstein Interpreter API",
    description="""
## Multi-framework interpretation service

Ask a question about Wittgenstein and receive one interpretation per
philosophical framework, each grounded in retrieved passages.

### Key Endpoints

- `POST /v1/sessions` - Create a session
- `POST /v1/sessions/{id}/questions` - Run all frameworks for a question
- `GET /v1/sessions/{id}` - Poll run state and results
- `POST /v1/sessions/{id}/frameworks/{framework_id}/retry` - Retry one framework
- `POST /v1/search/{corpus}` - Search a corpus
- `POST /v1/interpret/framework` - Interpret through one framework
- `GET /v1/frameworks` - List frameworks
""",
    version=__version__,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers with /v1 prefix
app.include_router(search.router, prefix="/v1")
app.include_router(interpret.router, prefix="/v1")
app.include_router(frameworks.router, prefix="/v1")
app.include_router(sessions.router, prefix="/v1")


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "service": "Wittgenstein Interpreter API",
        "version": __version__,
        "docs": "/docs",
        "endpoints": {
            "search": "/v1/search",
            "interpret": "/v1/interpret/framework",
            "frameworks": "/v1/frameworks",
            "sessions": "/v1/sessions",
        },
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "frameworks_loaded": get_framework_registry().count(),
        "corpora_loaded": get_corpus_registry().count(),
        "prompt_templates_loaded": len(get_prompt_composer().list_templates()),
    }


@app.get("/v1")
async def api_v1_root():
    """API v1 root with available endpoints."""
    return {
        "version": "v1",
        "resources": {
            "search": {
                "corpora": get_corpus_registry().list_keys(),
                "endpoints": [
                    "GET /v1/search",
                    "POST /v1/search/{corpus}",
                ],
            },
            "interpret": {
                "endpoints": [
                    "POST /v1/interpret/framework",
                    "POST /v1/interpret/transaction",
                    "POST /v1/interpret/framework/stream",
                    "POST /v1/form-question",
                ],
            },
            "frameworks": {
                "count": get_framework_registry().count(),
                "endpoints": [
                    "GET /v1/frameworks",
                    "GET /v1/frameworks/keys",
                    "GET /v1/frameworks/count",
                    "GET /v1/frameworks/{framework_id}",
                ],
            },
            "sessions": {
                "endpoints": [
                    "POST /v1/sessions",
                    "GET /v1/sessions/{id}",
                    "POST /v1/sessions/{id}/questions",
                    "POST /v1/sessions/{id}/frameworks/{framework_id}/retry",
                    "POST /v1/sessions/{id}/reset",
                    "DELETE /v1/sessions/{id}",
                ],
            },
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.api.main:app",
        host="0.0.0.0",
        port=8001,
        reload=True,
    )
