"""Corpus ingestion: chunk documents, embed them, and upsert into the collection.

Each stored point has the payload {content, metadata, timestamp}, where
metadata carries the namespace and tags that corpus filters match on.
"""

import logging
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

from src.retrieval.embeddings import EmbeddingProvider
from src.retrieval.vector_store import VectorStore

logger = logging.getLogger(__name__)

MAX_TOKENS_PER_CHUNK = 2000
TOKENS_PER_CHAR = 0.25
MAX_CHARS_PER_CHUNK = int(MAX_TOKENS_PER_CHUNK / TOKENS_PER_CHAR)
EMBED_BATCH_SIZE = 64
MAX_TOPICS = 5
SUPPORTED_SUFFIXES = (".txt", ".md")

# Topic vocabulary used to derive tags from document content
TOPIC_VOCABULARY = [
    "language games", "private language", "forms of life", "family resemblance",
    "rule following", "picture theory", "tractatus", "philosophical investigations",
    "meaning", "use", "grammar", "certainty", "ethics", "aesthetics", "religion",
    "mathematics", "psychology", "color", "sensation", "mind", "solipsism",
    "skepticism", "knowledge", "doubt", "logical form", "proposition", "fact",
    "world", "silence", "showing", "saying", "nonsense", "sense", "philosophy",
    "therapy", "clarity", "understanding", "seeing as", "aspect", "hinge",
    "rule", "practice", "agreement", "community", "mystical",
    "transaction", "transactional", "theory",
]


class Document(BaseModel):
    """A source document prepared for ingestion."""

    title: str
    content: str
    file_name: str = ""
    dir_name: str = ""
    source: str
    namespace: str
    tags: list[str] = Field(default_factory=list)
    document_id: str = Field(default_factory=lambda: str(uuid.uuid4()))


class IngestReport(BaseModel):
    """What one document contributed to the collection."""

    document_id: str
    title: str
    chunk_ids: list[str]


def split_text_into_chunks(text: str, max_chars: int = MAX_CHARS_PER_CHUNK) -> list[str]:
    """Split text into chunks at paragraph boundaries.

    Paragraphs are never split; a single paragraph longer than max_chars
    becomes its own chunk. Empty input yields no chunks.
    """
    chunks: list[str] = []
    current = ""

    for para in re.split(r"\n\s*\n", text):
        para = para.strip()
        if not para:
            continue
        if current and len(current) + len(para) + 2 > max_chars:
            chunks.append(current)
            current = para
        else:
            current = f"{current}\n\n{para}" if current else para

    if current:
        chunks.append(current)
    return chunks


def extract_topics(content: str, limit: int = MAX_TOPICS) -> list[str]:
    lowered = content.lower()
    return [topic for topic in TOPIC_VOCABULARY if topic in lowered][:limit]


def load_document(
    path: Path,
    namespace: str,
    source: str,
    extra_tags: Optional[list[str]] = None,
) -> Document:
    """Read a text document and derive its metadata.

    The title is the first non-empty line, falling back to the file stem.
    Tags combine the source, the parent directory name, detected topics
    and any extra tags, de-duplicated in that order.
    """
    content = path.read_text(encoding="utf-8")
    first_line = next((line.strip() for line in content.splitlines() if line.strip()), "")
    dir_name = path.parent.name.lower()

    tags: list[str] = []
    for tag in [source, dir_name, *extract_topics(content), *(extra_tags or [])]:
        if tag and tag not in tags:
            tags.append(tag)

    return Document(
        title=first_line.lstrip("# ").strip() or path.stem,
        content=content,
        file_name=path.name,
        dir_name=dir_name,
        source=source,
        namespace=namespace,
        tags=tags,
    )


def discover_files(root: Path) -> list[Path]:
    """List ingestible files under root (or root itself if it is a file), sorted."""
    if root.is_file():
        return [root] if root.suffix.lower() in SUPPORTED_SUFFIXES else []
    return sorted(p for p in root.rglob("*") if p.is_file() and p.suffix.lower() in SUPPORTED_SUFFIXES)


def build_points(
    document: Document,
    chunks: list[str],
    vectors: list[list[float]],
    start_index: int = 0,
    total_chunks: Optional[int] = None,
) -> list[dict[str, Any]]:
    """Pair chunks with their vectors and the document metadata.

    start_index and total_chunks place a batch within the whole document.
    """
    timestamp = datetime.now(timezone.utc).isoformat()
    total = total_chunks if total_chunks is not None else len(chunks)
    points = []
    for i, (chunk, vector) in enumerate(zip(chunks, vectors), start=start_index):
        chunk_id = str(uuid.uuid4())
        points.append({
            "id": chunk_id,
            "vector": vector,
            "payload": {
                "content": chunk,
                "metadata": {
                    "title": document.title,
                    "fileName": document.file_name,
                    "dirName": document.dir_name,
                    "source": document.source,
                    "namespace": document.namespace,
                    "tags": document.tags,
                    "documentId": document.document_id,
                    "parentDocumentId": document.document_id,
                    "chunkId": chunk_id,
                    "chunkIndex": i,
                    "totalChunks": total,
                },
                "timestamp": timestamp,
            },
        })
    return points


async def ingest_document(
    document: Document,
    store: VectorStore,
    embedder: EmbeddingProvider,
    collection: str,
    max_chars: int = MAX_CHARS_PER_CHUNK,
) -> IngestReport:
    """Chunk, embed and upsert one document."""
    chunks = split_text_into_chunks(document.content, max_chars)
    logger.info(
        f"[{document.file_name or document.title}] {len(document.content):,} chars "
        f"(~{int(len(document.content) * TOKENS_PER_CHAR):,} tokens) -> {len(chunks)} chunks"
    )

    chunk_ids: list[str] = []
    for start in range(0, len(chunks), EMBED_BATCH_SIZE):
        batch = chunks[start:start + EMBED_BATCH_SIZE]
        vectors = await embedder.embed_many(batch)
        points = build_points(document, batch, vectors, start_index=start, total_chunks=len(chunks))
        await store.upsert(collection, points)
        chunk_ids.extend(p["id"] for p in points)

    return IngestReport(document_id=document.document_id, title=document.title, chunk_ids=chunk_ids)


async def ingest_documents(
    documents: list[Document],
    store: VectorStore,
    embedder: EmbeddingProvider,
    collection: str,
) -> list[IngestReport]:
    """Ingest documents into the collection, creating it on first use."""
    if await store.ensure_collection(collection, embedder.dimension):
        logger.info(f"Created collection {collection} with dimension {embedder.dimension}")

    reports = []
    for document in documents:
        reports.append(await ingest_document(document, store, embedder, collection))
    logger.info(
        f"Ingested {len(reports)} documents, "
        f"{sum(len(r.chunk_ids) for r in reports)} chunks into {collection}"
    )
    return reports
