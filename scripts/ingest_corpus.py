#!/usr/bin/env python3
"""Ingest text documents into the shared vector collection.

Each .txt/.md file becomes one document: it is split into paragraph-bounded
chunks, embedded in batches, and upserted with metadata the corpus filters
match on (namespace, tags, source). The collection is created on first use
with the embedding model's dimension.

Usage:
    python scripts/ingest_corpus.py --path texts/witt --namespace witt-writings --source wittgenstein
    python scripts/ingest_corpus.py --path texts/transactions --namespace transactional \\
        --source transaction-theory --tags transaction,transactions

Options:
    --path          File or directory to ingest
    --namespace     metadata.namespace for every chunk
    --source        metadata.source (also added as a tag)
    --tags          Extra comma-separated tags
    --collection    Target collection (default: QDRANT_COLLECTION)
    --dry-run       Chunk and report without embedding or upserting
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from src import config
from src.retrieval.embeddings import OpenAIEmbeddingProvider
from src.retrieval.ingest import discover_files, ingest_documents, load_document, split_text_into_chunks
from src.retrieval.vector_store import QdrantVectorStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("ingest_corpus")


async def run(args: argparse.Namespace) -> int:
    files = discover_files(Path(args.path))
    if not files:
        print(f"Error: No .txt or .md files found at {args.path}")
        return 1

    extra_tags = [t.strip() for t in args.tags.split(",") if t.strip()] if args.tags else []
    documents = [load_document(f, args.namespace, args.source, extra_tags) for f in files]

    if args.dry_run:
        for doc in documents:
            chunks = split_text_into_chunks(doc.content)
            print(f"  {doc.file_name}: '{doc.title}' -> {len(chunks)} chunks, tags={doc.tags}")
        print(f"DRY RUN: {len(documents)} documents, nothing written")
        return 0

    store = QdrantVectorStore()
    try:
        reports = await ingest_documents(documents, store, OpenAIEmbeddingProvider(), args.collection)
    finally:
        await store.close()

    for report in reports:
        print(f"  {report.title}: {len(report.chunk_ids)} chunks")
    print(f"Ingested {len(reports)} documents into {args.collection}")
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Ingest text documents into the vector collection"
    )
    parser.add_argument("--path", required=True, help="File or directory to ingest")
    parser.add_argument("--namespace", required=True, help="metadata.namespace for every chunk")
    parser.add_argument("--source", required=True, help="metadata.source, also added as a tag")
    parser.add_argument("--tags", type=str, default="", help="Extra comma-separated tags")
    parser.add_argument(
        "--collection",
        type=str,
        default=config.QDRANT_COLLECTION,
        help="Target collection",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Chunk and report without embedding or upserting",
    )
    args = parser.parse_args()
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
