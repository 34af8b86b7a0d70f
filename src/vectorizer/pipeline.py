"""Index, embed and upload pipeline used by the CLI and the MCP server."""

import asyncio
import logging
import time
from collections.abc import Callable

from vectorizer.config import Config
from vectorizer.database import DEFAULT_SEARCH_LIMIT, VectorStore
from vectorizer.embedding import EmbeddingWorker
from vectorizer.indexer import DocumentSet, Indexer, SearchResult

logger = logging.getLogger(__name__)

WorkerFactory = Callable[[Config], EmbeddingWorker]


def index(config: Config) -> DocumentSet:
    """Build the document set for the configured project."""
    if not config.extensions and config.project.is_dir():
        logger.warning("No extensions provided, every file extension will be indexed")
    return Indexer.from_config(config).build_index()


async def upload(
    config: Config,
    store: VectorStore,
    worker_factory: WorkerFactory | None = None,
) -> int:
    """
    Index the project, embed every fragment and upsert the result.

    The worker is only started when there is something to embed.

    Returns:
        Number of points upserted (0 when no documents were found).
    """
    started = time.perf_counter()

    documents = await asyncio.to_thread(index, config)
    if not documents.documents:
        logger.warning("No documents found")
        return 0

    # Loading the model and joining its thread both block
    worker_factory = worker_factory or EmbeddingWorker.from_config
    worker = await asyncio.to_thread(worker_factory, config)
    try:
        embed_started = time.perf_counter()
        embedded = await worker.submit(documents)
        logger.info("Embedding took %.2fs", time.perf_counter() - embed_started)
    finally:
        await asyncio.to_thread(worker.close)

    upload_started = time.perf_counter()
    count = await asyncio.to_thread(store.upsert, embedded)
    logger.info("Uploading took %.2fs", time.perf_counter() - upload_started)
    logger.info("Total upload time %.2fs", time.perf_counter() - started)
    return count


async def search(
    worker: EmbeddingWorker,
    store: VectorStore,
    collection: str,
    term: str,
    limit: int = DEFAULT_SEARCH_LIMIT,
) -> list[SearchResult]:
    """Embed a search term and query the collection with it."""
    vector = await worker.embed_query(term)
    return await asyncio.to_thread(store.search, collection, vector, limit)
