"""MCP tools for the vectorizer server.

This module defines the tools exposed by the MCP server:
- search: Similarity search over the uploaded fragments
- list_collections: Collections available in the vector store
"""

from fastmcp import FastMCP

from vectorizer import pipeline
from vectorizer.config import Config
from vectorizer.database import VectorStore
from vectorizer.embedding import EmbeddingWorker


def register_tools(
    mcp: FastMCP,
    worker: EmbeddingWorker,
    store: VectorStore,
    config: Config,
) -> None:
    """Register all tools with the FastMCP server.

    Args:
        mcp: FastMCP server instance
        worker: Embedding worker used to embed queries
        store: Vector store to query
        config: Configuration with the default collection
    """

    @mcp.tool()
    async def search(
        query: str,
        collection: str | None = None,
        limit: int = 10,
    ) -> list[dict]:
        """Search for fragments semantically similar to the query.

        Args:
            query: Free text to search for
            collection: Collection to search (default: the configured one)
            limit: Maximum number of results to return (default: 10)

        Returns:
            List of search results with:
            - name: File name of the source document
            - document_id: Id of the source document
            - text: Fragment text
            - path: Path of the source file, when known
            - score: Cosine similarity (higher is better)
        """
        results = await pipeline.search(
            worker,
            store,
            collection or config.collection,
            query,
            limit=limit,
        )
        return [
            {
                "name": result.name,
                "document_id": result.document_id,
                "text": result.text,
                "path": result.metadata.get("path"),
                "score": round(result.score, 4),
            }
            for result in results
        ]

    @mcp.tool()
    def list_collections() -> list[str]:
        """List the collections in the vector store."""
        return store.list_collections()
