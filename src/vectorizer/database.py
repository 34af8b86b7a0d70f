"""Qdrant vector store for embedded fragments."""

import json
import logging
import uuid
from collections.abc import Iterator
from datetime import datetime
from typing import Any

from qdrant_client import QdrantClient, models
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse

from vectorizer.embedding.model import DEFAULT_DIMENSION
from vectorizer.errors import UpsertError
from vectorizer.indexer.models import EmbeddedDocumentSet, EmbeddedFragment, SearchResult

logger = logging.getLogger(__name__)

# Points sent per upsert request
UPSERT_BATCH_SIZE = 256

DEFAULT_SEARCH_LIMIT = 52

QDRANT_ERRORS = (UnexpectedResponse, ResponseHandlingException, ValueError)


def point_id(fragment_id: str) -> str:
    """Deterministic point id for a fragment, so re-uploads overwrite."""
    return str(uuid.uuid5(uuid.NAMESPACE_OID, fragment_id))


def fragment_payload(fragment: EmbeddedFragment, created_at: str) -> dict[str, Any]:
    return {
        "id": fragment.id,
        "document_id": fragment.document_id,
        "name": fragment.name,
        "text": fragment.text,
        "created_at": created_at,
        "metadata": json.dumps(fragment.metadata, default=str, sort_keys=True),
    }


def _batches(points: list[models.PointStruct], size: int) -> Iterator[list[models.PointStruct]]:
    for start in range(0, len(points), size):
        yield points[start : start + size]


class VectorStore:
    """
    Qdrant collection access for the vectorizer.

    Collections are created on demand with cosine distance and the fixed
    embedding dimension.
    """

    def __init__(self, client: QdrantClient, dimension: int = DEFAULT_DIMENSION):
        self.client = client
        self.dimension = dimension

    @classmethod
    def from_url(
        cls,
        url: str,
        api_key: str | None = None,
        dimension: int = DEFAULT_DIMENSION,
    ) -> "VectorStore":
        logger.debug("Connecting to Qdrant at %s", url)
        return cls(QdrantClient(url=url, api_key=api_key), dimension=dimension)

    def close(self) -> None:
        self.client.close()

    def list_collections(self) -> list[str]:
        try:
            response = self.client.get_collections()
        except QDRANT_ERRORS as e:
            raise UpsertError(f"Could not list collections: {e}") from e
        return [c.name for c in response.collections]

    def ensure_collection(self, name: str) -> bool:
        """
        Create the collection if it does not exist.

        Returns True if the collection was created.
        """
        try:
            if self.client.collection_exists(name):
                return False
            self.client.create_collection(
                collection_name=name,
                vectors_config=models.VectorParams(
                    size=self.dimension,
                    distance=models.Distance.COSINE,
                ),
            )
        except QDRANT_ERRORS as e:
            raise UpsertError(f"Could not create collection {name}: {e}") from e

        logger.info("Created collection %s (dimension %d, cosine)", name, self.dimension)
        return True

    def upsert(self, documents: EmbeddedDocumentSet) -> int:
        """
        Upsert one point per embedded fragment.

        Returns the number of points written.

        Raises:
            UpsertError: If Qdrant rejects a request.
        """
        collection = documents.collection
        for fragment in documents.fragments:
            if len(fragment.vector) != self.dimension:
                raise UpsertError(
                    f"Fragment {fragment.id} has {len(fragment.vector)} values, "
                    f"collection {collection} expects {self.dimension}"
                )
        self.ensure_collection(collection)

        created_at = datetime.now().astimezone().isoformat()
        points = [
            models.PointStruct(
                id=point_id(fragment.id),
                vector=fragment.vector,
                payload=fragment_payload(fragment, created_at),
            )
            for fragment in documents.fragments
        ]

        for batch in _batches(points, UPSERT_BATCH_SIZE):
            try:
                self.client.upsert(collection_name=collection, points=batch, wait=True)
            except QDRANT_ERRORS as e:
                raise UpsertError(f"Could not upsert into {collection}: {e}") from e

        logger.info("Upserted %d points into %s", len(points), collection)
        return len(points)

    def search(
        self,
        collection: str,
        vector: list[float],
        limit: int = DEFAULT_SEARCH_LIMIT,
        score_threshold: float | None = None,
    ) -> list[SearchResult]:
        """Nearest-neighbour query against a collection."""
        try:
            response = self.client.query_points(
                collection_name=collection,
                query=vector,
                limit=limit,
                with_payload=True,
                score_threshold=score_threshold,
            )
        except QDRANT_ERRORS as e:
            raise UpsertError(f"Could not search {collection}: {e}") from e

        results: list[SearchResult] = []
        for point in response.points:
            payload = point.payload or {}
            metadata = payload.get("metadata") or "{}"
            try:
                parsed = json.loads(metadata) if isinstance(metadata, str) else dict(metadata)
            except json.JSONDecodeError:
                logger.debug("Point %s has unreadable metadata", point.id)
                parsed = {}
            results.append(
                SearchResult(
                    id=payload.get("id", str(point.id)),
                    document_id=payload.get("document_id", ""),
                    name=payload.get("name", ""),
                    text=payload.get("text", ""),
                    score=point.score,
                    created_at=payload.get("created_at"),
                    metadata=parsed,
                )
            )
        return results
