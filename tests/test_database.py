"""Tests for the Qdrant vector store, using the in-process client."""

import json
import uuid

import pytest
from qdrant_client import QdrantClient, models

from vectorizer.database import VectorStore, fragment_payload, point_id
from vectorizer.errors import UpsertError
from vectorizer.indexer.models import EmbeddedDocumentSet, EmbeddedFragment

DIMENSION = 4


def fragment(index: int, vector: list[float], text: str = "") -> EmbeddedFragment:
    return EmbeddedFragment(
        id=f"doc_{index}",
        document_id="doc",
        name="a.txt",
        text=text or f"fragment {index}",
        vector=vector,
        metadata={"path": "/p/a.txt", "tags": ["x"]},
    )


@pytest.fixture
def store():
    s = VectorStore(QdrantClient(":memory:"), dimension=DIMENSION)
    yield s
    s.close()


@pytest.fixture
def embedded() -> EmbeddedDocumentSet:
    return EmbeddedDocumentSet(
        collection="chunks",
        fragments=[
            fragment(0, [1.0, 0.0, 0.0, 0.0], "north"),
            fragment(1, [0.0, 1.0, 0.0, 0.0], "east"),
            fragment(2, [0.0, 0.0, 1.0, 0.0], "up"),
        ],
    )


class TestPointId:
    def test_uuid5_of_fragment_id(self):
        assert point_id("doc_0") == str(uuid.uuid5(uuid.NAMESPACE_OID, "doc_0"))

    def test_payload_fields(self):
        payload = fragment_payload(fragment(0, [0.0] * DIMENSION, "hi"), "2024-01-01T00:00:00")
        assert payload["id"] == "doc_0"
        assert payload["document_id"] == "doc"
        assert payload["name"] == "a.txt"
        assert payload["text"] == "hi"
        assert payload["created_at"] == "2024-01-01T00:00:00"
        assert json.loads(payload["metadata"]) == {"path": "/p/a.txt", "tags": ["x"]}


class TestVectorStore:
    def test_ensure_collection_creates_cosine_collection(self, store: VectorStore):
        assert store.ensure_collection("chunks") is True
        assert store.ensure_collection("chunks") is False

        params = store.client.get_collection("chunks").config.params.vectors
        assert params.size == DIMENSION
        assert params.distance == models.Distance.COSINE
        assert store.list_collections() == ["chunks"]

    def test_upsert_one_point_per_fragment(self, store: VectorStore, embedded: EmbeddedDocumentSet):
        assert store.upsert(embedded) == 3
        assert store.client.count("chunks").count == 3

        points = store.client.retrieve("chunks", ids=[point_id("doc_1")], with_payload=True)
        assert len(points) == 1
        assert points[0].payload["text"] == "east"
        assert points[0].payload["created_at"]

    def test_reupload_overwrites(self, store: VectorStore, embedded: EmbeddedDocumentSet):
        store.upsert(embedded)
        store.upsert(embedded)
        assert store.client.count("chunks").count == 3

    def test_search_returns_nearest(self, store: VectorStore, embedded: EmbeddedDocumentSet):
        store.upsert(embedded)

        results = store.search("chunks", [0.1, 0.9, 0.0, 0.0], limit=2)

        assert len(results) == 2
        assert results[0].text == "east"
        assert results[0].id == "doc_1"
        assert results[0].document_id == "doc"
        assert results[0].metadata == {"path": "/p/a.txt", "tags": ["x"]}
        assert results[0].score >= results[1].score

    def test_wrong_dimension_raises_upsert_error(self, store: VectorStore):
        bad = EmbeddedDocumentSet(collection="chunks", fragments=[fragment(0, [1.0, 0.0])])
        with pytest.raises(UpsertError):
            store.upsert(bad)

    def test_search_missing_collection(self, store: VectorStore):
        with pytest.raises(UpsertError):
            store.search("missing", [1.0, 0.0, 0.0, 0.0])
