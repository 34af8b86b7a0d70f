"""Tests for MCP tools."""

from pathlib import Path

import pytest
from fastmcp import FastMCP
from qdrant_client import QdrantClient

from conftest import TEST_DIMENSION
from vectorizer.config import Config
from vectorizer.database import VectorStore
from vectorizer.indexer import Document, DocumentSet
from vectorizer.tools import register_tools


class RecordingMCP:
    """Collects the functions registered with @mcp.tool()."""

    def __init__(self):
        self.tools = {}

    def tool(self):
        def decorator(fn):
            self.tools[fn.__name__] = fn
            return fn

        return decorator


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(project=tmp_path, collection="chunks", dimension=TEST_DIMENSION)


@pytest.fixture
def store(worker) -> VectorStore:
    store = VectorStore(QdrantClient(":memory:"), dimension=TEST_DIMENSION)
    documents = DocumentSet(collection="chunks")
    for name, text in [("intro.md", "vectors live in collections"), ("usage.md", "search fragments")]:
        doc = Document.from_file(Path("/project") / name, text, identity=name)
        doc.add_fragment(text)
        documents.add(doc)
    store.upsert(worker.encode(documents))
    store.ensure_collection("other")
    return store


@pytest.fixture
def tools(worker, store, config) -> dict:
    mcp = RecordingMCP()
    register_tools(mcp, worker, store, config)
    return mcp.tools


class TestRegisterTools:
    def test_registers_on_fastmcp(self, worker, store, config):
        mcp = FastMCP(name="vectorizer")
        register_tools(mcp, worker, store, config)

    def test_tool_names(self, tools):
        assert set(tools) == {"search", "list_collections"}


class TestSearchTool:
    @pytest.mark.asyncio
    async def test_search_default_collection(self, tools):
        results = await tools["search"]("vectors live in collections", limit=1)

        assert len(results) == 1
        result = results[0]
        assert result["name"] == "intro.md"
        assert result["text"] == "vectors live in collections"
        assert result["path"] == "/project/intro.md"
        assert result["score"] == pytest.approx(1.0, abs=1e-3)

    @pytest.mark.asyncio
    async def test_search_limit(self, tools):
        results = await tools["search"]("anything", limit=10)
        assert len(results) == 2

    @pytest.mark.asyncio
    async def test_search_other_collection(self, tools):
        assert await tools["search"]("anything", collection="other") == []


class TestListCollectionsTool:
    def test_list_collections(self, tools):
        assert sorted(tools["list_collections"]()) == ["chunks", "other"]
