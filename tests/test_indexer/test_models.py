"""Tests for the document model."""

import uuid
from pathlib import Path

from vectorizer.indexer.models import Document, DocumentSet, document_id_for, file_metadata


class TestDocumentId:
    def test_uuid5_of_identity(self):
        assert document_id_for("a.txt") == str(uuid.uuid5(uuid.NAMESPACE_OID, "a.txt"))

    def test_stable(self):
        assert document_id_for("docs/a.txt") == document_id_for("docs/a.txt")
        assert document_id_for("docs/a.txt") != document_id_for("other/a.txt")


class TestFileMetadata:
    def test_injected_keys(self):
        metadata = file_metadata(Path("/project/docs/guide.md"))
        assert metadata == {
            "path": "/project/docs/guide.md",
            "file_name": "guide.md",
            "extension": "md",
            "file_stem": "guide",
        }

    def test_file_without_extension(self):
        metadata = file_metadata(Path("/project/Makefile"))
        assert metadata["extension"] == ""
        assert metadata["file_stem"] == "Makefile"


class TestDocument:
    def test_from_file_merges_base_metadata(self):
        base = {"team": "docs", "path": "overwritten"}
        document = Document.from_file(Path("/p/a.txt"), "text", base_metadata=base)

        assert document.metadata["team"] == "docs"
        assert document.metadata["path"] == "/p/a.txt"
        assert document.name == "a.txt"
        assert document.id == document_id_for("a.txt")
        # The base map itself is untouched
        assert base["path"] == "overwritten"

    def test_identity_overrides_name(self):
        document = Document.from_file(Path("/p/docs/a.txt"), "text", identity="docs/a.txt")
        assert document.id == document_id_for("docs/a.txt")

    def test_fragment_ids(self):
        document = Document(id="doc", name="a.txt", text="a b c")
        first = document.add_fragment("a b")
        second = document.add_fragment("c")

        assert first.id == "doc_0"
        assert second.id == "doc_1"
        assert first.document_id == second.document_id == "doc"
        assert first.name == "a.txt"
        assert first.token_count == 2

    def test_fragments_copy_metadata_on_create(self):
        document = Document(id="doc", name="a.txt", text="a b", metadata={"tags": ["x"]})
        fragment = document.add_fragment("a b")

        document.metadata["tags"].append("y")
        document.metadata["new"] = True

        assert fragment.metadata == {"tags": ["x"]}

    def test_embedded_fragment_keeps_identity(self):
        document = Document(id="doc", name="a.txt", text="a", metadata={"k": 1})
        embedded = document.add_fragment("a").to_embedded([0.1, 0.2])

        assert embedded.id == "doc_0"
        assert embedded.document_id == "doc"
        assert embedded.vector == [0.1, 0.2]
        assert embedded.metadata == {"k": 1}


class TestDocumentSet:
    def test_fragments_in_order(self):
        first = Document(id="a", name="a", text="")
        first.add_fragment("a0")
        first.add_fragment("a1")
        second = Document(id="b", name="b", text="")
        second.add_fragment("b0")

        documents = DocumentSet(collection="c", documents=[first, second])

        assert [f.id for f in documents.fragments()] == ["a_0", "a_1", "b_0"]
        assert documents.fragment_count == 3
        assert len(documents) == 2

    def test_to_embedded_keeps_collection_and_metadata(self):
        documents = DocumentSet(collection="c", metadata={"k": "v"})
        embedded = documents.to_embedded([])

        assert embedded.collection == "c"
        assert embedded.metadata == {"k": "v"}
        assert len(embedded) == 0
