"""Data models for the indexer."""

import copy
import uuid
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

Metadata = dict[str, Any]


def document_id_for(identity: str) -> str:
    """Derive a stable document id from a name or relative path."""
    return str(uuid.uuid5(uuid.NAMESPACE_OID, identity))


def file_metadata(path: Path) -> Metadata:
    """Metadata injected into every document read from disk."""
    return {
        "path": str(path),
        "file_name": path.name,
        "extension": path.suffix[1:] if path.suffix else "",
        "file_stem": path.stem,
    }


@dataclass
class Fragment:
    """A contiguous slice of a document's tokens."""

    id: str
    document_id: str
    name: str
    text: str
    metadata: Metadata = field(default_factory=dict)

    @property
    def token_count(self) -> int:
        return len(self.text.split())

    def to_embedded(self, vector: list[float]) -> "EmbeddedFragment":
        return EmbeddedFragment(
            id=self.id,
            document_id=self.document_id,
            name=self.name,
            text=self.text,
            vector=vector,
            metadata=copy.deepcopy(self.metadata),
        )


@dataclass
class EmbeddedFragment:
    """A fragment together with its embedding vector."""

    id: str
    document_id: str
    name: str
    text: str
    vector: list[float]
    metadata: Metadata = field(default_factory=dict)


@dataclass
class Document:
    """Represents one input file and its fragments."""

    id: str
    name: str
    text: str
    metadata: Metadata = field(default_factory=dict)
    fragments: list[Fragment] = field(default_factory=list)

    @classmethod
    def from_file(
        cls,
        path: Path,
        text: str,
        identity: str | None = None,
        base_metadata: Metadata | None = None,
    ) -> "Document":
        """
        Build a document for a file on disk.

        Args:
            path: Path of the file as it was walked
            text: Full file content
            identity: Value the id is derived from (defaults to the file name)
            base_metadata: Metadata shared by every document of the set

        The file metadata (path, file_name, extension, file_stem) is written
        over the base metadata.
        """
        metadata: Metadata = copy.deepcopy(base_metadata) if base_metadata else {}
        metadata.update(file_metadata(path))
        return cls(
            id=document_id_for(identity or path.name),
            name=path.name,
            text=text,
            metadata=metadata,
        )

    def add_fragment(self, text: str) -> Fragment:
        """Append a fragment. The fragment gets its own copy of the metadata."""
        index = len(self.fragments)
        fragment = Fragment(
            id=f"{self.id}_{index}",
            document_id=self.id,
            name=self.name,
            text=text,
            metadata=copy.deepcopy(self.metadata),
        )
        self.fragments.append(fragment)
        return fragment


@dataclass
class EmbeddedDocumentSet:
    """Embedded fragments of a DocumentSet, ready to be upserted."""

    collection: str = ""
    fragments: list[EmbeddedFragment] = field(default_factory=list)
    metadata: Metadata = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.fragments)


@dataclass
class DocumentSet:
    """Ordered documents sharing one target collection."""

    collection: str = ""
    documents: list[Document] = field(default_factory=list)
    metadata: Metadata = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.documents)

    def add(self, document: Document) -> None:
        self.documents.append(document)

    def fragments(self) -> Iterator[Fragment]:
        """Iterate over every fragment, in document then fragment order."""
        for document in self.documents:
            yield from document.fragments

    @property
    def fragment_count(self) -> int:
        return sum(len(d.fragments) for d in self.documents)

    def to_embedded(self, fragments: list[EmbeddedFragment]) -> EmbeddedDocumentSet:
        return EmbeddedDocumentSet(
            collection=self.collection,
            fragments=fragments,
            metadata=copy.deepcopy(self.metadata),
        )


@dataclass
class SearchResult:
    """A fragment returned by a similarity search."""

    id: str
    document_id: str
    name: str
    text: str
    score: float
    created_at: str | None = None
    metadata: Metadata = field(default_factory=dict)
