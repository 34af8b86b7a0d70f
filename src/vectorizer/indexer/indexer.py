"""Indexer that turns a project tree into a DocumentSet."""

import logging
import time
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from vectorizer.indexer.fragmenter import create_fragments
from vectorizer.indexer.models import Document, DocumentSet
from vectorizer.indexer.walker import DEFAULT_THREADS, walk_files

if TYPE_CHECKING:
    from vectorizer.config import Config

logger = logging.getLogger(__name__)


class Indexer:
    """
    Builds the documents for a project root.

    The root can be a single file, in which case the walker is bypassed, or a
    directory that is walked with the extension and ignore filters.
    """

    def __init__(
        self,
        root: Path,
        extensions: Iterable[str] = (),
        ignored: Iterable[str] = (),
        directories: Iterable[str] = (),
        metadata: dict[str, Any] | None = None,
        max_tokens: int | None = None,
        collection: str = "",
        threads: int = DEFAULT_THREADS,
    ):
        """
        Initialize the indexer.

        Args:
            root: Project root directory or a single file
            extensions: Extension allow-list ("*" or empty accepts all)
            ignored: Ignore rules evaluated relative to root
            directories: Sub-directories of root to walk instead of root itself
            metadata: Base metadata merged into every document
            max_tokens: Fragment size cap (clamped by the fragmenter)
            collection: Target collection name
            threads: Walker pool size
        """
        self.root = Path(root)
        self.extensions = list(extensions)
        self.ignored = list(ignored)
        self.directories = list(directories)
        self.metadata = dict(metadata or {})
        self.max_tokens = max_tokens
        self.collection = collection
        self.threads = threads

    @classmethod
    def from_config(cls, config: "Config") -> "Indexer":
        return cls(
            root=config.project,
            extensions=config.extensions,
            ignored=config.ignored,
            directories=config.directories,
            metadata=config.metadata,
            max_tokens=config.max_tokens,
            collection=config.collection,
            threads=config.threads,
        )

    def _start_directories(self) -> list[Path] | None:
        """Resolve configured sub-directories, dropping the ones that do not exist."""
        if not self.directories:
            return None

        starts: list[Path] = []
        for directory in self.directories:
            path = Path(directory)
            if not path.is_absolute():
                path = self.root / path
            if not path.is_dir():
                logger.warning("Directory %s does not exist", path)
                continue
            try:
                path.relative_to(self.root)
            except ValueError:
                logger.warning("Directory %s is outside project root %s", path, self.root)
                continue
            starts.append(path)
        return starts

    def _discover(self) -> list[Path]:
        if self.root.is_file():
            return [self.root]
        if not self.root.is_dir():
            logger.warning("Project root %s does not exist", self.root)
            return []

        starts = self._start_directories()
        if starts is not None and not starts:
            return []
        return walk_files(self.root, self.ignored, self.extensions, self.threads, starts)

    def _identity(self, path: Path) -> str:
        if self.root.is_file():
            return path.name
        return path.relative_to(self.root).as_posix()

    def index_file(self, path: Path) -> Document | None:
        """
        Read and fragment a single file.

        Returns None for files that cannot be read as UTF-8 or hold no text.
        """
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            logger.warning("Skipping file with invalid UTF-8 encoding: %s (%s)", path, e)
            return None
        except OSError as e:
            logger.warning("Skipping unreadable file %s: %s", path, e)
            return None

        document = Document.from_file(
            path,
            text,
            identity=self._identity(path),
            base_metadata=self.metadata,
        )
        for fragment_text in create_fragments(text, self.max_tokens):
            document.add_fragment(fragment_text)

        if not document.fragments:
            logger.debug("Skipping empty file: %s", path)
            return None

        logger.debug("Indexed %s (%d fragments)", path, len(document.fragments))
        return document

    def build_index(self) -> DocumentSet:
        """
        Walk the project and build the document set.

        An empty set is a valid result; callers decide what to do with it.
        """
        started = time.perf_counter()
        logger.info("Indexing files in %s", self.root)

        documents = DocumentSet(collection=self.collection, metadata=dict(self.metadata))
        seen: set[Path] = set()

        for path in self._discover():
            if path in seen:
                continue
            seen.add(path)

            document = self.index_file(path)
            if document is not None:
                documents.add(document)

        logger.info(
            "Indexing complete: %d documents, %d fragments in %.2fs",
            len(documents),
            documents.fragment_count,
            time.perf_counter() - started,
        )
        return documents
