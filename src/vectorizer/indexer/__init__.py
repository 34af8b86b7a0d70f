"""
Indexer module for vectorizer.

This module turns a project tree into fragments ready to be embedded: it walks
the tree with the ignore rules, reads each file and splits it into
token-bounded fragments.
"""

from vectorizer.indexer.fragmenter import MAX_TOKENS, create_fragments
from vectorizer.indexer.indexer import Indexer
from vectorizer.indexer.matcher import Matcher
from vectorizer.indexer.models import (
    Document,
    DocumentSet,
    EmbeddedDocumentSet,
    EmbeddedFragment,
    Fragment,
    SearchResult,
)
from vectorizer.indexer.walker import FileWalker, walk_files

__all__ = [
    "Document",
    "DocumentSet",
    "EmbeddedDocumentSet",
    "EmbeddedFragment",
    "FileWalker",
    "Fragment",
    "Indexer",
    "MAX_TOKENS",
    "Matcher",
    "SearchResult",
    "create_fragments",
    "walk_files",
]
