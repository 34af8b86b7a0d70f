"""Parallel file walker for discovering files under a project root."""

import logging
import os
from collections.abc import Iterable, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from pathlib import Path

from vectorizer.errors import TraversalError
from vectorizer.indexer.matcher import Matcher

logger = logging.getLogger(__name__)

DEFAULT_THREADS = 6

# Matches every extension
WILDCARD = "*"


def normalize_extensions(extensions: Iterable[str]) -> frozenset[str]:
    """Strip leading dots and blanks from an extension allow-list."""
    return frozenset(e.strip().lstrip(".") for e in extensions if e and e.strip())


def is_hidden(name: str) -> bool:
    return name.startswith(".")


class FileWalker:
    """
    Walk a directory tree on a fixed pool of threads.

    Each directory listing is one task; subdirectories found by a task are
    submitted as new tasks. Entries that cannot be read are logged, recorded
    in `errors` and skipped.
    """

    def __init__(
        self,
        root: Path,
        matcher: Matcher | None = None,
        extensions: Iterable[str] = (),
        threads: int = DEFAULT_THREADS,
    ):
        self.root = Path(root)
        self.matcher = matcher or Matcher(self.root, [])
        self.extensions = normalize_extensions(extensions)
        self.threads = max(1, threads)
        self.errors: list[TraversalError] = []

    def _extension_allowed(self, name: str) -> bool:
        if not self.extensions or WILDCARD in self.extensions:
            return True
        suffix = Path(name).suffix
        # Files without an extension fail closed
        if not suffix:
            return False
        return suffix[1:] in self.extensions

    def _record(self, path: str, err: OSError) -> None:
        error = TraversalError(path, err.strerror or str(err))
        logger.warning("Skipping unreadable entry %s", error)
        self.errors.append(error)

    def _scan(self, directory: Path) -> tuple[list[Path], list[Path]]:
        """List one directory. Returns (accepted files, subdirectories to visit)."""
        files: list[Path] = []
        subdirs: list[Path] = []

        try:
            with os.scandir(directory) as it:
                entries = list(it)
        except OSError as e:
            self._record(str(directory), e)
            return files, subdirs

        for entry in entries:
            if is_hidden(entry.name):
                continue  # Hidden directories are pruned with their subtree

            try:
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = not is_dir and entry.is_file()
            except OSError as e:
                self._record(entry.path, e)
                continue

            if not is_dir and not is_file:
                continue

            path = Path(entry.path)
            relative = path.relative_to(self.root).as_posix()

            if is_dir:
                if not self.matcher.matches(relative, is_dir=True):
                    subdirs.append(path)
                continue

            if not self._extension_allowed(entry.name):
                continue
            if self.matcher.matches(relative, is_dir=False):
                continue
            files.append(path)

        return files, subdirs

    def _start_allowed(self, start: Path) -> bool:
        """A start directory is walked only if no part of it is hidden or ignored."""
        try:
            parts = start.relative_to(self.root).parts
        except ValueError:
            logger.warning("Start directory %s is outside %s", start, self.root)
            return False

        for depth in range(1, len(parts) + 1):
            relative = "/".join(parts[:depth])
            if is_hidden(parts[depth - 1]) or self.matcher.matches(relative, is_dir=True):
                logger.info("Skipping start directory %s (hidden or ignored)", start)
                return False
        return True

    def walk(self, start: Sequence[Path] | None = None) -> list[Path]:
        """
        Walk from the given start directories (default: the root).

        Returns the accepted files sorted by path, so the result does not
        depend on the order entries were visited in.
        """
        accepted: list[Path] = []
        starts = [Path(s) for s in start] if start else [self.root]
        starts = [s for s in starts if self._start_allowed(s)]

        with ThreadPoolExecutor(max_workers=self.threads, thread_name_prefix="walker") as pool:
            pending: set[Future] = {pool.submit(self._scan, s) for s in starts}
            while pending:
                done, pending = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    files, subdirs = future.result()
                    accepted.extend(files)
                    for subdir in subdirs:
                        pending.add(pool.submit(self._scan, subdir))

        return sorted(accepted)


def walk_files(
    root: Path,
    rules: Iterable[str] = (),
    extensions: Iterable[str] = (),
    threads: int = DEFAULT_THREADS,
    start: Sequence[Path] | None = None,
) -> list[Path]:
    """
    Walk root and return the files that pass the hidden, extension and ignore filters.

    Raises:
        PatternError: If one of the ignore rules is invalid.
    """
    root = Path(root)
    if not root.is_dir():
        return []

    walker = FileWalker(root, Matcher.compile(root, rules), extensions, threads)
    files = walker.walk(start)
    logger.debug("Walked %s: %d files accepted, %d errors", root, len(files), len(walker.errors))
    return files
