"""Shared fixtures: a fake embedding model so tests never download one."""

import hashlib
import threading

import pytest

from vectorizer.config import reset_config
from vectorizer.embedding import EmbeddingWorker, ModelSource

TEST_DIMENSION = 8


class FakeEncoder:
    """Deterministic stand-in for a SentenceTransformer.

    Vectors are derived from a hash of the text. Texts listed in `fail_on`
    raise, texts listed in `gates` block until their event is set.
    """

    def __init__(self, dimension: int = TEST_DIMENSION):
        self.dimension = dimension
        self.calls: list[list[str]] = []
        self.fail_on: set[str] = set()
        self.gates: dict[str, threading.Event] = {}
        self.threads: set[str] = set()

    def get_sentence_embedding_dimension(self) -> int:
        return self.dimension

    def vector_for(self, text: str) -> list[float]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        return [b / 255 for b in digest[: self.dimension]]

    def encode(self, sentences: list[str]) -> list[list[float]]:
        self.threads.add(threading.current_thread().name)
        self.calls.append(list(sentences))
        for text in sentences:
            if text in self.gates:
                self.gates[text].wait(timeout=5)
            if text in self.fail_on:
                raise RuntimeError(f"cannot encode {text!r}")
        return [self.vector_for(text) for text in sentences]


@pytest.fixture(autouse=True)
def isolated_config(tmp_path_factory, monkeypatch):
    """Keep tests away from ~/.config and the real environment."""
    config_dir = tmp_path_factory.mktemp("config")
    monkeypatch.setenv("VECTORIZER_CONFIG_DIR", str(config_dir))
    for name in ("VECTORIZER_PROJECT", "VECTORIZER_URL", "VECTORIZER_API_KEY",
                 "VECTORIZER_COLLECTION", "VECTORIZER_LOG"):
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield config_dir
    reset_config()


@pytest.fixture
def encoder() -> FakeEncoder:
    return FakeEncoder()


@pytest.fixture
def worker(encoder: FakeEncoder):
    w = EmbeddingWorker(
        ModelSource("fake"),
        dimension=TEST_DIMENSION,
        model_factory=lambda source: encoder,
    )
    yield w
    w.close(timeout=5)
