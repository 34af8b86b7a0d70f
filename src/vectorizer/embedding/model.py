"""Embedding model sources and loading."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from vectorizer.errors import ModelLoadError

if TYPE_CHECKING:
    from vectorizer.config import Config

logger = logging.getLogger(__name__)

# all-MiniLM-*-v2 output size
DEFAULT_DIMENSION = 384

DEFAULT_REMOTE_MODEL = "L12"

# Short names accepted for the remote models
REMOTE_MODELS = {
    "L6": "sentence-transformers/all-MiniLM-L6-v2",
    "L12": "sentence-transformers/all-MiniLM-L12-v2",
}


class Encoder(Protocol):
    """The part of a sentence-transformers model the worker relies on."""

    def encode(self, sentences: list[str]) -> Sequence[Sequence[float]]: ...

    def get_sentence_embedding_dimension(self) -> int | None: ...


@dataclass(frozen=True)
class ModelSource:
    """Where the embedding model comes from: a local path or a remote model name."""

    location: str = DEFAULT_REMOTE_MODEL
    local: bool = False

    @classmethod
    def from_config(cls, config: "Config") -> "ModelSource":
        return cls(location=config.model_location, local=config.model_local)

    def resolve(self) -> str:
        """
        Return the name or path passed to the model loader.

        Raises:
            ModelLoadError: If a local model path does not exist.
        """
        if self.local:
            path = Path(self.location).expanduser()
            if not path.exists():
                raise ModelLoadError(f"Local model not found: {path}")
            return str(path)
        return REMOTE_MODELS.get(self.location, self.location)

    def __str__(self) -> str:
        return f"{'local' if self.local else 'remote'}:{self.location}"


def load_model(source: ModelSource, device: str | None = None) -> Encoder:
    """
    Load a sentence-transformers model.

    Remote models are downloaded on first use and cached by huggingface_hub.
    The device defaults to CUDA when available.

    Raises:
        ModelLoadError: If the model cannot be resolved or loaded.
    """
    name = source.resolve()

    from sentence_transformers import SentenceTransformer

    logger.debug("Loading model %s", name)
    try:
        return SentenceTransformer(name, device=device)
    except (OSError, ValueError) as e:
        raise ModelLoadError(f"Could not load model {source}: {e}") from e
