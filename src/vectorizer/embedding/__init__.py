"""Embedding module: the model source and the worker that owns the model."""

from vectorizer.embedding.model import DEFAULT_DIMENSION, ModelSource, load_model
from vectorizer.embedding.worker import EmbeddingWorker

__all__ = [
    "DEFAULT_DIMENSION",
    "EmbeddingWorker",
    "ModelSource",
    "load_model",
]
