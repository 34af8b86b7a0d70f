"""Embedding worker that owns the model on a dedicated thread.

The model is loaded once and is only ever touched by the worker thread.
Callers talk to it through a bounded FIFO queue of (DocumentSet, reply)
requests; each reply is a one-shot future that async callers await through
asyncio.wrap_future.
"""

import asyncio
import logging
import queue
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import TYPE_CHECKING

from vectorizer.embedding.model import DEFAULT_DIMENSION, Encoder, ModelSource, load_model
from vectorizer.errors import EmbeddingError, ModelLoadError
from vectorizer.indexer.models import Document, DocumentSet, EmbeddedDocumentSet, EmbeddedFragment

if TYPE_CHECKING:
    from vectorizer.config import Config

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 100

ModelFactory = Callable[[ModelSource], Encoder]


@dataclass
class _Request:
    documents: DocumentSet
    reply: Future


class EmbeddingWorker:
    """
    Serializes every inference call through a single worker thread.

    Construction blocks until the model is loaded and raises ModelLoadError if
    it cannot be, so a worker that exists always accepts submissions.

    Thread Safety:
        submit, submit_nowait and encode can be called from any thread or
        event loop. Requests are served one at a time in submission order.
        A request that finds the queue full, or finds earlier requests still
        waiting for room, is handed to a single enqueue thread, so a later
        submission never overtakes an earlier one.
    """

    def __init__(
        self,
        source: ModelSource,
        dimension: int = DEFAULT_DIMENSION,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        batch_size: int = 1,
        model_factory: ModelFactory = load_model,
    ):
        """
        Start the worker thread and load the model.

        Args:
            source: Model location
            dimension: Expected embedding length
            queue_size: Maximum number of pending requests
            batch_size: Fragments per model call
            model_factory: Loads the model from a source (runs on the worker thread)

        Raises:
            ModelLoadError: If the model cannot be loaded or has the wrong dimension.
        """
        if batch_size <= 0:
            raise ValueError(f"Batch size must be positive, got {batch_size}")

        self.source = source
        self.dimension = dimension
        self.batch_size = batch_size
        self._model_factory = model_factory
        self._queue: queue.Queue | None = None
        self._closed = False
        self._enqueue_lock = threading.Lock()
        self._deferred = 0
        self._putter: ThreadPoolExecutor | None = None

        requests: queue.Queue = queue.Queue(maxsize=queue_size)
        ready: Future = Future()

        self._thread = threading.Thread(
            target=self._run,
            args=(requests, ready),
            name="vectorizer-embed",
            daemon=True,
        )
        self._thread.start()

        try:
            ready.result()
        except ModelLoadError:
            self._thread.join()
            raise

        self._queue = requests
        self._putter = ThreadPoolExecutor(max_workers=1, thread_name_prefix="vectorizer-enqueue")
        logger.info("Embedding worker ready (model: %s, dimension: %d)", source, dimension)

    @classmethod
    def from_config(cls, config: "Config") -> "EmbeddingWorker":
        return cls(ModelSource.from_config(config), dimension=config.dimension)

    def __enter__(self) -> "EmbeddingWorker":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # Worker thread

    def _load(self) -> Encoder:
        logger.debug("Loading model %s", self.source)
        try:
            model = self._model_factory(self.source)
        except ModelLoadError:
            raise
        except Exception as e:
            raise ModelLoadError(f"Could not load model {self.source}: {e}") from e

        model_dimension = model.get_sentence_embedding_dimension()
        if model_dimension is None:
            model_dimension = self._measure_dimension(model)
        if model_dimension != self.dimension:
            raise ModelLoadError(
                f"Model {self.source} produces {model_dimension}-dimensional vectors, "
                f"expected {self.dimension}"
            )
        return model

    def _measure_dimension(self, model: Encoder) -> int:
        """Encode a sample text for models that do not report their size."""
        try:
            vectors = model.encode(["dimension check"])
        except Exception as e:
            raise ModelLoadError(f"Could not run model {self.source}: {e}") from e
        if len(vectors) != 1:
            raise ModelLoadError(f"Model {self.source} returned {len(vectors)} vectors for one text")
        return len(vectors[0])

    def _run(self, requests: queue.Queue, ready: Future) -> None:
        """Main worker loop - runs in the worker thread."""
        try:
            model = self._load()
        except ModelLoadError as e:
            ready.set_exception(e)
            return
        ready.set_result(None)

        logger.debug("Embedding worker loop started")
        while True:
            request = requests.get()
            if request is None:
                break

            # False when the caller cancelled while queued; the work still runs
            live = request.reply.set_running_or_notify_cancel()
            try:
                result = self._embed(model, request.documents)
            except Exception as e:
                if not isinstance(e, EmbeddingError):
                    logger.exception("Unexpected error in embedding worker")
                if live:
                    request.reply.set_exception(e)
            else:
                if live:
                    request.reply.set_result(result)
                else:
                    logger.debug("Discarding result of an abandoned request")

        logger.debug("Embedding worker loop stopped")

    def _encode_batch(self, model: Encoder, texts: list[str], first_id: str) -> list[list[float]]:
        try:
            vectors = model.encode(texts)
        except Exception as e:
            raise EmbeddingError(f"Could not embed fragment {first_id}: {e}") from e

        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"Model returned {len(vectors)} vectors for {len(texts)} fragments"
            )

        result: list[list[float]] = []
        for vector in vectors:
            values = [float(x) for x in vector]
            if len(values) != self.dimension:
                raise EmbeddingError(
                    f"Fragment {first_id}: expected {self.dimension} values, got {len(values)}"
                )
            result.append(values)
        return result

    def _embed(self, model: Encoder, documents: DocumentSet) -> EmbeddedDocumentSet:
        fragments = list(documents.fragments())
        embedded: list[EmbeddedFragment] = []

        started = time.perf_counter()
        for start in range(0, len(fragments), self.batch_size):
            batch = fragments[start : start + self.batch_size]
            vectors = self._encode_batch(model, [f.text for f in batch], batch[0].id)
            embedded.extend(f.to_embedded(v) for f, v in zip(batch, vectors))
        elapsed = time.perf_counter() - started

        if fragments:
            logger.info("Documents embedded in %.2fs", elapsed)
            logger.info(
                "Average time per fragment: %.1fms (%d fragments)",
                elapsed * 1000 / len(fragments),
                len(fragments),
            )

        return documents.to_embedded(embedded)

    # Caller side

    def _check_open(self) -> None:
        if self._queue is None or self._closed:
            raise RuntimeError("Embedding worker is closed")

    def _enqueue(self, item: _Request | None) -> Future | None:
        """
        Put an item on the request queue in call order.

        Returns None when the item was queued at once, otherwise the future
        of a put deferred to the enqueue thread.
        """
        with self._enqueue_lock:
            if self._deferred == 0:
                try:
                    self._queue.put_nowait(item)
                    return None
                except queue.Full:
                    pass
            self._deferred += 1
            return self._putter.submit(self._deferred_put, item)

    def _deferred_put(self, item: _Request | None) -> None:
        try:
            self._queue.put(item)
        finally:
            with self._enqueue_lock:
                self._deferred -= 1

    def submit_nowait(self, documents: DocumentSet) -> Future:
        """
        Queue a request and return its reply future.

        Blocks only while the request queue is full.
        """
        self._check_open()
        reply: Future = Future()
        pending = self._enqueue(_Request(documents, reply))
        if pending is not None:
            pending.result()
        return reply

    async def submit(self, documents: DocumentSet) -> EmbeddedDocumentSet:
        """
        Embed a document set without blocking the event loop.

        Raises:
            EmbeddingError: If any fragment could not be embedded.
        """
        self._check_open()
        reply: Future = Future()
        pending = self._enqueue(_Request(documents, reply))
        if pending is not None:
            await asyncio.wrap_future(pending)
        return await asyncio.wrap_future(reply)

    def encode(self, documents: DocumentSet) -> EmbeddedDocumentSet:
        """Blocking variant of submit for synchronous callers."""
        return self.submit_nowait(documents).result()

    async def embed_query(self, text: str) -> list[float]:
        """Embed a free-text query through the same queue as documents."""
        document = Document(id="query", name="query", text=text)
        document.add_fragment(text)
        embedded = await self.submit(DocumentSet(documents=[document]))
        return embedded.fragments[0].vector

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def close(self, timeout: float | None = None) -> None:
        """
        Stop the worker thread.

        Requests already queued, including deferred ones, are processed
        before the thread exits.
        """
        if self._closed or self._queue is None:
            return
        self._closed = True
        pending = self._enqueue(None)
        if pending is not None:
            wait([pending], timeout=timeout)
        self._putter.shutdown(wait=False)
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            logger.warning("Embedding worker did not stop cleanly")
        else:
            logger.info("Embedding worker stopped")
