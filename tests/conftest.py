"""Shared fixtures: deterministic embedding models and in-memory stores."""

import hashlib

import logfire
import pytest

from ignite_store.document import MetadataMode
from ignite_store.embedding.model import BaseEmbeddingModel
from ignite_store.embedding.types import (
    Embedding,
    EmbeddingOptions,
    EmbeddingResponse,
    Usage,
    build_response_metadata,
)
from ignite_store.observation import ObservationRegistry
from ignite_store.retry import RetryPolicy
from ignite_store.vectorstore.memory import InMemoryVectorStore

logfire.configure(send_to_logfire=False, console=False)


class KeyedEmbeddingModel(BaseEmbeddingModel):
    """Returns vectors from a lookup table, falling back to a hash of the text.

    Equal texts always produce equal vectors, so a stored document is its own
    nearest neighbor. Metadata is left out of the embedded text by default so
    lookups match on content alone.
    """

    provider_name = "keyed"

    def __init__(
        self,
        vectors: dict[str, list[float]] | None = None,
        dimensions: int = 4,
        metadata_mode: MetadataMode = MetadataMode.NONE,
    ):
        super().__init__(
            EmbeddingOptions(model="keyed-test", dimensions=dimensions),
            metadata_mode=metadata_mode,
        )
        self.vectors = vectors or {}
        self.calls: list[list[str]] = []

    def _vector_for(self, text: str, dimensions: int) -> list[float]:
        if text in self.vectors:
            return list(self.vectors[text])
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        return [(digest[i] / 127.5) - 1.0 for i in range(dimensions)]

    async def _call(self, instructions: list[str], options: EmbeddingOptions) -> EmbeddingResponse:
        self.calls.append(list(instructions))
        dimensions = self._resolved_dimensions(options)
        results = [
            Embedding(output=self._vector_for(text, dimensions), index=index)
            for index, text in enumerate(instructions)
        ]
        chars = sum(len(text) for text in instructions)
        return EmbeddingResponse(
            results=results,
            metadata=build_response_metadata(
                options.model or "", Usage(prompt_tokens=chars, total_tokens=chars)
            ),
        )


class RecordingHandler:
    def __init__(self):
        self.events = []

    def on_observation(self, event) -> None:
        self.events.append(event)


@pytest.fixture
def keyed_model() -> KeyedEmbeddingModel:
    return KeyedEmbeddingModel()


@pytest.fixture
def fast_retry() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, min_wait=0, max_wait=0, multiplier=0)


@pytest.fixture
def recording_handler() -> RecordingHandler:
    return RecordingHandler()


@pytest.fixture
def observation_registry(recording_handler) -> ObservationRegistry:
    registry = ObservationRegistry()
    registry.register(recording_handler)
    return registry


@pytest.fixture
def memory_store(keyed_model, fast_retry) -> InMemoryVectorStore:
    return InMemoryVectorStore(keyed_model, retry_policy=fast_retry)


@pytest.fixture
def make_keyed_model():
    return KeyedEmbeddingModel
