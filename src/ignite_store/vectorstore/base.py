"""Shared add/delete/search pipeline for vector store backends.

Backends only implement the storage primitives (``_upsert``, ``_delete``,
``_delete_where``, ``_query``). Embedding, batching, validation, retries and
observation live here so every backend behaves the same way.

Distance is one minus the normalized cosine score ``(1 + cos) / 2``, which is
the score MongoDB Atlas reports for cosine vector indexes. It always lies in
[0, 1]; identical directions have distance 0.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, Optional, Sequence, Union

from loguru import logger

from ignite_store.document import Document
from ignite_store.embedding.batching import BatchingStrategy, TokenCountBatchingStrategy
from ignite_store.embedding.model import EmbeddingModel
from ignite_store.errors import ConfigurationError, InvalidRequestError
from ignite_store.observation import ObservationRegistry, VectorStoreObservation
from ignite_store.retry import RetryPolicy
from ignite_store.vectorstore.filters import validate_filter

DEFAULT_TOP_K = 4
DEFAULT_MAX_DISTANCE = 1.0


def similarity_to_max_distance(similarity_threshold: float) -> float:
    """Convert a similarity threshold in [0, 1] to the equivalent maximum distance."""
    if similarity_threshold is None or not 0.0 <= similarity_threshold <= 1.0:
        raise ConfigurationError(
            f"Similarity threshold must be within [0, 1], got {similarity_threshold}"
        )
    return min(1.0, max(0.0, 1.0 - similarity_threshold))


def cosine_distance(left: Sequence[float], right: Sequence[float]) -> float:
    """Distance in [0, 1].

    Two zero-norm vectors are identical and have distance 0. A zero-norm vector
    compared with a non-zero one is treated as orthogonal.
    """
    dot = math.fsum(a * b for a, b in zip(left, right))
    left_norm = math.sqrt(math.fsum(a * a for a in left))
    right_norm = math.sqrt(math.fsum(b * b for b in right))
    if left_norm == 0.0 and right_norm == 0.0:
        return 0.0
    if left_norm == 0.0 or right_norm == 0.0:
        cosine = 0.0
    else:
        cosine = max(-1.0, min(1.0, dot / (left_norm * right_norm)))
    return score_to_distance((1.0 + cosine) / 2.0)


def score_to_distance(score: float) -> float:
    return min(1.0, max(0.0, 1.0 - score))


@dataclass
class SearchRequest:
    """A similarity search.

    Unset fields fall back to the store's defaults. Give either
    ``similarity_threshold`` or ``max_distance``, not both.
    """

    query: str
    top_k: Optional[int] = None
    similarity_threshold: Optional[float] = None
    max_distance: Optional[float] = None
    filter_expression: Optional[dict[str, Any]] = None

    def validate(self) -> "SearchRequest":
        if self.query is None:
            raise InvalidRequestError("Search query must not be None", stage="storage")
        if self.top_k is not None and self.top_k < 0:
            raise InvalidRequestError(f"top_k must be >= 0, got {self.top_k}", stage="storage")
        if self.similarity_threshold is not None and self.max_distance is not None:
            raise InvalidRequestError(
                "Give either similarity_threshold or max_distance, not both", stage="storage"
            )
        if self.similarity_threshold is not None and not 0.0 <= self.similarity_threshold <= 1.0:
            raise InvalidRequestError(
                f"similarity_threshold must be within [0, 1], got {self.similarity_threshold}",
                stage="storage",
            )
        if self.max_distance is not None and not 0.0 <= self.max_distance <= 1.0:
            raise InvalidRequestError(
                f"max_distance must be within [0, 1], got {self.max_distance}", stage="storage"
            )
        validate_filter(self.filter_expression)
        return self

    def resolved_max_distance(self, default: float) -> float:
        if self.max_distance is not None:
            return self.max_distance
        if self.similarity_threshold is not None:
            return similarity_to_max_distance(self.similarity_threshold)
        return default


@dataclass(frozen=True)
class ScoredRecord:
    """A stored record matched by a backend query."""

    document: Document
    distance: float
    sequence: int = 0


class VectorStore(ABC):
    """Base class for vector stores."""

    db_system: str = "unknown"

    def __init__(
        self,
        embedding_model: EmbeddingModel,
        *,
        collection_name: str,
        batching_strategy: Optional[BatchingStrategy] = None,
        observation_registry: Optional[ObservationRegistry] = None,
        retry_policy: Optional[RetryPolicy] = None,
        default_top_k: int = DEFAULT_TOP_K,
        default_max_distance: float = DEFAULT_MAX_DISTANCE,
    ) -> None:
        if embedding_model is None:
            raise ConfigurationError("embedding_model must not be None")
        if default_top_k < 0:
            raise ConfigurationError(f"default_top_k must be >= 0, got {default_top_k}")
        if not 0.0 <= default_max_distance <= 1.0:
            raise ConfigurationError(
                f"default_max_distance must be within [0, 1], got {default_max_distance}"
            )
        self.embedding_model = embedding_model
        self.collection_name = collection_name
        self.batching_strategy = batching_strategy or TokenCountBatchingStrategy(
            metadata_mode=embedding_model.metadata_mode
        )
        self.observation_registry = observation_registry or ObservationRegistry.NOOP
        self.retry_policy = retry_policy or RetryPolicy()
        self.default_top_k = default_top_k
        self.default_max_distance = default_max_distance

    @property
    def dimensions(self) -> int:
        return self.embedding_model.dimensions

    def _event(self, operation: str, **fields: Any) -> VectorStoreObservation:
        return VectorStoreObservation(
            operation=operation,
            db_system=self.db_system,
            collection_name=self.collection_name,
            dimensions=self.dimensions,
            **fields,
        )

    def _check_dimensions(self, vector: Sequence[float]) -> None:
        if len(vector) != self.dimensions:
            raise ConfigurationError(
                f"Embedding has {len(vector)} dimensions but the store expects {self.dimensions}",
                stage="embedding",
            )

    async def add(self, documents: Sequence[Document]) -> None:
        """Embed and store documents. Re-adding an id overwrites the stored record."""
        if documents is None:
            raise InvalidRequestError("Documents must not be None", stage="storage")
        if not documents:
            return
        for document in documents:
            if document is None:
                raise InvalidRequestError("Documents must not contain None", stage="storage")

        event = self._event("add", document_count=len(documents))
        with self.observation_registry.observe(
            f"vector_store add {self.db_system}",
            event,
            collection=self.collection_name,
            documents=len(documents),
        ):
            vectors = await self.embedding_model.embed_documents(
                documents, batching_strategy=self.batching_strategy
            )
            for vector in vectors:
                self._check_dimensions(vector)
            await self.retry_policy.run(lambda: self._upsert(list(documents), vectors))
        logger.debug(f"Added {len(documents)} documents to {self.collection_name}")

    async def delete(self, ids: Sequence[str]) -> int:
        """Delete records by id; unknown ids are ignored. Returns the number removed."""
        if ids is None:
            raise InvalidRequestError("Ids must not be None", stage="storage")
        if not ids:
            return 0

        event = self._event("delete", document_count=len(ids))
        with self.observation_registry.observe(
            f"vector_store delete {self.db_system}", event, collection=self.collection_name
        ):
            deleted = await self.retry_policy.run(lambda: self._delete(list(ids)))
            event.result_count = deleted
        logger.debug(f"Deleted {deleted} documents from {self.collection_name}")
        return deleted

    async def delete_where(self, filter_expression: dict[str, Any]) -> int:
        """Delete every record whose metadata matches ``filter_expression``."""
        if not filter_expression:
            raise InvalidRequestError("A non-empty filter expression is required", stage="storage")
        validate_filter(filter_expression)

        event = self._event("delete", filter_expression=filter_expression)
        with self.observation_registry.observe(
            f"vector_store delete {self.db_system}", event, collection=self.collection_name
        ):
            deleted = await self.retry_policy.run(lambda: self._delete_where(filter_expression))
            event.result_count = deleted
        return deleted

    async def similarity_search(
        self,
        request: Union[SearchRequest, str],
        *,
        top_k: Optional[int] = None,
        similarity_threshold: Optional[float] = None,
        max_distance: Optional[float] = None,
        filter_expression: Optional[dict[str, Any]] = None,
    ) -> list[Document]:
        """Return up to ``top_k`` documents closest to the query, closest first.

        Each returned document is a copy with ``score = 1 - distance`` and the
        distance stored under ``metadata["distance"]``.
        """
        if not isinstance(request, SearchRequest):
            request = SearchRequest(
                query=request,
                top_k=top_k,
                similarity_threshold=similarity_threshold,
                max_distance=max_distance,
                filter_expression=filter_expression,
            )
        request.validate()
        limit = self.default_top_k if request.top_k is None else request.top_k
        distance_limit = request.resolved_max_distance(self.default_max_distance)

        event = self._event(
            "query",
            query=request.query,
            top_k=limit,
            similarity_threshold=1.0 - distance_limit,
            filter_expression=request.filter_expression,
        )
        with self.observation_registry.observe(
            f"vector_store query {self.db_system}",
            event,
            collection=self.collection_name,
            top_k=limit,
        ):
            if limit == 0:
                return []
            query_vector = await self.embedding_model.embed(request.query)
            self._check_dimensions(query_vector)
            records = await self.retry_policy.run(
                lambda: self._query(query_vector, limit, distance_limit, request.filter_expression)
            )
            matched = [record for record in records if record.distance <= distance_limit]
            matched.sort(key=lambda record: (record.distance, record.sequence, record.document.id))
            results = [self._to_result(record) for record in matched[:limit]]
            event.result_count = len(results)
        return results

    @staticmethod
    def _to_result(record: ScoredRecord) -> Document:
        document = record.document
        return replace(
            document,
            metadata={**document.metadata, "distance": record.distance},
            score=1.0 - record.distance,
        )

    @abstractmethod
    async def _upsert(self, documents: list[Document], vectors: list[list[float]]) -> None:
        """Store documents with their vectors, replacing records with the same id."""

    @abstractmethod
    async def _delete(self, ids: list[str]) -> int:
        """Delete records by id and return how many were removed."""

    @abstractmethod
    async def _delete_where(self, filter_expression: dict[str, Any]) -> int:
        """Delete records matching a metadata filter and return how many were removed."""

    @abstractmethod
    async def _query(
        self,
        query_vector: list[float],
        top_k: int,
        max_distance: float,
        filter_expression: Optional[dict[str, Any]],
    ) -> list[ScoredRecord]:
        """Return candidate records near ``query_vector``, at most ``top_k`` of them."""
