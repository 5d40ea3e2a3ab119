"""Assemble a ready-to-use vector store from properties and collaborators.

All validation happens here, at build time. An out-of-range top-K or
similarity threshold raises ``ConfigurationError`` before any store exists,
so a bad setting can never surface later as a query-time failure. Blank
names fall back to library defaults instead of reaching the database.
"""

from dataclasses import dataclass
from typing import Any, Optional

from loguru import logger

from ignite_store.config import UNSET_SIMILARITY_THRESHOLD, UNSET_TOP_K, VectorStoreProperties
from ignite_store.embedding.batching import BatchingStrategy, TokenCountBatchingStrategy
from ignite_store.embedding.model import EmbeddingModel
from ignite_store.embedding.raw_text import RawTextEmbeddingModel
from ignite_store.errors import ConfigurationError
from ignite_store.observation import ObservationRegistry, observe_model
from ignite_store.retry import RetryPolicy
from ignite_store.vectorstore.base import (
    DEFAULT_MAX_DISTANCE,
    DEFAULT_TOP_K,
    similarity_to_max_distance,
)
from ignite_store.vectorstore.memory import InMemoryVectorStore
from ignite_store.vectorstore.mongodb import (
    DEFAULT_COLLECTION_NAME,
    DEFAULT_DATABASE_NAME,
    DEFAULT_INDEX_NAME,
    DEFAULT_NUM_CANDIDATES,
    DEFAULT_PATH_NAME,
    MongoDBAtlasVectorStore,
)


@dataclass(frozen=True)
class ResolvedStoreSettings:
    """Validated settings with every default applied."""

    collection_name: str
    path_name: str
    index_name: str
    top_k: int
    max_distance: float
    num_candidates: int
    initialize_schema: bool
    metadata_fields_to_filter: tuple[str, ...]


def _name_or_default(value: Optional[str], default: str) -> str:
    if value is None or not value.strip():
        return default
    return value.strip()


def resolve_settings(properties: VectorStoreProperties) -> ResolvedStoreSettings:
    """Validate ``properties`` and apply defaults for every unset value."""
    if properties.default_top_k == UNSET_TOP_K:
        top_k = DEFAULT_TOP_K
    elif properties.default_top_k < 0:
        raise ConfigurationError(f"default_top_k must be >= 0, got {properties.default_top_k}")
    else:
        top_k = properties.default_top_k

    if properties.default_similarity_threshold == UNSET_SIMILARITY_THRESHOLD:
        max_distance = DEFAULT_MAX_DISTANCE
    else:
        max_distance = similarity_to_max_distance(properties.default_similarity_threshold)

    num_candidates = properties.num_candidates
    if num_candidates is None:
        num_candidates = DEFAULT_NUM_CANDIDATES
    elif num_candidates < 1:
        raise ConfigurationError(f"num_candidates must be >= 1, got {num_candidates}")

    return ResolvedStoreSettings(
        collection_name=_name_or_default(properties.collection_name, DEFAULT_COLLECTION_NAME),
        path_name=_name_or_default(properties.namespace, DEFAULT_PATH_NAME),
        index_name=_name_or_default(properties.index_name, DEFAULT_INDEX_NAME),
        top_k=top_k,
        max_distance=max_distance,
        num_candidates=max(num_candidates, top_k),
        initialize_schema=properties.initialize_schema,
        metadata_fields_to_filter=tuple(
            name.strip() for name in properties.metadata_fields_to_filter if name and name.strip()
        ),
    )


class StoreConfigurator:
    """Builds vector stores from ``VectorStoreProperties``.

    Missing collaborators get defaults: the placeholder ``RawTextEmbeddingModel``,
    a ``TokenCountBatchingStrategy`` and the no-op observation registry. The
    embedding model is wrapped so every embedding call is observed.
    """

    def __init__(
        self,
        properties: Optional[VectorStoreProperties] = None,
        *,
        embedding_model: Optional[EmbeddingModel] = None,
        batching_strategy: Optional[BatchingStrategy] = None,
        observation_registry: Optional[ObservationRegistry] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        self.properties = properties or VectorStoreProperties()
        self.settings = resolve_settings(self.properties)
        self.observation_registry = observation_registry or ObservationRegistry.NOOP
        self.embedding_model = observe_model(
            embedding_model or RawTextEmbeddingModel(), self.observation_registry
        )
        self.batching_strategy = batching_strategy or TokenCountBatchingStrategy(
            metadata_mode=self.embedding_model.metadata_mode
        )
        self.retry_policy = retry_policy or RetryPolicy()

    def _common_kwargs(self) -> dict[str, Any]:
        return {
            "batching_strategy": self.batching_strategy,
            "observation_registry": self.observation_registry,
            "retry_policy": self.retry_policy,
            "default_top_k": self.settings.top_k,
            "default_max_distance": self.settings.max_distance,
        }

    def build_mongodb(
        self, client: Any, database_name: str = DEFAULT_DATABASE_NAME
    ) -> MongoDBAtlasVectorStore:
        if client is None:
            raise ConfigurationError("A MongoDB client is required to build the store")
        settings = self.settings
        logger.info(
            f"Building MongoDB vector store {database_name}.{settings.collection_name} "
            f"(top_k={settings.top_k}, max_distance={settings.max_distance:.3f}, "
            f"num_candidates={settings.num_candidates})"
        )
        return MongoDBAtlasVectorStore(
            client,
            self.embedding_model,
            database_name=_name_or_default(database_name, DEFAULT_DATABASE_NAME),
            collection_name=settings.collection_name,
            path_name=settings.path_name,
            index_name=settings.index_name,
            num_candidates=settings.num_candidates,
            metadata_fields_to_filter=settings.metadata_fields_to_filter,
            initialize_schema=settings.initialize_schema,
            **self._common_kwargs(),
        )

    def build_in_memory(self) -> InMemoryVectorStore:
        logger.info(f"Building in-memory vector store {self.settings.collection_name}")
        return InMemoryVectorStore(
            self.embedding_model,
            collection_name=self.settings.collection_name,
            **self._common_kwargs(),
        )
