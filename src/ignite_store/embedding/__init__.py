"""Embedding models, options and batching."""

from ignite_store.embedding.batching import (
    BatchingStrategy,
    CharacterCountEstimator,
    TiktokenEstimator,
    TokenCountBatchingStrategy,
    TokenCountEstimator,
)
from ignite_store.embedding.model import DEFAULT_DIMENSIONS, BaseEmbeddingModel, EmbeddingModel
from ignite_store.embedding.raw_text import PROVIDER_NAME, RawTextEmbeddingModel
from ignite_store.embedding.types import (
    Embedding,
    EmbeddingOptions,
    EmbeddingRequest,
    EmbeddingResponse,
    EmbeddingResponseMetadata,
    EmbeddingResultMetadata,
    ModalityType,
    Usage,
    merge_options,
)

__all__ = [
    "BaseEmbeddingModel",
    "BatchingStrategy",
    "CharacterCountEstimator",
    "DEFAULT_DIMENSIONS",
    "Embedding",
    "EmbeddingModel",
    "EmbeddingOptions",
    "EmbeddingRequest",
    "EmbeddingResponse",
    "EmbeddingResponseMetadata",
    "EmbeddingResultMetadata",
    "ModalityType",
    "PROVIDER_NAME",
    "RawTextEmbeddingModel",
    "TiktokenEstimator",
    "TokenCountBatchingStrategy",
    "TokenCountEstimator",
    "Usage",
    "merge_options",
]
