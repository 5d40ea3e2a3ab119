"""Factory for creating configured embedding models and batching strategies."""

from ignite_store.config import IgniteStoreConfig
from ignite_store.embedding.batching import (
    CharacterCountEstimator,
    TiktokenEstimator,
    TokenCountBatchingStrategy,
)
from ignite_store.embedding.fastembed_model import FastEmbedEmbeddingModel
from ignite_store.embedding.model import EmbeddingModel
from ignite_store.embedding.openai_model import DEFAULT_OPENAI_MODEL, OpenAIEmbeddingModel
from ignite_store.embedding.raw_text import (
    DEFAULT_EMBEDDING_MODEL,
    DEFAULT_EMBEDDING_TEXT_TYPE,
    RawTextEmbeddingModel,
)
from ignite_store.embedding.types import EmbeddingOptions
from ignite_store.errors import ConfigurationError
from ignite_store.retry import RetryPolicy


def create_embedding_model(app_config: IgniteStoreConfig) -> EmbeddingModel:
    """Create an embedding model based on config.

    When embedding_dimensions is set in config, it overrides the model's
    default dimensions (768 for ignite, 384 for FastEmbed, 1536 for OpenAI).
    """
    provider_name = app_config.embedding_provider
    dimensions = app_config.embedding_dimensions
    if dimensions is not None and dimensions <= 0:
        raise ConfigurationError(f"embedding_dimensions must be positive, got {dimensions}")

    if provider_name == "ignite":
        return RawTextEmbeddingModel(
            EmbeddingOptions(
                model=app_config.embedding_model or DEFAULT_EMBEDDING_MODEL,
                dimensions=dimensions,
                text_type=app_config.embedding_text_type or DEFAULT_EMBEDDING_TEXT_TYPE,
            )
        )

    if provider_name == "fastembed":
        return FastEmbedEmbeddingModel(
            EmbeddingOptions(
                model=app_config.embedding_model or "bge-small-en-v1.5",
                dimensions=dimensions,
                text_type=app_config.embedding_text_type,
            ),
            batch_size=app_config.embedding_batch_size,
        )

    if provider_name == "openai":
        model_name = app_config.embedding_model or DEFAULT_OPENAI_MODEL
        if model_name in (DEFAULT_EMBEDDING_MODEL, "bge-small-en-v1.5"):
            model_name = DEFAULT_OPENAI_MODEL
        return OpenAIEmbeddingModel(
            EmbeddingOptions(
                model=model_name,
                dimensions=dimensions,
                text_type=app_config.embedding_text_type,
            ),
            batch_size=app_config.embedding_batch_size,
            timeout=app_config.embedding_timeout,
            retry_policy=RetryPolicy(
                app_config.retry_max_attempts, max_wait=app_config.retry_max_wait
            ),
        )

    raise ConfigurationError(f"Unsupported embedding provider: {provider_name}")


def create_batching_strategy(app_config: IgniteStoreConfig) -> TokenCountBatchingStrategy:
    """Create the token-count batching strategy described by config."""
    estimator_name = app_config.token_estimator.strip().lower()
    if estimator_name == "characters":
        estimator = CharacterCountEstimator()
    elif estimator_name == "tiktoken":
        estimator = TiktokenEstimator()
    else:
        raise ConfigurationError(f"Unsupported token estimator: {app_config.token_estimator}")

    return TokenCountBatchingStrategy(
        estimator,
        max_input_token_count=app_config.max_input_token_count,
        reserve_percentage=app_config.token_reserve_percentage,
    )
