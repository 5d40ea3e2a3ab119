"""Configuration management using pydantic-settings."""

import sys
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

import logfire
from loguru import logger
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

UNSET_TOP_K = -1
UNSET_SIMILARITY_THRESHOLD = -1.0


class VectorStoreProperties(BaseModel):
    """Vector store settings.

    ``default_top_k`` and ``default_similarity_threshold`` use negative
    sentinels to mean "use the library default". Range checks happen when the
    store is built (see ``StoreConfigurator``), not here, so that an invalid
    value fails the build instead of being coerced.
    """

    enabled: bool = Field(default=True, description="Build a vector store at startup")
    collection_name: Optional[str] = Field(
        default=None, description="Collection holding vectors and documents"
    )
    namespace: Optional[str] = Field(
        default=None, description="Path name of the embedding field inside each document"
    )
    index_name: Optional[str] = Field(default=None, description="Atlas vector search index name")
    default_top_k: int = Field(
        default=UNSET_TOP_K, description="Default number of results, -1 for library default"
    )
    default_similarity_threshold: float = Field(
        default=UNSET_SIMILARITY_THRESHOLD,
        description="Default similarity threshold in [0, 1], -1.0 for library default",
    )
    num_candidates: Optional[int] = Field(
        default=None, description="Candidate pool size scanned by the nearest-neighbor search"
    )
    initialize_schema: bool = Field(
        default=False,
        description="Create the collection and search index when missing instead of failing",
    )
    metadata_fields_to_filter: List[str] = Field(
        default_factory=list, description="Metadata keys indexed as filter fields"
    )


class IgniteStoreConfig(BaseSettings):
    """Application configuration, loaded from environment and an optional .env file."""

    model_config = SettingsConfigDict(
        env_prefix="IGNITE_STORE_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    env: str = Field(default="dev", description="Runtime environment (dev, test, prod)")

    mongodb_uri: str = Field(default="mongodb://localhost:27017", description="MongoDB URI")
    database_name: str = Field(default="ignite", description="MongoDB database name")
    server_selection_timeout_ms: int = Field(
        default=5000, description="Driver server selection timeout"
    )

    vectorstore: VectorStoreProperties = Field(default_factory=VectorStoreProperties)

    embedding_provider: str = Field(
        default="ignite", description="Embedding provider: ignite, openai or fastembed"
    )
    embedding_model: Optional[str] = Field(default=None, description="Embedding model name")
    embedding_dimensions: Optional[int] = Field(
        default=None, description="Override the provider's default dimensions"
    )
    embedding_text_type: Optional[str] = Field(default=None, description="Text type tag")
    embedding_batch_size: int = Field(default=64, description="Provider request batch size")
    embedding_timeout: float = Field(default=30.0, description="Embedding request timeout")

    max_input_token_count: int = Field(default=8191, description="Token budget per batch")
    token_reserve_percentage: float = Field(
        default=0.1, description="Share of the token budget kept in reserve"
    )
    token_estimator: str = Field(default="characters", description="characters or tiktoken")

    retry_max_attempts: int = Field(default=3, description="Attempts for transient failures")
    retry_max_wait: float = Field(default=10.0, description="Maximum backoff between attempts")

    log_level: str = Field(default="INFO", description="Log level")
    log_file: Optional[Path] = Field(default=None, description="Optional log file")

    @field_validator("embedding_provider")
    @classmethod
    def normalize_provider(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.strip().upper()

    @property
    def is_test_env(self) -> bool:
        return self.env == "test"


@lru_cache
def get_config() -> IgniteStoreConfig:
    """Return the process-wide configuration, loading it on first use."""
    return IgniteStoreConfig()


def init_logging(config: IgniteStoreConfig) -> None:
    """Route loguru output to stderr (and a rotating file when configured) and set up logfire spans."""
    logger.remove()
    logger.add(sys.stderr, level=config.log_level, colorize=True)
    if config.log_file is not None:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(config.log_file),
            level=config.log_level,
            rotation="10 MB",
            retention="10 days",
            backtrace=True,
            diagnose=False,
            enqueue=True,
        )
    logfire.configure(
        service_name="ignite-store",
        environment=config.env,
        send_to_logfire="if-token-present",
        console=False,
    )
    logger.debug(f"Logging initialized at level {config.log_level}")
