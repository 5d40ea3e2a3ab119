"""Composition root.

This module owns:
- Reading configuration from the environment
- Initializing logging
- Building the MongoDB client, embedding model and vector store

Entry points (the CLI, tests, embedding applications) ask the container for
a store instead of wiring collaborators themselves.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from loguru import logger

from ignite_store.config import IgniteStoreConfig, get_config, init_logging
from ignite_store.configurator import StoreConfigurator
from ignite_store.embedding.factory import create_batching_strategy, create_embedding_model
from ignite_store.errors import ConfigurationError
from ignite_store.observation import ObservationRegistry
from ignite_store.retry import RetryPolicy
from ignite_store.vectorstore.base import VectorStore


@dataclass
class StoreContainer:
    """Holds configuration and lazily built collaborators."""

    config: IgniteStoreConfig
    observation_registry: ObservationRegistry = field(default_factory=ObservationRegistry)
    client: Optional[Any] = None
    _store: Optional[VectorStore] = None

    @classmethod
    def create(
        cls,
        config: Optional[IgniteStoreConfig] = None,
        *,
        observation_registry: Optional[ObservationRegistry] = None,
    ) -> "StoreContainer":
        """Build a container, loading configuration and initializing logging."""
        config = config or get_config()
        init_logging(config)
        return cls(
            config=config,
            observation_registry=observation_registry or ObservationRegistry(),
        )

    def configurator(self) -> StoreConfigurator:
        return StoreConfigurator(
            self.config.vectorstore,
            embedding_model=create_embedding_model(self.config),
            batching_strategy=create_batching_strategy(self.config),
            observation_registry=self.observation_registry,
            retry_policy=RetryPolicy(
                self.config.retry_max_attempts, max_wait=self.config.retry_max_wait
            ),
        )

    def create_client(self) -> Any:
        from pymongo import AsyncMongoClient

        return AsyncMongoClient(
            self.config.mongodb_uri,
            serverSelectionTimeoutMS=self.config.server_selection_timeout_ms,
        )

    def vector_store(self) -> VectorStore:
        """Return the configured store, building it on first use."""
        if self._store is not None:
            return self._store
        if not self.config.vectorstore.enabled:
            raise ConfigurationError("The vector store is disabled by configuration")

        configurator = self.configurator()
        if self.client is None:
            self.client = self.create_client()
        self._store = configurator.build_mongodb(self.client, self.config.database_name)
        return self._store

    async def close(self) -> None:
        if self.client is not None:
            logger.debug("Closing MongoDB client")
            await self.client.close()
            self.client = None
        self._store = None
