"""Embedding model contract for pluggable embedding backends."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from loguru import logger

from ignite_store.document import Document, MetadataMode
from ignite_store.embedding.batching import BatchingStrategy, TokenCountBatchingStrategy
from ignite_store.embedding.types import (
    EmbeddingOptions,
    EmbeddingRequest,
    EmbeddingResponse,
    merge_options,
)
from ignite_store.errors import EmbeddingServiceError, InvalidRequestError

# Fixed-width vector indexes are created from this value when no dimensions
# are configured, so it has to match what the model actually returns.
DEFAULT_DIMENSIONS = 768


class EmbeddingModel(ABC):
    """Contract for embedding models.

    Subclasses implement ``call``; single-text, single-document and batched
    document embedding are all expressed in terms of it.
    """

    provider_name: str = "unknown"
    metadata_mode: MetadataMode = MetadataMode.EMBED
    max_concurrency: int = 4

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Length of the vectors this model returns with its default options."""

    @property
    @abstractmethod
    def options(self) -> EmbeddingOptions:
        """Default options applied to every request."""

    @abstractmethod
    async def call(self, request: EmbeddingRequest) -> EmbeddingResponse:
        """Embed every instruction in ``request``, one result per instruction, in order."""

    def formatted_content(self, document: Document) -> str:
        if document is None:
            raise InvalidRequestError("Document must not be None")
        return document.formatted_content(self.metadata_mode)

    async def embed(self, text: str) -> list[float]:
        """Embed a single text."""
        if text is None:
            raise InvalidRequestError("Text to embed must not be None")
        response = await self.call(EmbeddingRequest([text]))
        if response.result is None:
            raise EmbeddingServiceError("Embedding model returned no result", stage="embedding")
        return response.result.output

    async def embed_document(self, document: Document) -> list[float]:
        return await self.embed(self.formatted_content(document))

    async def embed_documents(
        self,
        documents: Sequence[Document],
        options: Optional[EmbeddingOptions] = None,
        batching_strategy: Optional[BatchingStrategy] = None,
    ) -> list[list[float]]:
        """Embed documents batch by batch, returning vectors in input order.

        Batches run concurrently (at most ``max_concurrency`` at a time); each
        batch's vectors are placed back at their original positions.
        """
        if documents is None:
            raise InvalidRequestError("Documents must not be None")
        if not documents:
            return []

        strategy = batching_strategy or TokenCountBatchingStrategy(
            metadata_mode=self.metadata_mode
        )
        batches = strategy.batch(documents)
        if sum(len(batch) for batch in batches) != len(documents):
            raise InvalidRequestError("Batching strategy did not partition the documents")
        semaphore = asyncio.Semaphore(max(1, self.max_concurrency))

        async def _embed_batch(
            offset: int, batch: list[Document]
        ) -> list[tuple[int, list[float]]]:
            async with semaphore:
                texts = [self.formatted_content(doc) for doc in batch]
                response = await self.call(EmbeddingRequest(texts, options))
            if len(response.results) != len(batch):
                raise EmbeddingServiceError(
                    "Embedding model returned an unexpected number of vectors",
                    details={"expected": len(batch), "got": len(response.results)},
                )
            ordered = sorted(response.results, key=lambda embedding: embedding.index)
            return [(offset + index, embedding.output) for index, embedding in enumerate(ordered)]

        offsets = []
        offset = 0
        for batch in batches:
            offsets.append(offset)
            offset += len(batch)

        logger.debug(
            f"Embedding {len(documents)} documents in {len(batches)} batches "
            f"with provider {self.provider_name}"
        )
        batch_results = await asyncio.gather(
            *(_embed_batch(start, batch) for start, batch in zip(offsets, batches))
        )

        vectors: list[list[float]] = [[] for _ in documents]
        for batch_result in batch_results:
            for position, vector in batch_result:
                vectors[position] = vector
        return vectors


class BaseEmbeddingModel(EmbeddingModel):
    """Embedding model with default options and per-request option merging."""

    default_dimensions: int = DEFAULT_DIMENSIONS

    def __init__(
        self,
        options: EmbeddingOptions,
        *,
        metadata_mode: MetadataMode = MetadataMode.EMBED,
        override_text_type: bool = True,
    ) -> None:
        if options is None:
            raise InvalidRequestError("options must not be None", stage="configuration")
        if metadata_mode is None:
            raise InvalidRequestError("metadata_mode must not be None", stage="configuration")
        self._default_options = options.validate()
        self.metadata_mode = metadata_mode
        self.override_text_type = override_text_type

    @property
    def options(self) -> EmbeddingOptions:
        return self._default_options

    @property
    def dimensions(self) -> int:
        if self._default_options.dimensions is None:
            return self.default_dimensions
        return self._default_options.dimensions

    def merge_options(self, runtime: Optional[EmbeddingOptions]) -> EmbeddingOptions:
        return merge_options(
            runtime, self._default_options, override_text_type=self.override_text_type
        )

    async def call(self, request: EmbeddingRequest) -> EmbeddingResponse:
        if request is None:
            raise InvalidRequestError("Embedding request must not be None")
        request.validate()
        merged = self.merge_options(request.options)
        response = await self._call(list(request.instructions), merged)
        if len(response.results) != len(request.instructions):
            raise EmbeddingServiceError(
                "Embedding model returned an unexpected number of vectors",
                details={"expected": len(request.instructions), "got": len(response.results)},
            )
        return response

    @abstractmethod
    async def _call(self, instructions: list[str], options: EmbeddingOptions) -> EmbeddingResponse:
        """Embed validated instructions with already-merged options."""

    def _resolved_dimensions(self, options: EmbeddingOptions) -> int:
        return options.dimensions if options.dimensions is not None else self.default_dimensions
