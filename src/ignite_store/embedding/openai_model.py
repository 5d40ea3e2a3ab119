"""OpenAI-based embedding model for API-backed indexing."""

from __future__ import annotations

import asyncio
import os
from typing import Any, Optional

from loguru import logger

from ignite_store.document import MetadataMode
from ignite_store.embedding.model import BaseEmbeddingModel
from ignite_store.embedding.types import (
    Embedding,
    EmbeddingOptions,
    EmbeddingResponse,
    EmbeddingResultMetadata,
    Usage,
    build_response_metadata,
)
from ignite_store.errors import (
    ConfigurationError,
    EmbeddingDependenciesMissingError,
    EmbeddingServiceError,
)
from ignite_store.ids import IdSequence
from ignite_store.retry import RetryPolicy

DEFAULT_OPENAI_MODEL = "text-embedding-3-small"


class OpenAIEmbeddingModel(BaseEmbeddingModel):
    """Embedding model backed by OpenAI's embeddings API."""

    provider_name = "openai"
    default_dimensions = 1536

    def __init__(
        self,
        options: Optional[EmbeddingOptions] = None,
        *,
        batch_size: int = 64,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 30.0,
        retry_policy: RetryPolicy | None = None,
        metadata_mode: MetadataMode = MetadataMode.EMBED,
        id_sequence: IdSequence | None = None,
    ) -> None:
        super().__init__(
            options or EmbeddingOptions(model=DEFAULT_OPENAI_MODEL),
            metadata_mode=metadata_mode,
        )
        self.batch_size = max(1, batch_size)
        self.retry_policy = retry_policy or RetryPolicy()
        self.id_sequence = id_sequence or IdSequence()
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout
        self._client: Any | None = None
        self._client_lock = asyncio.Lock()

    async def _get_client(self) -> Any:
        if self._client is not None:
            return self._client

        async with self._client_lock:
            if self._client is not None:
                return self._client

            try:
                from openai import AsyncOpenAI
            except ImportError as exc:  # pragma: no cover - covered via monkeypatch tests
                raise EmbeddingDependenciesMissingError(
                    "OpenAI dependency is missing. Install it with: pip install 'ignite-store[openai]'"
                ) from exc

            api_key = self._api_key or os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise EmbeddingDependenciesMissingError(
                    "OpenAI embedding model requires OPENAI_API_KEY."
                )

            self._client = AsyncOpenAI(
                api_key=api_key,
                base_url=self._base_url,
                timeout=self._timeout,
            )
            return self._client

    async def _create(self, client: Any, model: str, batch: list[str], dimensions: Optional[int]):
        kwargs: dict[str, Any] = {"model": model, "input": batch}
        if dimensions is not None:
            kwargs["dimensions"] = dimensions
        try:
            return await client.embeddings.create(**kwargs)
        except Exception as exc:
            raise EmbeddingServiceError(f"Embedding request failed: {exc}") from exc

    async def _call(self, instructions: list[str], options: EmbeddingOptions) -> EmbeddingResponse:
        if not instructions:
            return EmbeddingResponse(
                results=[], metadata=build_response_metadata(options.model or "", Usage())
            )

        client = await self._get_client()
        model = options.model or DEFAULT_OPENAI_MODEL
        expected_dimensions = self._resolved_dimensions(options)
        ids = self.id_sequence.reserve(len(instructions))

        embeddings: list[Embedding] = []
        prompt_tokens = 0
        total_tokens = 0
        for start in range(0, len(instructions), self.batch_size):
            batch = instructions[start : start + self.batch_size]
            response = await self.retry_policy.run(
                lambda: self._create(client, model, batch, options.dimensions)
            )
            vectors_by_index: dict[int, list[float]] = {
                int(item.index): [float(value) for value in item.embedding]
                for item in response.data
            }
            for index in range(len(batch)):
                vector = vectors_by_index.get(index)
                if vector is None:
                    raise EmbeddingServiceError(
                        "OpenAI embedding response is missing expected vector index."
                    )
                position = start + index
                embeddings.append(
                    Embedding(
                        output=vector,
                        index=position,
                        metadata=EmbeddingResultMetadata(
                            document_id=str(ids[position]), document_data=batch[index]
                        ),
                    )
                )

            usage = getattr(response, "usage", None)
            if usage is not None:
                prompt_tokens += int(getattr(usage, "prompt_tokens", 0) or 0)
                total_tokens += int(getattr(usage, "total_tokens", 0) or 0)

        if embeddings and len(embeddings[0].output) != expected_dimensions:
            raise ConfigurationError(
                f"Embedding model returned {len(embeddings[0].output)}-dimensional vectors "
                f"but model was configured for {expected_dimensions} dimensions.",
                stage="embedding",
            )

        logger.debug(f"OpenAI embedded {len(embeddings)} inputs with {model}")
        usage = Usage(prompt_tokens=prompt_tokens, completion_tokens=0, total_tokens=total_tokens)
        return EmbeddingResponse(results=embeddings, metadata=build_response_metadata(model, usage))
