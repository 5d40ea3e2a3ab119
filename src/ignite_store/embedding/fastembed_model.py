"""FastEmbed-based local embedding model."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Optional

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
from ignite_store.errors import ConfigurationError, EmbeddingDependenciesMissingError
from ignite_store.ids import IdSequence

if TYPE_CHECKING:
    from fastembed import TextEmbedding  # type: ignore[import-not-found]  # pragma: no cover

DEFAULT_FASTEMBED_MODEL = "bge-small-en-v1.5"


class FastEmbedEmbeddingModel(BaseEmbeddingModel):
    """Local ONNX embedding model backed by FastEmbed.

    The model is loaded lazily on first use. Usage is reported in characters
    since FastEmbed does not expose token counts.
    """

    provider_name = "fastembed"
    default_dimensions = 384

    _MODEL_ALIASES = {
        "bge-small-en-v1.5": "BAAI/bge-small-en-v1.5",
    }

    def __init__(
        self,
        options: Optional[EmbeddingOptions] = None,
        *,
        batch_size: int = 64,
        metadata_mode: MetadataMode = MetadataMode.EMBED,
        id_sequence: IdSequence | None = None,
    ) -> None:
        super().__init__(
            options or EmbeddingOptions(model=DEFAULT_FASTEMBED_MODEL),
            metadata_mode=metadata_mode,
        )
        self.batch_size = batch_size
        self.id_sequence = id_sequence or IdSequence()
        self._models: dict[str, TextEmbedding] = {}
        self._model_lock = asyncio.Lock()

    async def _load_model(self, model_name: str) -> "TextEmbedding":
        if model_name in self._models:
            return self._models[model_name]

        async with self._model_lock:
            if model_name in self._models:
                return self._models[model_name]

            def _create_model() -> "TextEmbedding":
                try:
                    from fastembed import TextEmbedding  # type: ignore[import-not-found]
                except (
                    ImportError
                ) as exc:  # pragma: no cover - exercised via tests with monkeypatch
                    raise EmbeddingDependenciesMissingError(
                        "fastembed package is missing. "
                        "Install it with: pip install 'ignite-store[fastembed]'"
                    ) from exc
                resolved_model_name = self._MODEL_ALIASES.get(model_name, model_name)
                return TextEmbedding(model_name=resolved_model_name)

            self._models[model_name] = await asyncio.to_thread(_create_model)
            return self._models[model_name]

    async def _call(self, instructions: list[str], options: EmbeddingOptions) -> EmbeddingResponse:
        model_name = options.model or DEFAULT_FASTEMBED_MODEL
        if not instructions:
            return EmbeddingResponse(
                results=[], metadata=build_response_metadata(model_name, Usage())
            )

        model = await self._load_model(model_name)

        def _embed_batch() -> list[list[float]]:
            vectors = list(model.embed(instructions, batch_size=self.batch_size))
            normalized: list[list[float]] = []
            for vector in vectors:
                values = vector.tolist() if hasattr(vector, "tolist") else vector
                normalized.append([float(value) for value in values])
            return normalized

        vectors = await asyncio.to_thread(_embed_batch)
        expected_dimensions = self._resolved_dimensions(options)
        if vectors and len(vectors[0]) != expected_dimensions:
            raise ConfigurationError(
                f"Embedding model returned {len(vectors[0])}-dimensional vectors "
                f"but model was configured for {expected_dimensions} dimensions.",
                stage="embedding",
            )

        ids = self.id_sequence.reserve(len(instructions))
        embeddings = [
            Embedding(
                output=vector,
                index=index,
                metadata=EmbeddingResultMetadata(document_id=str(doc_id), document_data=text),
            )
            for index, (vector, text, doc_id) in enumerate(zip(vectors, instructions, ids))
        ]
        chars = sum(len(text) for text in instructions)
        usage = Usage(prompt_tokens=chars, completion_tokens=0, total_tokens=chars)
        return EmbeddingResponse(
            results=embeddings, metadata=build_response_metadata(model_name, usage)
        )
