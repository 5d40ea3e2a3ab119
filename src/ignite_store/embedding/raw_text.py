"""Placeholder embedding model that never calls a real model.

Vectors are deterministic placeholders, but ids, usage and response metadata
have the same shape a real provider returns, so the rest of the pipeline can
run end to end without network access.
"""

from typing import Literal, Optional

from ignite_store.document import MetadataMode
from ignite_store.embedding.model import BaseEmbeddingModel
from ignite_store.embedding.types import (
    Embedding,
    EmbeddingOptions,
    EmbeddingResponse,
    EmbeddingResultMetadata,
    ModalityType,
    TEXT_PLAIN,
    Usage,
    build_response_metadata,
)
from ignite_store.errors import ConfigurationError
from ignite_store.ids import IdSequence

DEFAULT_EMBEDDING_MODEL = "m3e-base"
DEFAULT_EMBEDDING_TEXT_TYPE = "document"
PROVIDER_NAME = "ignite"

FillMode = Literal["zeros", "length"]


class RawTextEmbeddingModel(BaseEmbeddingModel):
    """Embedding model that fabricates vectors from text length.

    ``fill="zeros"`` returns all-zero vectors; ``fill="length"`` sets every
    component to the instruction's character count. Usage counts one token
    per character.
    """

    provider_name = PROVIDER_NAME

    def __init__(
        self,
        options: Optional[EmbeddingOptions] = None,
        *,
        metadata_mode: MetadataMode = MetadataMode.EMBED,
        id_sequence: Optional[IdSequence] = None,
        fill: FillMode = "zeros",
        override_text_type: bool = True,
    ) -> None:
        if options is None:
            options = EmbeddingOptions(
                model=DEFAULT_EMBEDDING_MODEL, text_type=DEFAULT_EMBEDDING_TEXT_TYPE
            )
        super().__init__(
            options, metadata_mode=metadata_mode, override_text_type=override_text_type
        )
        if fill not in ("zeros", "length"):
            raise ConfigurationError(f"Unsupported fill mode: {fill}")
        self.fill = fill
        self.id_sequence = id_sequence or IdSequence()

    async def _call(self, instructions: list[str], options: EmbeddingOptions) -> EmbeddingResponse:
        dimensions = self._resolved_dimensions(options)
        ids = self.id_sequence.reserve(len(instructions))

        embeddings: list[Embedding] = []
        total_chars = 0
        for index, (instruction, doc_id) in enumerate(zip(instructions, ids)):
            total_chars += len(instruction)
            value = float(len(instruction)) if self.fill == "length" else 0.0
            embeddings.append(
                Embedding(
                    output=[value] * dimensions,
                    index=index,
                    metadata=EmbeddingResultMetadata(
                        document_id=str(doc_id),
                        modality_type=ModalityType.TEXT,
                        mime_type=TEXT_PLAIN,
                        document_data=instruction,
                    ),
                )
            )

        usage = Usage(prompt_tokens=total_chars, completion_tokens=0, total_tokens=total_chars)
        return EmbeddingResponse(
            results=embeddings,
            metadata=build_response_metadata(options.model or "", usage),
        )
