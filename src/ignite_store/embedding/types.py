"""Request, response and option types for embedding models."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional

from ignite_store.errors import InvalidRequestError

TEXT_PLAIN = "text/plain"


@dataclass(frozen=True)
class EmbeddingOptions:
    """Embedding options. ``None`` means "not set" for every field."""

    model: Optional[str] = None
    dimensions: Optional[int] = None
    text_type: Optional[str] = None

    def validate(self) -> "EmbeddingOptions":
        if self.model is not None and not isinstance(self.model, str):
            raise InvalidRequestError(f"Embedding model must be a string, got {self.model!r}")
        if self.dimensions is not None:
            if isinstance(self.dimensions, bool) or not isinstance(self.dimensions, int):
                raise InvalidRequestError(
                    f"Embedding dimensions must be an integer, got {self.dimensions!r}"
                )
            if self.dimensions <= 0:
                raise InvalidRequestError(
                    f"Embedding dimensions must be positive, got {self.dimensions}"
                )
        if self.text_type is not None and not isinstance(self.text_type, str):
            raise InvalidRequestError(
                f"Embedding text type must be a string, got {self.text_type!r}"
            )
        return self


def merge_options(
    runtime: Optional[EmbeddingOptions],
    defaults: EmbeddingOptions,
    *,
    override_text_type: bool = True,
) -> EmbeddingOptions:
    """Merge per-request options over the model defaults, field by field.

    - ``model``: runtime value when set, else default.
    - ``dimensions``: runtime value when set, else default.
    - ``text_type``: runtime value when set, else default. With
      ``override_text_type=False`` the default always wins.
    """
    if runtime is None:
        return defaults
    runtime.validate()

    def pick(runtime_value, default_value):
        return runtime_value if runtime_value is not None else default_value

    return replace(
        defaults,
        model=pick(runtime.model, defaults.model),
        dimensions=pick(runtime.dimensions, defaults.dimensions),
        text_type=(
            pick(runtime.text_type, defaults.text_type)
            if override_text_type
            else defaults.text_type
        ),
    )


class ModalityType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"


@dataclass(frozen=True)
class EmbeddingResultMetadata:
    document_id: str = ""
    modality_type: ModalityType = ModalityType.TEXT
    mime_type: str = TEXT_PLAIN
    document_data: Any = None


@dataclass
class Embedding:
    output: list[float]
    index: int
    metadata: EmbeddingResultMetadata = field(default_factory=EmbeddingResultMetadata)


@dataclass(frozen=True)
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class EmbeddingResponseMetadata:
    model: str = ""
    usage: Usage = field(default_factory=Usage)
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class EmbeddingRequest:
    instructions: list[str]
    options: Optional[EmbeddingOptions] = None

    def validate(self) -> "EmbeddingRequest":
        if self.instructions is None:
            raise InvalidRequestError("Embedding instructions must not be None")
        for position, instruction in enumerate(self.instructions):
            if not isinstance(instruction, str):
                raise InvalidRequestError(
                    f"Instruction {position} must be a string, got {type(instruction).__name__}"
                )
        if self.options is not None:
            self.options.validate()
        return self


@dataclass
class EmbeddingResponse:
    results: list[Embedding]
    metadata: EmbeddingResponseMetadata = field(default_factory=EmbeddingResponseMetadata)

    @property
    def result(self) -> Optional[Embedding]:
        return self.results[0] if self.results else None

    @property
    def vectors(self) -> list[list[float]]:
        return [embedding.output for embedding in self.results]


def build_response_metadata(model: str, usage: Usage) -> EmbeddingResponseMetadata:
    return EmbeddingResponseMetadata(
        model=model,
        usage=usage,
        extra={"model": model, "total-tokens": usage.total_tokens},
    )
