"""Document model shared by the embedding pipeline and the vector stores."""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ignite_store.errors import InvalidRequestError


class MetadataMode(str, Enum):
    """Which metadata keys are rendered into a document's formatted content."""

    ALL = "all"
    EMBED = "embed"
    INFERENCE = "inference"
    NONE = "none"


@dataclass
class Document:
    """Text content plus metadata, identified by an opaque id.

    When no id is given a random UUID is assigned. ``score`` is only set on
    documents returned from a similarity search.
    """

    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    excluded_embed_metadata_keys: list[str] = field(default_factory=list)
    excluded_inference_metadata_keys: list[str] = field(default_factory=list)
    score: Optional[float] = None

    def __post_init__(self) -> None:
        if self.content is None:
            raise InvalidRequestError("Document content must not be None")
        if not self.id:
            raise InvalidRequestError("Document id must not be empty")

    def formatted_content(self, mode: MetadataMode = MetadataMode.ALL) -> str:
        if mode == MetadataMode.NONE:
            return self.content

        excluded: set[str] = set()
        if mode == MetadataMode.EMBED:
            excluded = set(self.excluded_embed_metadata_keys)
        elif mode == MetadataMode.INFERENCE:
            excluded = set(self.excluded_inference_metadata_keys)

        lines = [f"{key}: {value}" for key, value in self.metadata.items() if key not in excluded]
        if not lines:
            return self.content
        return "\n".join(lines) + "\n\n" + self.content
