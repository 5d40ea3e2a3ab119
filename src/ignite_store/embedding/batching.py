"""Token-bounded batching of documents before they are embedded."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Protocol, Sequence

from loguru import logger

from ignite_store.document import Document, MetadataMode
from ignite_store.errors import (
    ConfigurationError,
    EmbeddingDependenciesMissingError,
    InvalidRequestError,
)

if TYPE_CHECKING:
    import tiktoken  # pragma: no cover


class TokenCountEstimator(Protocol):
    """Estimates how many tokens a text will cost the embedding model."""

    def estimate(self, text: str) -> int: ...


class CharacterCountEstimator:
    """Cheap heuristic: one token per ``chars_per_token`` characters, rounded up."""

    def __init__(self, chars_per_token: int = 4) -> None:
        if chars_per_token <= 0:
            raise ConfigurationError("chars_per_token must be positive")
        self.chars_per_token = chars_per_token

    def estimate(self, text: str) -> int:
        if not text:
            return 0
        return math.ceil(len(text) / self.chars_per_token)


class TiktokenEstimator:
    """Exact token counts from a tiktoken encoding."""

    def __init__(self, encoding_name: str = "cl100k_base") -> None:
        self.encoding_name = encoding_name
        self._encoding: tiktoken.Encoding | None = None

    def _get_encoding(self) -> "tiktoken.Encoding":
        if self._encoding is None:
            try:
                import tiktoken
            except ImportError as exc:  # pragma: no cover - covered via monkeypatch tests
                raise EmbeddingDependenciesMissingError(
                    "tiktoken package is missing. Install it with: pip install 'ignite-store[tiktoken]'"
                ) from exc
            self._encoding = tiktoken.get_encoding(self.encoding_name)
        return self._encoding

    def estimate(self, text: str) -> int:
        if not text:
            return 0
        return len(self._get_encoding().encode(text))


class BatchingStrategy(Protocol):
    """Splits documents into ordered batches that each fit a processing budget."""

    def batch(self, documents: Sequence[Document]) -> list[list[Document]]: ...


class TokenCountBatchingStrategy(BatchingStrategy):
    """Greedy batching by estimated token count.

    Batches partition the input without reordering. A document that does not
    fit the budget on its own is rejected instead of being truncated.
    """

    def __init__(
        self,
        estimator: TokenCountEstimator | None = None,
        *,
        max_input_token_count: int = 8191,
        reserve_percentage: float = 0.1,
        metadata_mode: MetadataMode = MetadataMode.EMBED,
    ) -> None:
        if max_input_token_count <= 0:
            raise ConfigurationError("max_input_token_count must be positive")
        if not 0.0 <= reserve_percentage < 1.0:
            raise ConfigurationError("reserve_percentage must be in [0, 1)")

        self.estimator = estimator or CharacterCountEstimator()
        self.max_input_token_count = max_input_token_count
        self.reserve_percentage = reserve_percentage
        self.metadata_mode = metadata_mode
        self.token_budget = math.floor(max_input_token_count * (1 - reserve_percentage))

    def batch(self, documents: Sequence[Document]) -> list[list[Document]]:
        if documents is None:
            raise InvalidRequestError("documents must not be None")
        return self._partition(
            list(documents),
            [doc.formatted_content(self.metadata_mode) for doc in documents],
        )

    def batch_texts(self, texts: Sequence[str]) -> list[list[str]]:
        if texts is None:
            raise InvalidRequestError("texts must not be None")
        items = list(texts)
        return self._partition(items, items)

    def _partition(self, items: list, texts: list[str]) -> list[list]:
        batches: list[list] = []
        current: list = []
        current_tokens = 0

        for position, (item, text_value) in enumerate(zip(items, texts)):
            tokens = self.estimator.estimate(text_value)
            if tokens > self.token_budget:
                raise InvalidRequestError(
                    f"Item {position} needs {tokens} tokens, "
                    f"more than the batch budget of {self.token_budget}",
                    details={"position": position, "tokens": tokens, "budget": self.token_budget},
                )
            if current and current_tokens + tokens > self.token_budget:
                batches.append(current)
                current = []
                current_tokens = 0
            current.append(item)
            current_tokens += tokens

        if current:
            batches.append(current)

        logger.trace(f"Split {len(items)} items into {len(batches)} batches")
        return batches
