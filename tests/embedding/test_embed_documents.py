"""Tests for batched, concurrent document embedding."""

import asyncio

import pytest

from ignite_store.document import Document
from ignite_store.embedding.batching import TokenCountBatchingStrategy
from ignite_store.embedding.model import BaseEmbeddingModel
from ignite_store.embedding.types import (
    Embedding,
    EmbeddingOptions,
    EmbeddingResponse,
)
from ignite_store.errors import EmbeddingServiceError, InvalidRequestError


class _SlowFirstModel(BaseEmbeddingModel):
    """Earlier batches finish last, so completion order is the reverse of input order."""

    provider_name = "slow-first"

    def __init__(self):
        super().__init__(EmbeddingOptions(model="slow", dimensions=1))
        self.completed: list[str] = []

    async def _call(self, instructions, options):
        first = instructions[0]
        await asyncio.sleep(0.05 if first == "t0" else 0.0)
        self.completed.append(first)
        results = [
            Embedding(output=[float(text[1:])], index=index)
            for index, text in enumerate(instructions)
        ]
        # Return results in reverse index order to exercise the re-sort
        return EmbeddingResponse(results=list(reversed(results)))


class _ShortModel(BaseEmbeddingModel):
    def __init__(self):
        super().__init__(EmbeddingOptions(model="short", dimensions=1))

    async def _call(self, instructions, options):
        return EmbeddingResponse(results=[Embedding(output=[0.0], index=0)])


class _OneTokenEstimator:
    def estimate(self, text: str) -> int:
        return 1


@pytest.mark.asyncio
async def test_results_follow_input_order_not_completion_order():
    model = _SlowFirstModel()
    documents = [Document(content=f"t{i}", id=str(i)) for i in range(6)]
    strategy = TokenCountBatchingStrategy(
        _OneTokenEstimator(), max_input_token_count=2, reserve_percentage=0.0
    )

    vectors = await model.embed_documents(documents, batching_strategy=strategy)

    assert vectors == [[float(i)] for i in range(6)]
    assert model.completed[-1] == "t0"


@pytest.mark.asyncio
async def test_embed_documents_empty_input():
    assert await _SlowFirstModel().embed_documents([]) == []


@pytest.mark.asyncio
async def test_embed_documents_none_is_invalid():
    with pytest.raises(InvalidRequestError):
        await _SlowFirstModel().embed_documents(None)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_short_response_is_an_error():
    with pytest.raises(EmbeddingServiceError):
        await _ShortModel().embed_documents([Document(content="a"), Document(content="b")])
