"""Tests for OpenAIEmbeddingModel."""

import builtins
import sys
from types import SimpleNamespace

import pytest

from ignite_store.embedding.openai_model import OpenAIEmbeddingModel
from ignite_store.embedding.types import EmbeddingOptions, EmbeddingRequest
from ignite_store.errors import (
    ConfigurationError,
    EmbeddingDependenciesMissingError,
    EmbeddingServiceError,
)
from ignite_store.retry import RetryPolicy


class _StubEmbeddingsApi:
    def __init__(self):
        self.calls: list[tuple[str, list[str]]] = []
        self.failures_left = 0

    async def create(self, *, model: str, input: list[str], **kwargs):
        self.calls.append((model, input))
        if self.failures_left:
            self.failures_left -= 1
            raise ConnectionError("temporarily unavailable")
        vectors = []
        # reversed so the provider has to reorder by index
        for index, value in reversed(list(enumerate(input))):
            base = float(len(value))
            vectors.append(SimpleNamespace(index=index, embedding=[base, base + 1.0, base + 2.0]))
        tokens = sum(len(value) for value in input)
        return SimpleNamespace(
            data=vectors, usage=SimpleNamespace(prompt_tokens=tokens, total_tokens=tokens)
        )


class _StubAsyncOpenAI:
    init_count = 0

    def __init__(self, *, api_key: str, base_url=None, timeout=30.0):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.embeddings = _StubEmbeddingsApi()
        _StubAsyncOpenAI.init_count += 1


@pytest.fixture
def stub_openai(monkeypatch):
    module = type(sys)("openai")
    module.AsyncOpenAI = _StubAsyncOpenAI
    monkeypatch.setitem(sys.modules, "openai", module)
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    _StubAsyncOpenAI.init_count = 0
    return module


def _model(**kwargs) -> OpenAIEmbeddingModel:
    kwargs.setdefault("retry_policy", RetryPolicy(3, min_wait=0, max_wait=0, multiplier=0))
    return OpenAIEmbeddingModel(
        EmbeddingOptions(model="text-embedding-3-small", dimensions=3), **kwargs
    )


@pytest.mark.asyncio
async def test_openai_model_lazy_loads_and_reuses_client(stub_openai):
    """Model should instantiate AsyncOpenAI lazily and reuse a single client."""
    model = _model(batch_size=2)
    assert model._client is None

    first = await model.embed("auth query")
    second = await model.call(EmbeddingRequest(["queue task", "relation sync", "x"]))

    assert _StubAsyncOpenAI.init_count == 1
    assert model._client is not None
    assert len(first) == 3
    assert len(second.results) == 3
    assert len(model._client.embeddings.calls) == 3


@pytest.mark.asyncio
async def test_openai_model_preserves_order_across_batches(stub_openai):
    model = _model(batch_size=2)
    texts = ["a", "bbbb", "cc", "ddddddd", "e"]

    response = await model.call(EmbeddingRequest(texts))

    assert [e.index for e in response.results] == list(range(5))
    assert [e.output[0] for e in response.results] == [float(len(t)) for t in texts]
    assert [e.metadata.document_data for e in response.results] == texts
    assert response.metadata.usage.total_tokens == sum(len(t) for t in texts)


@pytest.mark.asyncio
async def test_openai_model_retries_transient_failures(stub_openai):
    model = _model()
    client = await model._get_client()
    client.embeddings.failures_left = 2

    vector = await model.embed("retry me")

    assert len(vector) == 3
    assert len(client.embeddings.calls) == 3


@pytest.mark.asyncio
async def test_openai_model_gives_up_after_bounded_attempts(stub_openai):
    model = _model()
    client = await model._get_client()
    client.embeddings.failures_left = 10

    with pytest.raises(EmbeddingServiceError):
        await model.embed("never works")
    assert len(client.embeddings.calls) == 3


@pytest.mark.asyncio
async def test_openai_model_dimension_mismatch_raises_error(stub_openai):
    """Model should fail fast when response dimensions differ from configured dimensions."""
    model = OpenAIEmbeddingModel(EmbeddingOptions(model="m", dimensions=2))
    with pytest.raises(ConfigurationError, match="3-dimensional vectors"):
        await model.embed("semantic note")


@pytest.mark.asyncio
async def test_openai_model_missing_dependency_raises_actionable_error(monkeypatch):
    """Missing openai package should raise EmbeddingDependenciesMissingError."""
    monkeypatch.delitem(sys.modules, "openai", raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    original_import = builtins.__import__

    def _raising_import(name, globals=None, locals=None, fromlist=(), level=0):
        if name == "openai":
            raise ImportError("openai not installed")
        return original_import(name, globals, locals, fromlist, level)

    monkeypatch.setattr(builtins, "__import__", _raising_import)

    model = OpenAIEmbeddingModel()
    with pytest.raises(EmbeddingDependenciesMissingError) as error:
        await model.embed("test")

    assert "ignite-store[openai]" in str(error.value)


@pytest.mark.asyncio
async def test_openai_model_missing_api_key_raises_error(stub_openai, monkeypatch):
    """OPENAI_API_KEY is required unless api_key is passed explicitly."""
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    model = OpenAIEmbeddingModel()
    with pytest.raises(EmbeddingDependenciesMissingError) as error:
        await model.embed("test")

    assert "OPENAI_API_KEY" in str(error.value)


def test_openai_model_default_dimensions():
    assert OpenAIEmbeddingModel().dimensions == 1536
