"""Tests for TokenCountBatchingStrategy and token estimators."""

import builtins
import sys

import pytest

from ignite_store.document import Document, MetadataMode
from ignite_store.embedding.batching import (
    CharacterCountEstimator,
    TiktokenEstimator,
    TokenCountBatchingStrategy,
)
from ignite_store.errors import (
    ConfigurationError,
    EmbeddingDependenciesMissingError,
    InvalidRequestError,
)


class _WordEstimator:
    def estimate(self, text: str) -> int:
        return len(text.split())


def _docs(*contents: str) -> list[Document]:
    return [Document(content=content, id=f"d{i}") for i, content in enumerate(contents)]


def test_character_estimator_rounds_up():
    estimator = CharacterCountEstimator()
    assert estimator.estimate("") == 0
    assert estimator.estimate("abc") == 1
    assert estimator.estimate("abcd") == 1
    assert estimator.estimate("abcde") == 2


def test_character_estimator_rejects_non_positive_ratio():
    with pytest.raises(ConfigurationError):
        CharacterCountEstimator(chars_per_token=0)


def test_budget_applies_reserve():
    strategy = TokenCountBatchingStrategy(max_input_token_count=100, reserve_percentage=0.1)
    assert strategy.token_budget == 90


def test_empty_input_gives_no_batches():
    assert TokenCountBatchingStrategy().batch([]) == []


def test_batches_partition_input_in_order_within_budget():
    strategy = TokenCountBatchingStrategy(
        _WordEstimator(), max_input_token_count=5, reserve_percentage=0.0
    )
    documents = _docs("a b", "c d e", "f", "g h i j", "k")

    batches = strategy.batch(documents)

    assert [[doc.id for doc in batch] for batch in batches] == [
        ["d0", "d1"],
        ["d2", "d3"],
        ["d4"],
    ]
    assert [doc for batch in batches for doc in batch] == documents
    for batch in batches:
        assert batch
        assert sum(len(doc.content.split()) for doc in batch) <= strategy.token_budget


def test_oversized_document_is_rejected_not_truncated():
    strategy = TokenCountBatchingStrategy(
        _WordEstimator(), max_input_token_count=3, reserve_percentage=0.0
    )
    with pytest.raises(InvalidRequestError) as error:
        strategy.batch(_docs("a", "b c d e"))
    assert error.value.details["position"] == 1


def test_metadata_counts_toward_budget():
    strategy = TokenCountBatchingStrategy(
        _WordEstimator(),
        max_input_token_count=4,
        reserve_percentage=0.0,
        metadata_mode=MetadataMode.ALL,
    )
    documents = [
        Document(content="one two", metadata={"tag": "x"}, id="a"),
        Document(content="three", id="b"),
    ]
    # "tag: x\n\none two" is four words, so the second document needs a new batch
    assert [[doc.id for doc in batch] for batch in strategy.batch(documents)] == [["a"], ["b"]]


def test_batch_texts_uses_the_same_rules():
    strategy = TokenCountBatchingStrategy(
        _WordEstimator(), max_input_token_count=2, reserve_percentage=0.0
    )
    assert strategy.batch_texts(["a", "b", "c d", "e"]) == [["a", "b"], ["c d"], ["e"]]


@pytest.mark.parametrize(
    "kwargs",
    [{"max_input_token_count": 0}, {"reserve_percentage": 1.0}, {"reserve_percentage": -0.1}],
)
def test_invalid_strategy_settings_fail_fast(kwargs):
    with pytest.raises(ConfigurationError):
        TokenCountBatchingStrategy(**kwargs)


def test_none_documents_are_invalid():
    with pytest.raises(InvalidRequestError):
        TokenCountBatchingStrategy().batch(None)  # type: ignore[arg-type]


class _StubEncoding:
    def encode(self, text: str) -> list[int]:
        return [ord(ch) for ch in text if not ch.isspace()]


def test_tiktoken_estimator_counts_encoded_tokens(monkeypatch):
    module = type(sys)("tiktoken")
    module.get_encoding = lambda name: _StubEncoding()
    monkeypatch.setitem(sys.modules, "tiktoken", module)

    estimator = TiktokenEstimator()
    assert estimator.estimate("a b c") == 3
    assert estimator.estimate("") == 0


def test_tiktoken_estimator_missing_dependency_raises_actionable_error(monkeypatch):
    monkeypatch.delitem(sys.modules, "tiktoken", raising=False)
    original_import = builtins.__import__

    def _raising_import(name, globals=None, locals=None, fromlist=(), level=0):
        if name == "tiktoken":
            raise ImportError("tiktoken not installed")
        return original_import(name, globals, locals, fromlist, level)

    monkeypatch.setattr(builtins, "__import__", _raising_import)

    with pytest.raises(EmbeddingDependenciesMissingError) as error:
        TiktokenEstimator().estimate("hello")

    assert "ignite-store[tiktoken]" in str(error.value)
