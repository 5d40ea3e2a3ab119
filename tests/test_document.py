"""Tests for Document formatting."""

import pytest

from ignite_store.document import Document, MetadataMode
from ignite_store.errors import InvalidRequestError


def _doc() -> Document:
    return Document(
        content="The body",
        metadata={"title": "Intro", "secret": "s3", "lang": "en"},
        id="doc-1",
        excluded_embed_metadata_keys=["secret"],
        excluded_inference_metadata_keys=["lang"],
    )


def test_document_gets_random_id_when_missing():
    first = Document(content="a")
    second = Document(content="a")
    assert first.id and second.id
    assert first.id != second.id


def test_document_rejects_none_content():
    with pytest.raises(InvalidRequestError):
        Document(content=None)  # type: ignore[arg-type]


def test_document_rejects_empty_id():
    with pytest.raises(InvalidRequestError):
        Document(content="a", id="")


def test_formatted_content_none_mode_is_bare_content():
    assert _doc().formatted_content(MetadataMode.NONE) == "The body"


def test_formatted_content_all_mode_includes_every_key():
    formatted = _doc().formatted_content(MetadataMode.ALL)
    assert formatted == "title: Intro\nsecret: s3\nlang: en\n\nThe body"


def test_formatted_content_embed_mode_drops_embed_exclusions():
    formatted = _doc().formatted_content(MetadataMode.EMBED)
    assert "secret" not in formatted
    assert "lang: en" in formatted
    assert formatted.endswith("\n\nThe body")


def test_formatted_content_inference_mode_drops_inference_exclusions():
    formatted = _doc().formatted_content(MetadataMode.INFERENCE)
    assert "lang" not in formatted
    assert "secret: s3" in formatted


def test_formatted_content_without_metadata_is_content():
    assert Document(content="plain", id="x").formatted_content() == "plain"
