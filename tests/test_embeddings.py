"""Tests for embeddings generation with mocked OpenAI API."""

from unittest.mock import MagicMock

import pytest

from app.core.embeddings import embed_texts, embed_texts_async
from app.core.errors import EmbeddingGenerationFailed, ProviderCallFailed


@pytest.fixture
def mock_openai_response():
    """Create a mock OpenAI embeddings response."""

    def _create_response(num_embeddings: int, dimension: int = 1536):
        mock_response = MagicMock()
        mock_response.data = []

        for _ in range(num_embeddings):
            mock_embedding = MagicMock()
            mock_embedding.embedding = [0.1] * dimension
            mock_response.data.append(mock_embedding)

        return mock_response

    return _create_response


def test_embed_texts_single(mock_openai_response, settings):
    """Test embedding a single text."""
    mock_client = MagicMock()
    mock_client.embeddings.create.return_value = mock_openai_response(1)

    embeddings = embed_texts(mock_client, ["Hello world"], settings)

    assert len(embeddings) == 1
    assert len(embeddings[0]) == 1536
    mock_client.embeddings.create.assert_called_once()


def test_embed_texts_multiple(mock_openai_response, settings):
    """Test embedding multiple texts."""
    mock_client = MagicMock()
    mock_client.embeddings.create.return_value = mock_openai_response(3)

    embeddings = embed_texts(mock_client, ["Text one", "Text two", "Text three"], settings)

    assert len(embeddings) == 3
    for embedding in embeddings:
        assert len(embedding) == 1536


def test_embed_texts_empty(settings):
    """Empty input makes no API call."""
    mock_client = MagicMock()
    assert embed_texts(mock_client, [], settings) == []
    mock_client.embeddings.create.assert_not_called()


def test_embed_texts_dimension_validation(mock_openai_response, settings):
    """Dimension mismatch raises EmbeddingGenerationFailed."""
    mock_client = MagicMock()
    mock_client.embeddings.create.return_value = mock_openai_response(1, dimension=512)

    with pytest.raises(EmbeddingGenerationFailed, match="Embedding dimension mismatch"):
        embed_texts(mock_client, ["Test text"], settings)


def test_embed_texts_api_failure(settings):
    """API errors are wrapped as provider failures."""
    mock_client = MagicMock()
    mock_client.embeddings.create.side_effect = Exception("API Error")

    with pytest.raises(ProviderCallFailed, match="API Error") as exc_info:
        embed_texts(mock_client, ["Test text"], settings)

    assert exc_info.value.provider == "openai"


def test_embed_texts_uses_correct_model(mock_openai_response, settings):
    """Test that the configured model is used."""
    mock_client = MagicMock()
    mock_client.embeddings.create.return_value = mock_openai_response(1)

    embed_texts(mock_client, ["Test"], settings)

    call_args = mock_client.embeddings.create.call_args
    assert call_args[1]["model"] == settings.EMBEDDING_MODEL
    assert call_args[1]["input"] == ["Test"]


@pytest.mark.asyncio
async def test_embed_texts_async(mock_openai_response, settings):
    mock_client = MagicMock()
    mock_client.embeddings.create.return_value = mock_openai_response(2)

    embeddings = await embed_texts_async(mock_client, ["a", "b"], settings)

    assert len(embeddings) == 2
