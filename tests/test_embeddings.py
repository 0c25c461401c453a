"""Tests for embeddings generation with mocked OpenAI API."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.core.embeddings import EmbeddingClient
from app.core.exceptions import UpstreamEmbeddingError


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


def _client_returning(factory):
    """OpenAI client mock whose response size follows the request size."""
    mock_client = MagicMock()
    mock_client.embeddings.create.side_effect = lambda model, input: factory(len(input))
    return mock_client


@pytest.mark.asyncio
async def test_embed_single_text(mock_openai_response):
    mock_client = _client_returning(mock_openai_response)
    embedder = EmbeddingClient(mock_client, batch_delay=0)

    embeddings = await embedder.embed(["Hello world"])

    assert len(embeddings) == 1
    assert len(embeddings[0]) == 1536
    mock_client.embeddings.create.assert_called_once()


@pytest.mark.asyncio
async def test_embed_empty_list_makes_no_calls():
    mock_client = MagicMock()
    embedder = EmbeddingClient(mock_client, batch_delay=0)

    assert await embedder.embed([]) == []
    mock_client.embeddings.create.assert_not_called()


@pytest.mark.asyncio
async def test_embed_batches_of_twenty(mock_openai_response):
    """45 texts go out as batches of 20, 20 and 5."""
    mock_client = _client_returning(mock_openai_response)
    embedder = EmbeddingClient(mock_client, batch_delay=0)

    texts = [f"chunk {i}" for i in range(45)]
    embeddings = await embedder.embed(texts)

    assert len(embeddings) == 45
    assert mock_client.embeddings.create.call_count == 3
    batch_sizes = [len(c.kwargs["input"]) for c in mock_client.embeddings.create.call_args_list]
    assert batch_sizes == [20, 20, 5]
    assert mock_client.embeddings.create.call_args_list[0].kwargs["input"] == texts[:20]


@pytest.mark.asyncio
async def test_embed_pauses_between_batches_only(mock_openai_response):
    mock_client = _client_returning(mock_openai_response)
    embedder = EmbeddingClient(mock_client, batch_delay=1.0)

    with patch("app.core.embeddings.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        await embedder.embed([f"chunk {i}" for i in range(45)])

    assert mock_sleep.call_count == 2


@pytest.mark.asyncio
async def test_embed_batch_failure_fails_whole_call(mock_openai_response):
    mock_client = MagicMock()
    mock_client.embeddings.create.side_effect = [
        mock_openai_response(20),
        Exception("rate limited"),
    ]
    embedder = EmbeddingClient(mock_client, batch_delay=0)

    with pytest.raises(UpstreamEmbeddingError):
        await embedder.embed([f"chunk {i}" for i in range(30)])


@pytest.mark.asyncio
async def test_embed_count_mismatch_raises(mock_openai_response):
    mock_client = MagicMock()
    mock_client.embeddings.create.return_value = mock_openai_response(2)
    embedder = EmbeddingClient(mock_client, batch_delay=0)

    with pytest.raises(UpstreamEmbeddingError, match="count mismatch"):
        await embedder.embed(["one", "two", "three"])


@pytest.mark.asyncio
async def test_embed_dimension_mismatch_raises(mock_openai_response):
    mock_client = MagicMock()
    mock_client.embeddings.create.return_value = mock_openai_response(1, dimension=768)
    embedder = EmbeddingClient(mock_client, batch_delay=0)

    with pytest.raises(UpstreamEmbeddingError, match="dimension mismatch"):
        await embedder.embed_query("What is Part M?")


@pytest.mark.asyncio
async def test_embed_query_returns_single_vector(mock_openai_response):
    mock_client = _client_returning(mock_openai_response)
    embedder = EmbeddingClient(mock_client, model="text-embedding-3-small", batch_delay=0)

    vector = await embedder.embed_query("Minimum stair width?")

    assert len(vector) == 1536
    assert mock_client.embeddings.create.call_args.kwargs["model"] == "text-embedding-3-small"
