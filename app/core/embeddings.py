"""OpenAI embeddings generation with batching and validation."""

import asyncio

from openai import OpenAI

from app.core.config import Settings
from app.core.exceptions import UpstreamEmbeddingError
from app.core.logging import get_logger

logger = get_logger(__name__)

EMBED_BATCH_SIZE = 20


class EmbeddingClient:
    """Turns texts into fixed-length vectors, one per input, order preserved."""

    def __init__(
        self,
        client: OpenAI,
        model: str = "text-embedding-3-small",
        dimension: int = 1536,
        batch_size: int = EMBED_BATCH_SIZE,
        batch_delay: float = 1.0,
    ):
        self._client = client
        self.model = model
        self.dimension = dimension
        self.batch_size = batch_size
        self.batch_delay = batch_delay

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmbeddingClient":
        return cls(
            client=OpenAI(api_key=settings.OPENAI_API_KEY),
            model=settings.EMBEDDING_MODEL,
            dimension=settings.EMBEDDING_DIM,
            batch_delay=settings.EMBED_BATCH_DELAY_SECONDS,
        )

    def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        """
        Embed one batch with a single API call.

        Raises:
            UpstreamEmbeddingError: On API failure, short response or wrong dimension
        """
        try:
            response = self._client.embeddings.create(model=self.model, input=texts)
        except Exception as e:
            logger.error(f"Failed to generate embeddings: {e}")
            raise UpstreamEmbeddingError(f"OpenAI embedding failed: {e}") from e

        data = list(response.data or [])
        if len(data) != len(texts):
            raise UpstreamEmbeddingError(
                f"Embedding count mismatch: expected {len(texts)}, got {len(data)}"
            )

        embeddings = []
        for i, embedding_obj in enumerate(data):
            embedding = list(embedding_obj.embedding)
            if len(embedding) != self.dimension:
                raise UpstreamEmbeddingError(
                    f"Embedding dimension mismatch for text {i}: "
                    f"expected {self.dimension}, got {len(embedding)}"
                )
            embeddings.append(embedding)

        return embeddings

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """
        Embed texts in batches of ``batch_size``.

        A failure in any batch fails the whole call; partial results are
        never returned.

        Args:
            texts: Texts to embed

        Returns:
            One vector per input text, in input order

        Raises:
            UpstreamEmbeddingError: If any batch fails
        """
        if not texts:
            return []

        total_batches = (len(texts) + self.batch_size - 1) // self.batch_size
        embeddings: list[list[float]] = []

        for batch_number, start in enumerate(range(0, len(texts), self.batch_size), start=1):
            batch = texts[start : start + self.batch_size]
            logger.debug(f"Embedding batch {batch_number}/{total_batches} ({len(batch)} texts)")

            embeddings.extend(await asyncio.to_thread(self._embed_batch, batch))

            if batch_number < total_batches and self.batch_delay > 0:
                await asyncio.sleep(self.batch_delay)

        logger.info(
            f"Generated {len(embeddings)} embeddings using {self.model}",
            extra={"model": self.model, "count": len(embeddings)},
        )
        return embeddings

    async def embed_query(self, text: str) -> list[float]:
        """Embed a single query string."""
        return (await self.embed([text]))[0]
