"""Pinecone vector index client over the data-plane REST API."""

import asyncio
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from app.core.config import Settings
from app.core.exceptions import UpstreamIndexWriteError, UpstreamRetrievalError
from app.core.logging import get_logger
from app.core.schemas_chat import RetrievalMatch
from app.core.schemas_regulations import IndexVector

logger = get_logger(__name__)

UPSERT_BATCH_SIZE = 100  # Pinecone hard limit per upsert request


class _QueryResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    matches: list[RetrievalMatch] = Field(default_factory=list)


class VectorIndexClient:
    """Thin async client for one Pinecone index host."""

    def __init__(
        self,
        host: str,
        api_key: str,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        upsert_batch_size: int = UPSERT_BATCH_SIZE,
        upsert_delay: float = 0.5,
    ):
        self.host = host.rstrip("/")
        self._api_key = api_key
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self.upsert_batch_size = upsert_batch_size
        self.upsert_delay = upsert_delay

    @classmethod
    def from_settings(cls, settings: Settings) -> "VectorIndexClient":
        return cls(
            host=settings.PINECONE_HOST,
            api_key=settings.PINECONE_API_KEY,
            timeout=settings.PINECONE_TIMEOUT,
            upsert_delay=settings.UPSERT_BATCH_DELAY_SECONDS,
        )

    @property
    def _headers(self) -> dict[str, str]:
        return {"Api-Key": self._api_key, "Content-Type": "application/json"}

    async def _post(self, path: str, payload: dict[str, Any]) -> httpx.Response:
        return await self._http.post(f"{self.host}{path}", headers=self._headers, json=payload)

    async def query(self, vector: list[float], top_k: int) -> list[RetrievalMatch]:
        """
        Nearest-neighbour search.

        No relevance threshold is applied here; callers decide what counts as
        relevant.

        Args:
            vector: Query embedding
            top_k: Max matches to return

        Returns:
            Matches ordered by descending score

        Raises:
            UpstreamRetrievalError: On transport failure, non-2xx status or
                a response that does not match the expected shape
        """
        try:
            response = await self._post(
                "/query",
                {
                    "vector": vector,
                    "topK": top_k,
                    "includeMetadata": True,
                    "includeValues": False,
                },
            )
        except httpx.HTTPError as e:
            raise UpstreamRetrievalError(f"Pinecone query transport error: {e}") from e

        if response.is_error:
            logger.error(
                f"Pinecone query failed: {response.status_code}",
                extra={"status": response.status_code, "body": response.text[:500]},
            )
            raise UpstreamRetrievalError(
                f"Pinecone query failed: {response.status_code} - {response.text[:500]}"
            )

        try:
            parsed = _QueryResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise UpstreamRetrievalError(f"Malformed Pinecone query response: {e}") from e

        matches = sorted(parsed.matches, key=lambda m: m.score, reverse=True)
        logger.info(
            f"Retrieved {len(matches)} matches from Pinecone",
            extra={"scores": [round(m.score, 3) for m in matches]},
        )
        return matches

    async def upsert(self, vectors: list[IndexVector]) -> int:
        """
        Upsert vectors in batches of at most ``upsert_batch_size``.

        Batches are sent in generation order with a short pause between them.

        Returns:
            Number of vectors written

        Raises:
            UpstreamIndexWriteError: If any batch fails
        """
        total_batches = (len(vectors) + self.upsert_batch_size - 1) // self.upsert_batch_size

        for batch_number, start in enumerate(
            range(0, len(vectors), self.upsert_batch_size), start=1
        ):
            batch = vectors[start : start + self.upsert_batch_size]
            logger.info(f"Upserting batch {batch_number}/{total_batches} to Pinecone")

            try:
                response = await self._post(
                    "/vectors/upsert",
                    {"vectors": [v.model_dump() for v in batch]},
                )
            except httpx.HTTPError as e:
                raise UpstreamIndexWriteError(f"Pinecone upsert transport error: {e}") from e

            if response.is_error:
                raise UpstreamIndexWriteError(
                    f"Pinecone upsert failed: {response.status_code} - {response.text[:500]}"
                )

            if batch_number < total_batches and self.upsert_delay > 0:
                await asyncio.sleep(self.upsert_delay)

        logger.info(f"Successfully upserted {len(vectors)} vectors to Pinecone")
        return len(vectors)

    async def delete(self, metadata_filter: dict[str, Any]) -> None:
        """
        Delete every vector whose metadata matches the filter.

        Raises:
            UpstreamIndexWriteError: On transport failure or non-2xx status
        """
        try:
            response = await self._post("/vectors/delete", {"filter": metadata_filter})
        except httpx.HTTPError as e:
            raise UpstreamIndexWriteError(f"Pinecone delete transport error: {e}") from e

        if response.is_error:
            raise UpstreamIndexWriteError(
                f"Pinecone delete failed: {response.status_code} - {response.text[:500]}"
            )

    async def aclose(self) -> None:
        await self._http.aclose()
