"""Regulations Index Refresh Graph.

LangGraph workflow that rebuilds the regulations vector index for one source:
1. Crawl the regulations website
2. Chunk each substantive page
3. Embed chunks in batches
4. Clear previously indexed vectors for the source (best-effort)
5. Upsert the fresh vectors

Re-running replaces the source's vectors rather than accumulating duplicates.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from langgraph.graph import END, StateGraph

from app.core.chunking import chunk_text, extract_section
from app.core.config import INGESTION_REQUIRED_KEYS, Settings
from app.core.embeddings import EmbeddingClient
from app.core.exceptions import (
    IngestionError,
    MissingConfigurationError,
    RegsAssistantError,
    UpstreamCrawlError,
    UpstreamEmbeddingError,
)
from app.core.firecrawl_service import FirecrawlClient
from app.core.logging import get_logger, log_with_context
from app.core.schemas_regulations import CrawledPage, IndexVector, PageChunk, RefreshResult
from app.core.vector_index import VectorIndexClient
from app.db.regulation_updates import RegulationUpdateLog
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)

MIN_PAGE_CHARS = 100
CHUNK_SIZE = 1000
CHUNK_OVERLAP = 200
DEFAULT_SOURCE_LABEL = "UK Building Regulations"
LEGACY_SOURCE_LABELS = ["UK Building Regulations", "Building Regulations"]


@dataclass
class RegulationsRefreshState:
    """State for the regulations refresh graph."""

    # Input
    source_url: str = ""
    run_id: str = ""
    run_timestamp_ms: int = 0

    # Crawl
    pages: list[CrawledPage] = field(default_factory=list)
    pages_crawled: int = 0
    chunks: list[PageChunk] = field(default_factory=list)

    # Embedding
    vectors: list[IndexVector] = field(default_factory=list)

    # Output
    cleared: bool = False
    vectors_created: int = 0


def build_chunk_metadata(chunk: PageChunk, source_url: str, last_updated: str) -> dict[str, Any]:
    """Vector metadata; keys with no value are left out."""
    metadata: dict[str, Any] = {
        "text": chunk.text,
        "source": chunk.source,
        "url": chunk.url,
        "lastUpdated": last_updated,
        "crawlRoot": source_url,
    }
    section = extract_section(chunk.text)
    if section:
        metadata["section"] = section
    return metadata


def source_delete_filter(source_url: str) -> dict[str, Any]:
    return {
        "$or": [
            {"crawlRoot": {"$eq": source_url}},
            {"source": {"$in": LEGACY_SOURCE_LABELS}},
        ]
    }


class RegulationsRefreshJob:
    """Crawls, chunks, embeds and re-indexes one regulations source."""

    def __init__(
        self,
        crawler: FirecrawlClient,
        embedder: EmbeddingClient,
        index: VectorIndexClient,
        update_log: RegulationUpdateLog,
        page_limit: int = 50,
    ):
        self._crawler = crawler
        self._embedder = embedder
        self._index = index
        self._update_log = update_log
        self.page_limit = page_limit
        self._graph = self._build_graph()

    # ── Nodes ──────────────────────────────────────────────────────

    async def crawl_site(self, state: RegulationsRefreshState) -> dict[str, Any]:
        try:
            pages = await self._crawler.crawl(state.source_url, limit=self.page_limit)
        except RegsAssistantError:
            raise
        except Exception as e:
            raise UpstreamCrawlError(f"Crawl failed: {e}") from e

        return {"pages": pages, "pages_crawled": len(pages)}

    async def chunk_pages(self, state: RegulationsRefreshState) -> dict[str, Any]:
        chunks: list[PageChunk] = []
        for page in state.pages:
            markdown = page.markdown or ""
            if len(markdown) <= MIN_PAGE_CHARS:
                continue

            page_chunks = chunk_text(markdown, CHUNK_SIZE, CHUNK_OVERLAP)
            for index, text in enumerate(page_chunks):
                chunks.append(
                    PageChunk(
                        text=text,
                        source=page.metadata.title or DEFAULT_SOURCE_LABEL,
                        url=page.metadata.source_url or state.source_url,
                        chunk_index=index,
                        total_chunks=len(page_chunks),
                    )
                )

        log_with_context(
            logger,
            logging.INFO,
            f"Split {state.pages_crawled} pages into {len(chunks)} chunks",
            run_id=state.run_id,
            stage="chunk_pages",
        )
        return {"chunks": chunks}

    async def embed_chunks(self, state: RegulationsRefreshState) -> dict[str, Any]:
        try:
            embeddings = await self._embedder.embed([chunk.text for chunk in state.chunks])
        except RegsAssistantError:
            raise
        except Exception as e:
            raise UpstreamEmbeddingError(f"Chunk embedding failed: {e}") from e

        last_updated = datetime.now(timezone.utc).isoformat()

        vectors = [
            IndexVector(
                id=f"building-reg-{state.run_timestamp_ms}-{i}",
                values=embedding,
                metadata=build_chunk_metadata(chunk, state.source_url, last_updated),
            )
            for i, (chunk, embedding) in enumerate(zip(state.chunks, embeddings, strict=True))
        ]

        log_with_context(
            logger,
            logging.INFO,
            f"Generated {len(vectors)} embeddings",
            run_id=state.run_id,
            stage="embed_chunks",
        )
        return {"vectors": vectors}

    async def clear_previous(self, state: RegulationsRefreshState) -> dict[str, Any]:
        """Stale vectors are tolerable; a failed delete does not stop the refresh."""
        try:
            await self._index.delete(source_delete_filter(state.source_url))
        except Exception as e:
            logger.warning(f"Failed to clear old data, continuing with upsert: {e}")
            return {"cleared": False}

        logger.info("Successfully cleared old building regulations data")
        return {"cleared": True}

    async def upsert_vectors(self, state: RegulationsRefreshState) -> dict[str, Any]:
        written = await self._index.upsert(state.vectors)
        return {"vectors_created": written}

    # ── Wiring ─────────────────────────────────────────────────────

    @staticmethod
    def _route_after_chunking(state: RegulationsRefreshState) -> str:
        # Nothing to index: stop before the old vectors are cleared
        return "embed" if state.chunks else "stop"

    def _build_graph(self):
        workflow = StateGraph(RegulationsRefreshState)

        workflow.add_node("crawl_site", self.crawl_site)
        workflow.add_node("chunk_pages", self.chunk_pages)
        workflow.add_node("embed_chunks", self.embed_chunks)
        workflow.add_node("clear_previous", self.clear_previous)
        workflow.add_node("upsert_vectors", self.upsert_vectors)

        workflow.set_entry_point("crawl_site")
        workflow.add_edge("crawl_site", "chunk_pages")
        workflow.add_conditional_edges(
            "chunk_pages",
            self._route_after_chunking,
            {"embed": "embed_chunks", "stop": END},
        )
        workflow.add_edge("embed_chunks", "clear_previous")
        workflow.add_edge("clear_previous", "upsert_vectors")
        workflow.add_edge("upsert_vectors", END)

        return workflow.compile()

    async def run(self, source_url: str) -> RefreshResult:
        """
        Refresh the index for one source and record the run.

        Returns:
            Counts of pages crawled, chunks processed and vectors created

        Raises:
            RegsAssistantError: Any fatal stage failure (after logging it)
        """
        run_id = str(uuid4())
        initial_state = RegulationsRefreshState(
            source_url=source_url,
            run_id=run_id,
            run_timestamp_ms=int(time.time() * 1000),
        )

        logger.info(f"Starting building regulations update from {source_url}", extra={"run_id": run_id})

        try:
            state = await self._graph.ainvoke(initial_state)
            if not state.get("chunks"):
                raise IngestionError(f"Crawl of {source_url} produced no indexable content")
        except Exception as e:
            logger.error(f"Building regulations update failed: {e}", extra={"run_id": run_id})
            await asyncio.to_thread(self._update_log.record_failed, str(e))
            raise

        result = RefreshResult(
            pages_crawled=state["pages_crawled"],
            chunks_processed=len(state["chunks"]),
            vectors_created=state["vectors_created"],
        )
        await asyncio.to_thread(self._update_log.record_completed, result)

        logger.info(
            "Building regulations update completed successfully",
            extra={"run_id": run_id, **result.model_dump()},
        )
        return result

    async def aclose(self) -> None:
        """Release the crawler and index connection pools."""
        try:
            await self._crawler.aclose()
        finally:
            await self._index.aclose()


def build_refresh_job(settings: Settings) -> RegulationsRefreshJob:
    """
    Construct the job with live Firecrawl, OpenAI, Pinecone and Supabase clients.

    Raises:
        MissingConfigurationError: If any required credential is empty
    """
    missing = settings.missing_keys(INGESTION_REQUIRED_KEYS)
    if missing:
        raise MissingConfigurationError(missing)

    return RegulationsRefreshJob(
        crawler=FirecrawlClient.from_settings(settings),
        embedder=EmbeddingClient.from_settings(settings),
        index=VectorIndexClient.from_settings(settings),
        update_log=RegulationUpdateLog(get_supabase()),
        page_limit=settings.CRAWL_PAGE_LIMIT,
    )


async def refresh_regulations_index(source_url: str, job: RegulationsRefreshJob) -> RefreshResult:
    """Run one refresh of ``source_url`` with the given job."""
    return await job.run(source_url)
