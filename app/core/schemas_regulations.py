"""Schemas for the regulations index refresh job."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CrawledPageMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    title: str | None = None
    source_url: str | None = Field(default=None, alias="sourceURL")


class CrawledPage(BaseModel):
    """One page of a Firecrawl crawl result."""

    model_config = ConfigDict(extra="ignore")

    markdown: str | None = None
    metadata: CrawledPageMetadata = Field(default_factory=CrawledPageMetadata)


class CrawlStatus(BaseModel):
    """Firecrawl crawl status payload (one page of results)."""

    model_config = ConfigDict(extra="ignore")

    status: str
    data: list[CrawledPage] = Field(default_factory=list)
    next: str | None = None
    error: str | None = None


class PageChunk(BaseModel):
    """Chunk of crawled text awaiting embedding."""

    text: str
    source: str
    url: str
    chunk_index: int
    total_chunks: int


class IndexVector(BaseModel):
    """Vector record in the shape Pinecone's upsert API accepts."""

    id: str
    values: list[float]
    metadata: dict[str, Any]


class RefreshResult(BaseModel):
    """Counts reported by a completed refresh run."""

    model_config = ConfigDict(populate_by_name=True)

    pages_crawled: int = Field(alias="pagesCrawled")
    chunks_processed: int = Field(alias="chunksProcessed")
    vectors_created: int = Field(alias="vectorsCreated")


class RefreshRequest(BaseModel):
    """Optional body for the updater endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    source_url: str | None = Field(default=None, alias="sourceUrl")


class RegulationUpdateRecord(BaseModel):
    """Row from the building_regs_updates log table."""

    model_config = ConfigDict(extra="ignore")

    id: int | str
    update_date: str
    pages_crawled: int | None = None
    chunks_processed: int | None = None
    vectors_created: int | None = None
    status: str
    error_message: str | None = None
