"""Configuration management for the Building Regulations assistant."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    # Environment variables should be set directly
    pass


CHAT_REQUIRED_KEYS = (
    "OPENAI_API_KEY",
    "PINECONE_API_KEY",
    "PINECONE_HOST",
    "SUPABASE_URL",
    "SUPABASE_SERVICE_ROLE_KEY",
)

INGESTION_REQUIRED_KEYS = CHAT_REQUIRED_KEYS + ("FIRECRAWL_API_KEY",)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Secrets. Empty defaults let the service boot; pipelines check what they need.
    SUPABASE_URL: str = Field(default="", description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(default="", description="Supabase service role key")
    OPENAI_API_KEY: str = Field(default="", description="OpenAI API key")
    PINECONE_API_KEY: str = Field(default="", description="Pinecone API key")
    PINECONE_HOST: str = Field(default="", description="Pinecone index host URL")
    FIRECRAWL_API_KEY: str = Field(default="", description="Firecrawl API key")

    # Environment
    REGS_ASSISTANT_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")

    # Embedding configuration
    EMBEDDING_MODEL: str = Field(
        default="text-embedding-3-small", description="OpenAI embedding model"
    )
    EMBEDDING_DIM: int = Field(default=1536, description="Embedding vector dimension")
    EMBED_BATCH_DELAY_SECONDS: float = Field(
        default=1.0, description="Pause between embedding batches"
    )

    # Chat generation
    CHAT_MODEL: str = Field(default="gpt-4o-mini", description="Model for answer generation")
    CHAT_TEMPERATURE: float = Field(default=0.3, description="Answer generation temperature")
    CHAT_MAX_TOKENS: int = Field(default=1000, description="Answer token ceiling")

    # Vision and summaries
    VISION_MODEL: str = Field(default="gpt-4o-mini", description="Model for image analysis")
    VISION_MAX_TOKENS: int = Field(default=1000, description="Image analysis token ceiling")
    SUMMARY_MODEL: str = Field(default="gpt-4o-mini", description="Model for conversation summaries")
    SUMMARY_MAX_TOKENS: int = Field(default=500, description="Conversation summary token ceiling")

    # Vector index
    PINECONE_TIMEOUT: float = Field(default=30.0, description="Pinecone request timeout in seconds")
    UPSERT_BATCH_DELAY_SECONDS: float = Field(
        default=0.5, description="Pause between vector upsert batches"
    )

    # Storage
    PROJECT_DOCUMENTS_BUCKET: str = Field(
        default="project-documents", description="Storage bucket holding project documents"
    )

    # Regulations ingestion
    REGULATIONS_SOURCE_URL: str = Field(
        default="https://www.gov.uk/building-regulations-approval",
        description="Crawl root for the regulations index",
    )
    CRAWL_PAGE_LIMIT: int = Field(default=50, description="Max pages per crawl")
    FIRECRAWL_TIMEOUT: int = Field(default=60, description="Firecrawl request timeout in seconds")
    FIRECRAWL_POLL_INTERVAL: float = Field(
        default=3.0, description="Seconds between crawl status polls"
    )
    FIRECRAWL_MAX_WAIT: float = Field(
        default=600.0, description="Max seconds to wait for a crawl to finish"
    )

    def missing_keys(self, required: tuple[str, ...]) -> list[str]:
        """Return the names of required settings that are empty."""
        return [name for name in required if not getattr(self, name, "")]


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance
    """
    return Settings()
