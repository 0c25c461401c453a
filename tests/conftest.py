"""Pytest configuration and fixtures."""

import os

import pytest

from app.core.config import get_settings


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["SUPABASE_URL"] = "https://test.supabase.co"
    os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-key"
    os.environ["OPENAI_API_KEY"] = "test-openai-key"
    os.environ["PINECONE_API_KEY"] = "test-pinecone-key"
    os.environ["PINECONE_HOST"] = "https://regs-index.svc.pinecone.io"
    os.environ["FIRECRAWL_API_KEY"] = "test-firecrawl-key"
    os.environ["REGS_ASSISTANT_ENV"] = "test"


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Settings are cached per process; tests that patch the env need a fresh read."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
