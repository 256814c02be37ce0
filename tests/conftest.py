"""
Global pytest fixtures and configuration for test suite.

This module provides reusable fixtures for:
- Test settings with an isolated cache directory
- Pipeline and response caches on temporary directories
- Fixed timestamps
"""

import os
from datetime import datetime

import pytest

from chat_activities.cache.backends import InMemoryResponseCache
from chat_activities.cache.pipeline_cache import PipelineCache
from chat_activities.config import Settings


@pytest.fixture
def mock_settings(tmp_path) -> Settings:
    """
    Create settings for testing with safe defaults.

    Returns:
        Settings instance with the cache rooted in a temporary directory
    """
    return Settings(
        cache_dir=str(tmp_path / "cache"),
        classifier_api_key="test-key-not-for-production",
        log_level="INFO",
        log_json=False,  # Easier to read in tests
    )


@pytest.fixture
def pipeline_cache(tmp_path) -> PipelineCache:
    """PipelineCache rooted in a temporary directory."""
    return PipelineCache(tmp_path / "cache")


@pytest.fixture
def response_cache() -> InMemoryResponseCache:
    """Empty in-memory request cache."""
    return InMemoryResponseCache()


@pytest.fixture
def fixed_timestamp() -> datetime:
    """
    Provide fixed timestamp for deterministic testing.

    Returns:
        Fixed datetime for reproducible tests
    """
    return datetime(2025, 1, 5, 15, 4, 0)


@pytest.fixture(autouse=True)
def reset_env_vars():
    """
    Reset environment variables before each test.

    This prevents test pollution from env var changes.
    """
    original_env = os.environ.copy()
    yield
    os.environ.clear()
    os.environ.update(original_env)


def pytest_configure(config):
    """
    Configure pytest with custom markers and settings.
    """
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (end-to-end pipeline with mocked collaborators)"
    )
