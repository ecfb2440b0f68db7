"""
Test configuration and fixtures for PromptSmith tests

This module provides:
- A mock provider fixture (see tests/mocks.py) that never touches the network
- An in-memory SQLite engine with the full schema
- Registry, store, insight cache and engine fixtures wired together
- A request factory with sensible defaults

Usage:
    @pytest.mark.asyncio
    async def test_deep_mode(optimization_engine, make_request):
        result = await optimization_engine.optimize(make_request(), user_id="user-1")
        assert result.synced
"""

import pytest

from promptsmith_server.core.database import create_test_engine
from promptsmith_server.core.llm.registry import ProviderRegistry
from promptsmith_server.core.optimizer import (
    OptimizationEngine,
    OptimizationRequest,
    SqlInsightCache,
)
from promptsmith_server.core.store import OptimizationStore

from tests.mocks import MockLLMProvider


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_test_engine()
    yield engine
    engine.dispose()


@pytest.fixture
def mock_provider():
    return MockLLMProvider()


@pytest.fixture
def registry(mock_provider):
    """Registry serving the mock provider under the "openai" name."""
    return ProviderRegistry(providers={"openai": mock_provider}, timeout_seconds=5.0)


@pytest.fixture
def store(db_engine):
    return OptimizationStore(db_engine)


@pytest.fixture
def insight_cache(db_engine):
    return SqlInsightCache(db_engine)


@pytest.fixture
def optimization_engine(registry, store, insight_cache):
    return OptimizationEngine(registry, store=store, insight_cache=insight_cache, max_workers=4, retry_attempts=1)


@pytest.fixture
def make_request():
    """Factory for optimization requests; keyword overrides replace defaults."""

    def _make(**overrides) -> OptimizationRequest:
        fields = {
            "original_prompt": "Write a function to sort a list",
            "provider": "openai",
            "model": "gpt-4o-mini",
            "output_type": "code",
            "mode": "deep",
            "variant_count": 3,
        }
        fields.update(overrides)
        return OptimizationRequest(**fields)

    return _make
