"""Fixtures for API integration tests."""

import pytest
from fastapi.testclient import TestClient

from promptsmith_server.api.deps import get_optimization_engine
from promptsmith_server.main import app


@pytest.fixture
def test_client(optimization_engine):
    """TestClient whose routes use the test optimization engine."""
    app.dependency_overrides[get_optimization_engine] = lambda: optimization_engine
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def user_headers():
    return {"X-User-Id": "user-1"}
