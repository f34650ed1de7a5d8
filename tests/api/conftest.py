"""
Pytest configuration and fixtures for the gateway HTTP API tests.
"""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from github_gateway.api import create_app
from github_gateway.github import GitHubClient


@pytest.fixture
def mock_github():
    """GitHub client double whose primitives are AsyncMocks."""
    return AsyncMock(spec=GitHubClient)


@pytest.fixture
def test_client(settings, mock_github):
    """Test client for an app wired to the mocked GitHub client."""
    app = create_app(settings, client=mock_github)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def commit_client(settings, fake_host):
    """Test client for an app wired to the in-memory GitHub host."""
    app = create_app(settings, client=fake_host)
    with TestClient(app) as client:
        yield client
