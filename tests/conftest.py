"""Shared fixtures for the proxy test suite."""

import pytest
from fastapi.testclient import TestClient

from amelia_proxy.src.config import Settings
from amelia_proxy.src.main import create_app

API_KEY = "amelia-test-key-0123456789"


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(_env_file=None, environment="development", log_format="text")


@pytest.fixture
def rest_settings() -> Settings:
    """Settings with the REST transport as the deployment default."""
    return Settings(_env_file=None, environment="development", log_format="text", transport="rest")


@pytest.fixture
def client(settings):
    """Test client against a freshly built application."""
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture
def rest_client(rest_settings):
    with TestClient(create_app(rest_settings)) as test_client:
        yield test_client


@pytest.fixture
def proxy_payload():
    """Minimal valid proxy request body."""
    return {"baseUrl": "example.com", "apiKey": API_KEY}
