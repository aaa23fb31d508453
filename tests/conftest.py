"""Test configuration and fixtures."""

import os

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestServer

from registry_inspect.core.types import Platform
from tests.helpers import FakeRegistry


async def _serve(registry: FakeRegistry):
    server = TestServer(registry.app)
    await server.start_server()
    registry.host = f"{server.host}:{server.port}"
    registry.url = f"http://{registry.host}"
    return server


@pytest_asyncio.fixture
async def fake_registry():
    """Token-protected fake registry."""
    registry = FakeRegistry()
    server = await _serve(registry)
    yield registry
    await server.close()


@pytest_asyncio.fixture
async def anonymous_registry():
    """Fake registry that allows anonymous access."""
    registry = FakeRegistry(auth_mode="anonymous")
    server = await _serve(registry)
    yield registry
    await server.close()


@pytest.fixture
def linux_amd64():
    return Platform("linux", "amd64")


@pytest.fixture
def linux_arm64():
    return Platform("linux", "arm64")


@pytest.fixture(autouse=True)
def clean_registry_env(monkeypatch):
    """Keep the developer's registry credentials out of the tests."""
    for name in (
        "REGISTRY_USERNAME",
        "REGISTRY_PASSWORD",
        "REGISTRY_TIMEOUT",
        "REGISTRY_INSPECT_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


# Pytest configuration
def pytest_configure(config):
    """Configure pytest markers and settings."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test requiring registry"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless a live registry is requested."""
    skip_integration = pytest.mark.skip(reason="Registry not available")

    for item in items:
        if (
            "integration" in item.keywords
            and os.getenv("REGISTRY_AVAILABLE", "false").lower() != "true"
        ):
            item.add_marker(skip_integration)
