"""Test configuration and fixtures."""

import pytest

from registry_bridge.config import BridgeConfig, NexusConfig, RetryPolicy
from tests.helpers import FakeRegistry

NO_WAIT_RETRY = RetryPolicy(
    max_retries=3,
    min_wait_seconds=0,
    max_wait_seconds=0,
    multiplier=0,
    jitter_seconds=0,
)


def make_config(default_registry: str, **kwargs) -> BridgeConfig:
    """Build a configuration that retries without waiting."""
    kwargs.setdefault("retry", NO_WAIT_RETRY)
    return BridgeConfig(default_registry=default_registry, **kwargs)


@pytest.fixture
def fake_registry():
    """Empty in-memory registry."""
    return FakeRegistry()


@pytest.fixture
async def registry_host(aiohttp_server, fake_registry):
    """Start the fake registry and return its ``host:port``."""
    server = await aiohttp_server(fake_registry.app())
    return f"{server.host}:{server.port}"


@pytest.fixture
def bridge_config(registry_host):
    """Configuration with the fake registry as default registry."""
    return make_config(registry_host, allowed_registries=(registry_host,))


@pytest.fixture
def nexus_config():
    return NexusConfig(url="http://nexus.example.com", token="bmV4dXM6c2VjcmV0")


# Pytest configuration
def pytest_configure(config):
    """Configure pytest markers and settings."""
    config.addinivalue_line("markers", "unit: mark test as unit test (default)")
