"""Pytest fixtures for the provider service and verification tests."""

import pytest

from handshake.provider import ProviderDataStore, create_provider_app
from handshake.utils.serving import BackgroundServer


@pytest.fixture
def provider_store():
    return ProviderDataStore()


@pytest.fixture
def provider_app(provider_store):
    return create_provider_app(store=provider_store)


@pytest.fixture
def live_provider(provider_app):
    """The real provider served on a free local port for the duration of a test."""
    with BackgroundServer(provider_app) as server:
        yield server
