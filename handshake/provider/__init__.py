"""
Provider service plus the provider-state endpoints used during verification.
"""

from .app import create_provider_app, create_provider_router
from .states import (
    STATE_COUNT_POSITIVE,
    STATE_COUNT_ZERO,
    ProviderStateRegistry,
    create_state_router,
    default_registry,
)
from .store import ProviderDataStore

__all__ = [
    "STATE_COUNT_POSITIVE",
    "STATE_COUNT_ZERO",
    "ProviderDataStore",
    "ProviderStateRegistry",
    "create_provider_app",
    "create_provider_router",
    "create_state_router",
    "default_registry",
]
