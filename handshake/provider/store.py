"""
In-memory backing store for the provider service.

The store is created once per provider process and injected into both the
business router and the state router; the state-setup endpoint is its only
writer during verification.
"""

from __future__ import annotations

import threading

DEFAULT_COUNT = 1000


class ProviderDataStore:
    def __init__(self, count: int = DEFAULT_COUNT) -> None:
        self._lock = threading.Lock()
        self._count = count

    @property
    def count(self) -> int:
        with self._lock:
            return self._count

    def set_count(self, count: int) -> None:
        with self._lock:
            self._count = count
