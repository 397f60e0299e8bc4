"""
Provider states: named preconditions on the provider's backing store.

A verifier primes the provider before replaying an interaction by posting
the interaction's state label to ``POST /setup``. Each label maps to a
mutation of the injected ProviderDataStore. Unknown labels fall back to the
registry's default state instead of failing.

``GET /states`` lets verification tooling check up-front which labels each
consumer may rely on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional

from fastapi import APIRouter
from fastapi.responses import Response
from pydantic import BaseModel, Field

from handshake.errors import ConfigurationError
from handshake.provider.store import DEFAULT_COUNT, ProviderDataStore

logger = logging.getLogger(__name__)

StateHandler = Callable[[ProviderDataStore], None]

ANY_CONSUMER = "*"
STATE_COUNT_POSITIVE = "date count > 0"
STATE_COUNT_ZERO = "date count == 0"
DEMO_CONSUMER = "Our Little Consumer"


@dataclass(frozen=True)
class RegisteredState:
    label: str
    handler: StateHandler
    consumers: FrozenSet[str]


class ProviderStateRegistry:
    def __init__(self, default_state: str) -> None:
        self.default_state = default_state
        self._states: Dict[str, RegisteredState] = {}

    def register(
        self,
        label: str,
        handler: Optional[StateHandler] = None,
        consumers: Iterable[str] = (),
    ):
        """
        Register a state handler. Usable directly or as a decorator:

            @registry.register("date count == 0", consumers=["Our Little Consumer"])
            def no_data(store): store.set_count(0)

        A state registered without consumers is available to every consumer.
        """

        def _add(fn: StateHandler) -> StateHandler:
            self._states[label] = RegisteredState(label, fn, frozenset(consumers))
            return fn

        if handler is not None:
            return _add(handler)
        return _add

    def labels(self) -> List[str]:
        return list(self._states)

    def apply_state(self, label: Optional[str], store: ProviderDataStore) -> str:
        """
        Run the handler for ``label`` against ``store`` and return the label
        that was actually applied (the default state for unknown labels).
        """
        if label and label in self._states:
            applied = label
        else:
            if label:
                logger.warning("Unknown provider state %r, applying default %r", label, self.default_state)
            applied = self.default_state
        state = self._states.get(applied)
        if state is None:
            raise ConfigurationError(f"Default provider state {self.default_state!r} is not registered")
        state.handler(store)
        logger.info("Applied provider state %r", applied)
        return applied

    def list_states(self) -> Dict[str, List[str]]:
        listing: Dict[str, List[str]] = {}
        for state in self._states.values():
            for consumer in state.consumers or {ANY_CONSUMER}:
                listing.setdefault(consumer, []).append(state.label)
        return listing


def default_registry() -> ProviderStateRegistry:
    """States used by the demo provider."""
    registry = ProviderStateRegistry(default_state=STATE_COUNT_POSITIVE)

    @registry.register(STATE_COUNT_POSITIVE, consumers=[DEMO_CONSUMER])
    def _count_positive(store: ProviderDataStore) -> None:
        store.set_count(DEFAULT_COUNT)

    @registry.register(STATE_COUNT_ZERO, consumers=[DEMO_CONSUMER])
    def _count_zero(store: ProviderDataStore) -> None:
        store.set_count(0)

    return registry


# ---------------------------------------------------------------------------
# HTTP surface
# ---------------------------------------------------------------------------

class StateSetupRequest(BaseModel):
    state: Optional[str] = None
    states: List[str] = Field(default_factory=list)
    consumer: Optional[str] = None


def create_state_router(registry: ProviderStateRegistry, store: ProviderDataStore) -> APIRouter:
    router = APIRouter(tags=["Provider States"])

    @router.post("/setup")
    async def setup_state(body: StateSetupRequest) -> Response:
        label = body.state or (body.states[0] if body.states else None)
        registry.apply_state(label, store)
        return Response(status_code=200)

    @router.get("/states")
    async def list_states() -> Dict[str, List[str]]:
        return registry.list_states()

    return router
