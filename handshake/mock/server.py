"""
Mock provider used by consumer tests.

One MockProvider lives for one test run (or test module). It listens on a
real socket, answers every request with the canned response of the
interaction it matches, and remembers which interactions were invoked and
which requests matched nothing. ``verify()`` turns both kinds of drift into
a failing outcome; ``finalize()`` writes the contract and always releases
the socket.

Lifecycle:
    IDLE -> LISTENING (setup) -> RECORDING (interactions added)
         -> VERIFIED | FAILED (verify) -> FINALIZED (finalize)
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from fastapi import FastAPI, Request
from fastapi.responses import Response

from handshake.contract.document import write_document
from handshake.contract.ledger import InteractionLedger
from handshake.contract.matchers import generate
from handshake.contract.models import (
    Interaction,
    InteractionRequest,
    InteractionResponse,
    Outcome,
    SpecVersion,
)
from handshake.error_handler import install_error_handler
from handshake.errors import ConfigurationError, FailureKind, MockStateError, MockVerificationError
from handshake.mock.matching import ObservedRequest, select_candidates
from handshake.utils.serving import BackgroundServer

logger = logging.getLogger(__name__)

UNEXPECTED_REQUEST_STATUS = 500
_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


class MockState(str, Enum):
    IDLE = "IDLE"
    LISTENING = "LISTENING"
    RECORDING = "RECORDING"
    VERIFIED = "VERIFIED"
    FAILED = "FAILED"
    FINALIZED = "FINALIZED"


@dataclass(frozen=True)
class UnexpectedRequest:
    request: ObservedRequest
    diagnostics: Dict[str, List[str]] = field(default_factory=dict)
    kind: FailureKind = FailureKind.UNEXPECTED_REQUEST

    def describe(self) -> str:
        return f"Unexpected request {self.request.method} {self.request.path} query={self.request.query}"


@dataclass
class MockVerification:
    unexpected_requests: List[UnexpectedRequest] = field(default_factory=list)
    unused_interactions: List[Interaction] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.unexpected_requests and not self.unused_interactions

    @property
    def outcome(self) -> Outcome:
        return Outcome.PASS if self.ok else Outcome.FAIL

    def failures(self) -> List[str]:
        lines = [u.describe() for u in self.unexpected_requests]
        lines.extend(
            f"{FailureKind.UNUSED_INTERACTION.value}: interaction never invoked: {i.label()}"
            for i in self.unused_interactions
        )
        return lines

    def raise_for_failures(self) -> None:
        if not self.ok:
            raise MockVerificationError(self.failures())


def _render_response(response: InteractionResponse) -> Tuple[int, Dict[str, str], bytes]:
    headers = {k: str(v) for k, v in (generate(response.headers) or {}).items()}
    body = generate(response.body)
    if body is None:
        return response.status, headers, b""
    has_content_type = any(k.lower() == "content-type" for k in headers)
    if isinstance(body, str):
        if not has_content_type:
            headers["Content-Type"] = "text/plain; charset=utf-8"
        return response.status, headers, body.encode("utf-8")
    if not has_content_type:
        headers["Content-Type"] = "application/json"
    return response.status, headers, json.dumps(body).encode("utf-8")


class MockProvider:
    def __init__(
        self,
        consumer: str,
        provider: str,
        host: str = "127.0.0.1",
        port: int = 0,
        pact_dir: Optional[Union[str, Path]] = None,
        log_level: str = "warning",
        spec_version: SpecVersion = SpecVersion.V2,
    ) -> None:
        self.consumer = consumer
        self.provider = provider
        self.pact_dir = Path(pact_dir) if pact_dir else None
        self.spec_version = spec_version
        self.state = MockState.IDLE

        self.ledger = InteractionLedger()
        # Copy-on-write snapshot read by request handlers without locking.
        self._interactions: Tuple[Interaction, ...] = ()
        self._invocations: List[int] = []
        self._unexpected: List[UnexpectedRequest] = []
        self._lock = threading.Lock()
        self._pending: Dict[str, Any] = {}

        self.app = create_mock_app(self)
        self._server = BackgroundServer(self.app, host=host, port=port, log_level=log_level)

    # --- Lifecycle -------------------------------------------------------------

    @property
    def url(self) -> str:
        return self._server.url

    def setup(self) -> "MockProvider":
        if self.state != MockState.IDLE:
            raise MockStateError(f"setup() called in state {self.state.value}")
        self._server.start()
        self.state = MockState.RECORDING if self._interactions else MockState.LISTENING
        logger.info("Mock provider for %s -> %s listening on %s", self.consumer, self.provider, self.url)
        return self

    def verify(self) -> MockVerification:
        if self.state not in (MockState.LISTENING, MockState.RECORDING):
            raise MockStateError(f"verify() called in state {self.state.value}")
        with self._lock:
            unexpected = list(self._unexpected)
            unused = [i for i, count in zip(self._interactions, self._invocations) if count == 0]
        verification = MockVerification(unexpected_requests=unexpected, unused_interactions=unused)
        self.state = MockState.VERIFIED if verification.ok else MockState.FAILED
        if verification.ok:
            logger.info("Mock provider verified %d interaction(s)", len(self._interactions))
        else:
            for line in verification.failures():
                logger.warning("Mock provider verification failure: %s", line)
        return verification

    def finalize(self) -> Optional[Path]:
        """
        Stop listening and, when the run verified cleanly, write the contract.

        Returns:
            Path of the written contract file, or None when nothing was written.
        """
        if self.state == MockState.FINALIZED:
            return None
        verified = self.state == MockState.VERIFIED
        try:
            if verified and self.pact_dir is not None:
                document = self.ledger.to_document(self.consumer, self.provider, self.spec_version)
                return write_document(document, self.pact_dir)
            if not verified and self.pact_dir is not None:
                logger.warning("Not writing contract: mock provider run was not verified (state %s)", self.state.value)
            return None
        finally:
            self._server.stop()
            self.state = MockState.FINALIZED

    def __enter__(self) -> "MockProvider":
        return self.setup()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.finalize()

    def invocation_counts(self) -> List[int]:
        with self._lock:
            return list(self._invocations)

    # --- Registering interactions ----------------------------------------------

    def add_interaction(self, interaction: Interaction) -> "MockProvider":
        if self.state in (MockState.VERIFIED, MockState.FAILED, MockState.FINALIZED):
            raise MockStateError(f"Cannot add interaction {interaction.description!r} after verification")
        with self._lock:
            self._interactions = self._interactions + (interaction,)
            self._invocations.append(0)
        self.ledger.add_interaction(interaction)
        if self.state == MockState.LISTENING:
            self.state = MockState.RECORDING
        return self

    def given(self, provider_state: str) -> "MockProvider":
        self._pending["provider_state"] = provider_state
        return self

    def upon_receiving(self, description: str) -> "MockProvider":
        self._pending["description"] = description
        return self

    def with_request(
        self,
        method: str,
        path: Any,
        query: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, Any]] = None,
        body: Any = None,
    ) -> "MockProvider":
        self._pending["request"] = InteractionRequest(method, path, query or {}, headers, body)
        return self

    def will_respond_with(self, status: int, headers: Optional[Dict[str, Any]] = None, body: Any = None) -> "MockProvider":
        pending, self._pending = self._pending, {}
        if "description" not in pending or "request" not in pending:
            raise ConfigurationError("upon_receiving() and with_request() must be called before will_respond_with()")
        interaction = Interaction(
            description=pending["description"],
            request=pending["request"],
            response=InteractionResponse(status, headers, body),
            provider_state=pending.get("provider_state"),
        )
        return self.add_interaction(interaction)

    # --- Serving -----------------------------------------------------------------

    def handle(self, observed: ObservedRequest) -> Tuple[int, Dict[str, str], bytes]:
        interactions = self._interactions
        candidates, diagnostics = select_candidates(interactions, observed)

        if not candidates:
            unexpected = UnexpectedRequest(observed, diagnostics)
            with self._lock:
                self._unexpected.append(unexpected)
            logger.warning("Mock provider received unexpected request: %s %s", observed.method, observed.path)
            payload = {
                "error": "Unexpected request",
                "request": observed.to_dict(),
                "mismatches": diagnostics,
            }
            return UNEXPECTED_REQUEST_STATUS, {"Content-Type": "application/json"}, json.dumps(payload).encode("utf-8")

        with self._lock:
            chosen = next((i for i in candidates if self._invocations[i] == 0), candidates[0])
            self._invocations[chosen] += 1
        interaction = interactions[chosen]
        logger.info("Mock provider matched %s %s -> %s", observed.method, observed.path, interaction.label())
        return _render_response(interaction.response)


def create_mock_app(mock: MockProvider) -> FastAPI:
    app = FastAPI(
        title=f"Mock {mock.provider}",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    install_error_handler(app)

    @app.api_route("/{path:path}", methods=_METHODS, include_in_schema=False)
    async def handle_any(request: Request, path: str) -> Response:
        observed = ObservedRequest.from_parts(
            method=request.method,
            path=request.url.path,
            query_items=request.query_params.multi_items(),
            headers=dict(request.headers),
            raw_body=await request.body(),
        )
        status_code, headers, content = mock.handle(observed)
        return Response(content=content, status_code=status_code, headers=headers)

    return app
