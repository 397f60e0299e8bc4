"""
Provider verification.

Replays every interaction of every contract document against a live
provider, strictly one at a time:

1. prime the provider with the interaction's state (POST to the setup URL)
2. issue the recorded request
3. judge status, headers and body with the matcher

Per-interaction failures are captured into the result and the run moves
on, so a report always lists every broken interaction. Mis-wiring (missing
setup URL for a stateful contract, unreadable contract, publish requested
without a broker) raises ConfigurationError before anything is replayed.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

import requests

from handshake.broker.client import BrokerClient
from handshake.contract.document import load_document
from handshake.contract.matchers import Mismatch, generate, match, match_headers
from handshake.contract.models import ContractDocument, Interaction, InteractionRequest, Outcome
from handshake.errors import BrokerError, ConfigurationError, FailureKind
from handshake.utils.bodies import parse_body
from handshake.verifier.options import VerifierOptions
from handshake.verifier.results import InteractionResult, VerificationResult

logger = logging.getLogger(__name__)


class Verifier:
    def __init__(self, session: Optional[requests.Session] = None) -> None:
        self._owns_session = session is None
        self.session = session or requests.Session()

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

    def __enter__(self) -> "Verifier":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --- Entry point -------------------------------------------------------------

    def verify_provider(self, options: VerifierOptions) -> VerificationResult:
        deadline = time.monotonic() + options.timeout
        self._check_publish_config(options)

        documents = [
            load_document(source, auth=options.broker_auth(), timeout=options.request_timeout, session=self.session)
            for source in options.pact_sources
        ]
        self._check_state_config(documents, options)

        result = VerificationResult(provider_name=options.provider)
        for document in documents:
            if document.provider_name != options.provider:
                notice = (
                    f"Contract {document.consumer_name} -> {document.provider_name} "
                    f"names a different provider than {options.provider!r}"
                )
                logger.warning(notice)
                result.notices.append(notice)
        if options.state_discovery_url:
            result.notices.extend(self._discover_missing_states(documents, options))

        for document in documents:
            logger.info(
                "Verifying %d interaction(s) from %s against %s",
                len(document.interactions),
                document.consumer_name,
                options.provider_base_url,
            )
            document_results: List[InteractionResult] = []
            for interaction in document.interactions:
                interaction_result = self._verify_interaction(document, interaction, options, deadline)
                document_results.append(interaction_result)
                logger.info(
                    "%s %s",
                    interaction_result.outcome.value,
                    interaction.label(),
                )
            result.interaction_results.extend(document_results)

            if options.publish_verification_results:
                error = self._publish(document, document_results, options)
                if error:
                    result.publish_errors.append(error)

        if result.ok:
            logger.info("Verification of %s passed", options.provider)
        else:
            logger.error(result.summary())
        return result

    # --- Configuration checks ------------------------------------------------------

    @staticmethod
    def _check_publish_config(options: VerifierOptions) -> None:
        if options.publish_verification_results and not (options.broker_url and options.provider_version):
            raise ConfigurationError("Publishing verification results requires broker_url and provider_version")

    @staticmethod
    def _check_state_config(documents: List[ContractDocument], options: VerifierOptions) -> None:
        if options.state_setup_url:
            return
        for document in documents:
            states = document.provider_states()
            if states:
                raise ConfigurationError(
                    f"Contract {document.consumer_name} -> {document.provider_name} declares provider "
                    f"state(s) {states} but no state_setup_url is configured"
                )

    def _discover_missing_states(self, documents: List[ContractDocument], options: VerifierOptions) -> List[str]:
        try:
            resp = self.session.get(options.state_discovery_url, timeout=options.request_timeout)
            resp.raise_for_status()
            listing: Dict[str, List[str]] = resp.json()
        except (requests.exceptions.RequestException, ValueError) as exc:
            notice = f"State discovery at {options.state_discovery_url} failed: {exc}"
            logger.warning(notice)
            return [notice]

        notices = []
        shared = set(listing.get("*", []))
        for document in documents:
            known = shared | set(listing.get(document.consumer_name, []))
            for state in document.provider_states():
                if state not in known:
                    notice = (
                        f"Provider does not list state {state!r} for {document.consumer_name}; "
                        "it will fall back to its default state"
                    )
                    logger.warning(notice)
                    notices.append(notice)
        return notices

    # --- Per interaction -------------------------------------------------------------

    def _verify_interaction(
        self,
        document: ContractDocument,
        interaction: Interaction,
        options: VerifierOptions,
        deadline: float,
    ) -> InteractionResult:
        result = InteractionResult(consumer_name=document.consumer_name, interaction=interaction)

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            result.mismatches.append(
                Mismatch("$", None, None, "verification run timed out before this interaction", FailureKind.TIMEOUT)
            )
            return result
        timeout = min(options.request_timeout, remaining)

        if interaction.provider_state:
            error = self._setup_state(document, interaction.provider_state, options.state_setup_url, timeout)
            if error is not None:
                result.mismatches.append(error)
                return result
            timeout = min(options.request_timeout, max(deadline - time.monotonic(), 0.001))

        try:
            response = self._replay(options.provider_base_url, interaction.request, timeout)
        except requests.exceptions.Timeout as exc:
            result.mismatches.append(Mismatch("$", None, None, f"request timed out: {exc}", FailureKind.TIMEOUT))
            return result
        except requests.exceptions.RequestException as exc:
            result.mismatches.append(Mismatch("$", None, None, f"request failed: {exc}", FailureKind.REQUEST))
            return result

        result.mismatches.extend(compare_response(interaction, response))
        return result

    def _setup_state(self, document: ContractDocument, state: str, url: str, timeout: float) -> Optional[Mismatch]:
        try:
            resp = self.session.post(
                url,
                json={"state": state, "consumer": document.consumer_name},
                timeout=timeout,
            )
        except requests.exceptions.RequestException as exc:
            return Mismatch("$.providerState", state, None, f"state setup failed: {exc}", FailureKind.STATE_SETUP)
        if not 200 <= resp.status_code < 300:
            return Mismatch(
                "$.providerState",
                state,
                resp.status_code,
                f"state setup returned HTTP {resp.status_code}",
                FailureKind.STATE_SETUP,
            )
        return None

    def _replay(self, base_url: str, request: InteractionRequest, timeout: float) -> requests.Response:
        kwargs: Dict[str, Any] = {
            "params": generate(request.query) or None,
            "headers": {k: str(v) for k, v in (generate(request.headers) or {}).items()},
            "timeout": timeout,
            "allow_redirects": False,
        }
        body = generate(request.body)
        if isinstance(body, str):
            kwargs["data"] = body.encode("utf-8")
        elif body is not None:
            kwargs["json"] = body
        url = f"{base_url.rstrip('/')}{generate(request.path)}"
        return self.session.request(request.method, url, **kwargs)

    # --- Publishing ----------------------------------------------------------------

    def _publish(
        self,
        document: ContractDocument,
        results: List[InteractionResult],
        options: VerifierOptions,
    ) -> Optional[str]:
        broker = BrokerClient(
            options.broker_url,
            username=options.broker_username,
            password=options.broker_password,
            timeout=options.request_timeout,
            session=self.session,
        )
        try:
            broker.publish_verification_result(
                consumer_name=document.consumer_name,
                provider_name=document.provider_name,
                success=all(r.outcome == Outcome.PASS for r in results),
                provider_version=options.provider_version,
                tags=options.provider_tags,
                test_results=[r.to_dict() for r in results],
            )
        except BrokerError as exc:
            logger.error("%s: %s", FailureKind.PUBLISH.value, exc)
            return str(exc)
        return None


def compare_response(interaction: Interaction, response: requests.Response) -> List[Mismatch]:
    expected = interaction.response
    mismatches: List[Mismatch] = []
    if response.status_code != expected.status:
        mismatches.append(Mismatch("$.status", expected.status, response.status_code, "status differs"))
    mismatches.extend(match_headers(expected.headers, response.headers).mismatches)
    if expected.body is not None:
        actual_body = parse_body(response.content, response.headers)
        mismatches.extend(match(expected.body, actual_body, "$.body").mismatches)
    return mismatches


def verify_provider(options: VerifierOptions) -> VerificationResult:
    with Verifier() as verifier:
        return verifier.verify_provider(options)
