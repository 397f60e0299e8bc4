from typing import Any, Dict, List

import pytest
import requests
from fastapi import FastAPI, Request

from handshake.contract import ContractDocument, Interaction, InteractionRequest, InteractionResponse, write_document
from handshake.contract.models import Outcome
from handshake.errors import ConfigurationError, FailureKind
from handshake.utils.serving import BackgroundServer
from handshake.verifier import Verifier, VerifierOptions, verify_provider

from tests.contract_fixtures import (
    CONSUMER,
    PROVIDER,
    data_interaction,
    missing_date_interaction,
    no_data_interaction,
)


def _write(tmp_path, *interactions: Interaction, consumer: str = CONSUMER) -> str:
    document = ContractDocument(consumer, PROVIDER, interactions)
    return str(write_document(document, tmp_path))


def _options(base_url: str, sources: List[str], **overrides: Any) -> VerifierOptions:
    values: Dict[str, Any] = {
        "provider": PROVIDER,
        "provider_base_url": base_url,
        "pact_sources": sources,
        "state_setup_url": f"{base_url}/setup",
    }
    values.update(overrides)
    return VerifierOptions(**values)


def _kinds(result) -> List[FailureKind]:
    return [m.kind for r in result.interaction_results for m in r.mismatches]


def test_demo_contract_passes_against_real_provider(tmp_path, live_provider):
    source = _write(tmp_path, data_interaction(), no_data_interaction(), missing_date_interaction())

    result = verify_provider(_options(live_provider.url, [source]))

    assert result.outcome == Outcome.PASS
    assert [r.outcome for r in result.interaction_results] == [Outcome.PASS] * 3
    assert result.notices == []


def test_status_mismatch_is_reported_with_its_path(tmp_path, live_provider):
    broken = Interaction(
        description="a request without a date that expects data",
        request=InteractionRequest("GET", "/provider"),
        response=InteractionResponse(status=200),
    )
    source = _write(tmp_path, broken)

    result = verify_provider(_options(live_provider.url, [source]))

    assert result.outcome == Outcome.FAIL
    mismatch = result.failures()[0].mismatches[0]
    assert mismatch.path == "$.status"
    assert (mismatch.expected, mismatch.actual) == (200, 400)
    assert "a request without a date that expects data" in result.summary()


def test_provider_answering_200_where_400_was_expected_fails(tmp_path, live_provider):
    expects_rejection = Interaction(
        description="a request the consumer expects to be rejected",
        request=InteractionRequest("GET", "/provider", query={"validDate": "2013-08-16T15:31:20+10:00"}),
        response=InteractionResponse(status=400, body={"error": "validDate is required"}),
    )
    source = _write(tmp_path, expects_rejection)

    result = verify_provider(_options(live_provider.url, [source]))

    assert result.outcome == Outcome.FAIL
    status = result.failures()[0].mismatches[0]
    assert status.path == "$.status"
    assert (status.expected, status.actual) == (400, 200)


def test_summary_lists_every_failing_interaction(tmp_path, live_provider):
    first = Interaction(
        description="first broken expectation",
        request=InteractionRequest("GET", "/provider"),
        response=InteractionResponse(status=200),
    )
    second = Interaction(
        description="second broken expectation",
        request=InteractionRequest("GET", "/provider"),
        response=InteractionResponse(status=400, body={"error": "something else"}),
    )
    source = _write(tmp_path, first, missing_date_interaction(), second)

    result = verify_provider(_options(live_provider.url, [source]))

    summary = result.summary()
    assert len(result.failures()) == 2
    assert "(1/3 interactions passed)" in summary
    assert "first broken expectation" in summary
    assert "second broken expectation" in summary
    assert "$.body.error" in summary


def test_failed_state_setup_does_not_stop_the_run(tmp_path, live_provider):
    source = _write(tmp_path, data_interaction(), missing_date_interaction())

    result = verify_provider(
        _options(live_provider.url, [source], state_setup_url=f"{live_provider.url}/no-such-setup")
    )

    first, second = result.interaction_results
    assert first.outcome == Outcome.FAIL
    assert first.mismatches[0].kind == FailureKind.STATE_SETUP
    assert second.outcome == Outcome.PASS


def test_stateful_contract_without_setup_url_is_a_configuration_error(tmp_path, live_provider):
    source = _write(tmp_path, data_interaction())
    with pytest.raises(ConfigurationError):
        verify_provider(_options(live_provider.url, [source], state_setup_url=None))


def test_stateless_contract_needs_no_setup_url(tmp_path, live_provider):
    source = _write(tmp_path, missing_date_interaction())
    result = verify_provider(_options(live_provider.url, [source], state_setup_url=None))
    assert result.ok is True


def test_exhausted_deadline_marks_interactions_as_timed_out(tmp_path, live_provider):
    source = _write(tmp_path, data_interaction(), missing_date_interaction())

    result = verify_provider(_options(live_provider.url, [source], timeout=1e-9))

    assert result.outcome == Outcome.FAIL
    assert set(_kinds(result)) == {FailureKind.TIMEOUT}


def test_unreachable_provider_is_a_request_failure(tmp_path):
    source = _write(tmp_path, missing_date_interaction())

    result = verify_provider(_options("http://127.0.0.1:1", [source], request_timeout=2))

    assert result.outcome == Outcome.FAIL
    assert _kinds(result) == [FailureKind.REQUEST]


def test_state_discovery_flags_unlisted_states(tmp_path, live_provider):
    unknown_state = Interaction(
        description="a request for JSON data under a future state",
        provider_state="the moon is full",
        request=InteractionRequest("GET", "/provider", query={"validDate": "2013-08-16T15:31:20+10:00"}),
        response=InteractionResponse(status=200),
    )
    source = _write(tmp_path, unknown_state)

    result = verify_provider(
        _options(live_provider.url, [source], state_discovery_url=f"{live_provider.url}/states")
    )

    assert result.ok is True
    assert len(result.notices) == 1
    assert "the moon is full" in result.notices[0]


def test_contracts_from_several_consumers_are_attributed(tmp_path, live_provider):
    first = _write(tmp_path, missing_date_interaction())
    second = _write(tmp_path, no_data_interaction(), consumer="Another Consumer")

    result = verify_provider(_options(live_provider.url, [first, second]))

    assert result.ok is True
    assert len(result.for_consumer(CONSUMER)) == 1
    assert len(result.for_consumer("Another Consumer")) == 1


def test_repeated_runs_give_the_same_outcome(tmp_path, live_provider):
    source = _write(tmp_path, data_interaction(), no_data_interaction(), missing_date_interaction())
    verifier = Verifier()
    options = _options(live_provider.url, [source])

    first = verifier.verify_provider(options)
    second = verifier.verify_provider(options)

    assert [r.outcome for r in first.interaction_results] == [r.outcome for r in second.interaction_results]


def test_publish_requires_broker_and_version(tmp_path, live_provider):
    source = _write(tmp_path, missing_date_interaction())
    with pytest.raises(ConfigurationError):
        verify_provider(_options(live_provider.url, [source], publish_verification_results=True))


def test_publish_failure_does_not_change_the_outcome(tmp_path, live_provider):
    source = _write(tmp_path, missing_date_interaction())

    result = verify_provider(
        _options(
            live_provider.url,
            [source],
            publish_verification_results=True,
            broker_url="http://127.0.0.1:1",
            provider_version="1.0.0",
            request_timeout=2,
        )
    )

    assert result.outcome == Outcome.PASS
    assert len(result.publish_errors) == 1


def test_results_are_published_per_contract(tmp_path, live_provider):
    received: List[Dict[str, Any]] = []
    broker = FastAPI()

    @broker.post("/pacts/provider/{provider}/consumer/{consumer}/verification-results")
    async def record_result(provider: str, consumer: str, request: Request):
        received.append({"provider": provider, "consumer": consumer, "payload": await request.json()})
        return {"ok": True}

    @broker.put("/pacticipants/{name}/versions/{version}/tags/{tag}")
    async def tag_version(name: str, version: str, tag: str):
        return {}

    source = _write(tmp_path, data_interaction(), missing_date_interaction())
    with BackgroundServer(broker) as server:
        result = verify_provider(
            _options(
                live_provider.url,
                [source],
                publish_verification_results=True,
                broker_url=server.url,
                provider_version="2.0.0",
                provider_tags=["prod"],
            )
        )

    assert result.publish_errors == []
    assert len(received) == 1
    assert received[0]["provider"] == PROVIDER
    assert received[0]["consumer"] == CONSUMER
    payload = received[0]["payload"]
    assert payload["success"] is True
    assert payload["providerApplicationVersion"] == "2.0.0"
    assert payload["providerVersionTags"] == ["prod"]
    assert len(payload["testResults"]) == 2


def test_verifier_closes_only_its_own_session(monkeypatch):
    closed = []
    monkeypatch.setattr(requests.Session, "close", lambda self: closed.append(self))
    shared = requests.Session()

    with Verifier(session=shared):
        pass
    with Verifier() as verifier:
        pass

    assert closed == [verifier.session]
