import re

import httpx
import pytest
from fastapi.testclient import TestClient

from handshake.errors import ConfigurationError
from handshake.provider import (
    STATE_COUNT_POSITIVE,
    STATE_COUNT_ZERO,
    ProviderDataStore,
    ProviderStateRegistry,
    create_provider_app,
    default_registry,
)

from tests.contract_fixtures import CONSUMER, DATE, DATE_REGEX


@pytest.fixture
def client(provider_app):
    return TestClient(provider_app)


class TestProviderEndpoint:
    def test_dated_count_is_returned(self, client):
        resp = client.get("/provider", params={"validDate": DATE})

        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/json; charset=utf-8"
        data = resp.json()
        assert data["test"] == "NO"
        assert data["count"] == 1000
        assert re.fullmatch(DATE_REGEX, data["validDate"])

    def test_missing_date_is_a_bad_request(self, client):
        resp = client.get("/provider")
        assert resp.status_code == 400
        assert resp.json() == {"error": "validDate is required"}

    def test_utc_z_suffix_is_accepted(self, client):
        resp = client.get("/provider", params={"validDate": "2013-08-16T05:31:20.000Z"})
        assert resp.status_code == 200
        assert resp.json()["count"] == 1000

    def test_unparseable_date_is_a_bad_request(self, client):
        resp = client.get("/provider", params={"validDate": "next tuesday"})
        assert resp.status_code == 400
        assert resp.json() == {"error": "validDate is invalid"}

    def test_zero_count_means_not_found(self, client, provider_store):
        provider_store.set_count(0)
        resp = client.get("/provider", params={"validDate": DATE})
        assert resp.status_code == 404
        assert resp.content == b""

    def test_state_endpoints_can_be_disabled(self):
        client = TestClient(create_provider_app(enable_states=False))
        assert client.post("/setup", json={"state": STATE_COUNT_ZERO}).status_code in (404, 405)


class TestStateEndpoints:
    def test_setup_mutates_the_injected_store(self, client, provider_store):
        resp = client.post("/setup", json={"state": STATE_COUNT_ZERO, "consumer": CONSUMER})
        assert resp.status_code == 200
        assert provider_store.count == 0
        assert client.get("/provider", params={"validDate": DATE}).status_code == 404

        client.post("/setup", json={"state": STATE_COUNT_POSITIVE, "consumer": CONSUMER})
        assert provider_store.count == 1000

    def test_states_list_form_is_accepted(self, client, provider_store):
        client.post("/setup", json={"states": [STATE_COUNT_ZERO]})
        assert provider_store.count == 0

    def test_unknown_state_falls_back_to_default(self, client, provider_store):
        provider_store.set_count(0)
        resp = client.post("/setup", json={"state": "the moon is full"})
        assert resp.status_code == 200
        assert provider_store.count == 1000

    def test_states_are_listed_per_consumer(self, client):
        resp = client.get("/states")
        assert resp.status_code == 200
        assert resp.json() == {CONSUMER: [STATE_COUNT_POSITIVE, STATE_COUNT_ZERO]}


class TestRegistry:
    def test_apply_state_returns_applied_label(self):
        store = ProviderDataStore()
        registry = default_registry()
        assert registry.apply_state(STATE_COUNT_ZERO, store) == STATE_COUNT_ZERO
        assert registry.apply_state(None, store) == STATE_COUNT_POSITIVE
        assert store.count == 1000
        assert registry.labels() == [STATE_COUNT_POSITIVE, STATE_COUNT_ZERO]

    def test_states_without_consumers_are_open_to_everyone(self):
        registry = ProviderStateRegistry(default_state="empty")
        registry.register("empty", lambda store: store.set_count(0))
        assert registry.list_states() == {"*": ["empty"]}

    def test_missing_default_state_is_a_configuration_error(self):
        registry = ProviderStateRegistry(default_state="nowhere")
        with pytest.raises(ConfigurationError):
            registry.apply_state("unknown", ProviderDataStore())


@pytest.mark.asyncio
async def test_provider_app_over_asgi_transport(provider_app):
    transport = httpx.ASGITransport(app=provider_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://provider") as ac:
        resp = await ac.get("/provider", params={"validDate": DATE})
    assert resp.status_code == 200
    assert resp.json()["count"] == 1000
