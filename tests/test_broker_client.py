import json

import pytest
import requests

from handshake.broker import BrokerClient
from handshake.contract import InteractionLedger, document_to_dict, load_document, write_document
from handshake.errors import BrokerError, ContractDocumentError

from tests.contract_fixtures import CONSUMER, PROVIDER, data_interaction, missing_date_interaction


class FakeResponse:
    def __init__(self, status_code: int = 200, data=None):
        self.status_code = status_code
        self._data = data
        self.content = json.dumps(data).encode("utf-8") if data is not None else b""
        self.text = self.content.decode("utf-8")

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        return json.loads(self.content)

    def raise_for_status(self):
        if not self.ok:
            raise requests.exceptions.HTTPError(f"{self.status_code} error")


class FakeSession:
    def __init__(self, status_code: int = 200, data=None, error: Exception = None):
        self.calls = []
        self.status_code = status_code
        self.data = data
        self.error = error
        self.closed = False

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        if self.error:
            raise self.error
        return FakeResponse(self.status_code, self.data)

    def get(self, url, **kwargs):
        return self.request("GET", url, **kwargs)

    def close(self):
        self.closed = True


def _document():
    ledger = InteractionLedger()
    ledger.add_interaction(data_interaction())
    ledger.add_interaction(missing_date_interaction())
    return ledger.to_document(CONSUMER, PROVIDER)


def test_publish_contract_puts_document_and_tags_version():
    session = FakeSession(data={"_links": {}})
    client = BrokerClient("http://broker/", username="ci", password="secret", session=session)

    client.publish_contract(_document(), "1.0.0", tags=["prod", "test"])

    put, *tags = session.calls
    assert put["method"] == "PUT"
    assert put["url"] == "http://broker/pacts/provider/Our%20Provider/consumer/Our%20Little%20Consumer/version/1.0.0"
    assert put["json"] == document_to_dict(_document())
    assert put["auth"].username == "ci"
    assert [c["url"] for c in tags] == [
        "http://broker/pacticipants/Our%20Little%20Consumer/versions/1.0.0/tags/prod",
        "http://broker/pacticipants/Our%20Little%20Consumer/versions/1.0.0/tags/test",
    ]


def test_publish_contract_file_reads_the_written_document(tmp_path):
    path = write_document(_document(), tmp_path)
    session = FakeSession()

    BrokerClient("http://broker", session=session).publish_contract_file(path, "3.1.4")

    assert len(session.calls) == 1
    assert session.calls[0]["json"]["consumer"] == {"name": CONSUMER}
    assert session.calls[0]["auth"] is None


def test_verification_result_payload():
    session = FakeSession()
    client = BrokerClient("http://broker", session=session)

    client.publish_verification_result(
        consumer_name=CONSUMER,
        provider_name=PROVIDER,
        success=False,
        provider_version="2.0.0",
        test_results=[{"outcome": "FAIL"}],
    )

    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["url"].endswith("/pacts/provider/Our%20Provider/consumer/Our%20Little%20Consumer/verification-results")
    assert call["json"] == {
        "success": False,
        "providerApplicationVersion": "2.0.0",
        "testResults": [{"outcome": "FAIL"}],
    }


def test_rejected_call_raises_broker_error_with_status():
    client = BrokerClient("http://broker", session=FakeSession(status_code=401, data={"error": "nope"}))
    with pytest.raises(BrokerError) as excinfo:
        client.publish_contract(_document(), "1.0.0")
    assert excinfo.value.status_code == 401


def test_transport_failure_raises_broker_error():
    session = FakeSession(error=requests.exceptions.ConnectionError("refused"))
    with pytest.raises(BrokerError) as excinfo:
        BrokerClient("http://broker", session=session).tag_version(CONSUMER, "1.0.0", "prod")
    assert excinfo.value.status_code is None


def test_contract_can_be_loaded_from_a_broker_url():
    session = FakeSession(data=document_to_dict(_document()))

    doc = load_document(
        "http://broker/pacts/provider/Our%20Provider/consumer/Our%20Little%20Consumer/latest",
        auth=("ci", "secret"),
        session=session,
    )

    assert doc.consumer_name == CONSUMER
    assert len(doc.interactions) == 2
    assert session.calls[0]["auth"] == ("ci", "secret")


def test_unreachable_broker_url_is_a_document_error():
    session = FakeSession(status_code=404)
    with pytest.raises(ContractDocumentError):
        load_document("http://broker/pacts/missing", session=session)


def test_injected_session_is_left_open():
    session = FakeSession()
    with BrokerClient("http://broker", session=session) as client:
        client.tag_version(CONSUMER, "1.0.0", "prod")
    assert session.closed is False


def test_own_session_is_closed_on_exit(monkeypatch):
    closed = []
    monkeypatch.setattr(requests.Session, "close", lambda self: closed.append(self))

    with BrokerClient("http://broker") as client:
        pass

    assert closed == [client.session]
