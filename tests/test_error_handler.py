from fastapi import FastAPI
from fastapi.testclient import TestClient

from handshake.error_handler import ErrorHandler, install_error_handler


def test_handle_exception_returns_payload():
    eh = ErrorHandler()
    out = eh.handle_exception(Exception("boom"), context={"k": "v"})
    assert "internal error" in out["error"].lower()
    assert "boom" in out["metadata"]["error"]
    assert out["metadata"]["context"] == {"k": "v"}


def test_installed_handler_answers_with_json_500():
    app = FastAPI()
    install_error_handler(app)

    @app.get("/explode")
    async def explode():
        raise RuntimeError("kaboom")

    client = TestClient(app, raise_server_exceptions=False)
    resp = client.get("/explode")

    assert resp.status_code == 500
    body = resp.json()
    assert body["metadata"]["error"] == "kaboom"
    assert body["metadata"]["context"] == {"method": "GET", "path": "/explode"}
