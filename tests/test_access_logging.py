import json
import logging

from fastapi import FastAPI, Request
from starlette.testclient import TestClient

from tracking_assistant.app_logging import ACCESS_LOGGER_NAME, _install_access_logging


def _create_app() -> FastAPI:
    app = FastAPI()

    @app.post("/api/chat")
    async def chat(request: Request):
        return {"rid": request.state.request_id}

    @app.get("/api/chat-logs/search")
    async def search(q: str):
        return {"q": q}

    @app.get("/api/health")
    async def health():  # pragma: no cover - simple
        return {"status": "ok"}

    _install_access_logging(app)
    return app


def test_access_logging_request_id_and_scrubbing(caplog, monkeypatch):
    monkeypatch.setenv("LOG_REQUEST_BODIES", "true")
    app = _create_app()

    with (
        TestClient(app) as client,
        caplog.at_level(logging.INFO, logger=ACCESS_LOGGER_NAME),
    ):
        resp = client.post(
            "/api/chat",
            json={"message": "hi", "token": "secret"},
            headers={
                "X-Request-Id": "abc",
                "X-Api-Key": "key",
                "X-Forwarded-For": "203.0.113.9",
            },
        )

        assert resp.status_code == 200
        assert resp.headers["X-Request-Id"] == "abc"
        assert resp.json() == {"rid": "abc"}

        record = caplog.records[0]
        data = json.loads(record.getMessage())
        assert data["request_id"] == "abc"
        assert data["client_ip"] == "203.0.113.9"
        assert data["headers"]["x-api-key"] == "***"
        assert data["body"] == {"message": "hi", "token": "***"}

        caplog.clear()
        client.get("/api/health")
        assert len(caplog.records) == 0


def test_request_id_is_generated_when_absent(caplog):
    app = _create_app()

    with (
        TestClient(app) as client,
        caplog.at_level(logging.INFO, logger=ACCESS_LOGGER_NAME),
    ):
        resp = client.post("/api/chat", json={"message": "hi"})

    generated = resp.headers["X-Request-Id"]
    assert generated
    assert resp.json() == {"rid": generated}
    data = json.loads(caplog.records[0].getMessage())
    assert "body" not in data


def test_query_string_is_scrubbed_and_peer_address_used(caplog):
    app = _create_app()

    with (
        TestClient(app) as client,
        caplog.at_level(logging.INFO, logger=ACCESS_LOGGER_NAME),
    ):
        resp = client.get("/api/chat-logs/search", params={"q": "parcel", "token": "abc"})

    assert resp.status_code == 200
    data = json.loads(caplog.records[0].getMessage())
    assert data["query"] == {"q": "parcel", "token": "***"}
    assert data["client_ip"] == "testclient"
    assert data["status"] == 200
    assert data["latency_ms"] >= 0
