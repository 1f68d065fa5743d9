"""HTTP plumbing: error shapes, request ids, JSON logging, CORS."""
import logging

import pytest
from fastapi.testclient import TestClient
from pythonjsonlogger.json import JsonFormatter

from conftest import ADMIN_KEY, voter_id
from murmur.api import create_app
from murmur.config import Settings
from murmur.engine import TrustEngine
from murmur.errors import StorageError
from murmur.security import RequestIdFilter, request_id_var, setup_structured_logging


@pytest.fixture
def engine():
    engine = TrustEngine(settings=Settings(db_path=":memory:"))
    engine.register_voter(voter_id(0))
    engine.submit_claim("rumor", claim_id="rumor-1")
    return engine


@pytest.fixture
def client(engine):
    settings = Settings(db_path=":memory:", admin_api_key=ADMIN_KEY,
                        allowed_origins=["https://campus.example"])
    return TestClient(create_app(engine, settings=settings, use_lifespan=False))


class TestErrorResponses:
    def test_storage_error_is_masked(self, client, engine, monkeypatch):
        def boom(*args, **kwargs):
            raise StorageError("sqlite file /var/lib/murmur.db is locked")

        monkeypatch.setattr(engine.votes, "cast_vote", boom)
        r = client.post("/api/v1/votes", json={
            "claim_id": "rumor-1", "voter_id": voter_id(0),
            "vote_value": True, "credits_spent": 4,
        })
        assert r.status_code == 500
        assert r.json() == {"detail": {"code": "StorageError", "message": "Internal server error"}}

    def test_validation_error_shape(self, client):
        r = client.post("/api/v1/votes", json={
            "claim_id": "rumor-1", "voter_id": voter_id(0),
            "vote_value": True, "credits_spent": 500,
        })
        assert r.status_code == 400
        assert r.json()["detail"] == {
            "code": "InvalidCredits", "message": "Cannot spend more than 100 credits",
        }

    def test_missing_field_is_422(self, client):
        r = client.post("/api/v1/votes", json={"claim_id": "rumor-1"})
        assert r.status_code == 422


class TestHeaders:
    def test_request_id_echoed(self, client):
        r = client.get("/api/v1/health", headers={"X-Request-ID": "abc123"})
        assert r.headers["X-Request-ID"] == "abc123"
        assert r.headers["X-Frame-Options"] == "DENY"

    def test_cors_allowed_origin(self, client):
        r = client.get("/api/v1/health", headers={"Origin": "https://campus.example"})
        assert r.headers["access-control-allow-origin"] == "https://campus.example"

    def test_cors_other_origin(self, client):
        r = client.get("/api/v1/health", headers={"Origin": "https://evil.example"})
        assert "access-control-allow-origin" not in r.headers


class TestStructuredLogging:
    def test_json_handler_installed(self):
        logger = setup_structured_logging("DEBUG")
        assert logger.name == "murmur"
        assert logger.level == logging.DEBUG
        assert any(isinstance(h.formatter, JsonFormatter) for h in logger.handlers)

    def test_setup_is_idempotent(self):
        count = len(setup_structured_logging().handlers)
        assert len(setup_structured_logging().handlers) == count

    def test_request_id_filter(self):
        token = request_id_var.set("req-42")
        try:
            record = logging.LogRecord("murmur", logging.INFO, __file__, 1, "msg", None, None)
            assert RequestIdFilter().filter(record)
            assert record.request_id == "req-42"
        finally:
            request_id_var.reset(token)
