"""
Integration tests for the chat HTTP API.
"""
from datetime import datetime, timezone

import pytest

from nerdsphere.main import app
from nerdsphere.core.config import get_settings
from nerdsphere.core.database import Base
from nerdsphere.models.message import Message

from conftest import get_test_settings


def post_message(client, content="Hello, nerds!", fingerprint="fp-1"):
    return client.post("/messages", json={"content": content, "fingerprint": fingerprint})


def parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_liveness_always_returns_ok(self, client):
        """GET /health/live should always return 200."""
        response = client.get("/health/live")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_readiness_reports_database(self, client):
        """GET /health/ready reports the database check."""
        response = client.get("/health/ready")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["checks"]["database"] == "ok"


class TestPostMessage:
    """Tests for POST /messages."""

    def test_created(self, client, clock):
        response = post_message(client)
        assert response.status_code == 201

        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert data["id"]
        assert data["content"] == "Hello, nerds!"
        assert data["user_fingerprint"] == "fp-1"
        assert data["created_at"].endswith("Z")
        assert parse_timestamp(data["created_at"]) == clock.now.replace(tzinfo=timezone.utc)

    def test_long_fingerprint_stored_intact(self, client, db_session):
        fingerprint = "f" * 1000

        response = post_message(client, fingerprint=fingerprint)

        assert response.status_code == 201
        assert response.json()["data"]["user_fingerprint"] == fingerprint
        stored = db_session.query(Message).one()
        assert stored.user_fingerprint == fingerprint

        # The cooldown still keys on the full value
        assert post_message(client, content="again", fingerprint=fingerprint).status_code == 429

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"content": "hi"},
            {"fingerprint": "fp-1"},
            {"content": "", "fingerprint": "fp-1"},
            {"content": "hi", "fingerprint": ""},
        ],
    )
    def test_missing_fields(self, client, payload):
        response = client.post("/messages", json=payload)
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["kind"] == "MissingField"
        assert body["error"] == "Content and fingerprint are required"

    def test_malformed_json(self, client):
        response = client.post(
            "/messages",
            content="{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_wrong_field_type(self, client):
        response = client.post("/messages", json={"content": 123, "fingerprint": "fp-1"})
        assert response.status_code == 400

    def test_script_is_stripped(self, client):
        response = post_message(client, content="<script>alert(1)</script>hello")
        assert response.status_code == 201
        content = response.json()["data"]["content"]
        assert "hello" in content
        assert "<script" not in content
        assert "<" not in content

    def test_empty_after_sanitizing(self, client):
        response = post_message(client, content="<p></p>")
        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "error": "Message cannot be empty",
            "kind": "EmptyContent",
        }

    def test_too_long(self, client):
        response = post_message(client, content="ab" * 251)
        assert response.status_code == 400
        assert response.json()["error"] == "Message too long (max 500 characters)"
        assert response.json()["kind"] == "TooLong"

    def test_spam(self, client):
        response = post_message(client, content="z" * 50)
        assert response.status_code == 400
        assert response.json()["error"] == "Message appears to be spam"

    def test_rate_limited_two_seconds_apart(self, client, clock):
        assert post_message(client, content="first").status_code == 201
        clock.advance(2)

        response = post_message(client, content="second")
        assert response.status_code == 429
        body = response.json()
        assert body["success"] is False
        assert body["kind"] == "RateLimited"
        assert body["remainingSeconds"] == 8
        assert body["error"] == "Rate limit exceeded. Please wait 8 seconds."
        assert response.headers["Retry-After"] == "8"

    def test_allowed_after_cooldown(self, client, clock):
        assert post_message(client, content="first").status_code == 201
        clock.advance(11)
        assert post_message(client, content="second").status_code == 201

    def test_rejected_submission_does_not_restart_cooldown(self, client, clock):
        assert post_message(client, content="first").status_code == 201
        clock.advance(5)
        assert post_message(client, content="too soon").status_code == 429
        clock.advance(5)
        assert post_message(client, content="on time").status_code == 201

    def test_store_failure_is_generic_500(self, client, db_session):
        Base.metadata.drop_all(bind=db_session.get_bind())

        response = post_message(client)
        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["kind"] == "StoreUnavailable"
        assert "table" not in body["error"].lower()


class TestListMessages:
    """Tests for GET /messages."""

    def test_empty(self, client):
        response = client.get("/messages")
        assert response.status_code == 200
        assert response.json() == {"success": True, "data": []}

    def test_newest_first(self, client, add_message):
        add_message(content="older", fingerprint="a", age_seconds=60)
        add_message(content="newer", fingerprint="b", age_seconds=5)

        data = client.get("/messages").json()["data"]
        assert [m["content"] for m in data] == ["newer", "older"]

    def test_limit(self, client, add_message):
        for i in range(5):
            add_message(content=f"m{i}", fingerprint=f"fp-{i}", age_seconds=i)

        data = client.get("/messages?limit=2").json()["data"]
        assert [m["content"] for m in data] == ["m0", "m1"]

    def test_limit_above_maximum_rejected(self, client):
        assert client.get("/messages?limit=101").status_code == 400

    def test_round_trip(self, client, clock):
        requested_at = clock.now.replace(tzinfo=timezone.utc)
        created = post_message(client, content="see you in 24h").json()["data"]

        listed = client.get("/messages").json()["data"][0]
        assert listed["id"] == created["id"]
        assert listed["content"] == created["content"] == "see you in 24h"
        assert parse_timestamp(listed["created_at"]) >= requested_at


class TestCleanupEndpoint:
    """Tests for /cleanup."""

    def test_deletes_expired_messages(self, client, add_message):
        add_message(content="stale", fingerprint="a", age_seconds=25 * 3600)
        add_message(content="fresh", fingerprint="b", age_seconds=3600)

        response = client.get("/cleanup")
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["deletedCount"] == 1

        contents = [m["content"] for m in client.get("/messages").json()["data"]]
        assert contents == ["fresh"]

    def test_second_run_deletes_nothing(self, client, add_message):
        add_message(age_seconds=30 * 3600)
        assert client.get("/cleanup").json()["deletedCount"] == 1
        assert client.get("/cleanup").json()["deletedCount"] == 0

    def test_post_trigger(self, client):
        response = client.post("/cleanup")
        assert response.status_code == 200
        assert response.json()["deletedCount"] == 0

    def test_store_failure(self, client, db_session):
        Base.metadata.drop_all(bind=db_session.get_bind())

        response = client.get("/cleanup")
        assert response.status_code == 500
        assert response.json()["success"] is False
        assert response.json()["error"] == "Failed to delete old messages"


class TestCleanupAuthorization:
    """Tests for the optional cleanup bearer token."""

    @pytest.fixture(autouse=True)
    def secret_settings(self, test_db):
        settings = get_test_settings(cleanup_secret="s3cret")
        app.dependency_overrides[get_settings] = lambda: settings
        return settings

    def test_missing_token_rejected(self, client, add_message):
        add_message(age_seconds=30 * 3600)

        response = client.get("/cleanup")
        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "error": "Unauthorized",
            "kind": "Unauthorized",
        }
        assert len(client.get("/messages").json()["data"]) == 1

    def test_wrong_token_rejected(self, client):
        response = client.get("/cleanup", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401
        assert response.json()["success"] is False
        assert response.json()["kind"] == "Unauthorized"

    def test_non_bearer_scheme_rejected(self, client):
        response = client.post("/cleanup", headers={"Authorization": "Basic s3cret"})
        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_valid_token_accepted(self, client):
        response = client.get("/cleanup", headers={"Authorization": "Bearer s3cret"})
        assert response.status_code == 200
        assert response.json()["success"] is True


class TestMetricsEndpoint:
    """Tests for GET /metrics."""

    def test_metrics_include_message_counters(self, client, clock):
        post_message(client, content="counted")
        clock.advance(1)
        post_message(client, content="rejected")

        response = client.get("/metrics")
        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]

        content = response.text
        assert "messages_submitted_total" in content
        assert 'messages_rejected_total{kind="RateLimited"}' in content
        assert "messages_swept_total" in content
        assert 'http_requests_total{method="POST",path="/messages",status="201"}' in content
