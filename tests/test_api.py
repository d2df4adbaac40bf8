"""
Tests for the Flask HTTP surface.

Uses the Flask test client against a FloodGuard whose dispatcher is mocked.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from floodguard.config import Config
from floodguard.core.policy import ModAction
from floodguard.guard import FloodGuard


def group_message(text: str, user_id: int = 200) -> dict:
    return {
        "post_type": "message",
        "message_type": "group",
        "group_id": 100,
        "user_id": user_id,
        "message": [{"type": "text", "data": {"text": text}}],
    }


@pytest.fixture
def guard(tmp_path):
    config = Config(
        onebot_api_url="http://127.0.0.1:3000",
        settings_file=str(tmp_path / "settings.json"),
    )
    guard = FloodGuard(config, dispatcher=MagicMock())
    yield guard
    guard.store.clear()


@pytest.fixture
def client(guard):
    guard.app.config["TESTING"] = True
    return guard.app.test_client()


class TestOneBotIntake:
    """Tests for POST /onebot."""

    def test_group_message_is_processed(self, guard, client) -> None:
        """Test that an event is classified and stored."""
        response = client.post("/onebot", json=group_message("hello"))

        assert response.status_code == 204
        assert guard.handler.processed == 1
        assert guard.store.stats().records == 1

    def test_non_message_events_accepted(self, guard, client) -> None:
        """Test that heartbeats and notices are acknowledged and ignored."""
        response = client.post("/onebot", json={"post_type": "meta_event", "meta_event_type": "heartbeat"})

        assert response.status_code == 204
        assert guard.handler.processed == 0

    def test_rejects_non_object_body(self, client) -> None:
        """Test that a non-JSON-object body is a client error."""
        assert client.post("/onebot", data="nope", content_type="text/plain").status_code == 400
        assert client.post("/onebot", json=[1, 2]).status_code == 400

    def test_handler_errors_do_not_fail_request(self, guard, client) -> None:
        """Test that an exception in the handler is logged, not returned."""
        guard.handler.handle_event = MagicMock(side_effect=RuntimeError("boom"))

        assert client.post("/onebot", json=group_message("x")).status_code == 204

    def test_spam_reaches_dispatcher(self, guard, client) -> None:
        """Test end-to-end flagging through the HTTP intake."""
        guard.settings.update({"spam": {"repeatCount": 2}})

        client.post("/onebot", json=group_message("spam"))
        client.post("/onebot", json=group_message("spam"))

        guard.dispatcher.dispatch.assert_called_once()
        assert guard.handler.flagged == 1


class TestConfigApi:
    """Tests for /api/config."""

    def test_get_config(self, client) -> None:
        """Test that current settings are returned in camelCase."""
        body = client.get("/api/config").get_json()

        assert body["code"] == 0
        assert body["data"]["action"] == "mute"
        assert body["data"]["spam"]["repeatCount"] == 3
        assert "muteDuration" in body["data"]

    def test_update_config(self, guard, client) -> None:
        """Test that a partial update is applied and persisted."""
        response = client.post("/api/config", json={"action": "warn", "spam": {"linkCount": 6}})
        body = response.get_json()

        assert response.status_code == 200
        assert body["code"] == 0
        assert body["data"]["action"] == "warn"
        assert body["data"]["spam"]["linkCount"] == 6
        assert guard.settings.current.action is ModAction.WARN

        saved = json.loads(Path(guard.config.settings_file).read_text(encoding="utf-8"))
        assert saved["spam"]["linkCount"] == 6

    def test_update_config_invalid_values_fall_back(self, guard, client) -> None:
        """Test that invalid values are replaced by defaults, not rejected."""
        response = client.post("/api/config", json={"spam": {"repeatCount": "many"}})

        assert response.status_code == 200
        assert guard.settings.current.spam.repeat_count == 3

    def test_update_config_rejects_non_object_section(self, guard, client) -> None:
        """Test that a scalar spam section is refused instead of resetting the policy."""
        guard.settings.update({"spam": {"repeatCount": 2}})

        response = client.post("/api/config", json={"spam": "oops"})

        assert response.status_code == 400
        assert response.get_json()["code"] == -1
        assert "spam" in response.get_json()["message"]
        assert guard.settings.current.spam.repeat_count == 2
        assert not Path(guard.config.settings_file).exists()

    def test_update_config_rejects_non_object(self, client) -> None:
        """Test that the update body must be a JSON object."""
        response = client.post("/api/config", json="enabled")

        assert response.status_code == 400
        assert response.get_json()["code"] == -1


class TestStatsAndHealth:
    """Tests for /api/stats and /api/health."""

    def test_stats(self, client) -> None:
        """Test store and counter statistics."""
        client.post("/onebot", json=group_message("a", user_id=1))
        client.post("/onebot", json=group_message("b", user_id=2))

        data = client.get("/api/stats").get_json()["data"]

        assert data["cacheGroups"] == 1
        assert data["cacheUsers"] == 2
        assert data["cacheRecords"] == 2
        assert data["processed"] == 2
        assert data["flagged"] == 0
        assert data["uptime"] >= 0

    def test_health_reports_scheduler(self, guard, client) -> None:
        """Test that health reflects the scheduler state."""
        assert client.get("/api/health").get_json()["data"]["scheduler"] is False

        guard.start()
        try:
            assert client.get("/api/health").get_json()["data"]["scheduler"] is True
        finally:
            guard.scheduler.stop()


class TestApiToken:
    """Tests for bearer token protection of /api/*."""

    @pytest.fixture
    def client(self, tmp_path):
        config = Config(
            onebot_api_url="http://127.0.0.1:3000",
            api_token="admin-token-123",
            settings_file=str(tmp_path / "settings.json"),
        )
        guard = FloodGuard(config, dispatcher=MagicMock())
        guard.app.config["TESTING"] = True
        return guard.app.test_client()

    def test_missing_token_rejected(self, client) -> None:
        """Test that /api routes need the token."""
        response = client.get("/api/config")

        assert response.status_code == 401
        assert response.get_json()["code"] == -1

    def test_wrong_token_rejected(self, client) -> None:
        """Test that a wrong token is rejected."""
        response = client.get("/api/stats", headers={"Authorization": "Bearer wrong"})

        assert response.status_code == 401

    def test_valid_token_accepted(self, client) -> None:
        """Test that the configured token grants access."""
        response = client.get("/api/config", headers={"Authorization": "Bearer admin-token-123"})

        assert response.status_code == 200

    def test_health_and_intake_are_open(self, client) -> None:
        """Test that health and the OneBot intake need no admin token."""
        assert client.get("/api/health").status_code == 200
        assert client.post("/onebot", json={"post_type": "meta_event"}).status_code == 204
