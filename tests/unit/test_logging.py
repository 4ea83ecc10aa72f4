"""Unit tests for logging service."""

import json

import structlog

from vidtube.services.logging_service import configure_logging, get_logger, redact_sensitive


class TestRedactSensitive:
    """Tests for redact_sensitive processor."""

    def test_redacts_password_hash(self):
        event_dict = {"password_hash": "$2b$10$abc", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["password_hash"] == "REDACTED"

    def test_redacts_tokens(self):
        """Raw JWTs never reach the log stream."""
        event_dict = {
            "refresh_token": "eyJ...",
            "access_token": "eyJ...",
            "event": "token_rotated",
        }
        result = redact_sensitive(None, None, event_dict)
        assert result["refresh_token"] == "REDACTED"
        assert result["access_token"] == "REDACTED"

    def test_redacts_cookie_and_authorization(self):
        event_dict = {"cookie": "accessToken=x", "authorization": "Bearer y", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["cookie"] == "REDACTED"
        assert result["authorization"] == "REDACTED"

    def test_redacts_media_credentials(self):
        event_dict = {"cloudinary_api_secret": "shh", "cloudinary_api_key": "123", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["cloudinary_api_secret"] == "REDACTED"
        assert result["cloudinary_api_key"] == "REDACTED"

    def test_event_name_is_kept(self):
        event_dict = {"event": "refresh_token_reused"}
        result = redact_sensitive(None, None, event_dict)
        assert result["event"] == "refresh_token_reused"

    def test_preserves_non_sensitive_fields(self):
        event_dict = {
            "correlation_id": "abc-123",
            "user_id": "42",
            "duration_ms": 100,
        }
        result = redact_sensitive(None, None, event_dict)
        assert result == {"correlation_id": "abc-123", "user_id": "42", "duration_ms": 100}

    def test_case_insensitive_redaction(self):
        event_dict = {"API_KEY": "secret1", "Password": "secret2", "X-Token": "secret3"}
        result = redact_sensitive(None, None, event_dict)
        assert set(result.values()) == {"REDACTED"}


class TestLoggingOutput:
    """Tests for the configured output format."""

    def test_emits_redacted_json(self, capsys):
        configure_logging("INFO")

        get_logger("auth").info("login_attempt", username="alice", password="p@ss")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "login_attempt"
        assert record["username"] == "alice"
        assert record["password"] == "REDACTED"
        assert record["logger_name"] == "auth"
        assert record["level"] == "info"

    def test_bound_context_is_merged(self, capsys):
        configure_logging("INFO")
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id="corr-1")
        try:
            get_logger().info("request_completed")
        finally:
            structlog.contextvars.clear_contextvars()

        record = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert record["correlation_id"] == "corr-1"

    def test_level_filters_lower_events(self, capsys):
        configure_logging("WARNING")

        get_logger().info("quiet_event")
        get_logger().warning("loud_event")

        out = capsys.readouterr().out
        assert "quiet_event" not in out
        assert "loud_event" in out

        configure_logging("INFO")
