"""
Unit tests for logging setup.
"""

from shared.logging.logger import _mask_secrets, _stamp_service


class TestProcessors:
    """Tests for the custom structlog processors."""

    def test_credentials_masked_at_any_depth(self) -> None:
        event = _mask_secrets(
            None,
            "info",
            {
                "event": "login",
                "pin": "1234",
                "details": {"access_token": "abc", "visit_id": "v-1"},
                "client_secret": "s",
            },
        )

        assert event["pin"] == "***REDACTED***"
        assert event["client_secret"] == "***REDACTED***"
        assert event["details"] == {"access_token": "***REDACTED***", "visit_id": "v-1"}
        assert event["event"] == "login"

    def test_service_stamped(self) -> None:
        event = _stamp_service(None, "info", {"event": "x", "service": "visitor"})

        assert event["service"] == "visitor"
        assert event["version"] == "0.1.0"
        assert "timestamp" in event
