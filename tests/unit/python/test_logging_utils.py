"""Unit tests for logging utilities."""

from fundtracker_common.logging_utils import log_summary, mask_value, safe_log_event


class TestMaskValue:
    def test_masks_sensitive_keys(self):
        assert mask_value("DISCORD_WEBHOOK_URL", "https://discord.com/api/webhooks/1/x") == "***"
        assert mask_value("access_token", "abc") == "***"
        assert mask_value("Authorization", "Bearer abc") == "***"

    def test_keeps_plain_values(self):
        assert mask_value("url", "https://example.com") == "https://example.com"
        assert mask_value("count", 3) == 3

    def test_masks_containers_under_sensitive_key(self):
        assert mask_value("secrets", {"a": 1}) == "[dict: masked]"
        assert mask_value("tokens", ["a", "b"]) == "[list: masked]"

    def test_recurses_into_nested_dicts(self):
        value = {"config": {"webhook_url": "https://hook", "batch": 5}}
        assert mask_value("body", value) == {"config": {"webhook_url": "***", "batch": 5}}

    def test_custom_sensitive_keys(self):
        assert mask_value("url", "x", frozenset({"url"})) == "***"
        assert mask_value("token", "x", frozenset({"url"})) == "x"


class TestSafeLogEvent:
    def test_scheduled_event_unchanged(self):
        event = {"source": "aws.events", "detail-type": "Scheduled Event", "detail": {}}
        assert safe_log_event(event) == event

    def test_masks_headers(self):
        event = {"httpMethod": "POST", "headers": {"Authorization": "Bearer abc", "Host": "x"}}
        masked = safe_log_event(event)
        assert masked["headers"] == {"Authorization": "***", "Host": "x"}
        assert event["headers"]["Authorization"] == "Bearer abc"

    def test_non_dict_event(self):
        assert safe_log_event("ping") == {"_raw": "ping"}
        assert safe_log_event(None) == {"_raw": "None"}

    def test_truncates_raw(self):
        assert len(safe_log_event("x" * 500)["_raw"]) == 100


class TestLogSummary:
    def test_minimal(self):
        assert log_summary("Crawler") == {"operation": "Crawler", "success": True}

    def test_full(self):
        summary = log_summary(
            "Notifier",
            success=False,
            duration_ms=812.456,
            item_count=3,
            error="boom",
            failed=1,
            queue="notify",
        )
        assert summary == {
            "operation": "Notifier",
            "success": False,
            "duration_ms": 812.46,
            "item_count": 3,
            "error": "boom",
            "failed": 1,
            "queue": "notify",
        }

    def test_truncates_error(self):
        assert len(log_summary("X", error="e" * 1000)["error"]) == 500

    def test_sequences_logged_as_length(self):
        summary = log_summary("X", links=["a", "b"], extra={"a": 1})
        assert summary["links"] == 2
        assert "extra" not in summary
