"""Unit tests for Discord webhook delivery."""

from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import httpx
import pytest

from fundtracker_common.exceptions import DeliveryError, RateLimitError
from fundtracker_common.models import Opportunity
from fundtracker_common.notifier import (
    DEFAULT_COLOR,
    NO_SUMMARY_TEXT,
    create_embed,
    post_opportunity,
    post_to_webhook,
)

WEBHOOK_URL = "https://discord.com/api/webhooks/123/token"
NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


def make_opportunity(**overrides):
    data = {
        "title": "Farm to fork innovation",
        "link": "https://ec.europa.eu/opportunities/topic-details/x",
        "identifier": "HORIZON-CL6-2025-FARM2FORK-01",
        "status": "Open For Submission",
        "deadline": "17 September 2025",
        "programme_name": "Horizon Europe",
        "summary": "Funds demonstration projects.",
    }
    data.update(overrides)
    return Opportunity(**data)


def make_response(status_code, text="", headers=None):
    response = MagicMock()
    response.status_code = status_code
    response.is_success = 200 <= status_code < 300
    response.text = text
    response.headers = headers or {}
    return response


class TestCreateEmbed:
    def test_full_embed(self):
        embed = create_embed(make_opportunity(), now=NOW)

        assert embed["title"] == "Farm to fork innovation"
        assert embed["description"] == "Funds demonstration projects."
        assert embed["url"] == "https://ec.europa.eu/opportunities/topic-details/x"
        assert embed["color"] == 0x2ECC71
        assert embed["timestamp"] == "2025-06-01T12:00:00+00:00"
        assert embed["footer"] == {"text": "EU Fund Tracker"}
        assert embed["fields"] == [
            {"name": "Identifier", "value": "HORIZON-CL6-2025-FARM2FORK-01", "inline": True},
            {"name": "Status", "value": "Open For Submission", "inline": True},
            {"name": "Deadline", "value": "17 September 2025", "inline": True},
            {"name": "Programme", "value": "Horizon Europe", "inline": False},
        ]

    def test_minimal_opportunity(self):
        embed = create_embed(Opportunity(title="Call", link="https://example.com/x"), now=NOW)

        assert embed["description"] == NO_SUMMARY_TEXT
        assert embed["color"] == DEFAULT_COLOR
        assert embed["fields"] == []

    def test_status_colors(self):
        assert create_embed(make_opportunity(status="Forthcoming"))["color"] == 0x3498DB
        assert create_embed(make_opportunity(status="Closed"))["color"] == 0x95A5A6
        assert create_embed(make_opportunity(status="Unknown"))["color"] == DEFAULT_COLOR

    def test_truncates_to_discord_limits(self):
        embed = create_embed(
            make_opportunity(title="T" * 300, summary="S" * 5000, programme_name="P" * 2000)
        )
        assert len(embed["title"]) == 256
        assert len(embed["description"]) == 4096
        programme = next(f for f in embed["fields"] if f["name"] == "Programme")
        assert len(programme["value"]) == 1024

    def test_defaults_timestamp_to_now(self):
        embed = create_embed(make_opportunity())
        assert embed["timestamp"].endswith("+00:00")


class TestPostToWebhook:
    def test_posts_single_embed(self):
        client = MagicMock()
        client.post.return_value = make_response(204)

        post_to_webhook(WEBHOOK_URL, {"title": "x"}, client=client)

        client.post.assert_called_once_with(WEBHOOK_URL, json={"embeds": [{"title": "x"}]})

    def test_rate_limit(self):
        client = MagicMock()
        client.post.return_value = make_response(429, headers={"retry-after": "1.5"})

        with pytest.raises(RateLimitError) as exc_info:
            post_to_webhook(WEBHOOK_URL, {}, client=client)

        assert exc_info.value.retry_after == "1.5"
        assert exc_info.value.status_code == 429

    def test_rate_limit_without_header(self):
        client = MagicMock()
        client.post.return_value = make_response(429)

        with pytest.raises(RateLimitError, match="unknown"):
            post_to_webhook(WEBHOOK_URL, {}, client=client)

    @pytest.mark.parametrize("status_code", [400, 404, 500, 503])
    def test_other_failures(self, status_code):
        client = MagicMock()
        client.post.return_value = make_response(status_code, text="nope")

        with pytest.raises(DeliveryError) as exc_info:
            post_to_webhook(WEBHOOK_URL, {}, client=client)

        assert not isinstance(exc_info.value, RateLimitError)
        assert exc_info.value.status_code == status_code
        assert f"({status_code}): nope" in str(exc_info.value)

    def test_transport_error(self):
        client = MagicMock()
        client.post.side_effect = httpx.ConnectError("Connection refused")

        with pytest.raises(DeliveryError, match="request failed"):
            post_to_webhook(WEBHOOK_URL, {}, client=client)

    @patch("fundtracker_common.notifier.httpx.Client")
    def test_owns_client_when_none_given(self, mock_client_class):
        mock_client = MagicMock()
        mock_client.post.return_value = make_response(200)
        mock_client.__enter__ = MagicMock(return_value=mock_client)
        mock_client.__exit__ = MagicMock(return_value=False)
        mock_client_class.return_value = mock_client

        post_to_webhook(WEBHOOK_URL, {"title": "x"})

        mock_client_class.assert_called_once_with(timeout=15.0)
        mock_client.__exit__.assert_called_once()


def test_post_opportunity():
    client = MagicMock()
    client.post.return_value = make_response(204)

    post_opportunity(WEBHOOK_URL, make_opportunity(), client=client)

    embed = client.post.call_args.kwargs["json"]["embeds"][0]
    assert embed["title"] == "Farm to fork innovation"
    assert embed["description"] == "Funds demonstration projects."
