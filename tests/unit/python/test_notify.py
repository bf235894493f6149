"""Unit tests for notify Lambda handler."""

import importlib.util
import json
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from fundtracker_common.models import NotifyJob, Opportunity
from fundtracker_common.queue import QueueName, QueueStore

URL = "https://portal.example.eu/screen/opportunities/topic-details/cl5-batt"
WEBHOOK_URL = "https://discord.com/api/webhooks/123/test-token"
SCHEDULED_EVENT = {"source": "aws.events", "detail-type": "Scheduled Event"}


def _load_notify_module():
    """Load notify module using importlib (avoids 'lambda' keyword issue)."""
    module_path = Path(__file__).parent.parent.parent.parent / "src/lambda/notify/index.py"
    spec = importlib.util.spec_from_file_location("notify_index", module_path)
    module = importlib.util.module_from_spec(spec)
    sys.modules["notify_index"] = module
    spec.loader.exec_module(module)
    return module


def _webhook_response(status_code, headers=None):
    response = MagicMock()
    response.status_code = status_code
    response.is_success = 200 <= status_code < 300
    response.headers = headers or {}
    response.text = ""
    return response


@pytest.fixture
def queued(kv_table):
    opportunity = Opportunity(
        title="Next-generation batteries",
        link=URL,
        status="Open For Submission",
        summary="Funds battery pilot lines.",
    )
    job = NotifyJob(opportunity=opportunity, summarized_at="2025-06-01T00:00:00+00:00")
    QueueStore(kv_table).enqueue(QueueName.NOTIFY, URL, job.to_dict())
    return kv_table


@pytest.fixture
def mock_webhook():
    with patch("fundtracker_common.notifier.httpx.Client") as mock_client_class:
        mock_client = MagicMock()
        mock_client.post.return_value = _webhook_response(204)
        mock_client.__enter__ = MagicMock(return_value=mock_client)
        mock_client.__exit__ = MagicMock(return_value=False)
        mock_client_class.return_value = mock_client
        yield mock_client


class TestNotifyHandler:
    """Tests for notify lambda_handler."""

    def test_posts_queued_opportunity(self, queued, mock_webhook):
        module = _load_notify_module()

        result = module.lambda_handler(SCHEDULED_EVENT, None)

        assert result["worker"] == "Notifier"
        assert result["result"]["succeeded"] == 1
        url, kwargs = mock_webhook.post.call_args.args[0], mock_webhook.post.call_args.kwargs
        assert url == WEBHOOK_URL
        embed = kwargs["json"]["embeds"][0]
        assert embed["title"] == "Next-generation batteries"
        assert embed["description"] == "Funds battery pilot lines."
        assert QueueStore(queued).list_pending(QueueName.NOTIFY) == []

    def test_rate_limited_post_stays_queued(self, queued, mock_webhook):
        mock_webhook.post.return_value = _webhook_response(429, {"retry-after": "2"})
        module = _load_notify_module()

        result = module.lambda_handler(SCHEDULED_EVENT, None)

        assert result["result"]["skipped"] == 1
        queue_store = QueueStore(queued)
        job = queue_store.get_job(queue_store.list_pending(QueueName.NOTIFY)[0])
        assert job["attempts"] == 0

    def test_server_error_spends_attempt(self, queued, mock_webhook):
        mock_webhook.post.return_value = _webhook_response(500)
        module = _load_notify_module()

        result = module.lambda_handler(SCHEDULED_EVENT, None)

        assert result["result"]["failed"] == 1
        queue_store = QueueStore(queued)
        job = queue_store.get_job(queue_store.list_pending(QueueName.NOTIFY)[0])
        assert job["attempts"] == 1
        assert "(500)" in job["error"]

    def test_missing_webhook(self, queued, mock_webhook, monkeypatch):
        monkeypatch.delenv("DISCORD_WEBHOOK_URL")
        module = _load_notify_module()

        response = module.lambda_handler({"action": "run_once"}, None)

        assert response["statusCode"] == 500
        assert "DISCORD_WEBHOOK_URL" in json.loads(response["body"])["message"]
        mock_webhook.post.assert_not_called()
        assert len(QueueStore(queued).list_pending(QueueName.NOTIFY)) == 1
