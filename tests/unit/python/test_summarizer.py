"""Unit tests for summary generation."""

from unittest.mock import MagicMock, patch

import pytest

from fundtracker_common.bedrock import BedrockClient
from fundtracker_common.exceptions import EnrichmentError
from fundtracker_common.scraper.fetcher import FetchResult
from fundtracker_common.summarizer import SYSTEM_PROMPT, build_prompt, summarize_link

URL = "https://ec.europa.eu/opportunities/portal/screen/opportunities/topic-details/x"
PAGE = (
    "<html><body><main><h1>Call</h1><p>"
    + "Funds pilot projects. " * 5
    + "</p></main></body></html>"
)


@pytest.fixture
def bedrock_client():
    client = MagicMock(spec=BedrockClient)
    client.invoke_model.return_value = {"output": {"message": {"content": [{"text": " Sum. "}]}}}
    client.extract_text_from_response.side_effect = BedrockClient.extract_text_from_response
    return client


class TestBuildPrompt:
    def test_without_profile(self):
        prompt = build_prompt("# Call text")
        assert "<= 100 words" in prompt
        assert "score" not in prompt
        assert prompt.endswith('"""# Call text"""')

    def test_blank_profile_is_ignored(self):
        assert "score" not in build_prompt("x", "   ")

    def test_with_profile(self):
        prompt = build_prompt("x", "  Open-source flood forecasting  ")
        assert "score between 0-100" in prompt
        assert "'''\nOpen-source flood forecasting\n'''" in prompt

    def test_truncates_page(self):
        prompt = build_prompt("a" * 6000)
        assert '"""' + "a" * 5000 + '"""' in prompt
        assert "a" * 5001 not in prompt


class TestSummarizeLink:
    @patch("fundtracker_common.summarizer.fetch_page")
    def test_returns_model_text(self, mock_fetch, bedrock_client):
        mock_fetch.return_value = FetchResult(URL, 200, PAGE, "text/html", True)

        summary = summarize_link(
            URL, bedrock_client=bedrock_client, model_id="model", fetch_mode="http"
        )

        assert summary == "Sum."
        mock_fetch.assert_called_once_with(URL, mode="http", fetcher=None)
        kwargs = bedrock_client.invoke_model.call_args.kwargs
        assert kwargs["model_id"] == "model"
        assert kwargs["system_prompt"] == SYSTEM_PROMPT
        assert kwargs["max_tokens"] == 600
        assert "Funds pilot projects." in kwargs["content"][0]["text"]

    @patch("fundtracker_common.summarizer.fetch_page")
    def test_fetch_failure_returns_none(self, mock_fetch, bedrock_client):
        mock_fetch.return_value = FetchResult.failed(URL, "HTTP 404: Not Found", 404)

        assert summarize_link(URL, bedrock_client=bedrock_client, model_id="model") is None
        bedrock_client.invoke_model.assert_not_called()

    @patch("fundtracker_common.summarizer.fetch_page")
    def test_empty_model_text_raises(self, mock_fetch, bedrock_client):
        mock_fetch.return_value = FetchResult(URL, 200, PAGE, "text/html", True)
        bedrock_client.invoke_model.return_value = {"output": {"message": {"content": []}}}

        with pytest.raises(EnrichmentError, match="No text in model response"):
            summarize_link(URL, bedrock_client=bedrock_client, model_id="model")

    @patch("fundtracker_common.summarizer.fetch_page")
    def test_model_errors_propagate(self, mock_fetch, bedrock_client):
        mock_fetch.return_value = FetchResult(URL, 200, PAGE, "text/html", True)
        bedrock_client.invoke_model.side_effect = RuntimeError("bedrock down")

        with pytest.raises(RuntimeError):
            summarize_link(URL, bedrock_client=bedrock_client, model_id="model")
