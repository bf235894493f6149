"""
Bedrock client for summary generation.

Wraps the Converse API with exponential backoff on throttling and
timeouts, and keeps a running token count per model for the run summary.
"""

import logging
import os
import random
import time
from collections.abc import Callable
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError, ConnectTimeoutError, ReadTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 4
DEFAULT_INITIAL_BACKOFF = 2  # seconds
DEFAULT_MAX_BACKOFF = 60

RETRYABLE_ERRORS = {
    "ThrottlingException",
    "ServiceQuotaExceededException",
    "TooManyRequestsException",
    "ServiceUnavailableException",
    "ModelErrorException",
    "RequestTimeout",
    "RequestTimeoutException",
}


class BedrockClient:
    """Client for invoking Amazon Bedrock models through the Converse API."""

    def __init__(
        self,
        region: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_backoff: float = DEFAULT_INITIAL_BACKOFF,
        max_backoff: float = DEFAULT_MAX_BACKOFF,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize a Bedrock client.

        Args:
            region: AWS region (defaults to AWS_REGION env var or us-east-1)
            max_retries: Retries after the first attempt
            initial_backoff: Initial backoff time in seconds
            max_backoff: Maximum backoff time in seconds
            sleep: Sleep function (injectable for tests)
        """
        self.region = region or os.environ.get("AWS_REGION", "us-east-1")
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self.sleep = sleep
        self._client = None
        self.token_usage: dict[str, dict[str, int]] = {}

    @property
    def client(self):
        """Lazy-loaded bedrock-runtime client."""
        if self._client is None:
            config = Config(connect_timeout=10, read_timeout=120)
            self._client = boto3.client("bedrock-runtime", region_name=self.region, config=config)
        return self._client

    def invoke_model(
        self,
        model_id: str,
        system_prompt: str,
        content: list[dict[str, Any]],
        temperature: float = 0.0,
        max_tokens: int | None = None,
    ) -> dict[str, Any]:
        """
        Invoke a model, retrying throttling and timeouts.

        Returns:
            Raw Converse response

        Raises:
            ClientError: Non-retryable error, or retries exhausted
            ReadTimeoutError, ConnectTimeoutError: Retries exhausted
        """
        inference_config: dict[str, Any] = {"temperature": temperature}
        if max_tokens is not None:
            inference_config["maxTokens"] = max_tokens

        converse_params = {
            "modelId": model_id,
            "messages": [{"role": "user", "content": content}],
            "system": [{"text": system_prompt}],
            "inferenceConfig": inference_config,
        }

        request_start_time = time.time()

        for attempt in range(self.max_retries + 1):
            try:
                logger.info(
                    f"Bedrock request attempt {attempt + 1}/{self.max_retries + 1}: {model_id}"
                )
                response = self.client.converse(**converse_params)
            except ClientError as e:
                error_code = e.response["Error"]["Code"]
                error_message = e.response["Error"]["Message"]
                if error_code not in RETRYABLE_ERRORS:
                    logger.error(f"Non-retryable Bedrock error: {error_code} - {error_message}")
                    raise
                if attempt >= self.max_retries:
                    logger.error(
                        f"Max retries ({self.max_retries}) exceeded. Last error: {error_message}"
                    )
                    raise
                reason = f"throttling ({error_code})"
            except (ReadTimeoutError, ConnectTimeoutError) as e:
                if attempt >= self.max_retries:
                    logger.error(f"Max retries ({self.max_retries}) exceeded. Last timeout: {e}")
                    raise
                reason = "timeout"
            else:
                duration = time.time() - request_start_time
                logger.info(f"Bedrock request successful. Duration: {duration:.2f}s")
                self._track_usage(model_id, response.get("usage", {}))
                return response

            backoff = self._calculate_backoff(attempt)
            logger.warning(
                f"Bedrock {reason} (attempt {attempt + 1}/{self.max_retries + 1}). "
                f"Backing off for {backoff:.2f}s"
            )
            self.sleep(backoff)

        # Unreachable: the last attempt either returns or raises
        raise RuntimeError("Bedrock retry loop exited without a result")

    def _track_usage(self, model_id: str, usage: dict[str, Any]) -> None:
        totals = self.token_usage.setdefault(
            model_id, {"inputTokens": 0, "outputTokens": 0, "totalTokens": 0}
        )
        for name in totals:
            totals[name] += usage.get(name, 0)

    @staticmethod
    def extract_text_from_response(response: dict[str, Any]) -> str:
        """
        Extract text from a Converse response with safe navigation.

        Returns:
            Text of the first content block, or empty string if structure is unexpected
        """
        content = response.get("output", {}).get("message", {}).get("content", [])
        if isinstance(content, list) and content and isinstance(content[0], dict):
            return content[0].get("text", "")
        return ""

    def _calculate_backoff(self, retry_count: int) -> float:
        """Exponential backoff with up to one second of jitter."""
        backoff_seconds = min(self.max_backoff, self.initial_backoff * (2**retry_count))
        return backoff_seconds + random.random()
