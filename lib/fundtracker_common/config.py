"""Configuration for FundTracker stage Lambdas.

Every stage reads its settings from environment variables once per
invocation. Validation happens up front: a missing binding or a malformed
value raises ConfigurationError before any queue entry is touched, which
aborts the run and leaves the next scheduled tick to try again.
"""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

from fundtracker_common import constants
from fundtracker_common.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

KV_BACKENDS = ("dynamodb", "memory")
FETCH_MODES = ("http", "browser", "auto")
SEEN_LEDGER_MODES = ("keyed", "consolidated")


def _get_int(environ: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


def _get_choice(environ: Mapping[str, str], name: str, default: str, choices: tuple) -> str:
    value = (environ.get(name) or default).lower()
    if value not in choices:
        raise ConfigurationError(f"{name} must be one of {', '.join(choices)}, got {value!r}")
    return value


@dataclass
class PipelineSettings:
    """
    Effective settings for one stage invocation.

    Attributes:
        kv_backend: Store backend ("dynamodb" or "memory")
        kv_table_name: DynamoDB table backing the store
        kv_namespace: Partition key value shared by all store items
        feed_url: Listing page crawled by discovery
        listing_fetch_mode: "http", "browser" or "auto" (HTTP first, browser for SPAs)
        seen_ledger_mode: "keyed" (one key per subject) or "consolidated" (one document)
        summarizer_batch_size: Max summarize entries handled per run
        max_summarize_attempts: Attempts before a summarize job is dead-lettered
        notifier_batch_size: Max notify entries handled per run
        max_notify_attempts: Attempts before a notify job is dead-lettered
        notify_delay_ms: Pause after each successful webhook post
        summary_model: Bedrock model id used for summaries
        project_profile: Optional project description for the fit score
        webhook_url: Discord webhook URL (required by the notify stage only)
        region: AWS region
    """

    kv_backend: str = "dynamodb"
    kv_table_name: str | None = None
    kv_namespace: str = constants.DEFAULT_KV_NAMESPACE
    feed_url: str = constants.DEFAULT_FEED_URL
    listing_fetch_mode: str = "auto"
    seen_ledger_mode: str = "keyed"
    summarizer_batch_size: int = constants.DEFAULT_SUMMARIZER_BATCH_SIZE
    max_summarize_attempts: int = constants.DEFAULT_MAX_SUMMARIZE_ATTEMPTS
    notifier_batch_size: int = constants.DEFAULT_NOTIFIER_BATCH_SIZE
    max_notify_attempts: int = constants.DEFAULT_MAX_NOTIFY_ATTEMPTS
    notify_delay_ms: int = constants.DEFAULT_NOTIFY_DELAY_MS
    summary_model: str = constants.DEFAULT_SUMMARY_MODEL
    project_profile: str | None = None
    webhook_url: str | None = None
    region: str = "us-east-1"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "PipelineSettings":
        """
        Read settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Raises:
            ConfigurationError: If a value is malformed
        """
        env = os.environ if environ is None else environ

        settings = cls(
            kv_backend=_get_choice(env, "KV_BACKEND", "dynamodb", KV_BACKENDS),
            kv_table_name=env.get("KV_TABLE_NAME") or None,
            kv_namespace=env.get("KV_NAMESPACE") or constants.DEFAULT_KV_NAMESPACE,
            feed_url=env.get("FEED_URL") or constants.DEFAULT_FEED_URL,
            listing_fetch_mode=_get_choice(env, "LISTING_FETCH_MODE", "auto", FETCH_MODES),
            seen_ledger_mode=_get_choice(env, "SEEN_LEDGER_MODE", "keyed", SEEN_LEDGER_MODES),
            summarizer_batch_size=_get_int(
                env, "SUMMARIZER_BATCH_SIZE", constants.DEFAULT_SUMMARIZER_BATCH_SIZE, minimum=1
            ),
            max_summarize_attempts=_get_int(
                env, "MAX_SUMMARIZE_ATTEMPTS", constants.DEFAULT_MAX_SUMMARIZE_ATTEMPTS, minimum=1
            ),
            notifier_batch_size=_get_int(
                env, "NOTIFIER_BATCH_SIZE", constants.DEFAULT_NOTIFIER_BATCH_SIZE, minimum=1
            ),
            max_notify_attempts=_get_int(
                env, "MAX_NOTIFY_ATTEMPTS", constants.DEFAULT_MAX_NOTIFY_ATTEMPTS, minimum=1
            ),
            notify_delay_ms=_get_int(env, "NOTIFY_DELAY_MS", constants.DEFAULT_NOTIFY_DELAY_MS),
            summary_model=env.get("SUMMARY_MODEL") or constants.DEFAULT_SUMMARY_MODEL,
            project_profile=env.get("PROJECT_PROFILE") or None,
            webhook_url=env.get("DISCORD_WEBHOOK_URL") or None,
            region=env.get("AWS_REGION") or "us-east-1",
        )

        logger.debug(
            f"Loaded settings: backend={settings.kv_backend}, table={settings.kv_table_name}, "
            f"ledger={settings.seen_ledger_mode}"
        )
        return settings

    def require_webhook_url(self) -> str:
        """Return the webhook URL or raise if the binding is missing."""
        if not self.webhook_url:
            raise ConfigurationError("DISCORD_WEBHOOK_URL environment variable required")
        return self.webhook_url
