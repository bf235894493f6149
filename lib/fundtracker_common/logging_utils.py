"""
Logging utilities for safe logging in the stage Lambdas.

Masks secrets (webhook URLs, tokens, credentials) before events reach
CloudWatch Logs, and builds the structured one-line summaries each stage
emits when it finishes.
"""

import logging
from typing import Any

logger = logging.getLogger(__name__)

# Key substrings treated as sensitive. Substring match on purpose: "webhook"
# catches "discord_webhook_url", "token" catches "access_token".
DEFAULT_SENSITIVE_KEYS = frozenset(
    {
        "webhook",
        "token",
        "password",
        "secret",
        "authorization",
        "credential",
        "api_key",
        "apikey",
        "cookie",
    }
)

MAX_LOGGED_ERROR_LENGTH = 500


def mask_value(key: str, value: Any, sensitive_keys: frozenset[str] | None = None) -> Any:
    """
    Mask a value if its key names sensitive data, recursing into containers.

    Args:
        key: The dictionary key or field name
        value: The value to potentially mask
        sensitive_keys: Key substrings to treat as sensitive

    Returns:
        Masked value if sensitive, original value otherwise
    """
    if sensitive_keys is None:
        sensitive_keys = DEFAULT_SENSITIVE_KEYS

    key_lower = key.lower()
    if any(s in key_lower for s in sensitive_keys):
        if isinstance(value, (list, dict)):
            return f"[{type(value).__name__}: masked]"
        return "***"

    if isinstance(value, dict):
        return {k: mask_value(k, v, sensitive_keys) for k, v in value.items()}

    if isinstance(value, list):
        return [mask_value(key, item, sensitive_keys) for item in value]

    return value


def safe_log_event(
    event: Any,
    sensitive_keys: frozenset[str] | None = None,
) -> dict[str, Any]:
    """
    Return a copy of a Lambda event with sensitive values masked.

    Example:
        ```python
        logger.info(f"Received event: {safe_log_event(event)}")
        ```
    """
    if not isinstance(event, dict):
        return {"_raw": str(event)[:100]}

    try:
        return {k: mask_value(k, v, sensitive_keys) for k, v in event.items()}
    except RecursionError:
        logger.warning("Event too deeply nested to mask")
        return {"_error": "Could not safely serialize event", "_keys": list(event.keys())[:10]}


def log_summary(
    operation: str,
    *,
    success: bool = True,
    duration_ms: float | None = None,
    item_count: int | None = None,
    error: str | None = None,
    **kwargs: Any,
) -> dict[str, Any]:
    """
    Create a structured log summary for a stage run.

    Args:
        operation: Stage or operation name (e.g., "Summarizer")
        success: Whether the run finished without aborting
        duration_ms: Optional duration in milliseconds
        item_count: Optional count of items processed
        error: Optional error message (truncated)
        **kwargs: Extra fields; primitives are kept, sequences are logged as their length

    Returns:
        Dictionary suitable for structured logging

    Example:
        ```python
        logger.info(log_summary("Notifier", duration_ms=812.4, item_count=3, failed=1))
        ```
    """
    summary: dict[str, Any] = {
        "operation": operation,
        "success": success,
    }

    if duration_ms is not None:
        summary["duration_ms"] = round(duration_ms, 2)

    if item_count is not None:
        summary["item_count"] = item_count

    if error:
        summary["error"] = error[:MAX_LOGGED_ERROR_LENGTH]

    for key, value in kwargs.items():
        if isinstance(value, (str, int, float, bool)):
            summary[key] = value
        elif isinstance(value, (list, tuple, set)):
            summary[key] = len(value)

    return summary
