"""
Lambda handler factory for the stage functions.

Every stage Lambda answers three kinds of invocation:
- Scheduled (EventBridge rule): run the stage. Failures are logged and not
  re-raised so the Lambda service does not retry; the next tick does.
- Manual run: ``{"action": "run_once"}`` or an HTTP request to a path
  ending in ``/run-once``. Returns 200 with the run result, or 500.
- Anything else: a health response describing the function.
"""

import json
import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from fundtracker_common.logging_utils import log_summary, safe_log_event

logger = logging.getLogger(__name__)

RUN_ONCE_ACTION = "run_once"
RUN_ONCE_PATH = "/run-once"

RunOnce = Callable[[], dict[str, Any]]


def is_scheduled_event(event: dict[str, Any]) -> bool:
    return event.get("source") == "aws.events" or event.get("detail-type") == "Scheduled Event"


def is_run_once_request(event: dict[str, Any]) -> bool:
    if event.get("action") == RUN_ONCE_ACTION:
        return True
    path = event.get("rawPath") or event.get("path") or ""
    return path.rstrip("/").endswith(RUN_ONCE_PATH)


def _timestamp() -> str:
    return datetime.now(UTC).isoformat()


def _response(status_code: int, body: dict[str, Any]) -> dict[str, Any]:
    """Create API Gateway proxy response."""
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body, default=str),
    }


def create_stage_handler(name: str, description: str, run_once: RunOnce):
    """
    Build a Lambda handler for a stage.

    Args:
        name: Worker name used in logs and responses
        description: One-line description for the health response
        run_once: Runs one pass of the stage and returns its result dict

    Returns:
        A ``lambda_handler(event, context)`` function
    """

    def lambda_handler(event, context):
        event = event if isinstance(event, dict) else {}
        logger.info(f"[{name}] Received event: {json.dumps(safe_log_event(event), default=str)}")

        if is_scheduled_event(event):
            logger.info(f"[{name}] Scheduled event triggered")
            start_time = time.time()
            try:
                result = run_once()
            except Exception as e:
                # Swallowed: the next scheduled tick retries
                logger.error(f"[{name}] Failed: {e}", exc_info=True)
                logger.info(
                    log_summary(
                        name,
                        success=False,
                        duration_ms=(time.time() - start_time) * 1000,
                        error=str(e),
                    )
                )
                return {"worker": name, "status": "error", "message": str(e)}

            logger.info(f"[{name}] Completed successfully")
            return {"worker": name, "status": "success", "result": result}

        if is_run_once_request(event):
            logger.info(f"[{name}] Manual trigger requested")
            try:
                result = run_once()
            except Exception as e:
                logger.error(f"[{name}] Manual trigger failed: {e}", exc_info=True)
                return _response(
                    500,
                    {
                        "worker": name,
                        "status": "error",
                        "message": str(e) or type(e).__name__,
                        "timestamp": _timestamp(),
                    },
                )

            return _response(
                200,
                {
                    "worker": name,
                    "status": "success",
                    "message": "Worker executed successfully",
                    "result": result,
                    "timestamp": _timestamp(),
                },
            )

        return _response(
            200,
            {
                "worker": name,
                "status": "ok",
                "description": description,
                "timestamp": _timestamp(),
                "trigger": (
                    f'Invoke with {{"action": "{RUN_ONCE_ACTION}"}} or request '
                    f"{RUN_ONCE_PATH} to run this worker manually"
                ),
            },
        )

    lambda_handler.__name__ = "lambda_handler"
    lambda_handler.__doc__ = f"{name}: {description}"
    return lambda_handler
