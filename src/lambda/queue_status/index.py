"""
Queue Status Lambda

Read-only inspection of the pipeline queues: pending counts, dead letters
per stage and, for a given URL, its seen record, lease and dead letters.

Input event (API Gateway):
{
    "httpMethod": "GET",
    "queryStringParameters": {"url": "https://...", "limit": "50"}
}

Input event (direct invocation):
{"url": "https://...", "limit": 50}

Output:
{
    "pending": {"summarize": {"count": 2, "capped": false}, "notify": {...}},
    "dead_letters": {"summarize": [{"subject": "...", "attempts": 3, ...}], "notify": []},
    "subject": {...}
}
"""

import json
import logging
import os

from botocore.exceptions import ClientError

from fundtracker_common.constants import DEFAULT_LIST_LIMIT
from fundtracker_common.context import build_context
from fundtracker_common.exceptions import ConfigurationError
from fundtracker_common.logging_utils import safe_log_event
from fundtracker_common.stages import collect_queue_status

logger = logging.getLogger()
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO"))

MAX_LIMIT = 1000


def lambda_handler(event, context):
    """
    Main Lambda handler - routes API Gateway and direct invocations.
    """
    event = event or {}
    logger.info(f"Received event: {json.dumps(safe_log_event(event), default=str)}")

    if "httpMethod" in event:
        return _handle_api_request(event)

    limit = _parse_limit(event.get("limit"))
    ctx = build_context()
    return collect_queue_status(ctx, url=event.get("url"), limit=limit)


def _parse_limit(raw) -> int:
    if raw is None or raw == "":
        return DEFAULT_LIST_LIMIT
    limit = int(raw)
    if limit < 1 or limit > MAX_LIMIT:
        raise ValueError(f"limit must be between 1 and {MAX_LIMIT}, got {limit}")
    return limit


def _handle_api_request(event):
    """Handle API Gateway requests."""
    http_method = event.get("httpMethod", "GET")
    if http_method != "GET":
        return _response(405, {"error": f"Method {http_method} not allowed"})

    query_params = event.get("queryStringParameters") or {}

    try:
        limit = _parse_limit(query_params.get("limit"))
    except ValueError as e:
        return _response(400, {"error": str(e)})

    try:
        ctx = build_context()
        status = collect_queue_status(ctx, url=query_params.get("url"), limit=limit)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return _response(500, {"error": str(e)})
    except ClientError as e:
        error_code = e.response.get("Error", {}).get("Code", "")
        logger.error(f"AWS error: {error_code} - {e}")
        return _response(500, {"error": "Internal server error"})

    return _response(200, status)


def _response(status_code: int, body: dict) -> dict:
    """Create API Gateway proxy response."""
    return {
        "statusCode": status_code,
        "headers": {
            "Content-Type": "application/json",
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "GET,OPTIONS",
        },
        "body": json.dumps(body),
    }
