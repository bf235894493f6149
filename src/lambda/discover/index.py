"""
Discover Lambda

Crawls the funding portal listing and queues calls not seen before for
summarization. Runs every 2 hours.

Input event (EventBridge scheduled, or manual):
{"source": "aws.events", ...} | {"action": "run_once"}

Output (run result):
{
    "discovered": 40,
    "enqueued": 3,
    "skipped": 37,
    "duration_ms": 5120.4
}
"""

import logging
import os

from fundtracker_common.context import build_context
from fundtracker_common.handlers import create_stage_handler
from fundtracker_common.stages import run_discovery

logger = logging.getLogger()
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO"))


def run_once():
    ctx = build_context()
    return run_discovery(ctx).to_dict()


lambda_handler = create_stage_handler(
    "Crawler",
    "Discovers new EU funding opportunities and queues them for summarization",
    run_once,
)
