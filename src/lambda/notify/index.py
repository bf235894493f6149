"""
Notify Lambda

Posts summarized opportunities to the Discord webhook. Runs every 5 minutes.
Rate-limited posts are retried on the next run without spending an attempt.

Output (run result):
{"processed": 3, "succeeded": 2, "failed": 0, "skipped": 1, "duration_ms": 1204.9}
"""

import logging
import os

from fundtracker_common.context import build_context
from fundtracker_common.handlers import create_stage_handler
from fundtracker_common.stages import run_notifier

logger = logging.getLogger()
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO"))


def run_once():
    ctx = build_context()
    return run_notifier(ctx).to_dict()


lambda_handler = create_stage_handler(
    "Notifier",
    "Posts summarized opportunities to Discord",
    run_once,
)
