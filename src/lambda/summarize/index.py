"""
Summarize Lambda

Generates Bedrock summaries for queued opportunities and moves them to the
notify queue. Runs every 15 minutes.

Output (run result):
{"processed": 5, "succeeded": 4, "failed": 1, "skipped": 0, "duration_ms": 9310.2}
"""

import logging
import os

from fundtracker_common.context import build_context
from fundtracker_common.handlers import create_stage_handler
from fundtracker_common.stages import run_summarizer

logger = logging.getLogger()
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO"))


def run_once():
    ctx = build_context()
    return run_summarizer(ctx).to_dict()


lambda_handler = create_stage_handler(
    "Summarizer",
    "Generates AI summaries for queued opportunities",
    run_once,
)
