"""
Process Lambda

Runs the summarizer and then the notifier in one invocation, for
deployments that schedule a single worker. Runs every 15 minutes.

Output (run result):
{
    "summarizer": {"processed": 5, "succeeded": 5, ...},
    "notifier": {"processed": 5, "succeeded": 5, ...}
}
"""

import logging
import os

from fundtracker_common.context import build_context
from fundtracker_common.handlers import create_stage_handler
from fundtracker_common.stages import run_notifier, run_summarizer

logger = logging.getLogger()
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO"))


def run_once():
    ctx = build_context()

    logger.info("[Processor] Running summarizer...")
    summarizer_stats = run_summarizer(ctx)

    logger.info("[Processor] Running notifier...")
    notifier_stats = run_notifier(ctx)

    return {"summarizer": summarizer_stats.to_dict(), "notifier": notifier_stats.to_dict()}


lambda_handler = create_stage_handler(
    "Processor",
    "Summarizes queued opportunities, then posts them to Discord",
    run_once,
)
