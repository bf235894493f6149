"""FundTracker common library

Shared queue, dedup and scraping code for the FundTracker stage Lambdas.
"""

from fundtracker_common import constants
from fundtracker_common.config import PipelineSettings
from fundtracker_common.logging_utils import log_summary, safe_log_event

__all__ = [
    "PipelineSettings",
    "constants",
    "log_summary",
    "safe_log_event",
]
