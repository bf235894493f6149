"""
Stage runner harness.

One pass of a queue-consuming stage: list pending entries, lease each
subject, run the stage's job handler and resolve the entry. A failing job
never stops the batch, and neither does an entry whose payload cannot be
decoded: it goes straight to the dead-letter queue. Only store failures
propagate.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from fundtracker_common.exceptions import RateLimitError
from fundtracker_common.logging_utils import log_summary
from fundtracker_common.queue.lease import LeaseManager
from fundtracker_common.queue.models import QueueName
from fundtracker_common.queue.retry import RetryController
from fundtracker_common.queue.store import QueueStore

logger = logging.getLogger(__name__)

JobHandler = Callable[[str, dict[str, Any]], None]
SubjectOf = Callable[[dict[str, Any]], str]


def url_subject(job: dict[str, Any]) -> str:
    """Subject of a job that carries its URL at the top level."""
    return job["url"]


@dataclass
class StageStats:
    """Counters for one stage run."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "duration_ms": round(self.duration_ms, 2),
        }


class StageRunner:
    """Polls one queue and resolves each entry through the retry controller."""

    def __init__(
        self,
        name: str,
        queue_store: QueueStore,
        leases: LeaseManager,
        retry: RetryController,
        queue: QueueName,
        batch_size: int,
        max_attempts: int,
        delay_ms: int = 0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the runner.

        Args:
            name: Stage name used in log lines
            queue_store: Queue store to poll
            leases: Lease manager guarding subjects
            retry: Controller resolving entries
            queue: Queue to poll; its dead-letter prefix receives exhausted jobs
            batch_size: Max entries listed per run
            max_attempts: Attempt budget before dead-lettering
            delay_ms: Pause after each successful job
            sleep: Sleep function (injectable for tests)
        """
        self.name = name
        self.queue_store = queue_store
        self.leases = leases
        self.retry = retry
        self.queue = queue
        self.batch_size = batch_size
        self.max_attempts = max_attempts
        self.delay_ms = delay_ms
        self.sleep = sleep

    def run(self, handler: JobHandler, subject_of: SubjectOf = url_subject) -> StageStats:
        """
        Process one batch of pending entries.

        Args:
            handler: Called with (entry_key, job); raising marks the attempt failed,
                raising RateLimitError gives the lease back without spending an attempt
            subject_of: Extracts the subject URL from a job payload

        Returns:
            StageStats for the run
        """
        stats = StageStats()
        start_time = time.time()

        pending_keys = self.queue_store.list_pending(self.queue, self.batch_size)
        logger.info(
            f"[{self.name}] Found {len(pending_keys)} pending jobs (limit: {self.batch_size})"
        )

        for entry_key in pending_keys:
            try:
                job = self.queue_store.get_job(entry_key)
                subject = subject_of(job) if job is not None else None
                if job is not None and (not isinstance(subject, str) or not subject):
                    raise ValueError(f"No subject in job payload: {subject!r}")
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                logger.error(f"[{self.name}] Unreadable job {entry_key}: {e}")
                stats.processed += 1
                stats.failed += 1
                self.retry.dead_letter_unreadable(
                    entry_key, str(e) or type(e).__name__, self.queue
                )
                continue

            if job is None:
                logger.warning(f"[{self.name}] Job disappeared: {entry_key}")
                continue

            stats.processed += 1

            if not self.leases.claim(subject):
                logger.info(f"[{self.name}] Job already claimed: {subject}")
                stats.skipped += 1
                continue

            try:
                handler(entry_key, job)
            except RateLimitError as e:
                logger.warning(
                    f"[{self.name}] Rate limited, releasing claim for retry: {subject} ({e})"
                )
                self.retry.release(subject)
                stats.skipped += 1
                continue
            except Exception as e:
                logger.error(f"[{self.name}] Error processing {subject}: {e}", exc_info=True)
                stats.failed += 1
                self.retry.fail(
                    entry_key,
                    subject,
                    str(e) or type(e).__name__,
                    self.max_attempts,
                    self.queue,
                )
                continue

            self.retry.complete(entry_key, subject)
            stats.succeeded += 1
            logger.info(f"[{self.name}] Successfully processed: {subject}")

            if self.delay_ms > 0:
                self.sleep(self.delay_ms / 1000.0)

        stats.duration_ms = (time.time() - start_time) * 1000
        logger.info(
            log_summary(
                self.name,
                success=True,
                duration_ms=stats.duration_ms,
                item_count=stats.processed,
                succeeded=stats.succeeded,
                failed=stats.failed,
                skipped=stats.skipped,
            )
        )
        return stats
