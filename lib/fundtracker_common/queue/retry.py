"""
Retry / dead-letter controller.

Per-entry state machine:

    Pending -> Leased -> Completed
                      -> Retrying -> Pending
                      -> DeadLettered

The backing store has no multi-key transactions, so each transition is a
short sequence of independent writes ordered so that an interruption at
any point is recoverable:

- complete: delete entry, then release lease. A crash in between leaves a
  lease that still self-expires.
- fail to DLQ: write dead letter, delete entry, release lease. A crash after
  the dead-letter write leaves the entry in both places; the next attempt
  re-evaluates attempts >= max_attempts and overwrites the same dead letter
  (keyed by subject hash), which heals the duplicate.
"""

import json
import logging
import time
from datetime import UTC, datetime

from fundtracker_common import keys
from fundtracker_common.constants import DEFAULT_LIST_LIMIT, DLQ_TTL_SECONDS, MAX_ERROR_LENGTH
from fundtracker_common.kv_store import Clock
from fundtracker_common.queue.lease import LeaseManager
from fundtracker_common.queue.models import DeadLetterEntry, QueueName
from fundtracker_common.queue.store import QueueStore

logger = logging.getLogger(__name__)


class RetryController:
    """Resolves leased entries: complete, retry or dead-letter."""

    def __init__(
        self,
        queue_store: QueueStore,
        leases: LeaseManager,
        dlq_retention_seconds: int = DLQ_TTL_SECONDS,
        clock: Clock = time.time,
    ):
        self.queue_store = queue_store
        self.leases = leases
        self.store = queue_store.store
        self.dlq_retention_seconds = dlq_retention_seconds
        self.clock = clock

    def _now_iso(self) -> str:
        return datetime.fromtimestamp(self.clock(), UTC).isoformat()

    def complete(self, entry_key: str, subject: str) -> None:
        """
        Remove a finished entry and release its lease.

        Calling it again for the same entry is harmless: both deletes are
        idempotent.
        """
        self.queue_store.delete_job(entry_key)
        self.leases.release(subject)

    def fail(
        self,
        entry_key: str,
        subject: str,
        error: str,
        max_attempts: int,
        dlq: QueueName,
    ) -> None:
        """
        Record a failed attempt.

        Increments attempts and stores the error. Once attempts reaches
        max_attempts the entry moves to the dead-letter queue of dlq;
        otherwise it is written back for the next poll. The lease is
        released on every path so the outcome is visible on the next poll
        instead of after the lease TTL.

        Args:
            entry_key: Queue entry key
            subject: Subject URL the lease was taken on
            error: Error message of this attempt
            max_attempts: Attempt budget for this stage (>= 1)
            dlq: Stage whose dead-letter prefix receives exhausted jobs

        Raises:
            ValueError: If max_attempts < 1
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

        job = self.queue_store.get_job(entry_key)
        if job is None:
            # Completed or expired under us; only the lease is ours to clean up
            logger.warning(f"Failed job no longer queued, releasing lease: {entry_key}")
            self.leases.release(subject)
            return

        error = error[:MAX_ERROR_LENGTH]
        job["attempts"] = int(job.get("attempts", 0)) + 1
        job["last_attempt"] = self._now_iso()
        job["error"] = error

        if job["attempts"] >= max_attempts:
            entry = DeadLetterEntry(
                job=job,
                failed_at=job["last_attempt"],
                attempts=job["attempts"],
                last_error=error,
            )
            self.store.put(
                keys.dead_letter_key(dlq.dlq_prefix, subject),
                json.dumps(entry.to_dict()),
                self.dlq_retention_seconds,
            )
            self.queue_store.delete_job(entry_key)
            self.leases.release(subject)

            logger.error(
                f"Job moved to DLQ after {job['attempts']} attempts: {subject} - {error}"
            )
        else:
            self.queue_store.put_job(entry_key, job)
            self.leases.release(subject)

            logger.warning(
                f"Job failed (attempt {job['attempts']}/{max_attempts}): {subject} - {error}"
            )

    def dead_letter_unreadable(self, entry_key: str, error: str, dlq: QueueName) -> None:
        """
        Move an entry whose payload cannot be decoded or has no subject.

        No lease exists for such an entry, so the dead letter is keyed by the
        subject hash embedded in the entry key and holds the raw stored value.
        """
        raw = self.queue_store.get_raw(entry_key)
        if raw is None:
            return

        try:
            _, _, subject_hash = keys.parse_entry_key(entry_key)
        except ValueError:
            subject_hash = keys.hash_subject(entry_key)

        error = error[:MAX_ERROR_LENGTH]
        entry = DeadLetterEntry(
            job={"entry_key": entry_key, "raw": raw},
            failed_at=self._now_iso(),
            attempts=1,
            last_error=error,
        )
        self.store.put(
            keys.dead_letter_key_for_hash(dlq.dlq_prefix, subject_hash),
            json.dumps(entry.to_dict()),
            self.dlq_retention_seconds,
        )
        self.queue_store.delete_job(entry_key)

        logger.error(f"Unreadable job moved to DLQ: {entry_key} - {error}")

    def release(self, subject: str) -> None:
        """Give the lease back without spending an attempt (rate limits)."""
        self.leases.release(subject)

    def get_dead_letter(self, dlq: QueueName, subject: str) -> DeadLetterEntry | None:
        raw = self.store.get(keys.dead_letter_key(dlq.dlq_prefix, subject))
        if raw is None:
            return None
        return DeadLetterEntry.from_dict(json.loads(raw))

    def list_dead_letters(
        self, dlq: QueueName, limit: int = DEFAULT_LIST_LIMIT
    ) -> list[DeadLetterEntry]:
        """Dead-letter entries of a stage, for inspection."""
        entries = []
        for key in self.store.list(dlq.dlq_prefix, limit):
            raw = self.store.get(key)
            if raw is not None:
                entries.append(DeadLetterEntry.from_dict(json.loads(raw)))
        return entries
