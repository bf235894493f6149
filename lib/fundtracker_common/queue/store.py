"""
Queue store: pending jobs kept as timestamp-prefixed keys.

Listing does not lock anything. Two runners polling at the same time can
see the same entry; the lease taken afterwards decides who works on it.
"""

import json
import logging
import time
from typing import Any

from fundtracker_common import keys
from fundtracker_common.constants import DEFAULT_LIST_LIMIT, QUEUE_TTL_SECONDS
from fundtracker_common.kv_store import Clock, KeyValueStore
from fundtracker_common.queue.models import QueueName

logger = logging.getLogger(__name__)


class QueueStore:
    """Append / list / read / rewrite / delete over queue entries."""

    def __init__(
        self,
        store: KeyValueStore,
        retention_seconds: int = QUEUE_TTL_SECONDS,
        clock: Clock = time.time,
    ):
        """
        Initialize the queue store.

        Args:
            store: Backing key-value store
            retention_seconds: TTL applied to every write of an entry
            clock: Returns current epoch seconds (injectable for tests)
        """
        self.store = store
        self.retention_seconds = retention_seconds
        self.clock = clock

    def enqueue(self, queue: QueueName, subject: str, payload: dict[str, Any]) -> str:
        """
        Append a job for subject to queue.

        Args:
            queue: Target queue
            subject: Canonical subject URL
            payload: JSON-serializable job record; attempts defaults to 0

        Returns:
            The entry key, visible to list_pending immediately

        Raises:
            ValueError: If payload carries a negative or non-integer attempts
        """
        job = dict(payload)
        attempts = job.setdefault("attempts", 0)
        if not isinstance(attempts, int) or isinstance(attempts, bool) or attempts < 0:
            raise ValueError(f"attempts must be a non-negative integer, got {attempts!r}")

        timestamp_ms = int(self.clock() * 1000)
        entry_key = keys.build_entry_key(queue.prefix, timestamp_ms, subject)
        self.store.put(entry_key, json.dumps(job), self.retention_seconds)

        logger.debug(f"Enqueued {entry_key} for {subject}")
        return entry_key

    def list_pending(self, queue: QueueName, limit: int = DEFAULT_LIST_LIMIT) -> list[str]:
        """
        Snapshot of pending entry keys, oldest first.

        Keys share a fixed-width timestamp prefix, so lexicographic order is
        enqueue order. Entries from the same millisecond fall back to hash order.
        """
        return sorted(self.store.list(queue.prefix, limit))

    def get_job(self, entry_key: str) -> dict[str, Any] | None:
        """
        Read an entry.

        Returns:
            The payload, or None if the job already completed, expired or
            was dead-lettered. Callers skip it.
        """
        raw = self.get_raw(entry_key)
        if raw is None:
            return None
        return json.loads(raw)

    def get_raw(self, entry_key: str) -> str | None:
        """Stored value of an entry, undecoded."""
        return self.store.get(entry_key)

    def put_job(self, entry_key: str, payload: dict[str, Any]) -> None:
        """Rewrite an entry in place, refreshing its retention TTL."""
        self.store.put(entry_key, json.dumps(payload), self.retention_seconds)

    def delete_job(self, entry_key: str) -> None:
        """Remove an entry. Deleting a missing entry is a no-op."""
        self.store.delete(entry_key)
