"""
Advisory leases over subjects.

A lease is a key under the processing prefix, derived from the subject
hash rather than the queue key, so it also guards a subject that moves
between queues. The store expires it after the TTL; that expiry is the only
crash recovery. There is no renewal.

Leases only exclude callers that go through claim().
"""

import logging
import time
from datetime import UTC, datetime

from fundtracker_common import keys
from fundtracker_common.constants import LEASE_TTL_SECONDS
from fundtracker_common.kv_store import Clock, KeyValueStore

logger = logging.getLogger(__name__)


class LeaseManager:
    """claim/release primitives over a key-value store."""

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: int = LEASE_TTL_SECONDS,
        clock: Clock = time.time,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def claim(self, subject: str) -> bool:
        """
        Try to take the lease for subject.

        Uses the store's put_if_absent: a conditional write on DynamoDB, a
        check-then-write on stores without one (where two racing callers can
        both win; downstream effects are expected to be idempotent).

        Returns:
            True if this call now holds the lease, False if a live lease exists
        """
        created_at = datetime.fromtimestamp(self.clock(), UTC).isoformat()
        claimed = self.store.put_if_absent(keys.lease_key(subject), created_at, self.ttl_seconds)
        if not claimed:
            logger.debug(f"Lease already held for {subject}")
        return claimed

    def release(self, subject: str) -> None:
        """Drop the lease. Idempotent."""
        self.store.delete(keys.lease_key(subject))

    def holder_since(self, subject: str) -> str | None:
        """Creation timestamp of the live lease, if any (diagnostic only)."""
        return self.store.get(keys.lease_key(subject))
