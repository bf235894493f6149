"""
Lease-based job queues over a key-value store.

Architecture:
- QueueStore: timestamp-prefixed entries, listed oldest first
- LeaseManager: advisory, TTL-bounded claims keyed by subject hash
- RetryController: complete / fail with dead-letter hand-off
- StageRunner: poll -> claim -> handle -> resolve loop shared by stages
"""

from fundtracker_common.queue.lease import LeaseManager
from fundtracker_common.queue.models import DeadLetterEntry, QueueName
from fundtracker_common.queue.retry import RetryController
from fundtracker_common.queue.runner import StageRunner, StageStats
from fundtracker_common.queue.store import QueueStore

__all__ = [
    "DeadLetterEntry",
    "LeaseManager",
    "QueueName",
    "QueueStore",
    "RetryController",
    "StageRunner",
    "StageStats",
]
