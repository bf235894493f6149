"""
Data models for the KV-backed job queues.

Queue entries are plain JSON dicts owned by the stage that enqueued them;
the queue layer only reads and writes the retry bookkeeping fields
(attempts, last_attempt, error).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from fundtracker_common import keys


class QueueName(str, Enum):
    """Functional queues between stages. Each has its own dead-letter prefix."""

    SUMMARIZE = "summarize"  # discovery -> enrichment
    NOTIFY = "notify"  # enrichment -> delivery

    @property
    def prefix(self) -> str:
        return {
            QueueName.SUMMARIZE: keys.SUMMARIZE_QUEUE_PREFIX,
            QueueName.NOTIFY: keys.NOTIFY_QUEUE_PREFIX,
        }[self]

    @property
    def dlq_prefix(self) -> str:
        return {
            QueueName.SUMMARIZE: keys.DLQ_SUMMARIZE_PREFIX,
            QueueName.NOTIFY: keys.DLQ_NOTIFY_PREFIX,
        }[self]


@dataclass
class DeadLetterEntry:
    """
    Terminal record for a job that exhausted its retry budget.

    Keyed by subject hash under the stage's DLQ prefix, so a repeated move
    for the same subject overwrites rather than appends.

    Attributes:
        job: Final queue payload (attempts already incremented)
        failed_at: ISO timestamp of the final failure
        attempts: Final attempt count
        last_error: Error message of the final attempt
    """

    job: dict[str, Any]
    failed_at: str
    attempts: int
    last_error: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "job": self.job,
            "failed_at": self.failed_at,
            "attempts": self.attempts,
            "last_error": self.last_error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DeadLetterEntry":
        return cls(
            job=data.get("job", {}),
            failed_at=data.get("failed_at", ""),
            attempts=int(data.get("attempts", 0)),
            last_error=data.get("last_error", ""),
        )
