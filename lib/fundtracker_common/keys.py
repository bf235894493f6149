"""
Centralized key layout for the key-value store.

This module is the single source of truth for every key prefix the
pipeline writes. The subject hash is the join key between leases,
dead letters, seen records and cached summaries.
"""

import hashlib

SUMMARIZE_QUEUE_PREFIX = "queue:summarize:"
NOTIFY_QUEUE_PREFIX = "queue:notify:"
DLQ_SUMMARIZE_PREFIX = "dlq:summarize:"
DLQ_NOTIFY_PREFIX = "dlq:notify:"
PROCESSING_PREFIX = "processing:"
SEEN_PREFIX = "seen:"
SEEN_ALL_KEY = "seen:all"
SUMMARY_PREFIX = "summary:"

# Epoch milliseconds stay 13 digits wide until the year 2286
TIMESTAMP_WIDTH = 13


def hash_subject(subject: str) -> str:
    """
    Compute a stable, fixed-width hash of a subject URL.

    Args:
        subject: Canonical subject URL

    Returns:
        First 16 hex characters of the SHA-256 digest
    """
    return hashlib.sha256(subject.encode("utf-8")).hexdigest()[:16]


def build_entry_key(prefix: str, timestamp_ms: int, subject: str) -> str:
    """Build a queue entry key: ``{prefix}{zero-padded ms}:{subject hash}``."""
    return f"{prefix}{timestamp_ms:0{TIMESTAMP_WIDTH}d}:{hash_subject(subject)}"


def parse_entry_key(entry_key: str) -> tuple[str, int, str]:
    """
    Split a queue entry key into its parts.

    Returns:
        Tuple of (prefix, timestamp_ms, subject_hash)

    Raises:
        ValueError: If the key does not have the entry key shape
    """
    head, _, subject_hash = entry_key.rpartition(":")
    prefix, _, timestamp = head.rpartition(":")
    if not head or not prefix or not timestamp.isdigit() or not subject_hash:
        raise ValueError(f"Not a queue entry key: {entry_key}")
    return f"{prefix}:", int(timestamp), subject_hash


def lease_key(subject: str) -> str:
    return PROCESSING_PREFIX + hash_subject(subject)


def dead_letter_key(dlq_prefix: str, subject: str) -> str:
    return dead_letter_key_for_hash(dlq_prefix, hash_subject(subject))


def dead_letter_key_for_hash(dlq_prefix: str, subject_hash: str) -> str:
    return dlq_prefix + subject_hash


def seen_key(subject: str) -> str:
    return SEEN_PREFIX + hash_subject(subject)


def summary_key(subject: str) -> str:
    return SUMMARY_PREFIX + hash_subject(subject)
