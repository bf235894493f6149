"""
Seen-subject ledger for discovery deduplication.

Discovery consults the ledger before enqueueing, which keeps repeated runs
over the same listing idempotent. The ledger is independent of the job
queues: a subject stays "seen" long after its queue entries are gone, until
its record expires (90 days) and it may be queued again.

Two shapes of the same ledger:
- KeyedSeenLedger: one key per subject. Concurrent discovery runs cannot
  overwrite each other's records.
- ConsolidatedSeenLedger: one JSON document holding every record, loaded
  once per call. Cheaper to read in bulk, but its read-modify-write has no
  conflict detection: two overlapping discovery runs can lose each other's
  updates. Only select it when discovery runs are serialized.
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from fundtracker_common import keys
from fundtracker_common.constants import SEEN_TTL_SECONDS
from fundtracker_common.exceptions import ConfigurationError
from fundtracker_common.kv_store import Clock, KeyValueStore

logger = logging.getLogger(__name__)


@dataclass
class SeenRecord:
    """
    Ledger record for one subject.

    Attributes:
        url: Canonical subject URL
        first_seen: ISO timestamp of the first mark
        identifier: Call identifier, for debugging
        title: Call title, for debugging
    """

    url: str
    first_seen: str
    identifier: str | None = None
    title: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "first_seen": self.first_seen,
            "identifier": self.identifier,
            "title": self.title,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SeenRecord":
        return cls(
            url=data["url"],
            first_seen=data.get("first_seen", ""),
            identifier=data.get("identifier"),
            title=data.get("title"),
        )


class SeenLedger(ABC):
    """Membership ledger of subjects already queued."""

    def __init__(
        self,
        store: KeyValueStore,
        retention_seconds: int = SEEN_TTL_SECONDS,
        clock: Clock = time.time,
    ):
        self.store = store
        self.retention_seconds = retention_seconds
        self.clock = clock

    def _now_iso(self) -> str:
        return datetime.fromtimestamp(self.clock(), UTC).isoformat()

    def _new_record(
        self, url: str, metadata: dict[str, Any], existing: SeenRecord | None, now: str
    ) -> SeenRecord:
        return SeenRecord(
            url=url,
            first_seen=existing.first_seen if existing else now,
            identifier=metadata.get("identifier"),
            title=metadata.get("title"),
        )

    def is_seen(self, subject: str) -> bool:
        return subject in self.filter_seen([subject])

    @abstractmethod
    def filter_seen(self, subjects: Iterable[str]) -> set[str]:
        """Return the subset of subjects already in the ledger."""

    def mark_seen(self, subject: str, metadata: dict[str, Any] | None = None) -> None:
        """
        Record subject as seen. Re-marking refreshes identifier/title and
        the retention window, and keeps the original first_seen.
        """
        self.mark_seen_batch([(subject, metadata or {})])

    @abstractmethod
    def mark_seen_batch(self, entries: Iterable[tuple[str, dict[str, Any]]]) -> None:
        """Mark many (subject, metadata) pairs in one pass."""

    @abstractmethod
    def get_record(self, subject: str) -> SeenRecord | None:
        """Stored record for subject, for debugging."""


class KeyedSeenLedger(SeenLedger):
    """One ``seen:<hash>`` key per subject."""

    def filter_seen(self, subjects: Iterable[str]) -> set[str]:
        by_key = {keys.seen_key(subject): subject for subject in subjects}
        if not by_key:
            return set()
        found = self.store.get_many(by_key.keys())
        return {by_key[key] for key in found}

    def mark_seen_batch(self, entries: Iterable[tuple[str, dict[str, Any]]]) -> None:
        entries = list(entries)
        if not entries:
            return

        existing = self.store.get_many(keys.seen_key(subject) for subject, _ in entries)
        now = self._now_iso()

        for subject, metadata in entries:
            key = keys.seen_key(subject)
            previous = SeenRecord.from_dict(json.loads(existing[key])) if key in existing else None
            record = self._new_record(subject, metadata, previous, now)
            self.store.put(key, json.dumps(record.to_dict()), self.retention_seconds)

    def get_record(self, subject: str) -> SeenRecord | None:
        raw = self.store.get(keys.seen_key(subject))
        if raw is None:
            return None
        return SeenRecord.from_dict(json.loads(raw))


class ConsolidatedSeenLedger(SeenLedger):
    """
    All records in one ``seen:all`` document, keyed by subject hash.

    Every write rewrites the whole document and restarts its retention
    window, so records never expire individually while discovery keeps
    running.
    """

    def _load(self) -> dict[str, dict[str, Any]]:
        raw = self.store.get(keys.SEEN_ALL_KEY)
        if raw is None:
            return {}
        return json.loads(raw)

    def _save(self, database: dict[str, dict[str, Any]]) -> None:
        self.store.put(keys.SEEN_ALL_KEY, json.dumps(database), self.retention_seconds)

    def filter_seen(self, subjects: Iterable[str]) -> set[str]:
        database = self._load()
        return {subject for subject in subjects if keys.hash_subject(subject) in database}

    def mark_seen_batch(self, entries: Iterable[tuple[str, dict[str, Any]]]) -> None:
        entries = list(entries)
        if not entries:
            return

        database = self._load()
        now = self._now_iso()

        for subject, metadata in entries:
            subject_hash = keys.hash_subject(subject)
            previous = database.get(subject_hash)
            record = self._new_record(
                subject, metadata, SeenRecord.from_dict(previous) if previous else None, now
            )
            database[subject_hash] = record.to_dict()

        self._save(database)
        logger.debug(f"Seen ledger now holds {len(database)} records")

    def get_record(self, subject: str) -> SeenRecord | None:
        data = self._load().get(keys.hash_subject(subject))
        return SeenRecord.from_dict(data) if data else None


def build_seen_ledger(
    store: KeyValueStore, mode: str = "keyed", clock: Clock = time.time
) -> SeenLedger:
    """
    Build the ledger variant selected by configuration.

    Raises:
        ConfigurationError: If mode is unknown
    """
    if mode == "keyed":
        return KeyedSeenLedger(store, clock=clock)
    if mode == "consolidated":
        return ConsolidatedSeenLedger(store, clock=clock)
    raise ConfigurationError(f"Unknown seen ledger mode: {mode}")
