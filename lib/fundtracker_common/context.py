"""Wiring of the queue layer for one stage invocation."""

import time
from dataclasses import dataclass

from fundtracker_common.config import PipelineSettings
from fundtracker_common.dedup import SeenLedger, build_seen_ledger
from fundtracker_common.kv_store import Clock, KeyValueStore, build_store
from fundtracker_common.queue import LeaseManager, QueueStore, RetryController


@dataclass
class StageContext:
    """Settings plus the queue components built on one shared store."""

    settings: PipelineSettings
    store: KeyValueStore
    queue_store: QueueStore
    leases: LeaseManager
    retry: RetryController
    ledger: SeenLedger
    clock: Clock = time.time


def build_context(
    settings: PipelineSettings | None = None,
    store: KeyValueStore | None = None,
    clock: Clock = time.time,
) -> StageContext:
    """
    Build the stage context.

    Args:
        settings: Settings to use (defaults to PipelineSettings.from_env())
        store: Store to use (defaults to the backend selected by settings)
        clock: Clock shared by every component

    Raises:
        ConfigurationError: If settings are invalid or the store binding is missing
    """
    settings = settings or PipelineSettings.from_env()
    store = store or build_store(settings, clock=clock)

    queue_store = QueueStore(store, clock=clock)
    leases = LeaseManager(store, clock=clock)
    retry = RetryController(queue_store, leases, clock=clock)
    ledger = build_seen_ledger(store, settings.seen_ledger_mode, clock=clock)

    return StageContext(
        settings=settings,
        store=store,
        queue_store=queue_store,
        leases=leases,
        retry=retry,
        ledger=ledger,
        clock=clock,
    )
