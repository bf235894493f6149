"""
Pipeline stages: discovery -> summarize -> notify.

Each run_* function is one pass of a stage against a StageContext. The
Lambda entry points wrap them with create_stage_handler; the processor
Lambda chains summarize and notify in one invocation.
"""

import functools
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlparse

from fundtracker_common import keys
from fundtracker_common.bedrock import BedrockClient
from fundtracker_common.constants import DEFAULT_LIST_LIMIT, SUMMARY_CACHE_TTL_SECONDS
from fundtracker_common.context import StageContext
from fundtracker_common.exceptions import EnrichmentError, ListingFetchError
from fundtracker_common.logging_utils import log_summary
from fundtracker_common.models import NotifyJob, Opportunity, SummarizeJob, notify_subject
from fundtracker_common.notifier import post_opportunity
from fundtracker_common.queue import QueueName, StageRunner, StageStats
from fundtracker_common.scraper.fetcher import FetchResult, fetch_page
from fundtracker_common.scraper.listing import parse_opportunities
from fundtracker_common.summarizer import summarize_link

logger = logging.getLogger(__name__)

Summarize = Callable[[str], str | None]
Post = Callable[[str, Opportunity], None]
Fetch = Callable[..., FetchResult]


@dataclass
class DiscoveryStats:
    """Counters for one discovery run."""

    discovered: int = 0
    enqueued: int = 0
    skipped: int = 0
    duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "discovered": self.discovered,
            "enqueued": self.enqueued,
            "skipped": self.skipped,
            "duration_ms": round(self.duration_ms, 2),
        }


def _now_iso(ctx: StageContext) -> str:
    return datetime.fromtimestamp(ctx.clock(), UTC).isoformat()


def run_discovery(ctx: StageContext, fetch: Fetch = fetch_page) -> DiscoveryStats:
    """
    Crawl the listing page and queue unseen opportunities for summarization.

    Entries are enqueued before the subjects are marked seen: a crash in
    between re-queues them on the next run instead of dropping them.

    Raises:
        ListingFetchError: If the listing page cannot be fetched
    """
    settings = ctx.settings
    stats = DiscoveryStats()
    start_time = time.time()

    logger.info(
        f"[Crawler] Fetching listing from {settings.feed_url} "
        f"(mode: {settings.listing_fetch_mode})"
    )
    result = fetch(settings.feed_url, mode=settings.listing_fetch_mode)
    if result.error:
        raise ListingFetchError(f"Listing fetch failed: {result.error}")

    parsed = urlparse(settings.feed_url)
    opportunities = parse_opportunities(result.content, f"{parsed.scheme}://{parsed.netloc}")
    logger.info(f"[Crawler] Parsed {len(opportunities)} opportunities")

    seen = ctx.ledger.filter_seen(o.link for o in opportunities)
    newly_queued: list[tuple[str, dict[str, Any]]] = []
    queued_links = set()

    for opportunity in opportunities:
        stats.discovered += 1
        if opportunity.link in seen or opportunity.link in queued_links:
            stats.skipped += 1
            continue

        job = SummarizeJob(url=opportunity.link, opportunity=opportunity, enqueued_at=_now_iso(ctx))
        ctx.queue_store.enqueue(QueueName.SUMMARIZE, opportunity.link, job.to_dict())
        queued_links.add(opportunity.link)
        newly_queued.append(
            (opportunity.link, {"identifier": opportunity.identifier, "title": opportunity.title})
        )
        stats.enqueued += 1
        logger.info(f"[Crawler] Enqueued new opportunity: {opportunity.label}")

    ctx.ledger.mark_seen_batch(newly_queued)

    stats.duration_ms = (time.time() - start_time) * 1000
    logger.info(
        log_summary(
            "Crawler",
            duration_ms=stats.duration_ms,
            item_count=stats.discovered,
            enqueued=stats.enqueued,
            skipped=stats.skipped,
        )
    )
    return stats


def default_summarize(ctx: StageContext) -> Summarize:
    """Bind summarize_link to the configured model and project profile."""
    settings = ctx.settings
    return functools.partial(
        summarize_link,
        bedrock_client=BedrockClient(region=settings.region),
        model_id=settings.summary_model,
        project_profile=settings.project_profile or "",
        fetch_mode=settings.listing_fetch_mode,
    )


def run_summarizer(ctx: StageContext, summarize: Summarize | None = None) -> StageStats:
    """
    Summarize queued opportunities and hand them to the notify queue.

    A cached summary (``summary:<hash>``) is reused instead of calling the
    model again; new summaries are cached for two weeks.
    """
    settings = ctx.settings
    summarize = summarize or default_summarize(ctx)

    def handle(entry_key: str, payload: dict[str, Any]) -> None:
        job = SummarizeJob.from_dict(payload)
        subject = job.url
        opportunity = job.opportunity
        cache_key = keys.summary_key(subject)

        summary = ctx.store.get(cache_key)
        if summary is None:
            logger.info(f"[Summarizer] Generating summary for: {opportunity.label}")
            summary = summarize(subject)
            if not summary:
                raise EnrichmentError("Failed to generate summary (no result returned)")
            ctx.store.put(cache_key, summary, SUMMARY_CACHE_TTL_SECONDS)
        else:
            logger.info(f"[Summarizer] Using cached summary for: {opportunity.label}")

        opportunity.summary = summary
        notify_job = NotifyJob(opportunity=opportunity, summarized_at=_now_iso(ctx))
        ctx.queue_store.enqueue(QueueName.NOTIFY, subject, notify_job.to_dict())

    runner = StageRunner(
        "Summarizer",
        ctx.queue_store,
        ctx.leases,
        ctx.retry,
        QueueName.SUMMARIZE,
        batch_size=settings.summarizer_batch_size,
        max_attempts=settings.max_summarize_attempts,
    )
    return runner.run(handle)


def run_notifier(
    ctx: StageContext,
    post: Post = post_opportunity,
    sleep: Callable[[float], None] = time.sleep,
) -> StageStats:
    """
    Post summarized opportunities to the Discord webhook.

    Raises:
        ConfigurationError: If DISCORD_WEBHOOK_URL is not set
    """
    settings = ctx.settings
    webhook_url = settings.require_webhook_url()

    def handle(entry_key: str, payload: dict[str, Any]) -> None:
        opportunity = NotifyJob.from_dict(payload).opportunity
        logger.info(f"[Notifier] Posting to Discord: {opportunity.label}")
        post(webhook_url, opportunity)

    runner = StageRunner(
        "Notifier",
        ctx.queue_store,
        ctx.leases,
        ctx.retry,
        QueueName.NOTIFY,
        batch_size=settings.notifier_batch_size,
        max_attempts=settings.max_notify_attempts,
        delay_ms=settings.notify_delay_ms,
        sleep=sleep,
    )
    return runner.run(handle, subject_of=notify_subject)


def _dead_letter_subject(job: dict[str, Any]) -> str | None:
    if "url" in job:
        return job["url"]
    return job.get("opportunity", {}).get("link")


def collect_queue_status(
    ctx: StageContext, url: str | None = None, limit: int = DEFAULT_LIST_LIMIT
) -> dict[str, Any]:
    """
    Read-only snapshot of the queues.

    Pending counts are capped at limit (``capped`` is True when the cap was
    hit). With url, also reports the subject's seen record, live lease and
    dead letters.
    """
    pending = {}
    dead_letters = {}
    for queue in QueueName:
        count = len(ctx.queue_store.list_pending(queue, limit))
        pending[queue.value] = {"count": count, "capped": count >= limit}
        dead_letters[queue.value] = [
            {
                "subject": _dead_letter_subject(entry.job),
                "attempts": entry.attempts,
                "last_error": entry.last_error,
                "failed_at": entry.failed_at,
            }
            for entry in ctx.retry.list_dead_letters(queue, limit)
        ]

    status: dict[str, Any] = {"pending": pending, "dead_letters": dead_letters}

    if url:
        record = ctx.ledger.get_record(url)
        subject_dead_letters = {}
        for queue in QueueName:
            entry = ctx.retry.get_dead_letter(queue, url)
            if entry is not None:
                subject_dead_letters[queue.value] = entry.to_dict()
        status["subject"] = {
            "url": url,
            "hash": keys.hash_subject(url),
            "seen": record.to_dict() if record else None,
            "lease_since": ctx.leases.holder_since(url),
            "dead_letters": subject_dead_letters,
        }

    return status
