#!/usr/bin/env python3
"""
Inspect the FundTracker queues of a deployed table.

Prints pending entry keys per queue, dead-letter entries per stage and,
optionally, everything stored for one subject URL. Read-only.

Usage:
    python scripts/inspect_queues.py --table-name <kv-table> [--url <call-url>]

Requirements:
    - AWS credentials configured
    - fundtracker_common installed (pip install -e .)
"""

import argparse
import json
import logging
import sys
from datetime import UTC, datetime

from botocore.exceptions import ClientError

from fundtracker_common import keys
from fundtracker_common.config import PipelineSettings
from fundtracker_common.constants import DEFAULT_KV_NAMESPACE
from fundtracker_common.context import build_context
from fundtracker_common.queue import QueueName

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def print_pending(ctx, limit: int) -> None:
    for queue in QueueName:
        entry_keys = ctx.queue_store.list_pending(queue, limit)
        suffix = " (capped)" if len(entry_keys) >= limit else ""
        print(f"\n{queue.value} queue: {len(entry_keys)} pending{suffix}")
        for entry_key in entry_keys:
            _, timestamp_ms, _ = keys.parse_entry_key(entry_key)
            enqueued = datetime.fromtimestamp(timestamp_ms / 1000, UTC).isoformat()
            job = ctx.queue_store.get_job(entry_key) or {}
            print(f"  {entry_key}  enqueued={enqueued}  attempts={job.get('attempts', 0)}")
            if job.get("error"):
                print(f"    error={job['error']}")


def print_dead_letters(ctx, limit: int) -> None:
    for queue in QueueName:
        entries = ctx.retry.list_dead_letters(queue, limit)
        print(f"\n{queue.value} dead letters: {len(entries)}")
        for entry in entries:
            subject = entry.job.get("url") or entry.job.get("opportunity", {}).get("link")
            print(f"  {subject}")
            print(f"    attempts={entry.attempts}  failed_at={entry.failed_at}")
            print(f"    last_error={entry.last_error}")


def print_subject(ctx, url: str) -> None:
    print(f"\nSubject {url} (hash {keys.hash_subject(url)})")
    record = ctx.ledger.get_record(url)
    print(f"  seen: {json.dumps(record.to_dict()) if record else 'no'}")
    print(f"  lease since: {ctx.leases.holder_since(url) or 'not leased'}")
    cached = ctx.store.get(keys.summary_key(url))
    print(f"  cached summary: {'yes' if cached else 'no'}")
    for queue in QueueName:
        entry = ctx.retry.get_dead_letter(queue, url)
        if entry is not None:
            print(f"  {queue.value} dead letter: {json.dumps(entry.to_dict())}")


def main():
    parser = argparse.ArgumentParser(
        description="Inspect FundTracker queues",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Pending and dead-lettered jobs
    python scripts/inspect_queues.py --table-name fundtracker-kv

    # Everything stored for one call
    python scripts/inspect_queues.py --table-name fundtracker-kv \\
        --url https://ec.europa.eu/.../screen/opportunities/topic-details/XYZ
""",
    )
    parser.add_argument(
        "--table-name",
        required=True,
        help="DynamoDB table backing the key-value store",
    )
    parser.add_argument(
        "--namespace",
        default=DEFAULT_KV_NAMESPACE,
        help=f"Partition key value (default: {DEFAULT_KV_NAMESPACE})",
    )
    parser.add_argument(
        "--region",
        default="us-east-1",
        help="AWS region (default: us-east-1)",
    )
    parser.add_argument(
        "--ledger-mode",
        choices=["keyed", "consolidated"],
        default="keyed",
        help="Seen ledger layout (default: keyed)",
    )
    parser.add_argument("--url", help="Subject URL to look up")
    parser.add_argument(
        "--limit",
        type=int,
        default=50,
        help="Max keys listed per prefix (default: 50)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    settings = PipelineSettings(
        kv_table_name=args.table_name,
        kv_namespace=args.namespace,
        seen_ledger_mode=args.ledger_mode,
        region=args.region,
    )

    try:
        ctx = build_context(settings)
        print_pending(ctx, args.limit)
        print_dead_letters(ctx, args.limit)
        if args.url:
            print_subject(ctx, args.url)
    except ClientError as e:
        logger.error(f"Inspection failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
