"""
Discord webhook delivery.

One embed per opportunity. Non-2xx answers raise so the notify stage can
retry: 429 as RateLimitError (lease released, no attempt spent), anything
else as DeliveryError.
"""

import logging
from datetime import UTC, datetime
from typing import Any

import httpx

from fundtracker_common.exceptions import DeliveryError, RateLimitError
from fundtracker_common.models import Opportunity

logger = logging.getLogger(__name__)

STATUS_COLORS = {
    "Open": 0x2ECC71,
    "Open For Submission": 0x2ECC71,
    "Forthcoming": 0x3498DB,
    "Closed": 0x95A5A6,
    "Cancelled": 0xE74C3C,
    "Suspended": 0xF39C12,
}
DEFAULT_COLOR = 0x9B59B6

FOOTER_TEXT = "EU Fund Tracker"
NO_SUMMARY_TEXT = "No summary available yet."

# Discord limits
MAX_DESCRIPTION_LENGTH = 4096
MAX_TITLE_LENGTH = 256
MAX_FIELD_VALUE_LENGTH = 1024

# (attribute, label, inline)
EMBED_FIELDS = [
    ("identifier", "Identifier", True),
    ("status", "Status", True),
    ("announcement_type", "Type", True),
    ("opening", "Opening Date", True),
    ("deadline", "Deadline", True),
    ("stage", "Stage", True),
    ("programme_name", "Programme", False),
    ("action_type", "Action Type", False),
]


def create_embed(opportunity: Opportunity, now: datetime | None = None) -> dict[str, Any]:
    """Build a Discord embed; fields are only added for present values."""
    fields = [
        {"name": label, "value": value[:MAX_FIELD_VALUE_LENGTH], "inline": inline}
        for attr, label, inline in EMBED_FIELDS
        if (value := getattr(opportunity, attr))
    ]

    return {
        "title": opportunity.title[:MAX_TITLE_LENGTH],
        "description": (opportunity.summary or NO_SUMMARY_TEXT)[:MAX_DESCRIPTION_LENGTH],
        "url": opportunity.link,
        "color": STATUS_COLORS.get(opportunity.status or "", DEFAULT_COLOR),
        "timestamp": (now or datetime.now(UTC)).isoformat(),
        "fields": fields,
        "footer": {"text": FOOTER_TEXT},
    }


def post_to_webhook(
    webhook_url: str, embed: dict[str, Any], client: httpx.Client | None = None
) -> None:
    """
    POST a single embed to a Discord webhook.

    Raises:
        RateLimitError: On HTTP 429
        DeliveryError: On any other non-2xx status or a transport error
    """
    payload = {"embeds": [embed]}

    try:
        if client is not None:
            response = client.post(webhook_url, json=payload)
        else:
            with httpx.Client(timeout=15.0) as owned_client:
                response = owned_client.post(webhook_url, json=payload)
    except httpx.HTTPError as e:
        raise DeliveryError(f"Discord webhook request failed: {e}") from e

    if response.status_code == 429:
        raise RateLimitError(response.headers.get("retry-after"))

    if not response.is_success:
        raise DeliveryError(
            f"Discord webhook failed ({response.status_code}): {response.text}",
            status_code=response.status_code,
        )


def post_opportunity(
    webhook_url: str, opportunity: Opportunity, client: httpx.Client | None = None
) -> None:
    """Create the embed for opportunity and post it."""
    post_to_webhook(webhook_url, create_embed(opportunity), client=client)
    logger.debug(f"Posted {opportunity.label} to Discord")
