"""
Listing page parser.

Turns the rendered funding-portal listing into Opportunity records. The
portal markup changes often, so every field is extracted by layered
heuristics (card structure first, then regexes over the card text) and
falls back to None rather than failing the whole listing.
"""

import logging
import re
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup
from bs4.element import Tag

from fundtracker_common.models import Opportunity

logger = logging.getLogger(__name__)

DETAIL_PATH_MARKER = "/screen/opportunities/"
MIN_TITLE_LENGTH = 6

CARD_TAGS = ["eui-card", "sedia-result-card", "sedia-result-card-calls-for-proposals"]
FALLBACK_CARD_TAGS = ["article", "li", "div"]

STATUS_WORDS = ["Forthcoming", "Open For Submission", "Open", "Closed", "Cancelled", "Suspended"]

ANNOUNCEMENT_RE = re.compile(r"(Calls? for proposals?|Cascade funding|Tenders?|Grants?)", re.I)
CODE_LIKE_RE = re.compile(r"[A-Z0-9]{2,}-[A-Z0-9]{2,}", re.I)
ID_WITH_TYPE_RE = re.compile(
    r"([A-Z0-9][A-Z0-9-]{5,})\s*\|\s*"
    r"([^|]*?(Calls? for proposals?|Cascade funding|Tenders?|Grants?))",
    re.I,
)
STRONG_CODE_RE = re.compile(r"([A-Z0-9]{2,}(?:-[A-Z0-9]{2,}){2,}(?:-[A-Z0-9][A-Z0-9-]{1,})?)")
NUMERIC_ID_RE = re.compile(r"competitive-calls-cs/(\d+)", re.I)

DATE = r"([0-9]{1,2}\s+\w+\s+[0-9]{4}|\d{4}-\d{2}-\d{2})"
OPENING_RES = [
    re.compile(r"Opening date:?\s*" + DATE, re.I),
    re.compile(r"Open(?:s|ing)?:?\s*" + DATE, re.I),
]
DEADLINE_RES = [
    re.compile(r"Deadline date:?\s*" + DATE, re.I),
    re.compile(r"Deadline:?\s*" + DATE, re.I),
]
STATUS_RE = re.compile("(" + "|".join(w.replace(" ", r"\s+") for w in STATUS_WORDS) + ")", re.I)
PROGRAMME_RE = re.compile(r"Programme:?\s*([^|]+?)(?:\s*\|\s*Type of action:|$)", re.I)
ACTION_RE = re.compile(r"Type of action:?\s*([^|]+?)(?:\s*$|\s*Programme:)", re.I)
STAGE_RE = re.compile(r"(Single-stage|Two-stage)", re.I)


def normalize_url(url: str) -> str:
    """
    Normalize URL for deduplication.

    Removes fragments, normalizes trailing slashes, lowercases hostname.
    """
    parsed = urlparse(url)
    netloc = parsed.netloc.lower()

    path = parsed.path
    if path and path != "/" and path.endswith("/"):
        path = path.rstrip("/")

    normalized = f"{parsed.scheme}://{netloc}{path}"
    if parsed.query:
        normalized += f"?{parsed.query}"

    return normalized


def _clean_text(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def _first_match(patterns: list[re.Pattern], text: str) -> str | None:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def _find_card(anchor: Tag) -> Tag | None:
    return anchor.find_parent(CARD_TAGS) or anchor.find_parent(
        lambda tag: tag.name in FALLBACK_CARD_TAGS or tag.has_attr("data-item")
    )


def _subtitle_fields(card: Tag) -> tuple[str | None, str | None]:
    """Identifier and announcement type from the card subtitle spans."""
    subtitle = card.find("eui-card-header-subtitle")
    if subtitle is None:
        return None, None

    span_texts = [s.get_text(strip=True) for s in subtitle.find_all("span")]
    span_texts = [t for t in span_texts if t]

    announcement_type = next((t for t in span_texts if ANNOUNCEMENT_RE.search(t)), None)

    codes = [
        t
        for t in span_texts
        if not ANNOUNCEMENT_RE.search(t)
        and (CODE_LIKE_RE.search(t) or (" " not in t and re.search(r"[A-Za-z0-9]", t)))
    ]
    identifier = None
    if codes:
        # Most hyphen-separated segments wins, then longest
        codes.sort(key=lambda t: (len(t.split("-")), len(t)), reverse=True)
        identifier = codes[0]

    return identifier, announcement_type


def _status(card: Tag | None, text: str) -> str | None:
    if card is not None:
        badge = card.select_one('[class*="status" i], [class*="badge" i], eui-chip')
        if badge is not None:
            badge_text = badge.get_text(strip=True)
            if badge_text:
                return badge_text
    match = STATUS_RE.search(text)
    return match.group(1) if match else None


def _parse_card(anchor: Tag, title: str, link: str) -> Opportunity:
    card = _find_card(anchor)
    text = _clean_text(card.get_text(" ")) if card is not None else ""

    identifier, announcement_type = (None, None)
    if card is not None:
        identifier, announcement_type = _subtitle_fields(card)

    if not identifier:
        match = ID_WITH_TYPE_RE.search(text)
        if match:
            identifier = match.group(1).strip()
            announcement_type = announcement_type or match.group(2).strip()

    if not identifier or "opening date:" in identifier.lower():
        strong = STRONG_CODE_RE.search(text)
        if strong:
            identifier = strong.group(1)

    if not identifier:
        numeric = NUMERIC_ID_RE.search(link)
        if numeric:
            identifier = numeric.group(1)

    if not identifier:
        first_segment = re.split(r"\s{2,}", text.split("|")[0].strip())[0].strip()
        if first_segment and len(first_segment) < 60:
            identifier = first_segment

    programme = PROGRAMME_RE.search(text)
    action = ACTION_RE.search(text)
    stage = STAGE_RE.search(text)

    return Opportunity(
        title=title,
        link=link,
        identifier=identifier or None,
        announcement_type=announcement_type,
        status=_status(card, text),
        opening=_first_match(OPENING_RES, text),
        deadline=_first_match(DEADLINE_RES, text),
        programme_name=programme.group(1).strip() if programme else None,
        action_type=action.group(1).strip() if action else None,
        stage=stage.group(1) if stage else None,
    )


def parse_opportunities(html: str, base_url: str) -> list[Opportunity]:
    """
    Parse listing HTML into opportunities.

    Anchors pointing at opportunity detail pages are resolved against
    base_url and normalized; anchors with short titles are skipped and
    duplicate links keep their first occurrence.

    Args:
        html: Listing page HTML (rendered)
        base_url: URL the listing was fetched from

    Returns:
        Opportunities in document order; empty for unparseable input
    """
    if not html:
        return []

    soup = BeautifulSoup(html, "lxml")

    anchors: dict[str, tuple[Tag, str]] = {}
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"]
        if DETAIL_PATH_MARKER not in href:
            continue

        title = (anchor.get("title") or "").strip() or _clean_text(anchor.get_text(" "))
        if len(title) < MIN_TITLE_LENGTH:
            continue

        link = normalize_url(urljoin(base_url, href))
        if link not in anchors:
            anchors[link] = (anchor, title)

    results = []
    for link, (anchor, title) in anchors.items():
        try:
            results.append(_parse_card(anchor, title, link))
        except (AttributeError, IndexError, TypeError) as e:
            # Malformed card; keep what the anchor alone gives us
            logger.warning(f"Failed to parse listing card for {link}: {e}")
            results.append(Opportunity(title=title, link=link))

    logger.debug(f"Parsed {len(results)} opportunities from listing")
    return results
