"""
Funding portal scraping.

Architecture:
- Fetcher: HTTP-first with Playwright fallback for the client-rendered portal
- Listing: listing page -> Opportunity records
- Extractor: detail page HTML -> Markdown for summarization
"""

from fundtracker_common.scraper.fetcher import FetchResult, HttpFetcher, fetch_page
from fundtracker_common.scraper.listing import normalize_url, parse_opportunities

__all__ = [
    "FetchResult",
    "HttpFetcher",
    "fetch_page",
    "normalize_url",
    "parse_opportunities",
]
