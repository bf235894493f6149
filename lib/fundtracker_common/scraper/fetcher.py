"""
HTTP and Playwright fetching for the listing and detail pages.

HTTP first; the funding portal renders its listing client-side, so an SPA
shell triggers a Playwright fallback when the fetch mode allows it.
"""

import logging
import time
from dataclasses import dataclass

import httpx
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; FundTracker/1.0)"


@dataclass
class FetchResult:
    """Result of a page fetch operation."""

    url: str
    status_code: int
    content: str
    content_type: str
    is_html: bool
    error: str | None = None

    @classmethod
    def failed(cls, url: str, error: str, status_code: int = 0) -> "FetchResult":
        return cls(
            url=url,
            status_code=status_code,
            content="",
            content_type="",
            is_html=False,
            error=error,
        )


class HttpFetcher:
    """HTTP fetcher with retries on transient status codes."""

    RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

    def __init__(
        self,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        headers: dict[str, str] | None = None,
    ):
        """
        Initialize HTTP fetcher.

        Args:
            timeout: Request timeout in seconds
            max_retries: Maximum attempts for retryable errors
            backoff_base: First backoff in seconds, doubled per attempt
            headers: Optional extra headers
        """
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.headers = headers or {}

    def fetch(self, url: str) -> FetchResult:
        """
        Fetch URL, retrying timeouts, network errors and retryable statuses.

        Returns:
            FetchResult with content, or with error set once retries are exhausted
        """
        last_error = None
        last_status = None

        for attempt in range(self.max_retries):
            try:
                return self._do_fetch(url)
            except httpx.HTTPStatusError as e:
                last_status = e.response.status_code
                last_error = f"HTTP {last_status}: {e.response.reason_phrase}"
                if last_status not in self.RETRYABLE_STATUS_CODES:
                    return FetchResult.failed(url, last_error, last_status)
            except httpx.TimeoutException as e:
                last_error = f"Timeout: {e}"
            except httpx.RequestError as e:
                last_error = f"Request error: {e}"

            if attempt < self.max_retries - 1:
                backoff = self.backoff_base * (2**attempt)
                if last_status == 429:
                    backoff *= 2
                logger.warning(
                    f"Retry {attempt + 1}/{self.max_retries} for {url} "
                    f"({last_error}, backoff={backoff}s)"
                )
                time.sleep(backoff)

        return FetchResult.failed(url, last_error or "Unknown error", last_status or 0)

    def _do_fetch(self, url: str) -> FetchResult:
        request_headers = {
            "User-Agent": USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.5",
            **self.headers,
        }

        with httpx.Client(timeout=self.timeout, follow_redirects=True) as client:
            response = client.get(url, headers=request_headers)
            response.raise_for_status()

            content_type = response.headers.get("content-type", "")
            is_html = "text/html" in content_type or "application/xhtml" in content_type

            return FetchResult(
                url=str(response.url),
                status_code=response.status_code,
                content=response.text,
                content_type=content_type,
                is_html=is_html,
            )


def is_spa(html: str) -> bool:
    """
    Detect an unrendered Single Page Application shell.

    SPA if at least two hold: little visible text, many scripts, or a
    framework marker (Angular, Next, Nuxt, the portal's custom elements).
    """
    soup = BeautifulSoup(html, "lxml")
    script_count = len(soup.find_all("script"))

    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    text_content = soup.get_text(strip=True)

    indicators = [
        len(text_content) < 500,
        script_count > 5,
        "ng-version" in html or "ng-app" in html,
        "<app-root" in html,
        "__NEXT_DATA__" in html,
        "window.__NUXT__" in html,
    ]
    return sum(indicators) >= 2


def fetch_with_playwright(url: str, timeout_ms: int = 120000) -> FetchResult:
    """
    Render URL in headless Chromium and return the final DOM.

    Playwright is an optional dependency (the ``browser`` extra); without it
    this returns a failed result instead of raising.
    """
    try:
        from playwright.sync_api import sync_playwright
    except ImportError:
        return FetchResult.failed(url, "Playwright not available - install playwright package")

    try:
        with sync_playwright() as p:
            browser = p.chromium.launch(headless=True)
            try:
                context = browser.new_context(user_agent=USER_AGENT)
                page = context.new_page()
                response = page.goto(url, wait_until="networkidle", timeout=timeout_ms)
                content = page.content()
                status_code = response.status if response else 200
            finally:
                browser.close()

        return FetchResult(
            url=url,
            status_code=status_code,
            content=content,
            content_type="text/html",
            is_html=True,
        )
    except Exception as e:
        logger.error(f"Playwright fetch failed for {url}: {e}")
        return FetchResult.failed(url, f"Playwright error: {e}")


def fetch_page(url: str, mode: str = "auto", fetcher: HttpFetcher | None = None) -> FetchResult:
    """
    Fetch a page with the configured strategy.

    Args:
        url: URL to fetch
        mode: "http" (no browser), "browser" (always Playwright) or
            "auto" (HTTP first, Playwright when the response looks like an SPA shell)
        fetcher: Optional HttpFetcher to reuse

    Returns:
        FetchResult with content or error
    """
    if mode == "browser":
        return fetch_with_playwright(url)

    result = (fetcher or HttpFetcher()).fetch(url)
    if result.error or mode == "http":
        return result

    if result.is_html and is_spa(result.content):
        logger.info(f"SPA detected for {url}, retrying with Playwright")
        rendered = fetch_with_playwright(url)
        if not rendered.error:
            return rendered
        logger.warning(f"Playwright fallback failed for {url}, using HTTP result: {rendered.error}")

    return result
