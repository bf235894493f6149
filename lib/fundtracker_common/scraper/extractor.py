"""
HTML to Markdown reduction of call detail pages.

The summarizer only needs the readable body of a page, so navigation,
scripts and portal chrome are dropped before conversion.
"""

from bs4 import BeautifulSoup
from bs4.element import Tag
from markdownify import markdownify as md

REMOVE_TAGS = [
    "script",
    "style",
    "noscript",
    "template",
    "iframe",
    "nav",
    "footer",
    "header",
    "aside",
    "form",
    "button",
    "input",
    "select",
    "textarea",
    "svg",
]

REMOVE_SELECTORS = [
    '[role="navigation"]',
    '[role="banner"]',
    '[role="contentinfo"]',
    '[role="search"]',
    ".sidebar",
    ".navbar",
    ".menu",
    ".cookie-banner",
    ".cookie-consent",
    ".social-share",
    "eui-toolbar",
    "sedia-footer",
]

MIN_CONTENT_CHARS = 50


def sanitize_html(html: str) -> BeautifulSoup:
    """Parse HTML and remove non-content elements."""
    soup = BeautifulSoup(html, "lxml")

    for tag in REMOVE_TAGS:
        for element in soup.find_all(tag):
            element.decompose()

    for selector in REMOVE_SELECTORS:
        for element in soup.select(selector):
            element.decompose()

    return soup


def find_main_content(soup: BeautifulSoup) -> Tag | BeautifulSoup:
    """
    Find the main content area of the page.

    Priority: main > article > [role=main] > .content / #content > body
    """
    candidates = [
        soup.find("main"),
        soup.find("article"),
        soup.find(attrs={"role": "main"}),
        soup.find(class_="content"),
        soup.find(id="content"),
    ]
    for candidate in candidates:
        if candidate and len(candidate.get_text(strip=True)) > MIN_CONTENT_CHARS:
            return candidate

    if soup.body:
        return soup.body

    return soup


def html_to_markdown(html: str) -> str:
    """
    Convert HTML to Markdown, collapsing runs of blank lines.

    Links are kept; call pages point at their topic conditions and
    submission documents.
    """
    markdown = md(
        str(html),
        heading_style="ATX",
        bullets="-",
        escape_asterisks=False,
        escape_underscores=False,
    )

    cleaned_lines = []
    prev_blank = False
    for line in markdown.split("\n"):
        is_blank = not line.strip()
        if is_blank and prev_blank:
            continue
        cleaned_lines.append(line.rstrip())
        prev_blank = is_blank

    return "\n".join(cleaned_lines).strip()


def extract_markdown(html: str) -> str:
    """Sanitize, locate the main content and convert it to Markdown."""
    soup = sanitize_html(html)
    return html_to_markdown(str(find_main_content(soup)))
