"""
Summary generation for funding call detail pages.

Fetches the call page, reduces it to Markdown and asks a Bedrock model for
a short neutral summary, optionally followed by a fit score against the
configured project profile.
"""

import logging

from fundtracker_common.bedrock import BedrockClient
from fundtracker_common.constants import SUMMARY_SNIPPET_LENGTH
from fundtracker_common.exceptions import EnrichmentError
from fundtracker_common.scraper.extractor import extract_markdown
from fundtracker_common.scraper.fetcher import HttpFetcher, fetch_page

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You generate concise neutral summaries of EU funding call descriptions."

SUMMARY_INSTRUCTIONS = """Summarize the following EU funding call description in <= 100 words
in a single paragraph.
Include key points like what the funding is for, who can apply,
how much can be requested, and any specific requirements."""

FIT_SCORE_INSTRUCTIONS = """In a second paragraph give a score between 0-100 for how well the call
fits this project:

'''
{profile}
'''

The score should reflect how likely the project is to receive funding from this specific call,
not a general assessment of the funding programme.
State the score and explain your reasoning briefly without describing the project."""

STYLE_INSTRUCTIONS = """Use plain concise English, no intro labels, no marketing fluff,
form regular sentences.
You can use Markdown formatting for emphasis where needed, especially to highlight data points."""


def build_prompt(markdown: str, project_profile: str = "") -> str:
    """Build the user prompt for a page snippet."""
    sections = [SUMMARY_INSTRUCTIONS]
    if project_profile.strip():
        sections.append(FIT_SCORE_INSTRUCTIONS.format(profile=project_profile.strip()))
    sections.append(STYLE_INSTRUCTIONS)
    sections.append(f'"""{markdown[:SUMMARY_SNIPPET_LENGTH]}"""')
    return "\n\n".join(sections)


def summarize_link(
    url: str,
    *,
    bedrock_client: BedrockClient,
    model_id: str,
    project_profile: str = "",
    fetch_mode: str = "auto",
    fetcher: HttpFetcher | None = None,
) -> str | None:
    """
    Summarize the call page at url.

    Args:
        url: Call detail page
        bedrock_client: Client used for the model call
        model_id: Bedrock model id
        project_profile: Optional project description; enables the fit score
        fetch_mode: Page fetch strategy ("http", "browser" or "auto")
        fetcher: Optional HttpFetcher to reuse

    Returns:
        Summary text, or None if the page could not be fetched

    Raises:
        EnrichmentError: If the model returns no text
    """
    logger.info(f"Summarizing {url}")

    result = fetch_page(url, mode=fetch_mode, fetcher=fetcher)
    if result.error:
        logger.warning(f"Could not fetch {url}: {result.error}")
        return None

    markdown = extract_markdown(result.content)
    prompt = build_prompt(markdown, project_profile)

    response = bedrock_client.invoke_model(
        model_id=model_id,
        system_prompt=SYSTEM_PROMPT,
        content=[{"text": prompt}],
        max_tokens=600,
    )
    text = bedrock_client.extract_text_from_response(response).strip()
    if not text:
        raise EnrichmentError(f"No text in model response for {url}")

    logger.debug(f"Summary for {url}: {text[:200]}")
    return text
