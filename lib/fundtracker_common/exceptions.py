"""
Custom exceptions for the FundTracker pipeline.

Stage runners branch on these: a RateLimitError releases the lease
without spending an attempt, everything else goes through the retry path.
"""


class PipelineError(Exception):
    """Base exception for pipeline errors."""


class ConfigurationError(PipelineError, ValueError):
    """Required configuration is missing or invalid. Aborts the whole stage run."""


class ListingFetchError(PipelineError):
    """The listing page could not be fetched during discovery."""


class EnrichmentError(PipelineError):
    """A summary could not be produced for a subject."""


class DeliveryError(PipelineError):
    """Posting to the webhook failed."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class RateLimitError(DeliveryError):
    """The webhook answered with a rate limit. Expected to clear on the next poll."""

    def __init__(self, retry_after: str | None = None):
        self.retry_after = retry_after
        super().__init__(
            f"Discord rate limit: retry after {retry_after or 'unknown'}s", status_code=429
        )
