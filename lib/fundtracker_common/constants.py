"""
Constants used throughout the FundTracker pipeline.

Centralizes retention windows, batch sizes and retry budgets so the
queue layer and the stage Lambdas agree on them.
"""

# =============================================================================
# Retention (TTL) windows, in seconds
# =============================================================================

# Pending queue entries are dropped after 7 days
QUEUE_TTL_SECONDS = 7 * 24 * 60 * 60

# A processing lease self-expires after 15 minutes (Lambda max runtime)
LEASE_TTL_SECONDS = 15 * 60

# Dead-letter entries are kept 30 days for postmortem inspection
DLQ_TTL_SECONDS = 30 * 24 * 60 * 60

# Seen records expire after 90 days; the subject may then be queued again
SEEN_TTL_SECONDS = 90 * 24 * 60 * 60

# Generated summaries are cached for 2 weeks
SUMMARY_CACHE_TTL_SECONDS = 14 * 24 * 60 * 60


# =============================================================================
# Stage defaults
# =============================================================================

DEFAULT_SUMMARIZER_BATCH_SIZE = 5
DEFAULT_MAX_SUMMARIZE_ATTEMPTS = 3

DEFAULT_NOTIFIER_BATCH_SIZE = 10
DEFAULT_MAX_NOTIFY_ATTEMPTS = 5

# Pause between webhook posts to avoid bursting Discord rate limits
DEFAULT_NOTIFY_DELAY_MS = 200

# Default page size for listPending when the caller gives none
DEFAULT_LIST_LIMIT = 50


# =============================================================================
# Storage
# =============================================================================

# DynamoDB BatchGetItem accepts at most 100 keys per request
DYNAMODB_BATCH_GET_LIMIT = 100

DEFAULT_KV_NAMESPACE = "fundtracker"

# Error strings persisted on queue and dead-letter entries are truncated
MAX_ERROR_LENGTH = 500


# =============================================================================
# Discovery / enrichment
# =============================================================================

DEFAULT_FEED_URL = (
    "https://ec.europa.eu/info/funding-tenders/opportunities/portal/screen/opportunities/"
    "calls-for-proposals?isExactMatch=true&status=31094501,31094502&order=DESC"
    "&pageNumber=1&pageSize=9999&sortBy=startDate"
)

DEFAULT_SUMMARY_MODEL = "us.amazon.nova-lite-v1:0"

# Characters of page Markdown sent to the model
SUMMARY_SNIPPET_LENGTH = 5000
