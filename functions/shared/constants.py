"""
Shared constants for UsedBy.
"""

import os

# Storage
DEPENDENTS_TABLE = os.environ.get("DEPENDENTS_TABLE", "usedby-dependents-cache")
PIPELINE_QUEUE_URL = os.environ.get("PIPELINE_QUEUE_URL")

# Credentials
GITHUB_TOKEN_SECRET_ARN = os.environ.get("GITHUB_TOKEN_SECRET_ARN")

# Pipeline preset selection (free | paid)
PIPELINE_TIER = os.environ.get("PIPELINE_TIER", "paid")

# Per-run stage trace in the logs (diagnostics)
PIPELINE_TRACE = os.environ.get("PIPELINE_TRACE", "false").lower() == "true"

# Cache freshness
FRESH_TTL_SECONDS = 24 * 60 * 60
PARTIAL_FRESH_TTL_SECONDS = 12 * 60 * 60
EVICTION_TTL_SECONDS = 30 * 24 * 60 * 60
LOCK_TTL_SECONDS = 300

# Key namespaces
HISTORY_KEY_PREFIX = "history:"
LOCK_KEY_PREFIX = "lock:"
MAX_SNAPSHOTS = 365

# Scheduled sweep
MAX_REFRESHES_PER_RUN = 5

# External APIs
GITHUB_API = "https://api.github.com"
GITHUB_GRAPHQL_API = "https://api.github.com/graphql"
GITHUB_WEB = "https://github.com"
NPM_REGISTRY = "https://registry.npmjs.org"
PYPI_API = "https://pypi.org/pypi"
CRATES_API = "https://crates.io/api/v1/crates"
RUBYGEMS_API = "https://rubygems.org/api/v1/gems"
PACKAGIST_API = "https://repo.packagist.org/p2"
GO_PROXY = "https://proxy.golang.org"

USER_AGENT = os.environ.get("USER_AGENT", "usedby.dev")

# Timeouts
DEFAULT_TIMEOUT = 30.0
GITHUB_TIMEOUT = 45.0

# Upstream retries
MAX_RATE_LIMIT_RETRIES = 3
MAX_BACKOFF_MS = 60_000

# DynamoDB throttling error codes that should trigger retry
THROTTLING_ERRORS = (
    "ProvisionedThroughputExceededException",
    "RequestLimitExceeded",
    "ThrottlingException",
    "InternalServerError",
)
