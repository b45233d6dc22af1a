"""
Error types for upstream calls and API responses.
"""

import json
import re
from typing import Mapping, Optional

import httpx


class UpstreamError(Exception):
    """Failure response from GitHub (REST or GraphQL)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        headers: Optional[Mapping[str, str]] = None,
    ):
        self.status_code = status_code
        # httpx.Headers gives case-insensitive lookups
        self.headers = httpx.Headers(headers or {})
        super().__init__(message)

    @classmethod
    def from_response(cls, response: httpx.Response, message: Optional[str] = None) -> "UpstreamError":
        text = message or f"{response.request.method} {response.request.url} -> {response.status_code}"
        return cls(text, status_code=response.status_code, headers=response.headers)


class RateLimitError(UpstreamError):
    """Primary or secondary rate limit, or a GraphQL RATE_LIMITED error."""


class NotFoundError(UpstreamError):
    """A specific resource (repository) no longer exists or is private."""


class GraphQLError(UpstreamError):
    """Top-level GraphQL errors that are not rate limiting."""


class APIError(Exception):
    """Base class for API errors."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 400,
        details: Optional[dict] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> dict:
        """Convert to API Gateway response format."""
        body = {
            "error": {
                "code": self.code,
                "message": self.message,
            }
        }
        if self.details:
            body["error"]["details"] = self.details

        return {
            "statusCode": self.status_code,
            "headers": {"Content-Type": "application/json", "Cache-Control": "no-store"},
            "body": json.dumps(body),
        }


class PackageNotFoundError(APIError):
    """Raised when a package is not found."""

    def __init__(self, package: str, platform: str):
        super().__init__(
            code="package_not_found",
            message=f"Package '{package}' not found in {platform}",
            status_code=404,
        )


class InvalidPlatformError(APIError):
    """Raised when an unsupported platform is requested."""

    def __init__(self, platform: str, supported: Optional[list[str]] = None):
        supported = supported or []
        super().__init__(
            code="invalid_platform",
            message=f"Unsupported platform: {platform}. Supported: {', '.join(supported)}",
            status_code=404,
        )


class InternalError(APIError):
    """Raised for internal server errors."""

    def __init__(self, message: str = "Something went wrong"):
        super().__init__(
            code="internal_error",
            message=message,
            status_code=500,
        )


# Patterns to redact from error messages (security)
_SENSITIVE_PATTERNS = [
    (re.compile(r"ghp_[a-zA-Z0-9]{36}", re.IGNORECASE), "ghp_***"),
    (re.compile(r"gho_[a-zA-Z0-9]{36}", re.IGNORECASE), "gho_***"),
    (re.compile(r"github_pat_[a-zA-Z0-9_]{22,}", re.IGNORECASE), "github_pat_***"),
    (re.compile(r"Bearer\s+[a-zA-Z0-9._-]+", re.IGNORECASE), "Bearer ***"),
    (re.compile(r"arn:aws:[^:]*:[^:]*:\d{12}:[^\s]*", re.IGNORECASE), "arn:aws:***:***:***:***"),
]


def sanitize_error(error_str: str) -> str:
    """
    Sanitize error strings to remove sensitive information.

    Redacts GitHub tokens, bearer headers and ARNs that might leak through
    exception messages, and truncates very long messages.
    """
    result = error_str
    for pattern, replacement in _SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)

    max_length = 500
    if len(result) > max_length:
        result = result[:max_length] + "...[truncated]"

    return result
