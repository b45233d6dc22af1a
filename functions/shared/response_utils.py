"""
Response utilities for Lambda handlers.

Provides consistent response formatting for success and error responses.
The dependents endpoints are public, so CORS is open to any origin.
"""

import json
from decimal import Decimal
from typing import Any, Dict, Optional

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, HEAD, OPTIONS",
}

PUBLIC_CACHE_CONTROL = "public, max-age=86400, s-maxage=86400"
NO_STORE = "no-store"


def decimal_default(obj: Any) -> Any:
    """JSON serializer for Decimal types from DynamoDB."""
    if isinstance(obj, Decimal):
        if obj % 1 == 0:
            return int(obj)
        return float(obj)
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def success_response(
    data: Any,
    status_code: int = 200,
    headers: Optional[Dict[str, str]] = None,
) -> dict:
    """
    Create a success response.

    Args:
        data: Response body data
        status_code: HTTP status code (default 200)
        headers: Additional response headers

    Returns:
        Lambda response dict
    """
    response_headers = {"Content-Type": "application/json", **CORS_HEADERS}
    if headers:
        response_headers.update(headers)

    return {
        "statusCode": status_code,
        "headers": response_headers,
        "body": json.dumps(data, default=decimal_default),
    }


def error_response(
    status_code: int,
    code: str,
    message: str,
    headers: Optional[Dict[str, str]] = None,
) -> dict:
    """
    Create an error response. Errors are never cached.

    Args:
        status_code: HTTP status code
        code: Machine-readable error code (snake_case)
        message: Human-readable error message
        headers: Additional response headers
    """
    response_headers = {
        "Content-Type": "application/json",
        "Cache-Control": NO_STORE,
        **CORS_HEADERS,
    }
    if headers:
        response_headers.update(headers)

    body = {"error": {"code": code, "message": message}}

    return {
        "statusCode": status_code,
        "headers": response_headers,
        "body": json.dumps(body),
    }
