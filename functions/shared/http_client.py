"""
Shared HTTP Client with Connection Pooling.

Provides a reusable httpx.AsyncClient shared by the pipeline stages and
registry lookups so connections are reused within an invocation.

Testing:
    Set USE_CONNECTION_POOLING=false in test fixtures to disable connection
    pooling. A new client is then created per call, which lets tests patch
    get_http_client() with a client backed by httpx.MockTransport.
"""

import asyncio
import logging
import os
from typing import Optional

import httpx

from .constants import DEFAULT_TIMEOUT, USER_AGENT

logger = logging.getLogger(__name__)

_client: Optional[httpx.AsyncClient] = None
_client_loop_id: Optional[int] = None

HTTP_TIMEOUT = httpx.Timeout(DEFAULT_TIMEOUT, connect=10.0)

DEFAULT_LIMITS = httpx.Limits(
    max_connections=100,
    max_keepalive_connections=20,
    keepalive_expiry=30.0,
)


def _use_connection_pooling() -> bool:
    """Check if connection pooling is enabled (runtime check)."""
    return os.environ.get("USE_CONNECTION_POOLING", "true").lower() == "true"


def _new_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=HTTP_TIMEOUT,
        limits=DEFAULT_LIMITS,
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
    )


def get_http_client() -> httpx.AsyncClient:
    """
    Get an HTTP client for making requests.

    The shared client is recreated if the event loop changes (Lambda creates
    new loops between invocations while reusing the execution context).
    """
    global _client, _client_loop_id

    if not _use_connection_pooling():
        return _new_client()

    try:
        current_loop_id = id(asyncio.get_running_loop())
    except RuntimeError:
        current_loop_id = None

    if _client is not None and _client_loop_id != current_loop_id:
        logger.debug("Event loop changed, recreating HTTP client")
        _client = None

    if _client is None:
        logger.debug("Initializing shared HTTP client with connection pooling")
        _client = _new_client()
        _client_loop_id = current_loop_id

    return _client


async def close_http_client() -> None:
    """Close the shared HTTP client."""
    global _client

    if _client is not None:
        await _client.aclose()
        _client = None
        logger.debug("Closed shared HTTP client")
