"""
Shield Endpoint - GET /{platform}/{name}/shield.json

shields.io endpoint document with the package's dependent count. Once the
package resolves it always answers 200 so the badge renders; failures
produce the error variant. Unknown platforms and invalid names are 404.

No authentication required - this is a public endpoint.
"""

import asyncio
import logging

from api.documents import build_shield_error, build_shield_success, build_shield_unavailable
from api.routing import resolve_package
from cache.get_dependents import get_dependent_count_for_badge
from ecosystems.registry import register_default_strategies
from pipeline.limits import get_limits
from shared.background import BackgroundTasks
from shared.constants import PIPELINE_TIER
from shared.errors import APIError, sanitize_error
from shared.http_client import close_http_client
from shared.kv_store import KVStore
from shared.logging_utils import configure_structured_logging, set_request_id
from shared.response_utils import NO_STORE, PUBLIC_CACHE_CONTROL, error_response, success_response
from workers.queue_dispatch import get_pipeline_queue

logger = logging.getLogger(__name__)


async def _load_count(strategy, package_name: str):
    background = BackgroundTasks()
    try:
        return await get_dependent_count_for_badge(
            strategy,
            package_name,
            KVStore(),
            background,
            limits=get_limits(PIPELINE_TIER),
            queue=get_pipeline_queue(),
        )
    finally:
        await background.drain()
        await close_http_client()


def handler(event, context):
    """Lambda handler for GET /{platform}/{name}/shield.json."""
    configure_structured_logging()
    set_request_id(event)
    register_default_strategies()

    try:
        strategy, package_name = resolve_package(event)
    except APIError as e:
        return error_response(e.status_code, e.code, e.message)

    loop = asyncio.new_event_loop()
    try:
        result = loop.run_until_complete(_load_count(strategy, package_name))
    except Exception as e:
        logger.error(
            f"Shield endpoint failed for {strategy.platform}/{package_name}: {sanitize_error(str(e))}",
            extra={"error_type": type(e).__name__},
        )
        return success_response(build_shield_error(), headers={"Cache-Control": NO_STORE})
    finally:
        loop.close()

    if result.count is None:
        body = build_shield_unavailable()
    else:
        body = build_shield_success(result.count)

    return success_response(body, headers={"Cache-Control": PUBLIC_CACHE_CONTROL})
