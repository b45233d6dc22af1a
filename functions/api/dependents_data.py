"""
Dependents Data Endpoint - GET /{platform}/{name}/data.json

Returns the ranked dependents of a package. Cache misses are queued when a
pipeline queue is configured (202 until the run completes) and run inline
otherwise.

No authentication required - this is a public endpoint.
"""

import asyncio
import logging
from datetime import datetime, timezone

from api.documents import build_data_document
from api.routing import resolve_package
from cache.get_dependents import get_dependents
from ecosystems.package_exists import check_package_exists
from ecosystems.registry import register_default_strategies
from pipeline.limits import get_limits
from shared.background import BackgroundTasks
from shared.constants import PIPELINE_TIER, PIPELINE_TRACE
from shared.errors import APIError, InternalError, PackageNotFoundError, sanitize_error
from shared.http_client import close_http_client
from shared.kv_store import KVStore
from shared.logging_utils import PipelineTrace, configure_structured_logging, set_request_id
from shared.response_utils import NO_STORE, PUBLIC_CACHE_CONTROL, error_response, success_response
from workers.queue_dispatch import get_pipeline_queue

logger = logging.getLogger(__name__)

PENDING_RETRY_AFTER_SECONDS = 30


async def _load(strategy, package_name: str, now: datetime):
    background = BackgroundTasks()
    trace = PipelineTrace(enabled=PIPELINE_TRACE)
    trace.time_start("total")
    try:
        return await get_dependents(
            strategy,
            package_name,
            KVStore(),
            background,
            now=now,
            limits=get_limits(PIPELINE_TIER),
            trace=trace,
            existence_check=lambda: check_package_exists(strategy, package_name),
            queue=get_pipeline_queue(),
        )
    finally:
        await background.drain()
        await close_http_client()
        trace.time_end("total")
        trace.summary()


def handler(event, context):
    """
    Lambda handler for GET /{platform}/{name}/data.json.

    200: data document
    202: pipeline run queued, retry later
    404: unknown platform, invalid name, or package not in its registry
    500: pipeline failed on a cold cache
    """
    configure_structured_logging()
    set_request_id(event)
    register_default_strategies()

    try:
        strategy, package_name = resolve_package(event)
    except APIError as e:
        return error_response(e.status_code, e.code, e.message)

    now = datetime.now(timezone.utc)
    loop = asyncio.new_event_loop()
    try:
        result = loop.run_until_complete(_load(strategy, package_name, now))
    except Exception as e:
        logger.error(
            f"Data endpoint failed for {strategy.platform}/{package_name}: {sanitize_error(str(e))}",
            extra={"error_type": type(e).__name__},
        )
        error = InternalError()
        return error_response(error.status_code, error.code, error.message)
    finally:
        loop.close()

    if result.pending:
        return success_response(
            {"package": package_name, "platform": strategy.platform, "status": "pending"},
            status_code=202,
            headers={
                "Cache-Control": NO_STORE,
                "Retry-After": str(PENDING_RETRY_AFTER_SECONDS),
            },
        )

    if result.repos is None:
        error = PackageNotFoundError(package_name, strategy.platform)
        return error_response(error.status_code, error.code, error.message)

    return success_response(
        build_data_document(strategy, package_name, result, now),
        headers={"Cache-Control": PUBLIC_CACHE_CONTROL},
    )
