"""
Pipeline Worker - consumes queued pipeline runs.

Triggered by SQS messages with format:
{
    "platform": "npm",
    "packageName": "react",
    "enqueuedAt": "2026-01-01T00:00:00.000Z"
}

Runs the full pipeline (or the count-only lookup for "countOnly" messages
from stale badge entries), writes the cache entry and a history snapshot, and
always releases the refresh lease taken by the enqueuer. Failed records are
returned in batchItemFailures so SQS redelivers only those.
"""

import asyncio
import json
import logging
import time
from datetime import datetime, timezone
from typing import Optional

from cache.cache import write_cache
from cache.get_dependents import release_lock
from cache.history import append_snapshot
from cache.keys import build_cache_key
from ecosystems.registry import get_strategy, register_default_strategies
from pipeline.limits import get_limits
from pipeline.orchestrator import refresh_count_only, refresh_dependents
from shared.constants import PIPELINE_TIER
from shared.errors import sanitize_error
from shared.http_client import close_http_client
from shared.kv_store import KVStore
from shared.logging_utils import configure_structured_logging, request_id_var
from shared.metrics import emit_batch_metrics

logger = logging.getLogger(__name__)


class InvalidMessageError(ValueError):
    """Message body is not a pipeline request; retrying cannot help."""


def parse_message(body: str) -> dict:
    try:
        message = json.loads(body)
    except (json.JSONDecodeError, TypeError) as e:
        raise InvalidMessageError(f"Body is not JSON: {e}") from e

    if not isinstance(message, dict):
        raise InvalidMessageError("Body is not an object")
    if not isinstance(message.get("platform"), str) or not isinstance(
        message.get("packageName"), str
    ):
        raise InvalidMessageError("Missing platform or packageName")
    return message


async def handle_pipeline_message(
    message: dict,
    store: KVStore,
    now: Optional[datetime] = None,
) -> bool:
    """
    Run one queued pipeline request.

    Returns:
        True if the pipeline ran, False if the message was dropped
        (unknown platform)

    Raises:
        Any pipeline or store error, after the lease is released
    """
    platform = message["platform"]
    package_name = message["packageName"]

    strategy = get_strategy(platform)
    if strategy is None:
        logger.warning(f"Dropping message for unknown platform: {platform}")
        return False

    now = now or datetime.now(timezone.utc)
    cache_key = build_cache_key(platform, package_name)
    try:
        if message.get("countOnly"):
            entry = await refresh_count_only(strategy, package_name, now)
        else:
            entry = await refresh_dependents(strategy, package_name, now, get_limits(PIPELINE_TIER))
        write_cache(store, cache_key, entry)
        append_snapshot(store, cache_key, entry, now)
        logger.info(
            f"Pipeline complete for {cache_key}",
            extra={"repos": len(entry.repos), "partial": entry.partial},
        )
    finally:
        release_lock(store, cache_key)

    return True


async def process_batch(records: list, store: Optional[KVStore] = None) -> list[dict]:
    """
    Process SQS records in parallel.

    Returns:
        batchItemFailures entries for records that should be redelivered
    """
    store = store or KVStore()
    tasks = []
    message_ids = []

    for record in records:
        try:
            message = parse_message(record.get("body"))
        except InvalidMessageError as e:
            # Redelivery would fail the same way
            logger.error(f"Dropping malformed message {record.get('messageId')}: {e}")
            continue
        message_ids.append(record.get("messageId"))
        tasks.append(handle_pipeline_message(message, store))

    results = await asyncio.gather(*tasks, return_exceptions=True)

    failures = []
    for message_id, result in zip(message_ids, results):
        if isinstance(result, Exception):
            logger.error(
                f"Pipeline run failed for message {message_id}: {sanitize_error(str(result))}",
                extra={"error_type": type(result).__name__},
            )
            failures.append({"itemIdentifier": message_id})

    emit_batch_metrics([
        {"metric_name": "QueueMessagesProcessed", "value": len(results) - len(failures)},
        {"metric_name": "QueueMessagesFailed", "value": len(failures)},
    ])
    return failures


def handler(event, context):
    """
    Lambda handler for the pipeline queue (SQS event source with
    ReportBatchItemFailures enabled).
    """
    configure_structured_logging()
    register_default_strategies()

    records = event.get("Records", [])
    request_id_var.set(getattr(context, "aws_request_id", "") or "")
    logger.info(f"Processing {len(records)} messages")

    start_time = time.time()
    loop = asyncio.new_event_loop()
    try:
        failures = loop.run_until_complete(_run(records))
    finally:
        loop.close()

    logger.info(
        f"Completed {len(records)} messages with {len(failures)} failures",
        extra={"duration_ms": round((time.time() - start_time) * 1000)},
    )
    return {"batchItemFailures": failures}


async def _run(records: list) -> list[dict]:
    try:
        return await process_batch(records)
    finally:
        await close_http_client()
