"""
SQS queue for deferred pipeline runs.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from cache.types import to_iso
from shared.aws_clients import get_sqs
from shared.constants import PIPELINE_QUEUE_URL

logger = logging.getLogger(__name__)


def build_message(
    platform: str,
    package_name: str,
    now: Optional[datetime] = None,
    count_only: bool = False,
) -> dict:
    message = {
        "platform": platform,
        "packageName": package_name,
        "enqueuedAt": to_iso(now or datetime.now(timezone.utc)),
    }
    if count_only:
        message["countOnly"] = True
    return message


class PipelineQueue:
    """Producer side of the pipeline queue."""

    def __init__(self, queue_url: str):
        self.queue_url = queue_url

    def send(self, message: dict) -> None:
        get_sqs().send_message(QueueUrl=self.queue_url, MessageBody=json.dumps(message))
        logger.info(
            f"Enqueued pipeline run for {message.get('platform')}/{message.get('packageName')}",
            extra={"platform": message.get("platform"), "package": message.get("packageName")},
        )


def get_pipeline_queue() -> Optional[PipelineQueue]:
    """The configured queue, or None to run cache misses inline."""
    if not PIPELINE_QUEUE_URL:
        return None
    return PipelineQueue(PIPELINE_QUEUE_URL)
