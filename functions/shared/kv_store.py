"""
DynamoDB-backed key-value store with list-queryable metadata.

Each item is {pk, value, metadata?, expires_at?}. Values are opaque text
(the cache layer stores JSON documents). Metadata is a small map stored
beside the value so a list can assess entries without reading bodies.
Items past expires_at are treated as absent because DynamoDB TTL deletion
is lazy.
"""

import json
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, TypeVar

from botocore.exceptions import ClientError

from .aws_clients import get_dynamodb
from .constants import DEPENDENTS_TABLE, THROTTLING_ERRORS

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ListedKey:
    name: str
    metadata: Optional[dict] = None


@dataclass
class ListResult:
    keys: list[ListedKey] = field(default_factory=list)
    cursor: Optional[str] = None
    list_complete: bool = True


class KVStore:
    """Key-value namespace over a single DynamoDB table keyed by `pk`."""

    def __init__(self, table_name: Optional[str] = None, max_retries: int = 3):
        self.table_name = table_name or DEPENDENTS_TABLE
        self.max_retries = max_retries

    @property
    def table(self):
        return get_dynamodb().Table(self.table_name)

    def _with_throttle_retry(self, operation: str, func: Callable[[], T]) -> T:
        """Run a DynamoDB call, retrying throttling errors with backoff + jitter."""
        for attempt in range(self.max_retries):
            try:
                return func()
            except ClientError as e:
                error_code = e.response.get("Error", {}).get("Code", "")
                if error_code in THROTTLING_ERRORS and attempt < self.max_retries - 1:
                    base_delay = min(0.1 * (2 ** attempt), 2.0)
                    delay = base_delay + random.uniform(0, base_delay * 0.5)
                    logger.warning(
                        f"DynamoDB throttled on {operation}, "
                        f"retry {attempt + 1}/{self.max_retries} in {delay:.2f}s"
                    )
                    time.sleep(delay)
                    continue
                raise

        raise RuntimeError("Retry loop exited unexpectedly")

    @staticmethod
    def _is_expired(item: dict, now: Optional[float] = None) -> bool:
        expires_at = item.get("expires_at")
        if expires_at is None:
            return False
        return int(expires_at) <= int(now if now is not None else time.time())

    def get(self, key: str) -> Optional[str]:
        """Return the stored value text, or None when absent or expired."""
        response = self._with_throttle_retry(
            "get_item", lambda: self.table.get_item(Key={"pk": key})
        )
        item = response.get("Item")
        if item is None or self._is_expired(item):
            return None
        return item.get("value")

    def put(
        self,
        key: str,
        value: str,
        metadata: Optional[dict] = None,
        ttl_seconds: Optional[int] = None,
    ) -> None:
        """Overwrite the item for key."""
        item: dict[str, Any] = {"pk": key, "value": value}
        if metadata:
            item["metadata"] = metadata
        if ttl_seconds is not None:
            item["expires_at"] = int(time.time()) + ttl_seconds

        self._with_throttle_retry("put_item", lambda: self.table.put_item(Item=item))

    def put_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        """
        Write key only if no live item exists.

        An item whose expires_at has passed counts as absent, so a lease left
        behind by a crashed holder can be taken over once it expires.

        Returns:
            True if the write happened, False if a live item already exists.
        """
        now = int(time.time())
        try:
            self._with_throttle_retry(
                "put_item",
                lambda: self.table.put_item(
                    Item={"pk": key, "value": value, "expires_at": now + ttl_seconds},
                    ConditionExpression="attribute_not_exists(pk) OR expires_at <= :now",
                    ExpressionAttributeValues={":now": now},
                ),
            )
            return True
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                return False
            raise

    def exists(self, key: str) -> bool:
        response = self._with_throttle_retry(
            "get_item",
            lambda: self.table.get_item(
                Key={"pk": key}, ProjectionExpression="pk, expires_at"
            ),
        )
        item = response.get("Item")
        return item is not None and not self._is_expired(item)

    def delete(self, key: str) -> None:
        self._with_throttle_retry("delete_item", lambda: self.table.delete_item(Key={"pk": key}))

    def list(self, cursor: Optional[str] = None, limit: int = 1000) -> ListResult:
        """
        List one page of keys with their metadata, without reading values.

        Args:
            cursor: Opaque cursor returned by the previous page
            limit: Maximum items evaluated per page

        Returns:
            ListResult; list_complete is True on the last page
        """
        scan_kwargs: dict[str, Any] = {
            "ProjectionExpression": "pk, #metadata, expires_at",
            "ExpressionAttributeNames": {"#metadata": "metadata"},
            "Limit": limit,
        }
        if cursor:
            scan_kwargs["ExclusiveStartKey"] = json.loads(cursor)

        response = self._with_throttle_retry("scan", lambda: self.table.scan(**scan_kwargs))

        now = time.time()
        keys = [
            ListedKey(name=item["pk"], metadata=item.get("metadata"))
            for item in response.get("Items", [])
            if not self._is_expired(item, now)
        ]

        last_key = response.get("LastEvaluatedKey")
        if last_key:
            return ListResult(keys=keys, cursor=json.dumps(last_key), list_complete=False)

        return ListResult(keys=keys, cursor=None, list_complete=True)
