"""
Key-value store backends with per-key TTL expiry.

The whole pipeline coordinates through this contract:
- put(key, value, ttl_seconds)
- get(key) -> value or None
- delete(key)
- list(prefix, limit) -> keys in ascending order

No transactions and no multi-key atomicity. Two derived operations
(put_if_absent, get_many) have default implementations built from the
primitives; backends that can do better override them.

Backends:
- DynamoKeyValueStore: DynamoDB table with a TTL attribute
- MemoryKeyValueStore: process-local dict, for local runs and tests
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from fundtracker_common.constants import DEFAULT_LIST_LIMIT, DYNAMODB_BATCH_GET_LIMIT
from fundtracker_common.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class KeyValueStore(ABC):
    """Abstract key-value store with per-key TTL."""

    @abstractmethod
    def put(self, key: str, value: str, ttl_seconds: int) -> None:
        """Write a value that expires after ttl_seconds."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the live value for key, or None if absent or expired."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete key. Deleting a missing key is not an error."""

    @abstractmethod
    def list(self, prefix: str, limit: int = DEFAULT_LIST_LIMIT) -> list[str]:
        """Return up to limit live keys starting with prefix, in key order."""

    def put_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        """
        Create key only if no live value exists.

        The default is a plain check-then-write. Two callers interleaving
        between the get and the put can both see True.

        Returns:
            True if this call wrote the key, False if a live value existed
        """
        if self.get(key) is not None:
            return False
        self.put(key, value, ttl_seconds)
        return True

    def get_many(self, keys: Iterable[str]) -> dict[str, str]:
        """Return a mapping of key -> value for the keys that are live."""
        found = {}
        for key in keys:
            value = self.get(key)
            if value is not None:
                found[key] = value
        return found


class DynamoKeyValueStore(KeyValueStore):
    """
    DynamoDB-backed store.

    Table layout:
        namespace (S, partition key) - constant per deployment
        key       (S, sort key)      - the store key
        value     (S)
        expires_at (N)               - epoch seconds, registered as the table TTL attribute

    DynamoDB removes expired items lazily (often hours late), so every read
    treats an item whose expires_at is not in the future as absent.
    All keys live in one partition so prefix listing is a single
    begins_with query; acceptable for the small batches this pipeline runs.
    """

    def __init__(
        self,
        table_name: str,
        namespace: str = "fundtracker",
        region_name: str | None = None,
        clock: Clock = time.time,
    ):
        """
        Initialize the store.

        Args:
            table_name: DynamoDB table name
            namespace: Partition key value for all items of this store
            region_name: Optional AWS region name
            clock: Returns current epoch seconds (injectable for tests)
        """
        self.dynamodb = boto3.resource("dynamodb", region_name=region_name)
        self.table = self.dynamodb.Table(table_name)
        self.table_name = table_name
        self.namespace = namespace
        self.clock = clock

    def _item_key(self, key: str) -> dict[str, str]:
        return {"namespace": self.namespace, "key": key}

    def _is_live(self, item: dict) -> bool:
        expires_at = item.get("expires_at")
        return expires_at is None or float(expires_at) > self.clock()

    def _expires_at(self, ttl_seconds: int) -> int:
        return int(self.clock() + ttl_seconds)

    def put(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            self.table.put_item(
                Item={
                    **self._item_key(key),
                    "value": value,
                    "expires_at": self._expires_at(ttl_seconds),
                }
            )
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            logger.error(f"DynamoDB put failed for {key}: {error_code}")
            raise

    def get(self, key: str) -> str | None:
        try:
            response = self.table.get_item(Key=self._item_key(key), ConsistentRead=True)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            logger.error(f"DynamoDB get failed for {key}: {error_code}")
            raise

        item = response.get("Item")
        if not item or not self._is_live(item):
            return None
        return item.get("value")

    def delete(self, key: str) -> None:
        try:
            self.table.delete_item(Key=self._item_key(key))
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            logger.error(f"DynamoDB delete failed for {key}: {error_code}")
            raise

    def list(self, prefix: str, limit: int = DEFAULT_LIST_LIMIT) -> list[str]:
        keys: list[str] = []
        query_params = {
            "KeyConditionExpression": Key("namespace").eq(self.namespace)
            & Key("key").begins_with(prefix),
            "ConsistentRead": True,
        }

        # Expired items still count against Limit, so page until enough live keys
        while len(keys) < limit:
            query_params["Limit"] = limit - len(keys)
            try:
                response = self.table.query(**query_params)
            except ClientError as e:
                error_code = e.response.get("Error", {}).get("Code", "")
                logger.error(f"DynamoDB query failed for prefix {prefix}: {error_code}")
                raise

            keys.extend(item["key"] for item in response.get("Items", []) if self._is_live(item))

            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break
            query_params["ExclusiveStartKey"] = last_key

        return keys[:limit]

    def put_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Conditional create: succeeds when the key is missing or already expired."""
        now = int(self.clock())
        try:
            self.table.put_item(
                Item={
                    **self._item_key(key),
                    "value": value,
                    "expires_at": self._expires_at(ttl_seconds),
                },
                ConditionExpression=Attr("key").not_exists() | Attr("expires_at").lte(now),
            )
            return True
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code == "ConditionalCheckFailedException":
                return False
            logger.error(f"DynamoDB conditional put failed for {key}: {error_code}")
            raise

    def get_many(self, keys: Iterable[str]) -> dict[str, str]:
        unique_keys = list(dict.fromkeys(keys))
        found: dict[str, str] = {}

        for start in range(0, len(unique_keys), DYNAMODB_BATCH_GET_LIMIT):
            chunk = unique_keys[start : start + DYNAMODB_BATCH_GET_LIMIT]
            request = {
                self.table_name: {
                    "Keys": [self._item_key(key) for key in chunk],
                    "ConsistentRead": True,
                }
            }

            while request:
                try:
                    response = self.dynamodb.batch_get_item(RequestItems=request)
                except ClientError as e:
                    error_code = e.response.get("Error", {}).get("Code", "")
                    logger.error(f"DynamoDB batch get failed: {error_code}")
                    raise

                for item in response.get("Responses", {}).get(self.table_name, []):
                    if self._is_live(item):
                        found[item["key"]] = item.get("value")

                request = response.get("UnprocessedKeys") or None

        return found


class MemoryKeyValueStore(KeyValueStore):
    """
    In-process store with the same TTL semantics as the DynamoDB backend.

    Nothing is shared across Lambda invocations; use it for local runs
    and tests. put_if_absent is atomic within the process.
    """

    def __init__(self, clock: Clock = time.time) -> None:
        self.clock = clock
        self._items: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def _live_value(self, key: str) -> str | None:
        entry = self._items.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self.clock():
            del self._items[key]
            return None
        return value

    def put(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._items[key] = (value, self.clock() + ttl_seconds)

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._live_value(key)

    def delete(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def list(self, prefix: str, limit: int = DEFAULT_LIST_LIMIT) -> list[str]:
        with self._lock:
            candidates = sorted(k for k in self._items if k.startswith(prefix))
            return [k for k in candidates if self._live_value(k) is not None][:limit]

    def put_if_absent(self, key: str, value: str, ttl_seconds: int) -> bool:
        with self._lock:
            if self._live_value(key) is not None:
                return False
            self._items[key] = (value, self.clock() + ttl_seconds)
            return True


_MEMORY_STORE = MemoryKeyValueStore()


def build_store(settings, clock: Clock = time.time) -> KeyValueStore:
    """
    Build the store selected by configuration.

    Args:
        settings: PipelineSettings
        clock: Clock for the DynamoDB backend

    Raises:
        ConfigurationError: If the DynamoDB backend is selected without a table
    """
    if settings.kv_backend == "memory":
        logger.warning("Using process-local memory store; state is not shared between runs")
        return _MEMORY_STORE

    if not settings.kv_table_name:
        raise ConfigurationError("KV_TABLE_NAME environment variable required")

    return DynamoKeyValueStore(
        settings.kv_table_name,
        namespace=settings.kv_namespace,
        region_name=settings.region,
        clock=clock,
    )
