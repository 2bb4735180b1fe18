"""
Redis-backed key-value store for analysis records.

Records live under ``resume:<id>`` as JSON strings. The ``resume:*``
pattern is what listing enumerates.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import redis.asyncio as redis
from redis.exceptions import RedisError

from .config import AnalyzerConfig

logger = logging.getLogger(__name__)

RECORD_KEY_PREFIX = "resume:"


def record_key(record_id: str, prefix: str = RECORD_KEY_PREFIX) -> str:
    """Storage key for a record id."""
    return f"{prefix}{record_id}"


@dataclass(frozen=True)
class RecordItem:
    """One listed entry. ``value`` is None when values were not requested."""

    key: str
    value: Optional[str] = None


class RecordStore(Protocol):
    """String-keyed document store with prefix-wildcard listing."""

    async def set(self, key: str, value: str) -> bool:
        ...

    async def get(self, key: str) -> Optional[str]:
        ...

    async def list(self, pattern: str, return_values: bool = False) -> list[RecordItem]:
        ...

    async def healthcheck(self) -> bool:
        ...

    async def close(self):
        ...


class RedisRecordStore:
    """
    Record store on a Redis server.

    Writes are plain SET (last write wins, no expiry). Listing uses SCAN
    so large keyspaces are not blocked by KEYS.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        client: Optional[redis.Redis] = None,
    ):
        """
        Initialize the Redis record store.

        Args:
            host: Redis server host
            port: Redis server port
            db: Redis database number
            password: Redis password (if required)
            client: Pre-built client, used instead of connecting with the above
        """
        self.host = host
        self.port = port
        self._redis = client or redis.Redis(
            host=host,
            port=port,
            db=db,
            password=password,
            decode_responses=True,  # Auto-decode bytes to strings
            socket_timeout=5,
            socket_connect_timeout=5,
        )

    @classmethod
    def from_config(cls, config: AnalyzerConfig) -> "RedisRecordStore":
        return cls(
            host=config.redis_host,
            port=config.redis_port,
            db=config.redis_db,
            password=config.redis_password,
        )

    async def set(self, key: str, value: str) -> bool:
        """
        Store ``value`` under ``key``, overwriting any previous value.

        Returns:
            True if the write was acknowledged, False otherwise
        """
        try:
            result = await self._redis.set(key, value)
        except RedisError as e:
            logger.error(f"Failed to write record {key}: {e}")
            return False

        logger.debug(f"Record written: {key}")
        return bool(result)

    async def get(self, key: str) -> Optional[str]:
        """
        Load the raw value stored under ``key``.

        Returns:
            Stored string if present, None otherwise
        """
        try:
            value = await self._redis.get(key)
        except RedisError as e:
            logger.error(f"Failed to read record {key}: {e}")
            return None

        if value is None:
            logger.debug(f"Record miss: {key}")
        return value

    async def list(self, pattern: str, return_values: bool = False) -> list[RecordItem]:
        """
        List entries whose key matches a glob ``pattern`` (e.g. "resume:*").

        Args:
            pattern: Redis MATCH pattern
            return_values: Also fetch each value

        Returns:
            Matching entries in the order Redis returns them
        """
        try:
            keys = [key async for key in self._redis.scan_iter(match=pattern, count=100)]
            if not return_values or not keys:
                return [RecordItem(key=key) for key in keys]

            values = await self._redis.mget(keys)
        except RedisError as e:
            logger.error(f"Failed to list records matching {pattern}: {e}")
            return []

        # A key deleted between SCAN and MGET comes back as None
        return [
            RecordItem(key=key, value=value)
            for key, value in zip(keys, values)
            if value is not None
        ]

    async def healthcheck(self) -> bool:
        """
        Check if Redis is healthy.

        Returns:
            True if Redis is responding, False otherwise
        """
        try:
            return bool(await self._redis.ping())
        except RedisError:
            return False

    async def close(self):
        """Close Redis connection."""
        try:
            await self._redis.aclose()
            logger.info("Redis connection closed")
        except RedisError as e:
            logger.error(f"Error closing Redis connection: {e}")
