"""
Redis Storage Adapter

Networked storage adapter over redis.asyncio with connection pooling.

STAGE-STORE.2: Redis storage

- Every key is namespaced (``{REDIS_NAMESPACE}:{key}``) so several caches can
  share one database and ``clear()`` only touches its own keys
- Values are orjson-encoded bytes (``decode_responses=False``)
- TTL is applied with PX so fractional seconds survive
- ``clear()`` and ``iterate()`` walk the namespace with SCAN, never KEYS
- RedisError is wrapped into CacheConnectionError / CacheKeyError
"""

import time
from collections.abc import AsyncIterator
from typing import Any

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from readthrough.core.config.settings import Settings, get_settings
from readthrough.core.exceptions import CacheConnectionError, CacheKeyError
from readthrough.core.logging.logger import get_logger
from readthrough.infrastructure.storage.codec import decode, encode

logger = get_logger(__name__)


class RedisStorageAdapter:
    """
    Redis-backed storage adapter.

    Usage:
        adapter = RedisStorageAdapter(settings)
        await adapter.connect()
        await adapter.set("orders:open", {"value": [...]}, ttl=60)
    """

    def __init__(self, settings: Settings | None = None, client: redis.Redis | None = None):
        """
        Initialize the adapter.

        Args:
            settings: Settings with the REDIS_* section (defaults to the global settings)
            client: Pre-built client, mainly for tests; skips pool creation
        """
        self._settings = settings or get_settings()
        self._namespace = self._settings.redis.REDIS_NAMESPACE
        self._pool: ConnectionPool | None = None
        self._client: redis.Redis | None = client
        self._is_connected = client is not None

    # -------------------------------------------------------------------------
    # Connection lifecycle
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        """
        Establish connection to Redis with connection pooling.

        STAGE-STORE.2.1: Connection establishment

        Raises:
            CacheConnectionError: If connection fails
        """
        if self._is_connected and self._client:
            return

        redis_settings = self._settings.redis
        try:
            self._pool = ConnectionPool(
                host=redis_settings.REDIS_HOST,
                port=redis_settings.REDIS_PORT,
                db=redis_settings.REDIS_DB,
                password=redis_settings.REDIS_PASSWORD,
                max_connections=redis_settings.REDIS_MAX_CONNECTIONS,
                socket_connect_timeout=redis_settings.REDIS_SOCKET_CONNECT_TIMEOUT,
                socket_timeout=redis_settings.REDIS_SOCKET_TIMEOUT,
                retry_on_timeout=True,
                health_check_interval=redis_settings.REDIS_HEALTH_CHECK_INTERVAL,
                decode_responses=False,
            )
            self._client = redis.Redis(connection_pool=self._pool)
            await self._client.ping()
            self._is_connected = True

            logger.info(
                "Redis connected successfully",
                stage="STORE.2.1",
                host=redis_settings.REDIS_HOST,
                port=redis_settings.REDIS_PORT,
                namespace=self._namespace,
                max_connections=redis_settings.REDIS_MAX_CONNECTIONS,
            )
        except (ConnectionError, TimeoutError) as e:
            logger.error("Failed to connect to Redis", stage="STORE.2.1", error=str(e))
            raise CacheConnectionError(
                message=f"Failed to connect to Redis: {e}",
                details={"host": redis_settings.REDIS_HOST, "port": redis_settings.REDIS_PORT},
            ) from e

    async def disconnect(self) -> None:
        """
        Close the client and its pool.

        STAGE-STORE.2.2: Connection cleanup
        """
        if self._client:
            await self._client.aclose()
        if self._pool:
            await self._pool.disconnect()
        self._client = None
        self._pool = None
        self._is_connected = False
        logger.info("Redis disconnected", stage="STORE.2.2")

    def is_connected(self) -> bool:
        return self._is_connected

    async def _redis(self) -> redis.Redis:
        if not self._is_connected or self._client is None:
            await self.connect()
        return self._client

    def _namespaced(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    def _strip(self, raw_key: bytes | str) -> str:
        key = raw_key.decode() if isinstance(raw_key, bytes) else raw_key
        return key[len(self._namespace) + 1 :]

    # -------------------------------------------------------------------------
    # Storage contract
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        client = await self._redis()
        try:
            payload = await client.get(self._namespaced(key))
        except RedisError as e:
            logger.error("Redis GET failed", stage="STORE.GET", key=key, error=str(e))
            raise CacheKeyError.from_exception(e, message=f"Redis GET failed: {e}", key=key) from e
        return decode(payload)

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        payload = encode(value)
        client = await self._redis()
        px = int(ttl * 1000) if ttl else None
        try:
            await client.set(self._namespaced(key), payload, px=px)
        except RedisError as e:
            logger.error("Redis SET failed", stage="STORE.SET", key=key, error=str(e))
            raise CacheKeyError.from_exception(e, message=f"Redis SET failed: {e}", key=key) from e

    async def delete(self, key: str) -> bool:
        client = await self._redis()
        try:
            return bool(await client.delete(self._namespaced(key)))
        except RedisError as e:
            logger.error("Redis DELETE failed", stage="STORE.DEL", key=key, error=str(e))
            raise CacheKeyError.from_exception(e, message=f"Redis DELETE failed: {e}", key=key) from e

    async def has(self, key: str) -> bool:
        client = await self._redis()
        try:
            return bool(await client.exists(self._namespaced(key)))
        except RedisError as e:
            logger.error("Redis EXISTS failed", stage="STORE.EXISTS", key=key, error=str(e))
            raise CacheKeyError.from_exception(e, message=f"Redis EXISTS failed: {e}", key=key) from e

    async def clear(self) -> None:
        """Delete every key of this namespace, SCAN batch by batch."""
        client = await self._redis()
        batch_size = self._settings.redis.REDIS_SCAN_BATCH_SIZE
        deleted = 0
        try:
            batch = []
            async for raw_key in client.scan_iter(match=f"{self._namespace}:*", count=batch_size):
                batch.append(raw_key)
                if len(batch) >= batch_size:
                    deleted += await client.delete(*batch)
                    batch = []
            if batch:
                deleted += await client.delete(*batch)
        except RedisError as e:
            logger.error("Redis CLEAR failed", stage="STORE.CLEAR", namespace=self._namespace, error=str(e))
            raise CacheKeyError.from_exception(
                e, message=f"Redis CLEAR failed: {e}", namespace=self._namespace
            ) from e
        logger.info("Redis namespace cleared", stage="STORE.CLEAR", namespace=self._namespace, deleted=deleted)

    async def iterate(self) -> AsyncIterator[tuple[str, Any]]:
        """Yield (key, value) pairs of the namespace; keys that expire mid-scan are skipped."""
        client = await self._redis()
        batch_size = self._settings.redis.REDIS_SCAN_BATCH_SIZE
        try:
            async for raw_key in client.scan_iter(match=f"{self._namespace}:*", count=batch_size):
                payload = await client.get(raw_key)
                if payload is None:
                    continue
                yield self._strip(raw_key), decode(payload)
        except RedisError as e:
            logger.error("Redis SCAN failed", stage="STORE.SCAN", namespace=self._namespace, error=str(e))
            raise CacheKeyError.from_exception(
                e, message=f"Redis SCAN failed: {e}", namespace=self._namespace
            ) from e

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    async def health_check(self) -> dict[str, Any]:
        """
        Perform health check on the Redis connection.

        STAGE-STORE.HEALTH: Redis health check

        Returns:
            Dict with health status, ping latency and pool size
        """
        health = {
            "status": "healthy",
            "store": "redis",
            "connected": self._is_connected,
            "host": self._settings.redis.REDIS_HOST,
            "port": self._settings.redis.REDIS_PORT,
            "namespace": self._namespace,
            "pool_size": self._pool.max_connections if self._pool else 0,
            "ping_latency_ms": None,
        }
        if self._client is None:
            health["status"] = "unhealthy"
            health["error"] = "Client not initialized"
            return health
        try:
            start = time.perf_counter()
            await self._client.ping()
            health["ping_latency_ms"] = round((time.perf_counter() - start) * 1000, 2)
        except RedisError as e:
            health["status"] = "unhealthy"
            health["error"] = str(e)
            logger.warning("Redis health check failed", stage="STORE.HEALTH", error=str(e))
        return health
