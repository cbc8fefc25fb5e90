"""
Redis connection for the document store: one pool per process plus a
retrying command helper used by every collection.
"""

import asyncio
import time
from typing import Any, Dict, Optional

import redis.asyncio as redis
import structlog

logger = structlog.get_logger(__name__)

RETRYABLE_ERRORS = (redis.ConnectionError, redis.TimeoutError)


class RedisPool:
    """Process-wide Redis client; analytics endpoints fail fast while it is down"""

    def __init__(self):
        self._pool: Optional[redis.ConnectionPool] = None
        self._client: Optional[redis.Redis] = None

    @property
    def initialized(self) -> bool:
        return self._client is not None

    async def initialize(self, redis_url: str, max_connections: int = 20):
        self._pool = redis.ConnectionPool.from_url(
            redis_url,
            max_connections=max_connections,
            retry_on_timeout=True,
            health_check_interval=30,
            decode_responses=True,
        )
        client = redis.Redis(connection_pool=self._pool)
        try:
            await client.ping()
        except Exception:
            await self._pool.disconnect()
            self._pool = None
            raise

        self._client = client
        logger.info("Redis document store connected", max_connections=max_connections)

    async def get_client(self) -> redis.Redis:
        if self._client is None:
            raise RuntimeError("Redis pool not initialized")
        return self._client

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        if self._pool is not None:
            await self._pool.disconnect()
            self._pool = None
            logger.info("Redis connection pool closed")

    async def health_check(self) -> Dict[str, Any]:
        """Ping with round-trip latency; never raises"""
        if self._client is None:
            return {"status": "unhealthy", "error": "not initialized"}

        start = time.perf_counter()
        try:
            await self._client.ping()
        except Exception as e:
            logger.error("Redis health check failed", error=str(e))
            return {"status": "unhealthy", "error": str(e)}
        return {"status": "healthy", "latency_ms": round((time.perf_counter() - start) * 1000, 2)}


redis_pool = RedisPool()


async def execute_redis_command(client: redis.Redis, command: str, *args, max_retries: int = 3, **kwargs):
    """Run one client command, retrying connection hiccups with exponential backoff"""
    for attempt in range(1, max_retries + 1):
        try:
            return await getattr(client, command)(*args, **kwargs)
        except RETRYABLE_ERRORS as e:
            if attempt == max_retries:
                logger.error("Redis command failed", command=command, attempts=attempt, error=str(e))
                raise
            logger.warning("Redis command retry", command=command, attempt=attempt)
            await asyncio.sleep(0.1 * 2 ** (attempt - 1))
