"""
Outbound HTTP for webhook integrations (Slack).

One ``httpx.AsyncClient`` is shared for the life of the process so webhook
calls reuse connections; it is created lazily when the lifespan hook did
not run (tests, scripts).
"""

from typing import Any, Dict, Optional

import httpx
import structlog

logger = structlog.get_logger(__name__)

USER_AGENT = "ChatGuusPT/1.0"


class HTTPClientPool:
    """Singleton holder of the shared webhook client"""

    _instance = None
    _client: Optional[httpx.AsyncClient] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def initialize(self, timeout: float = 10.0):
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            headers={"User-Agent": USER_AGENT},
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
            timeout=httpx.Timeout(timeout, connect=5.0),
        )
        logger.info("Webhook HTTP client ready", timeout=timeout)

    async def get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            await self.initialize()
        return self._client

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None


http_pool = HTTPClientPool()


async def post_json(url: str, payload: Dict[str, Any], timeout: Optional[float] = None) -> httpx.Response:
    """POST a JSON body; non-2xx answers raise ``httpx.HTTPStatusError``"""
    client = await http_pool.get_client()
    request_timeout = timeout if timeout else client.timeout

    try:
        response = await client.post(url, json=payload, timeout=request_timeout)
        response.raise_for_status()
    except httpx.HTTPError as e:
        # Webhook URLs carry secrets; log the host only
        logger.error("Webhook request failed", host=httpx.URL(url).host, error=str(e))
        raise
    return response
