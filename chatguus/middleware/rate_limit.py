"""Rate limiting middleware"""

import time
from typing import Dict, List

import structlog
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from ..config import settings

logger = structlog.get_logger(__name__)

LIMITED_PATHS = ("/chat",)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-window limiter per client IP on the chat endpoint"""

    def __init__(self, app, max_requests: int = None, window_seconds: int = None):
        super().__init__(app)
        self.max_requests = max_requests or settings.rate_limit_requests
        self.window_seconds = window_seconds or settings.rate_limit_window
        self.requests: Dict[str, List[float]] = {}
        self._last_sweep = time.time()

    async def dispatch(self, request, call_next):
        # Only chat posts are limited; health, metrics and preflights pass through
        if request.method != "POST" or request.url.path not in LIMITED_PATHS:
            return await call_next(request)

        client_ip = self._get_client_ip(request)
        if self._is_rate_limited(client_ip):
            logger.warning("Rate limit exceeded", client_ip=client_ip, path=request.url.path)
            return JSONResponse(
                status_code=429,
                content={
                    "error": "Rate limit exceeded",
                    "status_code": 429,
                    "path": request.url.path
                },
                headers={"Retry-After": str(self.window_seconds)}
            )

        return await call_next(request)

    def _get_client_ip(self, request) -> str:
        """Extract client IP from request"""
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

        return request.client.host if request.client else "unknown"

    def _is_rate_limited(self, client_ip: str) -> bool:
        current_time = time.time()
        window_start = current_time - self.window_seconds

        if current_time - self._last_sweep >= self.window_seconds:
            self._sweep(window_start)
            self._last_sweep = current_time

        # Drop requests that fell out of the window
        recent = [t for t in self.requests.get(client_ip, []) if t > window_start]

        if len(recent) >= self.max_requests:
            self.requests[client_ip] = recent
            return True

        recent.append(current_time)
        self.requests[client_ip] = recent
        return False

    def _sweep(self, window_start: float):
        """Forget clients with no requests left in the window"""
        stale = [ip for ip, times in self.requests.items() if not times or times[-1] <= window_start]
        for ip in stale:
            del self.requests[ip]
        if stale:
            logger.debug("Rate limit entries expired", count=len(stale), tracked=len(self.requests))
