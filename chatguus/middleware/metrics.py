"""Metrics middleware for monitoring and observability"""

import re
import time

from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_COUNT = Counter(
    'chatguus_http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code']
)

REQUEST_DURATION = Histogram(
    'chatguus_http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint']
)

_UUID = re.compile(r'/[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}')
_NUMERIC = re.compile(r'/\d+')
_TENANT = re.compile(r'^/tenants/(?!export$|import$)[^/]+')


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect HTTP metrics"""

    async def dispatch(self, request, call_next):
        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time

        endpoint = normalize_endpoint(request.url.path)

        REQUEST_COUNT.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code
        ).inc()

        REQUEST_DURATION.labels(
            method=request.method,
            endpoint=endpoint
        ).observe(duration)

        return response


def normalize_endpoint(path: str) -> str:
    """Collapse ids in a path so label cardinality stays bounded"""
    path = _UUID.sub('/{uuid}', path)
    path = _NUMERIC.sub('/{id}', path)
    return _TENANT.sub('/tenants/{tenant_id}', path)
