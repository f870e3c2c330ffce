"""Prometheus metrics middleware for HTTP request instrumentation.

Collects HTTP request metrics:
- Request count by method, endpoint, status code
- Request duration histogram
- In-flight requests gauge
"""

import time
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from s3_gateway.metrics import (
    REQUEST_COUNT,
    REQUEST_DURATION,
    REQUEST_IN_FLIGHT,
)


def normalize_path(path: str) -> str:
    """
    Normalize path for metrics labels to avoid high cardinality.

    Object keys after a ``file`` segment collapse into one placeholder.

    Examples:
        /api/list -> /api/list
        /api/file/videos/2024/clip.mp4 -> /api/file/{key}
    """
    parts = path.strip("/").split("/")
    normalized = []

    for i, part in enumerate(parts):
        normalized.append(part)
        if part == "file" and i + 1 < len(parts):
            normalized.append("{key}")
            break

    return "/" + "/".join(normalized) if any(normalized) else "/"


class MetricsMiddleware(BaseHTTPMiddleware):
    """
    Middleware that collects Prometheus metrics for HTTP requests.

    Metrics collected:
    - s3_gateway_requests_total: Counter by method, endpoint, status_code
    - s3_gateway_request_duration_seconds: Histogram by method, endpoint
    - s3_gateway_requests_in_flight: Gauge by method

    For streamed downloads the duration covers the time to the first
    response byte, not the whole transfer.
    """

    # Endpoints to skip (internal/debug endpoints)
    SKIP_PATHS = {"/metrics", "/docs", "/redoc", "/openapi.json"}

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        method = request.method

        if request.url.path in self.SKIP_PATHS:
            return await call_next(request)

        endpoint = normalize_path(request.url.path)

        REQUEST_IN_FLIGHT.labels(method=method).inc()
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            status_code = str(response.status_code)
        except Exception:
            status_code = "500"
            raise
        finally:
            duration = time.perf_counter() - start_time
            REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(duration)

            REQUEST_COUNT.labels(
                method=method,
                endpoint=endpoint,
                status_code=status_code
            ).inc()

            REQUEST_IN_FLIGHT.labels(method=method).dec()

        return response
