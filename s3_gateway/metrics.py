"""Prometheus metrics definitions for the S3 File Gateway.

This module defines all Prometheus metrics used for observability:
- HTTP request metrics (count, duration, in-flight)
- Backend store operation metrics (count by outcome, duration)
- Transfer metrics (bytes uploaded)
- Process metrics (CPU, memory, file descriptors)
"""

import time
from prometheus_client import Counter, Histogram, Gauge, Info

# process_* metrics come from the collector the default registry installs

# =============================================================================
# Service Health Metrics
# =============================================================================

SERVICE_UP = Gauge(
    "s3_gateway_up",
    "Whether the gateway is up (1) or down (0)"
)

SERVICE_START_TIME = Gauge(
    "s3_gateway_start_time_seconds",
    "Unix timestamp when the service started"
)

_start_time = time.time()
SERVICE_START_TIME.set(_start_time)
SERVICE_UP.set(1)

# =============================================================================
# HTTP Request Metrics
# =============================================================================

REQUEST_COUNT = Counter(
    "s3_gateway_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status_code"]
)

REQUEST_DURATION = Histogram(
    "s3_gateway_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

REQUEST_IN_FLIGHT = Gauge(
    "s3_gateway_requests_in_flight",
    "Number of HTTP requests currently being processed",
    ["method"]
)

# =============================================================================
# Error Metrics
# =============================================================================

ERROR_COUNT = Counter(
    "s3_gateway_errors_total",
    "Total number of errors by type",
    ["type", "endpoint"]
)

# =============================================================================
# Backend Store Metrics
# =============================================================================

BACKEND_OPERATIONS_TOTAL = Counter(
    "s3_gateway_backend_operations_total",
    "Total number of backend store operations",
    ["operation", "status"]  # status: success, failed, error
)

BACKEND_OPERATION_DURATION = Histogram(
    "s3_gateway_backend_operation_duration_seconds",
    "Time until the backend store answered (headers only for streams)",
    ["operation"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 120.0]
)

UPLOAD_BYTES_TOTAL = Counter(
    "s3_gateway_upload_bytes_total",
    "Total bytes accepted by the backend store (declared Content-Length)"
)

# =============================================================================
# Service Info
# =============================================================================

SERVICE_INFO = Info(
    "s3_gateway_service",
    "Gateway service information"
)


def set_service_info(version: str, bucket: str) -> None:
    """Set service info labels."""
    SERVICE_INFO.info({
        "version": version,
        "bucket": bucket,
    })
