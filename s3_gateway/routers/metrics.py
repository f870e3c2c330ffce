"""Prometheus metrics endpoint router.

Exposes /metrics endpoint for Prometheus scraping.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from s3_gateway.config import Settings
from s3_gateway.dependencies import get_settings
from s3_gateway.metrics import set_service_info

router = APIRouter(tags=["metrics"])


@router.get(
    "/metrics",
    response_class=PlainTextResponse,
    summary="Prometheus metrics endpoint",
    description="Returns metrics in Prometheus text format for scraping.",
)
async def get_metrics(settings: Annotated[Settings, Depends(get_settings)]):
    """
    Expose Prometheus metrics.

    This endpoint is intentionally not authenticated to allow
    Prometheus scraping without credentials.
    """
    set_service_info(version=settings.api_version, bucket=settings.s3_bucket_name)

    return PlainTextResponse(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )
