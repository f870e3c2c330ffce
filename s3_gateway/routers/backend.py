"""Backend management endpoints: health check."""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends

from s3_gateway.config import Settings
from s3_gateway.dependencies import get_settings
from s3_gateway.models.responses import HealthResponse

logger = structlog.get_logger()
router = APIRouter(tags=["backend"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Report that the gateway is running and which backend it fronts. No authentication.",
)
async def health_check(settings: Annotated[Settings, Depends(get_settings)]) -> HealthResponse:
    """
    Perform health check.

    Only the gateway process is checked; the backend store is not contacted
    so probes never cost a backend request.
    """
    auth_configured = bool(settings.auth_password)

    logger.debug("health_check", auth_configured=auth_configured)

    return HealthResponse(
        status="healthy",
        version=settings.api_version,
        bucket=settings.s3_bucket_name,
        endpoint=settings.s3_endpoint,
        public_domain=settings.s3_public_domain,
        auth_configured=auth_configured,
    )
