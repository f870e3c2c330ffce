"""Response models for API endpoints."""

from pydantic import BaseModel, ConfigDict, Field


class FileEntry(BaseModel):
    """A folder (common prefix) or a stored object in a listing."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    key: str = Field(description="Full object key (or folder prefix), unencoded")
    is_folder: bool = Field(alias="isFolder", description="True for common-prefix entries")
    uploaded: str | None = Field(
        default=None, description="Last-modified timestamp, '-' for folders"
    )
    size: int | None = Field(default=None, description="Size in bytes, 0 for folders")
    url: str | None = Field(
        default=None, description="Public CDN URL or gateway streaming URL (files only)"
    )


class SuccessResponse(BaseModel):
    """Acknowledgement for upload/delete."""

    success: bool = Field(description="Whether the operation succeeded")
    error: str | None = Field(default=None, description="Raw backend error text")


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str = Field(description="Error type")
    message: str | None = Field(default=None, description="Error message")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service status")
    version: str = Field(description="API version")
    bucket: str = Field(description="Configured backend bucket")
    endpoint: str = Field(description="Configured backend endpoint")
    public_domain: str | None = Field(default=None, description="Public CDN domain, if any")
    auth_configured: bool = Field(description="Whether a gateway password is set")
