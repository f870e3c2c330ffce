"""Proxy operations: list, upload, delete and stream objects.

Each operation issues exactly one signed request to the backend store and
maps its outcome onto the gateway's response contract. Failures are raised
as ``GatewayError`` subclasses carrying the HTTP status the API answers
with; ``main`` turns them into responses.
"""

import time
from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass
from urllib.parse import quote, urlencode

import httpx
import structlog
from starlette.datastructures import MutableHeaders

from s3_gateway import metrics
from s3_gateway.backend import StorageBackend
from s3_gateway.config import Settings
from s3_gateway.keys import encode_key, normalize_key
from s3_gateway.listing import build_access_url, transcode_listing
from s3_gateway.mime import resolve_mime_type
from s3_gateway.models.responses import FileEntry

logger = structlog.get_logger(__name__)

# Backend tracing headers never shown to clients
STRIPPED_HEADERS = frozenset({"x-amz-request-id", "x-amz-id-2"})

# Connection-level headers that must not be relayed by a proxy (RFC 9110 7.6.1)
HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
})


# ============================================================================
# Errors
# ============================================================================


class GatewayError(Exception):
    """Base class for failures surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class MissingInput(GatewayError):
    """A required key or filename was not supplied."""

    status_code = 400


class BackendUnavailable(GatewayError):
    """Listing the bucket failed."""


class BackendWriteFailed(GatewayError):
    """The backend rejected an upload; ``backend_error`` holds its raw answer."""

    def __init__(self, message: str, backend_error: str = ""):
        super().__init__(message)
        self.backend_error = backend_error


class BackendDeleteFailed(GatewayError):
    """The backend rejected a delete."""


class NotFound(GatewayError):
    """Any non-success answer when fetching an object."""

    status_code = 404


# ============================================================================
# Proxy response
# ============================================================================


@dataclass
class ProxyResponse:
    """Backend status, filtered headers (repeats kept) and the unread body stream."""

    status_code: int
    headers: MutableHeaders
    body: AsyncIterator[bytes]
    media_type: str


async def _relay(response: httpx.Response) -> AsyncIterator[bytes]:
    """Yield the raw backend body, closing the backend stream when done or abandoned."""
    try:
        async for chunk in response.aiter_raw():
            yield chunk
    finally:
        await response.aclose()


def _record(operation: str, status: str, start_time: float) -> None:
    metrics.BACKEND_OPERATIONS_TOTAL.labels(operation=operation, status=status).inc()
    metrics.BACKEND_OPERATION_DURATION.labels(operation=operation).observe(time.time() - start_time)


def _duration_ms(start_time: float) -> int:
    return int((time.time() - start_time) * 1000)


# ============================================================================
# Gateway
# ============================================================================


class FileGateway:
    """
    Translates file-manager requests into signed backend store requests.

    Args:
        settings: Immutable gateway configuration
        backend: Signed request capability (``SignedS3Backend`` in production)
    """

    def __init__(self, settings: Settings, backend: StorageBackend):
        self.settings = settings
        self.backend = backend
        self.file_route = f"{settings.api_prefix}/file"

    def object_url(self, key: str) -> str:
        """Backend URL of an object, path-style."""
        return f"{self.settings.bucket_url}/{encode_key(normalize_key(key))}"

    def listing_url(self, prefix: str) -> str:
        """Backend ListObjectsV2 URL, always grouping on the '/' delimiter."""
        query = urlencode(
            {"list-type": "2", "prefix": prefix, "delimiter": "/"},
            quote_via=quote,
        )
        return f"{self.settings.bucket_url}?{query}"

    def access_url(self, key: str) -> str:
        """URL a client uses to fetch a listed file."""
        return build_access_url(key, self.settings.s3_public_domain, self.file_route)

    async def close(self) -> None:
        await self.backend.aclose()

    async def list_files(self, prefix: str = "") -> list[FileEntry]:
        """
        List folders and files directly under ``prefix``.

        Raises:
            BackendUnavailable: If the backend answers with a non-success status
                or cannot be reached
        """
        start_time = time.time()

        try:
            response = await self.backend.send("GET", self.listing_url(prefix))
            try:
                body = await response.aread()
            finally:
                await response.aclose()
        except httpx.HTTPError as e:
            _record("list", "error", start_time)
            logger.error("gateway_list_transport_error", prefix=prefix, error=str(e))
            raise BackendUnavailable("S3 Error") from e

        if not response.is_success:
            _record("list", "failed", start_time)
            logger.warning(
                "gateway_list_failed",
                prefix=prefix,
                backend_status=response.status_code,
            )
            raise BackendUnavailable("S3 Error")

        entries = transcode_listing(
            body.decode("utf-8", errors="replace"),
            prefix,
            self.access_url,
        )

        _record("list", "success", start_time)
        logger.info(
            "gateway_list",
            prefix=prefix,
            entries=len(entries),
            duration_ms=_duration_ms(start_time),
        )
        return entries

    async def upload(
        self,
        key: str | None,
        content_length: str | None,
        body: AsyncIterable[bytes] | bytes,
    ) -> None:
        """
        Store ``body`` under ``key`` as a publicly readable object.

        The content type is always the one resolved from the key's extension,
        whatever the client declared. The body is streamed through as-is.

        Raises:
            MissingInput: If no key was supplied (nothing is sent to the backend)
            BackendWriteFailed: If the backend rejects the upload
        """
        key = normalize_key(key or "")
        if not key:
            raise MissingInput("No filename provided")

        start_time = time.time()
        headers = {
            "Content-Type": resolve_mime_type(key),
            "x-amz-acl": "public-read",
        }
        if content_length:
            headers["Content-Length"] = content_length

        try:
            response = await self.backend.send(
                "PUT", self.object_url(key), headers=headers, content=body
            )
            try:
                await response.aread()
            finally:
                await response.aclose()
        except httpx.HTTPError as e:
            _record("upload", "error", start_time)
            logger.error("gateway_upload_transport_error", key=key, error=str(e))
            raise BackendWriteFailed("Upload failed", backend_error=str(e)) from e

        if not response.is_success:
            _record("upload", "failed", start_time)
            logger.warning(
                "gateway_upload_failed",
                key=key,
                backend_status=response.status_code,
            )
            raise BackendWriteFailed("Upload failed", backend_error=response.text)

        _record("upload", "success", start_time)
        if content_length and content_length.isdigit():
            metrics.UPLOAD_BYTES_TOTAL.inc(int(content_length))

        logger.info(
            "gateway_upload",
            key=key,
            content_type=headers["Content-Type"],
            content_length=content_length,
            duration_ms=_duration_ms(start_time),
        )

    async def delete(self, key: str | None) -> None:
        """
        Delete the object stored under ``key``.

        Deleting a missing key succeeds whenever the backend says so; no
        existence check is made here.

        Raises:
            MissingInput: If no key was supplied
            BackendDeleteFailed: If the backend rejects the delete
        """
        key = normalize_key(key or "")
        if not key:
            raise MissingInput("No key provided")

        start_time = time.time()

        try:
            response = await self.backend.send("DELETE", self.object_url(key))
            await response.aclose()
        except httpx.HTTPError as e:
            _record("delete", "error", start_time)
            logger.error("gateway_delete_transport_error", key=key, error=str(e))
            raise BackendDeleteFailed("Delete failed") from e

        if not response.is_success:
            _record("delete", "failed", start_time)
            logger.warning(
                "gateway_delete_failed",
                key=key,
                backend_status=response.status_code,
            )
            raise BackendDeleteFailed("Delete failed")

        _record("delete", "success", start_time)
        logger.info("gateway_delete", key=key, duration_ms=_duration_ms(start_time))

    async def open_stream(self, key: str, range_header: str | None = None) -> ProxyResponse:
        """
        Fetch an object for inline display, forwarding an optional Range header.

        The backend status (200 or 206) and its Content-Range are preserved.
        The content type is forced to the resolved one and the response is
        marked inline and readable from any origin.

        Raises:
            NotFound: For an empty key or any non-success backend answer
                (403, 404, 416, ...)
        """
        key = normalize_key(key)
        if not key:
            # An empty key would address the bucket itself
            raise NotFound("Not Found")

        start_time = time.time()
        headers = {"Range": range_header} if range_header else {}

        try:
            response = await self.backend.send("GET", self.object_url(key), headers=headers)
        except httpx.HTTPError as e:
            _record("download", "error", start_time)
            logger.error("gateway_download_transport_error", key=key, error=str(e))
            raise NotFound("Not Found") from e

        if not response.is_success:
            await response.aclose()
            _record("download", "failed", start_time)
            logger.info(
                "gateway_download_failed",
                key=key,
                backend_status=response.status_code,
            )
            raise NotFound("Not Found")

        mime_type = resolve_mime_type(key)
        relayed = MutableHeaders(raw=[
            (name.lower(), value)
            for name, value in response.headers.raw
            if name.lower().decode("latin-1") not in STRIPPED_HEADERS | HOP_BY_HOP_HEADERS
        ])
        relayed["content-type"] = mime_type
        relayed["content-disposition"] = "inline"
        relayed["access-control-allow-origin"] = "*"

        _record("download", "success", start_time)
        logger.info(
            "gateway_download",
            key=key,
            range=range_header,
            backend_status=response.status_code,
            content_range=response.headers.get("content-range"),
        )

        return ProxyResponse(
            status_code=response.status_code,
            headers=relayed,
            body=_relay(response),
            media_type=mime_type,
        )
