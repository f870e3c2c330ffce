"""File manager API: list, upload, delete and stream objects.

All routes require the gateway's Basic credentials and are mounted under
the configured API prefix (``/api`` by default):

- GET    /list?prefix=     folders and files directly under a prefix
- PUT    /upload           raw body stored under the ``x-file-name`` key
- DELETE /delete?key=      remove an object
- GET    /file/{key}       stream an object inline, honouring Range
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import StreamingResponse

from s3_gateway.dependencies import get_gateway, require_basic_auth
from s3_gateway.gateway import FileGateway
from s3_gateway.models.responses import ErrorResponse, FileEntry, SuccessResponse

router = APIRouter(tags=["files"], dependencies=[Depends(require_basic_auth)])


@router.get(
    "/list",
    response_model=list[FileEntry],
    response_model_exclude_none=True,
    responses={500: {"model": ErrorResponse}},
    summary="List folder contents",
    description="List common prefixes (folders) followed by objects directly under `prefix`.",
)
async def list_files(
    gateway: Annotated[FileGateway, Depends(get_gateway)],
    prefix: Annotated[str, Query(description="Folder prefix, empty for the bucket root")] = "",
) -> list[FileEntry]:
    return await gateway.list_files(prefix)


@router.put(
    "/upload",
    response_model=SuccessResponse,
    response_model_exclude_none=True,
    responses={
        400: {"description": "No filename provided"},
        500: {"model": SuccessResponse, "description": "Backend rejected the upload"},
    },
    summary="Upload object",
    description=(
        "Store the raw request body under the key given in `x-file-name`. "
        "The stored content type is derived from the key's extension."
    ),
)
async def upload_file(
    request: Request,
    gateway: Annotated[FileGateway, Depends(get_gateway)],
    x_file_name: Annotated[str | None, Header(description="Object key to write")] = None,
    content_length: Annotated[str | None, Header()] = None,
) -> SuccessResponse:
    """
    Upload a file.

    The body is streamed to the backend as it arrives, so arbitrarily large
    files never sit in memory.
    """
    await gateway.upload(x_file_name, content_length, request.stream())
    return SuccessResponse(success=True)


@router.delete(
    "/delete",
    response_model=SuccessResponse,
    response_model_exclude_none=True,
    responses={
        400: {"description": "No key provided"},
        500: {"model": SuccessResponse, "description": "Backend rejected the delete"},
    },
    summary="Delete object",
)
async def delete_file(
    gateway: Annotated[FileGateway, Depends(get_gateway)],
    key: Annotated[str | None, Query(description="Object key to delete")] = None,
) -> SuccessResponse:
    await gateway.delete(key)
    return SuccessResponse(success=True)


@router.get(
    "/file/{key:path}",
    response_class=StreamingResponse,
    responses={
        200: {"description": "Object content"},
        206: {"description": "Partial object content (Range request)"},
        404: {"description": "Not Found"},
    },
    summary="Stream object",
    description="Stream an object for inline preview or playback. Supports byte ranges.",
)
async def stream_file(
    key: str,
    gateway: Annotated[FileGateway, Depends(get_gateway)],
    range_header: Annotated[str | None, Header(alias="range")] = None,
) -> StreamingResponse:
    proxied = await gateway.open_stream(key, range_header)
    return StreamingResponse(
        proxied.body,
        status_code=proxied.status_code,
        headers=proxied.headers,
        media_type=proxied.media_type,
    )
