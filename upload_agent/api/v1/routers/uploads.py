"""Upload API router.

Endpoints that hand multipart files or raw request bodies to the upload
agent and return the generated object keys.
"""

from __future__ import annotations

from typing import cast

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from upload_agent.api.v1.deps import (
    get_agent,
    get_request_settings,
    parse_file_batch,
    parse_single_file,
)
from upload_agent.api.v1.schemas.uploads import UploadBatchOut, UploadOut
from upload_agent.domain.uploads import ReceivedFiles
from upload_agent.services.agent import UploadAgent

router = APIRouter()


def _too_large() -> HTTPException:
    return HTTPException(
        status_code=413,
        detail={"message": "File too large", "error_code": "file_too_large"},
    )


async def _read_body(request: Request, max_size: int | None) -> bytes:
    """Read the raw body, giving up as soon as it passes ``max_size``."""
    if max_size is None:
        return await request.body()
    declared = request.headers.get("Content-Length", "")
    if declared.isdigit() and int(declared) > max_size:
        raise _too_large()
    body = bytearray()
    async for chunk in request.stream():
        body += chunk
        if len(body) > max_size:
            raise _too_large()
    return bytes(body)


@router.post(
    "/uploads",
    response_model=UploadOut,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a single file",
    description="Store the multipart field `file` under a random key.",
)
async def upload_single(
    bucket: str = Query(..., min_length=1),
    folder: str | None = Query(default=None),
    private: bool | None = Query(default=None),
    optimize: bool = Query(default=False),
    received: ReceivedFiles = Depends(parse_single_file),
    agent: UploadAgent = Depends(get_agent),
) -> UploadOut:
    key = await agent.upload_from_request(
        received,
        bucket_name=bucket,
        folder=folder,
        private=private,
        optimize=optimize,
    )
    return UploadOut(key=cast(str, key), bucket=bucket)


@router.post(
    "/uploads/batch",
    response_model=UploadBatchOut,
    status_code=status.HTTP_201_CREATED,
    summary="Upload several files",
    description="Store every multipart field named `files`; fails as a whole.",
)
async def upload_batch(
    bucket: str = Query(..., min_length=1),
    folder: str | None = Query(default=None),
    private: bool | None = Query(default=None),
    optimize: bool = Query(default=False),
    received: ReceivedFiles = Depends(parse_file_batch),
    agent: UploadAgent = Depends(get_agent),
) -> UploadBatchOut:
    keys = await agent.upload_from_request(
        received,
        bucket_name=bucket,
        folder=folder,
        private=private,
        optimize=optimize,
    )
    return UploadBatchOut(keys=cast(list[str], keys), bucket=bucket)


@router.post(
    "/uploads/raw",
    response_model=UploadOut,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a raw body",
    description="Store the request body; its type is detected from its content.",
)
async def upload_raw(
    request: Request,
    bucket: str = Query(..., min_length=1),
    folder: str | None = Query(default=None),
    private: bool | None = Query(default=None),
    optimize: bool = Query(default=False),
    agent: UploadAgent = Depends(get_agent),
) -> UploadOut:
    body = await _read_body(request, get_request_settings(request).UPLOAD_MAX_SIZE)
    if not body:
        raise HTTPException(status_code=400, detail="empty body")
    key = await agent.upload_buffer(
        body,
        bucket_name=bucket,
        folder=folder,
        private=private,
        optimize=optimize,
    )
    return UploadOut(key=key, bucket=bucket)
