from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from upload_agent.api.v1.deps import get_agent, get_request_settings
from upload_agent.api.v1.schemas.uploads import DeleteOut, PresignedUrlOut
from upload_agent.services.agent import UploadAgent

router = APIRouter()


@router.get(
    "/objects/url",
    response_model=PresignedUrlOut,
    summary="Get presigned download URL",
)
async def get_object_url(
    request: Request,
    bucket: str = Query(..., min_length=1),
    key: str = Query(..., min_length=1),
    expires_in: int | None = Query(default=None, ge=1, le=7 * 24 * 3600),
    filename: str | None = Query(default=None, max_length=255),
    agent: UploadAgent = Depends(get_agent),
) -> PresignedUrlOut:
    expires = expires_in or get_request_settings(request).PRESIGN_EXPIRES_SECONDS
    url = await agent.presign(
        key, bucket_name=bucket, expires_in=expires, filename=filename
    )
    return PresignedUrlOut(url=url, expires_in=expires)


@router.delete(
    "/objects",
    response_model=DeleteOut,
    summary="Delete an object",
)
async def delete_object(
    bucket: str = Query(..., min_length=1),
    key: str = Query(..., min_length=1),
    agent: UploadAgent = Depends(get_agent),
) -> DeleteOut:
    deleted = await agent.delete_object(key, bucket_name=bucket)
    return DeleteOut(deleted=deleted, key=key)
