"""Pydantic schemas for upload and object endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class UploadOut(BaseModel):
    """Key of a single stored object."""

    key: str
    bucket: str


class UploadBatchOut(BaseModel):
    """Keys of a stored batch, in the order the files were sent."""

    keys: list[str]
    bucket: str


class PresignedUrlOut(BaseModel):
    url: str
    expires_in: int = Field(ge=1)


class DeleteOut(BaseModel):
    deleted: bool
    key: str
