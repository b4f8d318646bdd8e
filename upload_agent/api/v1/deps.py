from __future__ import annotations

import logging

from fastapi import Header, HTTPException, Request

from upload_agent.api.upload_parser import build_upload_dependency
from upload_agent.common.config import Settings, get_settings
from upload_agent.domain.uploads import ReceivedFiles
from upload_agent.services.agent import UploadAgent

logger = logging.getLogger("http")


def get_request_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def get_agent(request: Request) -> UploadAgent:
    agent = getattr(request.app.state, "agent", None)
    if agent is None:
        raise HTTPException(status_code=503, detail="Upload agent is not configured")
    return agent


async def parse_single_file(request: Request) -> ReceivedFiles:
    settings = get_request_settings(request)
    parser = build_upload_dependency(
        settings.UPLOAD_ALLOWED_MIMES or None,
        settings.UPLOAD_MAX_SIZE,
        field_name="file",
    )
    return await parser(request)


async def parse_file_batch(request: Request) -> ReceivedFiles:
    settings = get_request_settings(request)
    parser = build_upload_dependency(
        settings.UPLOAD_ALLOWED_MIMES or None,
        settings.UPLOAD_MAX_SIZE,
        field_name="files",
        multiple=True,
        max_files=settings.UPLOAD_MAX_FILES,
        max_total_size=settings.UPLOAD_MAX_TOTAL_SIZE,
    )
    return await parser(request)


def require_api_key(
    request: Request, x_api_key: str | None = Header(default=None)
) -> None:
    settings = get_request_settings(request)
    if settings.API_KEY_ENABLED:
        api_key_expected = getattr(settings, "API_KEY", None)
        if not x_api_key or (api_key_expected and x_api_key != api_key_expected):
            preview = f"{x_api_key[:4]}***" if x_api_key else "<missing>"
            logger.warning("api_key_mismatch api_key_preview=%s", preview)
            raise HTTPException(status_code=401, detail="Invalid API key")
