import logging

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from upload_agent.api.v1.deps import require_api_key
from upload_agent.api.v1.routers.objects import router as objects_router
from upload_agent.api.v1.routers.uploads import router as uploads_router
from upload_agent.common.config import Settings, get_settings
from upload_agent.common.errors import (
    BucketNotConfiguredError,
    ImageProcessingError,
    InvalidContentTypeError,
    InvalidFileTypeError,
    InvalidFolderError,
    StorageError,
    UploadAgentError,
    UploadRejectedError,
    ValidationError,
)
from upload_agent.common.logging import setup_logging
from upload_agent.infra.observability.metrics import metrics_app
from upload_agent.infra.observability.middleware import MetricsMiddleware
from upload_agent.services.agent import UploadAgent

ERROR_CODE_BY_STATUS = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    413: "payload_too_large",
    415: "unsupported_media_type",
    500: "internal_error",
    502: "bad_gateway",
    503: "service_unavailable",
}

# First matching entry wins, so subclasses come before their bases
AGENT_ERROR_RESPONSES: tuple[tuple[type[UploadAgentError], int, str], ...] = (
    (BucketNotConfiguredError, 404, "bucket_not_configured"),
    (InvalidFolderError, 400, "invalid_folder"),
    (InvalidContentTypeError, 400, "invalid_content_type"),
    (InvalidFileTypeError, 415, "invalid_file_type"),
    (ValidationError, 400, "bad_request"),
    (ImageProcessingError, 422, "image_processing_failed"),
    (StorageError, 502, "storage_error"),
)


def _normalize_detail(detail):
    if isinstance(detail, dict):
        maybe_code = detail.get("error_code")
        cleaned = {k: v for k, v in detail.items() if k != "error_code"}
        if len(cleaned) == 1 and "message" in cleaned:
            cleaned = cleaned["message"]
        if not cleaned:
            cleaned = None
        return cleaned, maybe_code if isinstance(maybe_code, str) else None
    return detail, None


def _resolve_error_code(status_code: int, override: str | None = None) -> str:
    if override:
        return override
    if status_code == 422:
        return "validation_error"
    return ERROR_CODE_BY_STATUS.get(status_code, "unknown_error")


def _describe_agent_error(exc: UploadAgentError) -> tuple[int, str]:
    if isinstance(exc, UploadRejectedError):
        return exc.status_code, exc.error_code
    for error_type, status_code, error_code in AGENT_ERROR_RESPONSES:
        if isinstance(exc, error_type):
            return status_code, error_code
    return 500, "internal_error"


def _problem_response(
    request: Request,
    *,
    status_code: int,
    title: str,
    detail,
    error_code: str,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        media_type="application/problem+json",
        content={
            "type": "about:blank",
            "title": title,
            "status": status_code,
            "detail": detail,
            "error_code": error_code,
            "instance": str(request.url),
            "request_id": request.headers.get("X-Request-Id"),
        },
    )


def create_app(
    agent: UploadAgent | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL)
    app = FastAPI(
        title="Upload Agent",
        version="v1.0",
        description="Multipart uploads, presigned URLs and deletes on S3 buckets",
    )
    app.state.settings = settings
    app.state.agent = agent or UploadAgent.from_settings(settings)

    # Optional CORS
    if settings.CORS_ENABLED:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS or ["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Routers
    app.include_router(
        uploads_router,
        prefix="/api/v1",
        tags=["uploads"],
        dependencies=[Depends(require_api_key)],
    )
    app.include_router(
        objects_router,
        prefix="/api/v1",
        tags=["objects"],
        dependencies=[Depends(require_api_key)],
    )

    # Metrics
    if settings.ENABLE_METRICS:
        app.add_middleware(MetricsMiddleware)
        app.mount("/metrics", metrics_app)

    @app.on_event("startup")
    def on_startup() -> None:
        startup_logger = logging.getLogger("upload_agent.startup")
        upload_agent: UploadAgent = app.state.agent
        if upload_agent.is_ready:
            startup_logger.info(
                "upload agent already configured buckets=%s",
                ",".join(upload_agent.registry.names()),
            )
            return
        if not upload_agent.configs:
            startup_logger.warning(
                "no buckets configured; set UPLOAD_BUCKETS to enable uploads"
            )
        upload_agent.create()
        startup_logger.info(
            "upload agent configured buckets=%s",
            ",".join(upload_agent.registry.names()) or "-",
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        logger = logging.getLogger("http")
        normalized_detail, code_override = _normalize_detail(exc.detail)
        logger.log(
            logging.WARNING if exc.status_code < 500 else logging.ERROR,
            "http_exception status=%s detail=%s method=%s path=%s request_id=%s",
            exc.status_code,
            normalized_detail,
            request.method,
            request.url.path,
            request.headers.get("X-Request-Id"),
            extra={
                "extra": {
                    "status": exc.status_code,
                    "detail": normalized_detail,
                    "method": request.method,
                    "route": request.url.path,
                    "request_id": request.headers.get("X-Request-Id"),
                }
            },
        )
        return _problem_response(
            request,
            status_code=exc.status_code,
            title="HTTP Error",
            detail=normalized_detail,
            error_code=_resolve_error_code(exc.status_code, code_override),
        )

    @app.exception_handler(UploadAgentError)
    async def upload_agent_error_handler(request: Request, exc: UploadAgentError):
        logger = logging.getLogger("http")
        status_code, error_code = _describe_agent_error(exc)
        logger.log(
            logging.WARNING if status_code < 500 else logging.ERROR,
            "upload_agent_error status=%s error_code=%s detail=%s method=%s path=%s",
            status_code,
            error_code,
            exc,
            request.method,
            request.url.path,
            extra={
                "extra": {
                    "status": status_code,
                    "error_code": error_code,
                    "detail": str(exc),
                    "route": request.url.path,
                }
            },
        )
        return _problem_response(
            request,
            status_code=status_code,
            title="Upload Error",
            detail=str(exc),
            error_code=error_code,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        return _problem_response(
            request,
            status_code=422,
            title="Validation Error",
            detail=jsonable_encoder(exc.errors()),
            error_code=_resolve_error_code(422),
        )

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/ready")
    async def ready():
        upload_agent: UploadAgent = app.state.agent
        buckets = upload_agent.registry.names()
        if not upload_agent.is_ready:
            return {"status": "not_ready", "detail": "agent not created"}
        if not buckets:
            return {"status": "not_ready", "detail": "no storage clients registered"}
        return {"status": "ready", "buckets": buckets}

    return app


if __name__ == "__main__":
    uvicorn.run(
        "upload_agent.main:create_app", factory=True, host="0.0.0.0", port=8000
    )
