import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from upload_agent.infra.observability.metrics import LATENCY, REQUEST_BYTES, REQUESTS

logger = logging.getLogger("http")

REQUEST_ID_HEADER = "X-Request-Id"


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def _route_label(request: Request) -> str:
    # templated path keeps the label set small; object keys never appear
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def _content_length(request: Request) -> int | None:
    raw = request.headers.get("Content-Length")
    if raw is None or not raw.isdigit():
        return None
    return int(raw)


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class MetricsMiddleware(BaseHTTPMiddleware):
    """Request metrics, access logging and request-id propagation."""

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        content_length = _content_length(request)
        fields = {
            "method": request.method,
            "request_id": request_id,
            "client_ip": _client_ip(request),
            "bucket": request.query_params.get("bucket"),
            "content_length": content_length,
        }

        try:
            response = await call_next(request)
        except Exception as exc:
            duration_ms = round((time.perf_counter() - start) * 1000, 3)
            logger.exception(
                "request_error method=%s route=%s duration_ms=%.3f request_id=%s",
                request.method,
                request.url.path,
                duration_ms,
                request_id,
                extra={
                    "extra": {
                        **fields,
                        "route": request.url.path,
                        "status": 500,
                        "duration_ms": duration_ms,
                        "exception": repr(exc),
                    }
                },
            )
            raise

        elapsed = time.perf_counter() - start
        route = _route_label(request)
        REQUESTS.labels(request.method, route, str(response.status_code)).inc()
        LATENCY.labels(request.method, route).observe(elapsed)
        if content_length is not None and request.method in {"POST", "PUT"}:
            REQUEST_BYTES.labels(route).observe(content_length)

        if REQUEST_ID_HEADER not in response.headers:
            response.headers[REQUEST_ID_HEADER] = request_id

        duration_ms = round(elapsed * 1000, 3)
        logger.log(
            _level_for(response.status_code),
            "request method=%s route=%s status=%s duration_ms=%.3f "
            "request_id=%s bucket=%s content_length=%s",
            request.method,
            route,
            response.status_code,
            duration_ms,
            request_id,
            fields["bucket"] or "-",
            content_length if content_length is not None else "-",
            extra={
                "extra": {
                    **fields,
                    "route": route,
                    "status": response.status_code,
                    "duration_ms": duration_ms,
                    "user_agent": request.headers.get("User-Agent"),
                }
            },
        )
        return response
