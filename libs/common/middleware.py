"""Observability middleware for FastAPI.

Every request gets a request id (reused from ``X-Request-ID`` when the
caller sends one) that is bound to all log lines emitted while handling it
and echoed back on the response.

Usage:
    from libs.common.middleware import add_observability_middleware

    app = FastAPI()
    add_observability_middleware(app)
"""
import time
from typing import Callable

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from libs.common.logging import (
    clear_request_context,
    configure_logging,
    get_logger,
    set_request_context,
)

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Polled by load balancers; not worth a log line each
QUIET_PATHS = frozenset({"/health"})


def _completion_level(status_code: int) -> str:
    if status_code >= 500:
        return "error"
    if status_code >= 400:
        return "warning"
    return "info"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds the request context and logs each request's outcome and timing."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = set_request_context(
            request_id=request.headers.get(REQUEST_ID_HEADER),
            path=request.url.path,
            method=request.method,
        )
        quiet = request.url.path in QUIET_PATHS
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                "Request failed with unhandled exception",
                extra={
                    "extra_fields": {
                        "error": str(e),
                        "duration_ms": _elapsed_ms(start_time),
                    }
                },
            )
            raise
        finally:
            clear_request_context()

        if not quiet:
            getattr(logger, _completion_level(response.status_code))(
                f"{request.method} {request.url.path} -> {response.status_code}",
                extra={
                    "extra_fields": {
                        "request_id": request_id,
                        "status_code": response.status_code,
                        "duration_ms": _elapsed_ms(start_time),
                        "client": request.client.host if request.client else None,
                    }
                },
            )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def _elapsed_ms(start_time: float) -> float:
    return round((time.perf_counter() - start_time) * 1000, 2)


def add_observability_middleware(app: FastAPI) -> None:
    """Configure logging and install the request context middleware."""
    configure_logging()
    app.add_middleware(RequestContextMiddleware)
    logger.info(f"Observability middleware initialized for {app.title}")
