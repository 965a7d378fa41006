"""
Request tracing and logging setup.

Every request carries a correlation id, taken from the caller's
X-Correlation-ID header when present. The id is echoed on the response,
kept on `request.state` for the error handlers, and attached to the one
access line logged per request.
"""

import time
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

CORRELATION_HEADER = "X-Correlation-ID"
DURATION_HEADER = "X-Process-Time-Ms"

# Package root; component loggers (climaroute.trips, climaroute.sos, ...) propagate here
logger = logging.getLogger("climaroute")
access_logger = logging.getLogger("climaroute.http")


def configure_logging(debug: bool = False) -> None:
    """Install a single stream handler on the package logger."""
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s"
    ))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
        request.state.correlation_id = correlation_id

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        response.headers[CORRELATION_HEADER] = correlation_id
        response.headers[DURATION_HEADER] = f"{elapsed_ms:.2f}"

        status_code = response.status_code
        if status_code >= 500:
            level = logging.ERROR
        elif status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        access_logger.log(
            level,
            "%s %s -> %s",
            request.method,
            request.url.path,
            status_code,
            extra={
                "correlation_id": correlation_id,
                "status_code": status_code,
                "duration_ms": round(elapsed_ms, 2),
                "client": request.client.host if request.client else None,
            }
        )
        return response
