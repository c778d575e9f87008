"""FastAPI middleware for request/response logging and correlation."""

import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from roster.logging_config import bind_context, clear_context, get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request with a correlation ID.

    The ID comes from the caller's X-Request-ID header when present, else a
    new UUID. It is bound to every log line of the request and echoed back
    in the response headers.
    """

    def __init__(self, app: ASGIApp, include_request_details: bool = True):
        """Initialize middleware.

        Args:
            app: ASGI application
            include_request_details: If True, also log query string and client address
        """
        super().__init__(app)
        self.include_request_details = include_request_details

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        bind_context(request_id=request_id)

        if self.include_request_details:
            logger.info(
                "request_started",
                method=request.method,
                path=request.url.path,
                query_params=str(request.query_params) if request.query_params else None,
                client_host=request.client.host if request.client else "unknown",
            )
        else:
            logger.info("request_started", method=request.method, path=request.url.path)

        start = time.perf_counter()
        try:
            response = await call_next(request)

            logger.info(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=_elapsed_ms(start),
            )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response

        except Exception as exc:
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                duration_ms=_elapsed_ms(start),
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
            raise

        finally:
            clear_context()


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


class ContextMiddleware(BaseHTTPMiddleware):
    """Binds the subscriber ID from /subscriptions/{subscriber_id}[/...] to the logging context."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        subscriber_id = extract_subscriber_id(request.url.path)
        if subscriber_id:
            bind_context(subscriber_id=subscriber_id)

        return await call_next(request)


def extract_subscriber_id(path: str) -> Optional[str]:
    """Subscriber ID segment following "subscriptions", if any."""
    parts = path.strip("/").split("/")
    try:
        index = parts.index("subscriptions")
    except ValueError:
        return None
    # /api/subscriptions is the listing, not a subscriber
    if index > 0 and parts[index - 1] == "api":
        return None
    if len(parts) > index + 1 and parts[index + 1]:
        return parts[index + 1]
    return None
