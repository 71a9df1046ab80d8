"""Request correlation: every query carries an X-Request-ID into its log events."""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..utils.logging import get_logger

REQUEST_ID_HEADER = "X-Request-ID"

logger = get_logger("middleware.request_id")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Reuses the caller's request ID or mints one, and echoes it back."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id

        started = time.perf_counter()
        with structlog.contextvars.bound_contextvars(request_id=request_id):
            response = await call_next(request)
            logger.debug(
                "query_served",
                method=request.method,
                path=request.url.path,
                status=response.status_code,
                elapsed_ms=round((time.perf_counter() - started) * 1000, 2),
            )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
