import logging
import secrets
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("expense_ocr")

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 64

SKIP_LOG_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Reuses the caller's X-Request-ID (or mints one) and echoes it on the response."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER, "")
        if not request_id or len(request_id) > MAX_REQUEST_ID_LENGTH:
            request_id = secrets.token_hex(8)

        request.state.request_id = request_id
        response: Response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status code, duration, and request id for each request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.time()
        response = await call_next(request)
        duration_ms = round((time.time() - start) * 1000)

        path = request.url.path
        if path in SKIP_LOG_PATHS:
            return response

        request_id = getattr(request.state, "request_id", None)
        logger.info(
            f"{request.method} {path} {response.status_code}",
            extra={"extra_data": {
                "method": request.method,
                "path": path,
                "status": response.status_code,
                "duration_ms": duration_ms,
                "request_id": request_id,
            }},
        )
        return response
