import logging
import time
import uuid
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-Id"

# Excluded from request logs
IGNORED_LOG_PATHS = {"/health"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Assigns a request id and logs one line per request.

    - Reuses an incoming X-Request-Id, otherwise generates one
    - Stores it on request.state.request_id and echoes it in the response
    - Logs method, path, status and duration
    """

    def __init__(self, app, logger: logging.Logger = None):
        super().__init__(app)
        self._logger = logger or logging.getLogger("meta_ledger.request")

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        should_log = request.url.path not in IGNORED_LOG_PATHS
        start = time.monotonic()

        try:
            response = await call_next(request)
        except Exception:
            if should_log:
                self._logger.exception(
                    f"[{request_id}] {request.method} {request.url.path} failed "
                    f"after {(time.monotonic() - start) * 1000:.1f}ms"
                )
            raise

        response.headers.setdefault(REQUEST_ID_HEADER, request_id)
        if should_log:
            self._logger.info(
                f"[{request_id}] {request.method} {request.url.path} -> {response.status_code} "
                f"in {(time.monotonic() - start) * 1000:.1f}ms"
            )
        return response
