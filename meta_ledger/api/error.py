"""Error envelope for API responses

Use-case errors are raised from routes as ClientError and rendered as
{"error": {"code": ..., "message": ...}}.
"""

import logging
from typing import Any, Dict, Optional
from fastapi import Request, status
from fastapi.responses import JSONResponse
from meta_ledger.libs.result import Error

logger = logging.getLogger(__name__)


class ClientError(Exception):
    """Use-case Error bound to an HTTP status"""

    def __init__(
        self,
        error: Error,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(error.message)
        self.error = error
        self.status_code = status_code
        self.details = details


async def client_error_handler(request: Request, exc: ClientError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            f"{request.method} {request.url.path} -> {exc.status_code} "
            f"{exc.error.code}: {exc.error.reason}"
        )

    body: Dict[str, Any] = {"code": exc.error.code, "message": exc.error.message}
    if exc.details:
        body["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content={"error": body})
