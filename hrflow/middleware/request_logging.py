# =====================================================
# FILE: hrflow/middleware/request_logging.py
# Request timing and access logging
# =====================================================

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
import time
import logging
from typing import Callable

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log every API request with its acting user, status and duration
    """

    EXCLUDED_ENDPOINTS = [
        "/health",
        "/docs",
        "/redoc",
        "/openapi.json",
    ]

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next: Callable):
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = f"{process_time:.4f}"

        if self._should_log_request(request):
            user_id = request.headers.get("X-User-Id", "-")
            message = (
                f"{request.method} {request.url.path} user={user_id} "
                f"status={response.status_code} time={process_time:.4f}s"
            )
            if response.status_code >= 500:
                logger.error(message)
            elif response.status_code >= 400:
                logger.warning(message)
            else:
                logger.info(message)
        return response

    def _should_log_request(self, request: Request) -> bool:
        path = request.url.path
        return not any(path.startswith(excluded) for excluded in self.EXCLUDED_ENDPOINTS)
