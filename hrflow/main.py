# =====================================================
# FILE: hrflow/main.py
# FastAPI application factory
# =====================================================

import logging
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hrflow import __version__
from hrflow.api.api_v1 import api_router
from hrflow.core.config import settings
from hrflow.core.database import check_connection, init_db
from hrflow.core.exceptions import (
    ApproverPickRequired,
    AuthorizationError,
    NoCandidatesFound,
    NotFoundError,
    StateConflictError,
    UnresolvedApprover,
    ValidationError,
    WorkflowCorruptionError,
    WorkflowError,
)
from hrflow.middleware.request_logging import RequestLoggingMiddleware

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Most specific first; the first isinstance match decides the status code
ERROR_STATUS_CODES = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (UnresolvedApprover, status.HTTP_400_BAD_REQUEST),
    (NoCandidatesFound, status.HTTP_400_BAD_REQUEST),
    (ApproverPickRequired, status.HTTP_400_BAD_REQUEST),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (StateConflictError, status.HTTP_409_CONFLICT),
    (WorkflowCorruptionError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def status_code_for(exc: WorkflowError) -> int:
    for error_class, code in ERROR_STATUS_CODES:
        if isinstance(exc, error_class):
            return code
    return status.HTTP_400_BAD_REQUEST


async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.code} {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} refused: {exc.code} {exc.message}")

    content = {"success": False, "error": exc.message, "code": exc.code}
    if exc.details:
        content["details"] = exc.details
    return JSONResponse(status_code=status_code, content=content)


async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle internal server errors"""
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": "Internal server error", "code": "INTERNAL_ERROR"}
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=__version__,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None if settings.is_production else "/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Process-Time"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.add_exception_handler(WorkflowError, workflow_error_handler)
    app.add_exception_handler(Exception, internal_error_handler)
    app.include_router(api_router, prefix=settings.API_V1_STR)

    @app.on_event("startup")
    async def on_startup():
        logger.info(f"Starting {settings.PROJECT_NAME} {__version__} ({settings.ENVIRONMENT})")
        init_db()

    @app.get("/health", tags=["health"])
    async def health_check():
        database_ok = check_connection()
        return {
            "status": "healthy" if database_ok else "degraded",
            "database": "connected" if database_ok else "unavailable",
            "version": __version__,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    host = "0.0.0.0" if settings.is_production else "127.0.0.1"
    logger.info(f"Starting server on {host}:{settings.PORT}")
    uvicorn.run(app, host=host, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())
