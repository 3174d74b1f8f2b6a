"""
Exam Paper Approval Service

FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from paperflow.api.middleware.request_id import RequestIdMiddleware
from paperflow.api.v1 import router as api_v1_router
from paperflow.config import get_settings
from paperflow.context import build_context
from paperflow.database import init_db
from paperflow.kernel.errors import (
    DecryptionError,
    EncryptionError,
    FileExpiredError,
    InvalidTransitionError,
    NotFoundError,
    NotificationDispatchError,
    PaperflowError,
    StorageError,
    ValidationError,
)
from paperflow.logging_config import configure_logging, get_logger
from paperflow.schemas.common import HealthResponse

settings = get_settings()
logger = get_logger(__name__)

# Most specific first; InvalidTransitionError is a ValidationError
_ERROR_STATUS = [
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (FileExpiredError, status.HTTP_410_GONE),
    (DecryptionError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (EncryptionError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (StorageError, status.HTTP_502_BAD_GATEWAY),
    (NotificationDispatchError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def status_for_error(exc: PaperflowError) -> int:
    for error_cls, status_code in _ERROR_STATUS:
        if isinstance(exc, error_cls):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan handler.

    Builds the AppContext unless one was installed beforehand (tests do this),
    creates tables and disposes the engine on shutdown.
    """
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        debug=settings.debug,
    )

    logger.info("Starting %s v%s", settings.project_name, settings.version)
    ctx = getattr(app.state, "context", None)
    if ctx is None:
        ctx = build_context(settings)
        app.state.context = ctx
    await init_db(ctx.engine)
    logger.info("Database initialized")

    yield

    logger.info("Shutting down...")
    await ctx.close()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.project_name,
    description="""
    Exam Paper Approval Service

    Lecturers upload exam papers, which are encrypted at rest and pass a
    two-stage review before they are released for printing.

    ## Features

    - **Files**: Encrypted upload, versioning, expiration and audited downloads
    - **Reviews**: Head-of-section review followed by exam unit approval
    - **Notifications**: In-app notifications with optional email delivery
    - **Administration**: Departments, subjects and role assignment
    """,
    version=settings.version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# add_middleware stacks innermost-first, so the last one added is outermost.
_cors_origins = [
    "http://localhost:3000",
    "http://localhost:5173",  # Vite default
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]
if settings.app_base_url and settings.app_base_url not in _cors_origins:
    _cors_origins = [settings.app_base_url] + _cors_origins

app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-File-Version", "X-Request-ID"],
)


def _cors_headers(request: Request) -> dict:
    """CORS headers for error responses, which can bypass the middleware."""
    origin = request.headers.get("origin") or ""
    allow_origin = origin if origin in _cors_origins else _cors_origins[0]
    return {
        "Access-Control-Allow-Origin": allow_origin,
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "*",
        "Access-Control-Allow-Headers": "*",
    }


def _error_headers(request: Request) -> dict:
    headers = _cors_headers(request)
    req_id = getattr(request.state, "request_id", None)
    if req_id:
        headers["X-Request-ID"] = req_id
    return headers


@app.exception_handler(PaperflowError)
async def paperflow_error_handler(request: Request, exc: PaperflowError):
    """Map domain errors to HTTP statuses; the code field tells them apart."""
    status_code = status_for_error(exc)
    if status_code >= 500:
        logger.error(
            "Request failed: %s",
            exc.message,
            extra={"code": exc.code, "path": request.url.path},
        )
    else:
        logger.info(
            "Request refused: %s",
            exc.message,
            extra={"code": exc.code, "path": request.url.path},
        )
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "code": exc.code},
        headers=_error_headers(request),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Ensure 401/403/404 etc. responses have CORS headers."""
    headers = _error_headers(request)
    if exc.headers:
        headers.update(exc.headers)
    content = {"detail": exc.detail}
    req_id = getattr(request.state, "request_id", None)
    if req_id and exc.status_code >= 500:
        content["request_id"] = req_id
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
):
    """Handle request validation errors."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })
    content = {"detail": "Validation error", "code": "validation_error", "errors": errors}
    req_id = getattr(request.state, "request_id", None)
    if req_id:
        content["request_id"] = req_id
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=content,
        headers=_error_headers(request),
    )


@app.exception_handler(Exception)
async def general_exception_handler(
    request: Request,
    exc: Exception,
):
    """Handle unexpected exceptions."""
    logger.exception("Unhandled exception: %s", exc)
    req_id = getattr(request.state, "request_id", None)
    if settings.debug:
        content = {
            "detail": str(exc),
            "type": type(exc).__name__,
            "request_id": req_id,
        }
    else:
        content = {"detail": "Internal server error", "request_id": req_id}
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=content,
        headers=_error_headers(request),
    )


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(request: Request):
    """Check database connectivity and the cipher primitive."""
    ctx = request.app.state.context
    database = "connected"
    try:
        async with ctx.session_maker() as session:
            await session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("Health check could not reach the database", exc_info=True)
        database = "unavailable"

    encryption = "available" if ctx.encryption.is_available() else "unavailable"
    return HealthResponse(
        status="ok" if database == "connected" and encryption == "available" else "degraded",
        version=settings.version,
        database=database,
        encryption=encryption,
    )


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.project_name,
        "version": settings.version,
        "docs": "/docs" if settings.debug else "disabled",
        "api": {
            "v1": settings.api_v1_prefix,
        },
    }


app.include_router(
    api_v1_router,
    prefix=settings.api_v1_prefix,
)


# Main entry point for development
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "paperflow.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
