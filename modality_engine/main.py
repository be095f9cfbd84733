"""
Degree Modality Workflow Engine

FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Type

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from modality_engine.api.middleware.request_id import RequestIdMiddleware
from modality_engine.api.v1 import router as api_v1_router
from modality_engine.config import get_settings
from modality_engine.database import async_session_maker, close_db, init_db
from modality_engine.logging_config import configure_logging, get_logger
from modality_engine.orchestration import errors
from modality_engine.schemas.common import HealthResponse

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan handler.

    Runs startup and shutdown tasks.
    """
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        debug=settings.debug,
    )

    logger.info("Starting %s v%s", settings.project_name, settings.version)
    await init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down...")
    await close_db()
    logger.info("Database connections closed")


app = FastAPI(
    title=settings.project_name,
    description="""
    Degree Modality Workflow Engine

    Tracks a student's (or group's) degree-completion modality from selection
    to grading or cancellation.

    ## Features

    - **Status machine**: role-gated transitions with configurable rejection targets
    - **Document review**: per-tier acceptance gating each escalation
    - **Examiners**: two primaries, agreement rules and tiebreak
    - **Groups**: invitation protocol for up to three members
    - **Cancellation**: director and committee decisions, with or without reproval

    Every mutation appends a workflow event in the same transaction.
    """,
    version=settings.version,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# add_middleware stacks innermost-first: CORS is added last so it wraps everything
_cors_origins = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
]

app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


WORKFLOW_ERROR_STATUS: Dict[Type[errors.WorkflowError], int] = {
    errors.UnauthorizedTransition: status.HTTP_403_FORBIDDEN,
    errors.RecordNotFound: status.HTTP_404_NOT_FOUND,
    errors.InvalidTransition: status.HTTP_409_CONFLICT,
    errors.TerminalStateViolation: status.HTTP_409_CONFLICT,
    errors.IncompleteDocuments: status.HTTP_409_CONFLICT,
    errors.DuplicateEvaluation: status.HTTP_409_CONFLICT,
    errors.InvitationCapacityExceeded: status.HTTP_409_CONFLICT,
    errors.InvitationConflict: status.HTTP_409_CONFLICT,
    errors.StaleState: status.HTTP_409_CONFLICT,
    errors.DuplicateExaminerAssignment: status.HTTP_409_CONFLICT,
    errors.DocumentLocked: status.HTTP_409_CONFLICT,
    errors.InconsistentGradeDecision: status.HTTP_422_UNPROCESSABLE_ENTITY,
    errors.MissingMandatoryReason: status.HTTP_422_UNPROCESSABLE_ENTITY,
    errors.InvalidPayload: status.HTTP_422_UNPROCESSABLE_ENTITY,
    errors.StorageUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _cors_headers(request: Request) -> dict:
    """CORS headers for error responses (500s often bypass the CORS middleware)."""
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


@app.exception_handler(errors.WorkflowError)
async def workflow_error_handler(request: Request, exc: errors.WorkflowError):
    """Map engine rejections to HTTP statuses with a `code` clients can branch on."""
    status_code = WORKFLOW_ERROR_STATUS.get(type(exc), status.HTTP_409_CONFLICT)
    log = logger.error if status_code >= 500 else logger.info
    log(
        "Workflow rejection",
        extra={"code": exc.code, "path": request.url.path, "status_code": status_code},
    )
    content = exc.to_dict()
    req_id = getattr(request.state, "request_id", None)
    if req_id:
        content["request_id"] = req_id
    return JSONResponse(status_code=status_code, content=content, headers=_error_headers(request))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Ensure 401/403/404 etc. responses have CORS headers."""
    headers = _error_headers(request)
    if exc.headers:
        headers.update(exc.headers)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    errors_out = []
    for error in exc.errors():
        errors_out.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        })
    content = {"detail": "Validation error", "code": "validation_error", "errors": errors_out}
    req_id = getattr(request.state, "request_id", None)
    if req_id:
        content["request_id"] = req_id
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=content,
        headers=_error_headers(request),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception("Unhandled exception: %s", exc)
    req_id = getattr(request.state, "request_id", None)
    if settings.debug:
        content = {"detail": str(exc), "type": type(exc).__name__, "request_id": req_id}
    else:
        content = {"detail": "Internal server error", "request_id": req_id}
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=content,
        headers=_error_headers(request),
    )


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Check application and database health."""
    database = "connected"
    try:
        async with async_session_maker() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        logger.warning("Health check could not reach the database: %s", exc)
        database = "unavailable"
    return HealthResponse(
        status="ok" if database == "connected" else "degraded",
        version=settings.version,
        database=database,
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


app.include_router(api_v1_router, prefix=settings.api_v1_prefix)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "modality_engine.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
