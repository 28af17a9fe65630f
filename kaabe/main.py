"""FastAPI application initialization."""

from contextlib import asynccontextmanager
from uuid import uuid4

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from kaabe import __version__
from kaabe.api.middleware import CorrelationIdMiddleware
from kaabe.api.routes import router as health_router
from kaabe.api.users import router as users_router
from kaabe.config import get_settings
from kaabe.database import close_database, init_database, run_migrations
from kaabe.exceptions import InternalFailure, KaabeError
from kaabe.services.logging_service import configure_logging, get_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger = get_logger("main")

    try:
        await init_database()
        await run_migrations()
        logger.info("database_initialized")
    except Exception as e:
        logger.warning(
            "database_initialization_failed",
            error=str(e),
            note="Continuing without database - authenticated routes will fail",
        )

    logger.info("application_started", env=settings.env, log_level=settings.log_level)

    yield

    await close_database()
    logger.info("application_shutdown")


app = FastAPI(
    title="Kaabe API",
    description="Course platform backend: users, sessions, and password reset",
    version=__version__,
    lifespan=lifespan,
)


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", None) or str(uuid4())


@app.exception_handler(KaabeError)
async def kaabe_exception_handler(request: Request, exc: KaabeError) -> JSONResponse:
    """Render domain errors as ``{"error": message}`` with their HTTP status."""
    correlation_id = _correlation_id(request)
    logger = structlog.get_logger()

    log = logger.error if isinstance(exc, InternalFailure) else logger.info
    log(
        "request_failed",
        error_type=type(exc).__name__,
        status_code=exc.status_code,
        path=request.url.path,
    )

    headers = {"X-Correlation-Id": correlation_id}
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        headers["WWW-Authenticate"] = "Bearer"

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message},
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors with a 400 and the first failing field."""
    correlation_id = _correlation_id(request)
    logger = structlog.get_logger()

    errors = exc.errors()
    if errors:
        first_error = errors[0]
        field = ".".join(str(loc) for loc in first_error.get("loc", ["unknown"]))
        message = first_error.get("msg", "Validation failed")
        detail = f"Field '{field}': {message}"
    else:
        detail = "Request validation failed"

    logger.warning("validation_error", detail=detail)

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Validation error", "detail": detail},
        headers={"X-Correlation-Id": correlation_id},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_allow_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Origin", "Content-Type", "Authorization", "X-Correlation-Id"],
    expose_headers=["Content-Length", "X-Correlation-Id"],
)

# Correlation ID middleware for request tracking and observability
app.add_middleware(CorrelationIdMiddleware)

app.include_router(users_router)
app.include_router(health_router)
