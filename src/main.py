"""FastAPI application initialization."""

from contextlib import asynccontextmanager
from uuid import uuid4

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.auth import clear_refresh_cookie, router as auth_router
from src.api.middleware import CORRELATION_ID_HEADER, CorrelationIdMiddleware
from src.config import get_settings
from src.database import health_check
from src.services.errors import AuthError, ServerConfigurationError
from src.services.logging_service import configure_logging, get_logger
from src.services.token_service import get_token_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    logger = get_logger("main")

    # Signing secrets are checked once here; requests re-raise the same error
    try:
        get_token_service()
        logger.info("token_service_initialized")
    except ServerConfigurationError as e:
        logger.error(
            "token_service_unavailable",
            detail=e.detail,
            note="Token issuance and verification will fail until configured",
        )

    try:
        from src.database import init_database, run_migrations

        await init_database()
        await run_migrations()
        logger.info("database_initialized")
    except Exception as e:
        logger.warning(
            "database_initialization_failed",
            error=str(e),
            note="Continuing without database - auth endpoints will return 500",
        )

    logger.info("application_started", log_level=settings.log_level)

    yield

    try:
        from src.database import close_database

        await close_database()
    except Exception as e:
        logger.warning("database_close_failed", error=str(e))

    logger.info("application_shutdown")


app = FastAPI(
    title="Auth Service",
    description="User registration, login and token-based sessions",
    version="1.0.0",
    lifespan=lifespan,
)


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", None) or str(uuid4())


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render AuthError subclasses as ``{"message": ...}`` with their status code."""
    correlation_id = _correlation_id(request)
    logger = structlog.get_logger()

    if isinstance(exc, ServerConfigurationError):
        logger.error("server_configuration_error", detail=exc.detail)
    else:
        logger.info(
            "auth_error",
            error_type=type(exc).__name__,
            status_code=exc.status_code,
            detail=exc.message,
        )

    headers = {CORRELATION_ID_HEADER: correlation_id}
    if exc.status_code == 401:
        headers["WWW-Authenticate"] = "Bearer"

    response = JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message},
        headers=headers,
    )
    if exc.clear_cookie:
        clear_refresh_cookie(response, get_settings())
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle malformed request bodies with a 400 response."""
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
        status_code=400,
        content={"message": "Invalid request body.", "detail": detail},
        headers={CORRELATION_ID_HEADER: correlation_id},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all so that no failure reaches the client unformatted."""
    correlation_id = _correlation_id(request)
    structlog.get_logger().error(
        "unhandled_exception",
        error_type=type(exc).__name__,
        error=str(exc),
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={"message": "Internal server error."},
        headers={CORRELATION_ID_HEADER: correlation_id},
    )


@app.get("/health")
async def health() -> dict:
    """Report service and database health."""
    database_ok = await health_check()
    return {
        "status": "healthy" if database_ok else "degraded",
        "database": "connected" if database_ok else "unavailable",
    }


# CORS for the browser client; credentials are needed for the refresh cookie
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(CorrelationIdMiddleware)

app.include_router(auth_router, prefix=get_settings().api_prefix)
