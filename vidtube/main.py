"""FastAPI application factory."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from vidtube import __version__, database
from vidtube.api.middleware import CorrelationIdMiddleware
from vidtube.api.users import router as users_router
from vidtube.config import Settings, get_settings
from vidtube.errors import InternalError, VidTubeError
from vidtube.models.response import ApiErrorResponse, ApiResponse
from vidtube.services.logging_service import configure_logging, get_logger
from vidtube.services.media_service import MediaService
from vidtube.services.password_hasher import PasswordHasher
from vidtube.services.session_manager import SessionManager
from vidtube.services.token_service import TokenService
from vidtube.services.user_service import UserService


def _error_response(
    request: Request, status_code: int, message: str, errors: list
) -> JSONResponse:
    correlation_id = getattr(request.state, "correlation_id", None) or str(uuid4())
    body = ApiErrorResponse(status_code=status_code, message=message, errors=errors)
    return JSONResponse(
        status_code=status_code,
        content=body.to_content(),
        headers={"X-Correlation-Id": correlation_id},
    )


async def vidtube_error_handler(request: Request, exc: VidTubeError) -> JSONResponse:
    """Render a taxonomy error into the failure envelope."""
    logger = structlog.get_logger()
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "request_failed",
        error_type=type(exc).__name__,
        status_code=exc.status_code,
        detail=exc.message,
    )
    return _error_response(request, exc.status_code, exc.message, exc.errors)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors as 400 failure envelopes."""
    errors = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error.get("loc", ["unknown"]))
        errors.append(f"Field '{field}': {error.get('msg', 'Validation failed')}")

    structlog.get_logger().warning("validation_error", errors=errors)
    return _error_response(request, status.HTTP_400_BAD_REQUEST, "Validation error", errors)


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    message = str(exc.detail)
    return _error_response(request, exc.status_code, message, [message])


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log the fault and answer with a generic 500 envelope."""
    structlog.get_logger().exception("unhandled_exception", error_type=type(exc).__name__)
    error = InternalError()
    return _error_response(request, error.status_code, error.message, error.errors)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application around one settings object.

    The same settings instance is handed to every component constructed
    at startup; nothing reads the environment afterwards.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Connect the store, wire services, and tear down on shutdown."""
        configure_logging(settings.log_level)
        logger = get_logger("main")

        # No fallback: a failure here aborts startup
        await database.init_database(settings)
        await database.run_migrations()
        logger.info("database_initialized")

        Path(settings.upload_temp_dir).mkdir(parents=True, exist_ok=True)

        user_service = UserService()
        token_service = TokenService(settings)
        media_service = MediaService(settings)

        app.state.settings = settings
        app.state.user_service = user_service
        app.state.token_service = token_service
        app.state.session_manager = SessionManager(
            users=user_service,
            hasher=PasswordHasher(settings.bcrypt_rounds),
            tokens=token_service,
            media=media_service,
        )

        if not media_service.configured:
            logger.warning("media_store_not_configured")

        logger.info(
            "application_started",
            port=settings.port,
            log_level=settings.log_level,
        )

        yield

        await media_service.close()
        await database.close_database()
        logger.info("application_shutdown")

    app = FastAPI(
        title="VidTube Accounts API",
        description="User registration, sessions and profile media",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_exception_handler(VidTubeError, vidtube_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(users_router)

    @app.get("/health", tags=["Health"])
    async def health(request: Request) -> JSONResponse:
        """Report whether the credential store answers."""
        if not await database.health_check():
            return _error_response(
                request,
                status.HTTP_503_SERVICE_UNAVAILABLE,
                "Database unavailable",
                ["database: unreachable"],
            )
        body = ApiResponse(status_code=200, data={"status": "ok"}, message="Healthy")
        return JSONResponse(status_code=200, content=body.to_content())

    return app
