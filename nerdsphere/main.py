"""
FastAPI application factory and configuration.
"""
import asyncio
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from nerdsphere.api import cleanup, health, messages, metrics
from nerdsphere.api.metrics import MetricsMiddleware
from nerdsphere.core.config import get_settings
from nerdsphere.core.database import get_session_factory, init_db
from nerdsphere.core.errors import ChatError, ErrorKind, MissingFieldError, RateLimitedError
from nerdsphere.core.logging import setup_logging, get_logger
from nerdsphere.core.metrics import set_startup_time
from nerdsphere.services.retention import RetentionSweeper


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger = get_logger(__name__)
    logger.info("Starting application...")
    settings = get_settings()

    init_db()
    logger.info("Database initialized")

    set_startup_time()

    sweeper_task = None
    if settings.sweep_interval_seconds > 0:
        sweeper = RetentionSweeper(get_session_factory(), settings)
        sweeper_task = asyncio.create_task(sweeper.run_forever())

    yield

    logger.info("Shutting down application...")
    if sweeper_task is not None:
        sweeper_task.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper_task


async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    """Render pipeline errors as ``{"success": false, "error": ...}``."""
    headers = None
    if isinstance(exc, RateLimitedError):
        headers = {"Retry-After": str(exc.remaining_seconds)}
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload(), headers=headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed requests are client errors in the chat's 400 envelope."""
    errors = exc.errors()
    get_logger(__name__).warning(f"Invalid request to {request.url.path}: {errors}")

    if all(error.get("loc", ("",))[0] == "body" for error in errors):
        content = MissingFieldError().to_payload()
    else:
        content = {"success": False, "error": "Invalid request parameters"}
    return JSONResponse(status_code=400, content=content)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    get_logger(__name__).error(
        f"Unexpected error in {request.method} {request.url.path}",
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal server error", "kind": ErrorKind.UNKNOWN.value},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    setup_logging()
    logger = get_logger(__name__)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Anonymous, ephemeral public chat room with rate-limited posting",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_middleware(MetricsMiddleware)

    app.add_exception_handler(ChatError, chat_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(messages.router)
    app.include_router(cleanup.router)
    app.include_router(health.router)
    app.include_router(metrics.router)

    logger.info(
        "Application created",
        extra={
            "extra_data": {
                "app_name": settings.app_name,
                "version": settings.app_version,
                "debug": settings.debug,
            }
        }
    )

    return app


# Create the application instance
app = create_app()
