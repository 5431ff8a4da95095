"""Dandi FastAPI application entry point."""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from dandi import __version__
from dandi.adapters.github import GitHubAdapter
from dandi.config import LoggingConfig, Settings, get_settings
from dandi.db import close_db, init_db
from dandi.db.session import get_async_session
from dandi.errors import DandiError, ServiceUnavailableError, ValidationError
from dandi.services.http import http_client_manager
from dandi.services.metering import UsageMeter, create_usage_incrementer
from dandi.services.rate_limit import InMemoryRateLimiter
from dandi.services.summarizer import LangChainSummarizer, Summarizer

logger = structlog.get_logger()


def configure_logging(config: LoggingConfig) -> None:
    """Configure structlog level and rendering."""
    level = logging.getLevelName(config.level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    renderer = (
        structlog.processors.JSONRenderer()
        if config.json_output
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=False,
    )


def build_summarizer(settings: Settings) -> Summarizer | None:
    """LangChain summarizer when a model key is configured, else None."""
    if not settings.llm.is_configured:
        logger.warning("summarizer.not_configured")
        return None
    return LangChainSummarizer(settings.llm)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings = get_settings()

    # Startup
    logger.info("dandi.startup", version=__version__)
    await init_db()

    # Initialize HTTP client with connection pooling
    await http_client_manager.startup(settings.github)

    incrementer = create_usage_incrementer(settings.metering.strategy)
    app.state.usage_meter = UsageMeter(incrementer, get_async_session)
    app.state.demo_rate_limiter = InMemoryRateLimiter(
        limit=settings.demo.requests_per_window,
        window_seconds=settings.demo.window_seconds,
    )
    app.state.github = GitHubAdapter(settings.github)
    app.state.summarizer = build_summarizer(settings)
    logger.info("metering.configured", strategy=incrementer.name)

    yield

    # Shutdown
    logger.info("dandi.shutdown")

    # Close HTTP client
    await http_client_manager.shutdown()

    await close_db()


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()
    configure_logging(settings.logging)

    app = FastAPI(
        title="Dandi",
        description="GitHub repository summarizer with metered API keys",
        version=__version__,
        lifespan=lifespan,
    )

    # Request ID middleware
    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Add request ID to all requests."""
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        request.state.request_id = request_id
        with structlog.contextvars.bound_contextvars(request_id=request_id):
            response = await call_next(request)
        response.headers["X-Request-Id"] = request_id
        return response

    # Error handlers
    @app.exception_handler(DandiError)
    async def dandi_error_handler(request: Request, exc: DandiError):
        """Handle Dandi errors with consistent format."""
        request_id = getattr(request.state, "request_id", None)
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(request_id),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        """Render body/query validation failures as 400 in the Dandi format."""
        errors = [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg")}
            for e in exc.errors()
        ]
        return await dandi_error_handler(
            request,
            ValidationError("Invalid request", details={"errors": errors}),
        )

    @app.exception_handler(SQLAlchemyError)
    async def store_error_handler(request: Request, exc: SQLAlchemyError):
        """Credential store failures surface as 503."""
        logger.error("db.error", error=str(exc), path=request.url.path)
        return await dandi_error_handler(
            request,
            ServiceUnavailableError("Credential store unavailable"),
        )

    # Health check
    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok"}

    # Import and register API routers
    from dandi.api.v1 import router as v1_router

    app.include_router(v1_router, prefix="/v1")

    return app


# Create default app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "dandi.main:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=True,
    )
