"""
Convex Insights - log stream ingestion and analytics service.
Main FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware
from convex_insights import __version__
from convex_insights.config import get_settings
from convex_insights.api.router import api_router
from convex_insights.store import ClickHouseStore, StoreError
from convex_insights.utils.ndjson import BatchFormatError
from convex_insights.utils.logging import (
    configure_structured_logging,
    generate_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger("convex_insights")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Injects a correlation ID into every request context and response header."""

    async def dispatch(self, request: Request, call_next) -> Response:
        cid = request.headers.get("X-Correlation-ID") or generate_correlation_id()
        set_correlation_id(cid)
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = cid
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    settings = get_settings()
    logger.info("Convex Insights starting up (env=%s)", settings.app_env)

    # Both checks are opt-in; make it loud when they're off
    if not settings.webhook_secret:
        logger.warning(
            "WEBHOOK_SECRET not set - /ingest accepts batches without signature verification."
        )
    if settings.max_allowed_timestamp_skew <= 0:
        logger.warning(
            "MAX_ALLOWED_TIMESTAMP_SKEW not set - replayed batches will not be rejected."
        )

    if settings.sentry_dsn:
        try:
            import sentry_sdk
            sentry_sdk.init(
                dsn=settings.sentry_dsn,
                traces_sample_rate=0.1,
                environment=settings.app_env,
            )
            logger.info("Sentry initialized")
        except Exception as e:
            logger.warning("Sentry initialization failed: %s", str(e))

    store = ClickHouseStore.from_settings(settings)
    app.state.store = store

    if settings.clickhouse_setup_schema:
        try:
            await store.setup_schema()
        except StoreError:
            logger.exception("Analytics store schema setup failed")
            await store.close()
            raise
        logger.info("Analytics store schema setup completed")

    logger.info("Ingest webhook is live at /ingest")

    yield

    logger.info("Convex Insights shutting down")
    await store.close()


async def batch_format_error_handler(request: Request, exc: BatchFormatError) -> Response:
    logger.error(
        "Malformed event batch: %s", str(exc),
        extra={"line_number": exc.line_number},
    )
    return PlainTextResponse("Malformed event batch", status_code=500)


async def store_error_handler(request: Request, exc: StoreError) -> Response:
    logger.error("Analytics store error: %s", str(exc))
    return JSONResponse({"detail": "Analytics store unavailable"}, status_code=503)


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    configure_structured_logging(settings.log_level)

    application = FastAPI(
        title="Convex Insights",
        description="Log stream ingestion and analytics for serverless functions",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS - allow dashboard origins
    origins = ["http://localhost:3000", "http://localhost:5173"]
    origins += [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
    application.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=[
            "Content-Type", "X-Correlation-ID", "X-Webhook-Signature",
            "Accept", "Origin", "X-Requested-With",
        ],
    )

    # Correlation ID middleware (must be added AFTER CORS so it runs on every request)
    application.add_middleware(CorrelationIdMiddleware)

    application.add_exception_handler(BatchFormatError, batch_format_error_handler)
    application.add_exception_handler(StoreError, store_error_handler)

    application.include_router(api_router)

    return application


app = create_app()
