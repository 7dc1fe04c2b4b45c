"""
Log stream ingest endpoint - receives NDJSON event batches from the platform.

Order of operations:
1. Read the raw body once (signature is computed over these exact bytes)
2. Authenticate (timestamp skew, then HMAC signature)
3. Parse the batch (a malformed line fails the whole request)
4. Route by topic, validate, bulk insert
"""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from convex_insights.config import get_settings
from convex_insights.schemas.api_responses import IngestResponse
from convex_insights.services.ingestion import ingest_batch
from convex_insights.store import AnalyticsStore, get_store
from convex_insights.utils.ndjson import parse_batch
from convex_insights.utils.webhook_signatures import (
    SIGNATURE_HEADER,
    WebhookAuthError,
    authenticate_webhook,
)

logger = logging.getLogger(__name__)
router = APIRouter(tags=["ingest"])


@router.get("/", response_class=PlainTextResponse)
async def echo(request: Request):
    """Diagnostic: echo the method and path."""
    return f"{request.method} {request.url.path}"


@router.post("/ingest", response_model=IngestResponse)
async def ingest(
    request: Request,
    store: AnalyticsStore = Depends(get_store),
):
    settings = get_settings()
    body = await request.body()

    try:
        authenticate_webhook(
            body,
            request.headers.get(SIGNATURE_HEADER),
            secret=settings.webhook_secret,
            max_skew_seconds=settings.max_allowed_timestamp_skew,
        )
    except WebhookAuthError as e:
        client_ip = request.client.host if request.client else "unknown"
        logger.info(
            "Webhook batch rejected: reason=%s ip=%s", e.reason.value, client_ip,
            extra={"reason": e.reason.value, "client_ip": client_ip},
        )
        return PlainTextResponse(e.detail, status_code=e.status_code)

    events = parse_batch(body)
    await ingest_batch(store, events)
    return IngestResponse()
