"""
Webhook authentication for the log stream ingest endpoint.

Two independent checks, each disabled when it isn't configured:
1. Timestamp skew - the first event must not be older than
   MAX_ALLOWED_TIMESTAMP_SKEW seconds. Bounds the replay window and runs
   first because it needs no secret.
2. HMAC-SHA256 - `x-webhook-signature: sha256=<hex>` over the exact raw body.
"""
import hashlib
import hmac
import logging
import math
import time
from enum import Enum
from typing import Optional

from convex_insights.utils.ndjson import parse_first_event

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-webhook-signature"
SIGNATURE_PREFIX = "sha256="


class RejectionReason(str, Enum):
    EXPIRED = "expired"
    MISSING_SIGNATURE = "missing_signature"
    INVALID_SIGNATURE = "invalid_signature"


class WebhookAuthError(Exception):
    """The batch was rejected before any parsing or persistence."""

    def __init__(self, reason: RejectionReason):
        self.reason = reason
        super().__init__(reason.value)

    @property
    def status_code(self) -> int:
        return 403 if self.reason is RejectionReason.EXPIRED else 401

    @property
    def detail(self) -> str:
        return "Request expired" if self.reason is RejectionReason.EXPIRED else "Unauthorized"


def compute_signature(secret: str, body: bytes) -> str:
    """Signature header value for a body, as the platform would send it."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def validate_hmac_sha256(
    secret: str,
    signature: Optional[str],
    body: bytes,
    header_prefix: str = SIGNATURE_PREFIX,
) -> bool:
    """
    Validate a `sha256=<hex>` HMAC-SHA256 signature over the raw body.
    Comparison is constant-time. Returns True if valid, False otherwise.
    """
    if not secret or not signature or not signature.startswith(header_prefix):
        return False

    sig = signature[len(header_prefix):].strip().lower()
    expected = hmac.new(
        secret.encode("utf-8"),
        body,
        hashlib.sha256,
    ).hexdigest()
    return hmac.compare_digest(expected, sig)


def is_timestamp_expired(
    timestamp_ms: object,
    max_skew_seconds: int,
    now: Optional[float] = None,
) -> bool:
    """
    True when the event timestamp (epoch ms) is older than now - max_skew.
    A missing, non-numeric or non-finite timestamp counts as expired.
    """
    if isinstance(timestamp_ms, bool) or not isinstance(timestamp_ms, (int, float)):
        return True
    if not math.isfinite(timestamp_ms):
        return True
    now_ms = (time.time() if now is None else now) * 1000
    return timestamp_ms < now_ms - max_skew_seconds * 1000


def authenticate_webhook(
    body: bytes,
    signature: Optional[str],
    secret: str = "",
    max_skew_seconds: int = 0,
    now: Optional[float] = None,
) -> None:
    """
    Run the configured checks against a raw batch. Raises WebhookAuthError.
    May raise BatchFormatError if the skew check can't parse the first line.
    """
    if max_skew_seconds > 0:
        first_event = parse_first_event(body)
        if first_event is not None:
            timestamp = first_event.get("timestamp") if isinstance(first_event, dict) else None
            if is_timestamp_expired(timestamp, max_skew_seconds, now):
                logger.warning(
                    "Rejected webhook batch: first event timestamp %s outside %ds skew",
                    timestamp, max_skew_seconds,
                    extra={"reason": RejectionReason.EXPIRED.value},
                )
                raise WebhookAuthError(RejectionReason.EXPIRED)

    if secret:
        if not signature:
            logger.warning(
                "Rejected webhook batch: missing %s header", SIGNATURE_HEADER,
                extra={"reason": RejectionReason.MISSING_SIGNATURE.value},
            )
            raise WebhookAuthError(RejectionReason.MISSING_SIGNATURE)
        if not validate_hmac_sha256(secret, signature, body):
            logger.warning(
                "Rejected webhook batch: signature mismatch",
                extra={"reason": RejectionReason.INVALID_SIGNATURE.value},
            )
            raise WebhookAuthError(RejectionReason.INVALID_SIGNATURE)
