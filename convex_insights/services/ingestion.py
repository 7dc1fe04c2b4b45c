"""
Ingestion pipeline - parsed batch -> per-topic validation -> bulk insert.

Events are split by `topic`. Console logs and function executions flow
independently (and concurrently) through validate -> map to row -> one
bulk insert per table. Invalid events are logged and dropped; events with
an unknown topic are ignored. Store errors propagate to the caller.
"""
import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from pydantic import BaseModel

from convex_insights.models import console_log, function_execution
from convex_insights.schemas.events import (
    TOPIC_CONSOLE,
    TOPIC_FUNCTION_EXECUTION,
    TOPIC_VERIFICATION,
    ConsoleLogEvent,
    FunctionExecutionEvent,
    VerificationEvent,
)
from convex_insights.store import AnalyticsStore
from convex_insights.utils.event_validation import EventValidationError, parse_event
from convex_insights.utils.logging import reset_topic, set_topic
from convex_insights.utils.metrics import Timer

logger = logging.getLogger(__name__)


@dataclass
class TopicResult:
    """Outcome of one topic flow. received == ingested + dropped."""
    topic: str
    received: int = 0
    ingested: int = 0
    dropped: int = 0


@dataclass
class BatchResult:
    total: int = 0
    ignored: int = 0
    topics: dict[str, TopicResult] = field(default_factory=dict)


def ms_to_seconds(timestamp_ms: float) -> int:
    """Epoch milliseconds -> epoch seconds, rounding half up."""
    return int(math.floor(timestamp_ms / 1000 + 0.5))


def _as_int(value: Optional[float]) -> Optional[int]:
    if value is None:
        return None
    return int(round(value))


def _function_columns(event: ConsoleLogEvent | FunctionExecutionEvent) -> dict:
    return {
        "function_type": event.function.type,
        "function_path": event.function.path,
        "function_cached": event.function.cached,
        "request_id": event.function.request_id,
    }


def console_log_row(event: ConsoleLogEvent) -> dict:
    """Flatten a console log event into a console_log row."""
    return {
        **_function_columns(event),
        "timestamp": ms_to_seconds(event.timestamp),
        "log_level": event.log_level,
        "message": event.message,
        "is_truncated": event.is_truncated,
        "system_code": event.system_code,
    }


def function_execution_row(event: FunctionExecutionEvent) -> dict:
    """Flatten a function execution event into a function_execution row."""
    row = {
        **_function_columns(event),
        "timestamp": ms_to_seconds(event.timestamp),
        "status": event.status,
        "error_message": event.error_message,
        "mutation_queue_length": _as_int(event.mutation_queue_length),
        "mutation_retry_count": _as_int(event.mutation_retry_count),
        "scheduler_job_id": event.scheduler_info.job_id if event.scheduler_info else None,
        "execution_time_ms": event.execution_time_ms,
    }
    for name in function_execution.USAGE_FIELDS:
        value = getattr(event.usage, name)
        row[f"usage_{name}"] = value if name == "memory_used_mb" else _as_int(value)
    return row


def validate_events(model: type[BaseModel], raw_events: list[Any]) -> tuple[list[BaseModel], int]:
    """Validate each raw event. Returns (valid events, dropped count)."""
    valid = []
    dropped = 0
    for raw in raw_events:
        try:
            valid.append(parse_event(model, raw))
        except EventValidationError as e:
            dropped += 1
            logger.info(
                "Dropped invalid %s event: %s", model.__name__, e.summary,
                extra={"topic": e.topic},
            )
    return valid, dropped


async def _ingest_topic(
    store: AnalyticsStore,
    topic: str,
    model: type[BaseModel],
    table: str,
    to_row: Callable[[Any], dict],
    raw_events: list[Any],
) -> TopicResult:
    token = set_topic(topic)
    try:
        result = TopicResult(topic=topic, received=len(raw_events))
        valid, result.dropped = validate_events(model, raw_events)

        rows = [to_row(event) for event in valid]
        timer = Timer()
        if rows:
            with timer:
                await store.insert(table, rows)
            result.ingested = len(rows)

        logger.info(
            "%s: %d events dropped, %d events ingested",
            topic, result.dropped, result.ingested,
            extra={
                "table": table,
                "received": result.received,
                "dropped": result.dropped,
                "ingested": result.ingested,
                "elapsed_ms": timer.elapsed_ms,
            },
        )
        return result
    finally:
        reset_topic(token)


async def ingest_console_logs(store: AnalyticsStore, raw_events: list[Any]) -> TopicResult:
    return await _ingest_topic(
        store, TOPIC_CONSOLE, ConsoleLogEvent, console_log.TABLE_NAME, console_log_row, raw_events,
    )


async def ingest_function_executions(store: AnalyticsStore, raw_events: list[Any]) -> TopicResult:
    return await _ingest_topic(
        store,
        TOPIC_FUNCTION_EXECUTION,
        FunctionExecutionEvent,
        function_execution.TABLE_NAME,
        function_execution_row,
        raw_events,
    )


def handle_verification_events(raw_events: list[Any]) -> TopicResult:
    """Verification events only confirm connectivity; they are logged, never stored."""
    result = TopicResult(topic=TOPIC_VERIFICATION, received=len(raw_events))
    valid, result.dropped = validate_events(VerificationEvent, raw_events)
    for event in valid:
        logger.info(
            "Verification event from %s/%s: %s",
            event.deployment.project_slug, event.deployment.deployment_name, event.message,
            extra={"topic": TOPIC_VERIFICATION},
        )
    return result


def split_by_topic(events: list[Any]) -> dict[str, list[Any]]:
    """Group raw events by their `topic`. Non-object lines have no topic."""
    grouped: dict[str, list[Any]] = {}
    for event in events:
        topic = event.get("topic") if isinstance(event, dict) else None
        grouped.setdefault(topic if isinstance(topic, str) else "", []).append(event)
    return grouped


async def ingest_batch(store: AnalyticsStore, events: list[Any]) -> BatchResult:
    """
    Route a parsed batch to its topic flows and wait for all of them.
    Execution and console flows share nothing but the store, so they run concurrently.
    """
    grouped = split_by_topic(events)
    result = BatchResult(total=len(events))

    known = {TOPIC_CONSOLE, TOPIC_FUNCTION_EXECUTION, TOPIC_VERIFICATION}
    result.ignored = sum(len(v) for k, v in grouped.items() if k not in known)
    if result.ignored:
        logger.debug("Ignored %d events with unrecognized topic", result.ignored)

    if grouped.get(TOPIC_VERIFICATION):
        verification = handle_verification_events(grouped[TOPIC_VERIFICATION])
        result.topics[TOPIC_VERIFICATION] = verification

    executions, logs = await asyncio.gather(
        ingest_function_executions(store, grouped.get(TOPIC_FUNCTION_EXECUTION, [])),
        ingest_console_logs(store, grouped.get(TOPIC_CONSOLE, [])),
    )
    result.topics[TOPIC_FUNCTION_EXECUTION] = executions
    result.topics[TOPIC_CONSOLE] = logs
    return result
