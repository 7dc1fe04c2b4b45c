"""
Analytics service - time-bucketed aggregation queries for the dashboard.

Every chart query resolves its range through services.time_range, runs
parameterised SQL against the store, and reshapes the row-oriented result
into one point per bucket with one key per series. A query with no matching
data returns empty lists, never an error; store failures propagate.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from convex_insights.models import console_log, function_execution
from convex_insights.schemas.events import FUNCTION_TYPES
from convex_insights.services.time_range import DEFAULT_RANGE, DateLike, resolve_time_range
from convex_insights.store import AnalyticsStore
from convex_insights.utils.metrics import percentage, rate_per_second

logger = logging.getLogger(__name__)

EXECUTION_TIME_TOP_N = 10

LOG_LIMIT_DEFAULT = 1000
LOG_LIMIT_MIN = 1
LOG_LIMIT_MAX = 10000

# Filter value meaning "no filter" for function path / log level
ALL_FILTER = "all"


def to_iso(value: Any) -> str:
    """Store DateTime text ('2024-05-01 12:00:05') -> '2024-05-01T12:00:05.000Z'."""
    if isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value, tz=timezone.utc)
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def clamp_log_limit(limit: Any) -> int:
    """Clamp a caller-supplied limit into [LOG_LIMIT_MIN, LOG_LIMIT_MAX]."""
    try:
        value = int(limit)
    except (TypeError, ValueError):
        value = LOG_LIMIT_DEFAULT
    return min(max(LOG_LIMIT_MIN, value), LOG_LIMIT_MAX)


def _bucket_series(rows: list[dict], value_key: str) -> list[dict]:
    """Pivot (function_path, time_bucket, value) rows into [{date, <path>: value}]."""
    buckets: dict[str, dict] = {}
    for row in rows:
        buckets.setdefault(row["time_bucket"], {})[row["function_path"]] = row[value_key]
    return [{"date": to_iso(bucket), **values} for bucket, values in buckets.items()]


async def get_convex_functions(
    store: AnalyticsStore,
    time_range: str = DEFAULT_RANGE,
    custom_start: Optional[DateLike] = None,
    custom_end: Optional[DateLike] = None,
) -> list[dict]:
    """
    Throughput: executions per second, per bucket, per function type.
    Every point carries all four function types, zero when absent.
    """
    resolved = resolve_time_range(time_range, custom_start, custom_end)

    rows = await store.query(
        f"""
        SELECT
            function_type,
            toStartOfInterval(timestamp, INTERVAL {resolved.bucket_interval}) AS time_bucket,
            COUNT(*) AS record_count
        FROM {function_execution.TABLE_NAME}
        WHERE {resolved.where_clause}
        GROUP BY function_type, time_bucket
        ORDER BY time_bucket
        """,
        resolved.params,
    )

    buckets: dict[str, dict[str, float]] = {}
    for row in rows:
        rates = buckets.setdefault(row["time_bucket"], dict.fromkeys(FUNCTION_TYPES, 0.0))
        if row["function_type"] not in rates:
            continue
        rates[row["function_type"]] += rate_per_second(int(row["record_count"]), resolved.bucket_seconds)

    return [{"date": to_iso(bucket), **rates} for bucket, rates in buckets.items()]


async def get_function_list(store: AnalyticsStore) -> list[str]:
    """Every function path that has executed at least once, alphabetically."""
    rows = await store.query(
        f"SELECT DISTINCT function_path FROM {function_execution.TABLE_NAME} ORDER BY function_path"
    )
    return [row["function_path"] for row in rows]


async def get_failure_rate(
    store: AnalyticsStore,
    time_range: str = DEFAULT_RANGE,
    custom_start: Optional[DateLike] = None,
    custom_end: Optional[DateLike] = None,
) -> dict:
    """
    Failure rate (%) per bucket for functions that failed at least once in the window.

    Returns {"data": [...], "functions": [...], "aggregates": [...]}; aggregates
    are whole-window totals per function sorted by descending failure rate.
    """
    resolved = resolve_time_range(time_range, custom_start, custom_end)
    empty = {"data": [], "functions": [], "aggregates": []}

    failing_rows = await store.query(
        f"""
        SELECT DISTINCT function_path
        FROM {function_execution.TABLE_NAME}
        WHERE {resolved.where_clause} AND status = 'failure'
        ORDER BY function_path
        """,
        resolved.params,
    )
    functions = [row["function_path"] for row in failing_rows]
    if not functions:
        return empty

    params = {**resolved.params, "functionPaths": functions}

    rows = await store.query(
        f"""
        SELECT
            function_path,
            toStartOfInterval(timestamp, INTERVAL {resolved.bucket_interval}) AS time_bucket,
            COUNT(*) AS total_count,
            SUM(CASE WHEN status = 'failure' THEN 1 ELSE 0 END) AS failure_count
        FROM {function_execution.TABLE_NAME}
        WHERE {resolved.where_clause}
            AND function_path IN {{functionPaths:Array(String)}}
        GROUP BY function_path, time_bucket
        ORDER BY time_bucket, function_path
        """,
        params,
    )
    for row in rows:
        row["failure_rate"] = percentage(int(row["failure_count"]), int(row["total_count"]))
    data = _bucket_series(rows, "failure_rate")

    aggregate_rows = await store.query(
        f"""
        SELECT
            function_path,
            COUNT(*) AS total_count,
            SUM(CASE WHEN status = 'failure' THEN 1 ELSE 0 END) AS failure_count
        FROM {function_execution.TABLE_NAME}
        WHERE {resolved.where_clause}
            AND function_path IN {{functionPaths:Array(String)}}
        GROUP BY function_path
        ORDER BY function_path
        """,
        params,
    )
    aggregates = []
    for row in aggregate_rows:
        total = int(row["total_count"])
        failures = int(row["failure_count"])
        aggregates.append({
            "functionPath": row["function_path"],
            "totalCount": total,
            "failureCount": failures,
            "failureRate": percentage(failures, total),
        })
    aggregates.sort(key=lambda a: (-a["failureRate"], a["functionPath"]))

    return {"data": data, "functions": functions, "aggregates": aggregates}


async def get_execution_time(
    store: AnalyticsStore,
    time_range: str = DEFAULT_RANGE,
    custom_start: Optional[DateLike] = None,
    custom_end: Optional[DateLike] = None,
) -> dict:
    """
    Average execution time (ms) per bucket for the 10 slowest functions.

    The chart series are limited to the slowest functions by whole-window
    average; aggregates cover every function, slowest first.
    """
    resolved = resolve_time_range(time_range, custom_start, custom_end)

    rows = await store.query(
        f"""
        SELECT
            function_path,
            toStartOfInterval(timestamp, INTERVAL {resolved.bucket_interval}) AS time_bucket,
            AVG(execution_time_ms) AS avg_execution_time
        FROM {function_execution.TABLE_NAME}
        WHERE {resolved.where_clause}
        GROUP BY function_path, time_bucket
        ORDER BY time_bucket, function_path
        """,
        resolved.params,
    )
    if not rows:
        return {"data": [], "functions": [], "aggregates": []}

    aggregate_rows = await store.query(
        f"""
        SELECT
            function_path,
            AVG(execution_time_ms) AS avg_execution_time,
            COUNT(*) AS total_count
        FROM {function_execution.TABLE_NAME}
        WHERE {resolved.where_clause}
        GROUP BY function_path
        ORDER BY function_path
        """,
        resolved.params,
    )
    aggregates = [
        {
            "functionPath": row["function_path"],
            "avgExecutionTime": float(row["avg_execution_time"]),
            "totalCount": int(row["total_count"]),
        }
        for row in aggregate_rows
    ]
    aggregates.sort(key=lambda a: (-a["avgExecutionTime"], a["functionPath"]))
    slowest = [a["functionPath"] for a in aggregates[:EXECUTION_TIME_TOP_N]]

    for row in rows:
        row["avg_execution_time"] = float(row["avg_execution_time"])
    # Buckets where none of the slowest functions ran keep just their date
    data = [
        {"date": point["date"], **{path: point[path] for path in slowest if path in point}}
        for point in _bucket_series(rows, "avg_execution_time")
    ]

    return {"data": data, "functions": slowest, "aggregates": aggregates}


async def get_console_logs(
    store: AnalyticsStore,
    time_range: str = DEFAULT_RANGE,
    custom_start: Optional[DateLike] = None,
    custom_end: Optional[DateLike] = None,
    function_path: Optional[str] = None,
    log_level: Optional[str] = None,
    search_query: Optional[str] = None,
    limit: int = LOG_LIMIT_DEFAULT,
) -> list[dict]:
    """
    Newest-first console lines matching every given filter.
    The search is a case-insensitive substring match on the message.
    """
    resolved = resolve_time_range(time_range, custom_start, custom_end)
    where = [resolved.where_clause]
    params: dict[str, Any] = dict(resolved.params)

    if function_path and function_path != ALL_FILTER:
        where.append("function_path = {functionPath:String}")
        params["functionPath"] = function_path

    if log_level and log_level != ALL_FILTER:
        where.append("log_level = {logLevel:String}")
        params["logLevel"] = log_level

    if search_query and search_query.strip():
        where.append("positionCaseInsensitive(message, {searchQuery:String}) > 0")
        params["searchQuery"] = search_query.strip()

    params["limit"] = clamp_log_limit(limit)

    rows = await store.query(
        f"""
        SELECT {", ".join(console_log.COLUMNS)}
        FROM {console_log.TABLE_NAME}
        WHERE {" AND ".join(where)}
        ORDER BY timestamp DESC
        LIMIT {{limit:UInt32}}
        """,
        params,
    )
    return [{**row, "timestamp": to_iso(row["timestamp"])} for row in rows]


async def get_dashboard_overview(
    store: AnalyticsStore,
    time_range: str = DEFAULT_RANGE,
    custom_start: Optional[DateLike] = None,
    custom_end: Optional[DateLike] = None,
) -> dict:
    """All three charts for one range, queried concurrently."""
    # Resolve once up front so a bad range fails before any query is issued
    resolve_time_range(time_range, custom_start, custom_end)

    throughput, failure_rate, execution_time = await asyncio.gather(
        get_convex_functions(store, time_range, custom_start, custom_end),
        get_failure_rate(store, time_range, custom_start, custom_end),
        get_execution_time(store, time_range, custom_start, custom_end),
    )
    return {
        "throughput": throughput,
        "failureRate": failure_rate,
        "executionTime": execution_time,
    }
