"""
Time range resolution for dashboard queries.

A logical selector (1m / 1h / 1d / all / custom) becomes a WHERE clause,
its bound parameters, and a bucket width chosen so a chart never has more
than roughly 1500 points:

    window <= 1 minute  -> 1 second
    window <= 1 hour    -> 5 seconds
    window <= 1 day     -> 1 minute
    window <= 1 week    -> 10 minutes  (only reachable with a custom range)
    longer / all time   -> 1 hour
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

MINUTE = 60
HOUR = 60 * MINUTE
DAY = 24 * HOUR
WEEK = 7 * DAY

# (max window seconds, bucket seconds), evaluated in order
BUCKET_WIDTHS: tuple[tuple[int, int], ...] = (
    (MINUTE, 1),
    (HOUR, 5),
    (DAY, MINUTE),
    (WEEK, 10 * MINUTE),
)
LONG_RANGE_BUCKET_SECONDS = HOUR


class RangeSelector(str, Enum):
    LAST_MINUTE = "1m"
    LAST_HOUR = "1h"
    LAST_DAY = "1d"
    ALL = "all"
    CUSTOM = "custom"


RELATIVE_WINDOW_SECONDS = {
    RangeSelector.LAST_MINUTE: MINUTE,
    RangeSelector.LAST_HOUR: HOUR,
    RangeSelector.LAST_DAY: DAY,
}

DEFAULT_RANGE = RangeSelector.LAST_HOUR

DateLike = Union[str, datetime]


@dataclass(frozen=True)
class ResolvedRange:
    """Concrete filter and bucket width for one query."""
    selector: RangeSelector
    where_clause: str
    bucket_seconds: int
    params: dict = field(default_factory=dict)

    @property
    def bucket_interval(self) -> str:
        """Bucket width as a ClickHouse INTERVAL body, e.g. '5 SECOND'."""
        if self.bucket_seconds % HOUR == 0:
            return f"{self.bucket_seconds // HOUR} HOUR"
        if self.bucket_seconds % MINUTE == 0:
            return f"{self.bucket_seconds // MINUTE} MINUTE"
        return f"{self.bucket_seconds} SECOND"


def bucket_seconds_for(window_seconds: float) -> int:
    """Bucket width for a window of the given length."""
    for max_window, bucket in BUCKET_WIDTHS:
        if window_seconds <= max_window:
            return bucket
    return LONG_RANGE_BUCKET_SECONDS


def parse_datetime(value: DateLike) -> datetime:
    """Accept ISO-8601 strings (with or without 'Z') or datetimes. Naive means UTC."""
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            raise ValueError(f"Invalid datetime: {value!r}")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def resolve_time_range(
    selector: Union[RangeSelector, str] = DEFAULT_RANGE,
    custom_start: Optional[DateLike] = None,
    custom_end: Optional[DateLike] = None,
) -> ResolvedRange:
    """
    Resolve a selector into a ResolvedRange.
    Raises ValueError for an unknown selector or an incomplete/inverted custom range.
    """
    selector = RangeSelector(selector)

    if selector is RangeSelector.CUSTOM:
        if custom_start is None or custom_end is None:
            raise ValueError("A custom range requires both start and end")
        start = parse_datetime(custom_start)
        end = parse_datetime(custom_end)
        if end < start:
            raise ValueError("Custom range end is before its start")
        return ResolvedRange(
            selector=selector,
            where_clause="timestamp >= {startDate:DateTime64(3)} AND timestamp <= {endDate:DateTime64(3)}",
            bucket_seconds=bucket_seconds_for((end - start).total_seconds()),
            params={"startDate": start, "endDate": end},
        )

    if selector is RangeSelector.ALL:
        return ResolvedRange(
            selector=selector,
            where_clause="1 = 1",
            bucket_seconds=LONG_RANGE_BUCKET_SECONDS,
        )

    window = RELATIVE_WINDOW_SECONDS[selector]
    return ResolvedRange(
        selector=selector,
        where_clause=f"timestamp >= now() - INTERVAL {window} SECOND",
        bucket_seconds=bucket_seconds_for(window),
    )
