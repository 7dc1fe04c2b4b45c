"""
Analytics API - chart and log queries consumed by the dashboard.

Ranges are passed as ?range=1m|1h|1d|all|custom, with start/end
(ISO-8601) when range=custom.
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from convex_insights.schemas.api_responses import (
    ConsoleLogEntry,
    ExecutionTimeResponse,
    FailureRateResponse,
)
from convex_insights.services import analytics
from convex_insights.services.time_range import DEFAULT_RANGE, RangeSelector, resolve_time_range
from convex_insights.store import AnalyticsStore, get_store

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/analytics", tags=["analytics"])


class RangeParams:
    """Shared ?range / ?start / ?end query parameters."""

    def __init__(
        self,
        time_range: RangeSelector = Query(DEFAULT_RANGE, alias="range"),
        start: Optional[datetime] = Query(None),
        end: Optional[datetime] = Query(None),
    ):
        try:
            resolve_time_range(time_range, start, end)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        self.time_range = time_range
        self.start = start
        self.end = end

    def as_args(self) -> tuple:
        return self.time_range, self.start, self.end


@router.get("/throughput")
async def throughput(
    params: RangeParams = Depends(),
    store: AnalyticsStore = Depends(get_store),
):
    """Executions per second per function type."""
    return await analytics.get_convex_functions(store, *params.as_args())


@router.get("/failure-rate", response_model=FailureRateResponse)
async def failure_rate(
    params: RangeParams = Depends(),
    store: AnalyticsStore = Depends(get_store),
):
    return await analytics.get_failure_rate(store, *params.as_args())


@router.get("/execution-time", response_model=ExecutionTimeResponse)
async def execution_time(
    params: RangeParams = Depends(),
    store: AnalyticsStore = Depends(get_store),
):
    return await analytics.get_execution_time(store, *params.as_args())


@router.get("/overview")
async def overview(
    params: RangeParams = Depends(),
    store: AnalyticsStore = Depends(get_store),
):
    """Throughput, failure rate and execution time in one round trip."""
    return await analytics.get_dashboard_overview(store, *params.as_args())


@router.get("/logs", response_model=list[ConsoleLogEntry])
async def console_logs(
    params: RangeParams = Depends(),
    function_path: Optional[str] = Query(None),
    log_level: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    limit: int = Query(analytics.LOG_LIMIT_DEFAULT),
    store: AnalyticsStore = Depends(get_store),
):
    """Console log lines, newest first. `limit` is clamped server-side."""
    return await analytics.get_console_logs(
        store,
        *params.as_args(),
        function_path=function_path,
        log_level=log_level,
        search_query=search,
        limit=limit,
    )


@router.get("/functions", response_model=list[str])
async def function_list(store: AnalyticsStore = Depends(get_store)):
    return await analytics.get_function_list(store)
