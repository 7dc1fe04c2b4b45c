"""
Tests for analytics service - chart queries and result reshaping.
The store is mocked; rows look like ClickHouse JSONEachRow output
(64-bit counts arrive as strings).
"""
from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import AsyncMock

from convex_insights.services.analytics import (
    LOG_LIMIT_MAX,
    clamp_log_limit,
    get_console_logs,
    get_convex_functions,
    get_dashboard_overview,
    get_execution_time,
    get_failure_rate,
    get_function_list,
    to_iso,
)
from convex_insights.store import StoreError

BASE = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def _bucket(offset_seconds: int) -> str:
    return (BASE + timedelta(seconds=offset_seconds)).strftime("%Y-%m-%d %H:%M:%S")


def _sql(mock_store, call_index: int = 0) -> str:
    return mock_store.query.await_args_list[call_index].args[0]


def _params(mock_store, call_index: int = 0) -> dict:
    args = mock_store.query.await_args_list[call_index].args
    return args[1] if len(args) > 1 else {}


class TestToIso:
    def test_store_datetime_text(self):
        assert to_iso("2025-03-01 12:00:05") == "2025-03-01T12:00:05.000Z"

    def test_epoch_seconds(self):
        assert to_iso(BASE.timestamp()) == "2025-03-01T12:00:00.000Z"


class TestThroughput:
    @pytest.mark.asyncio
    async def test_hour_of_steady_queries(self, mock_store):
        """3600 query executions over an hour -> 720 five-second buckets at 1/sec."""
        mock_store.query.return_value = [
            {"function_type": "query", "time_bucket": _bucket(i * 5), "record_count": "5"}
            for i in range(720)
        ]

        data = await get_convex_functions(mock_store, "1h")

        assert len(data) == 720
        assert all(point["query"] == pytest.approx(1.0) for point in data)
        assert all(point["mutation"] == 0 for point in data)
        assert data[0]["date"] == "2025-03-01T12:00:00.000Z"
        assert data[1]["date"] == "2025-03-01T12:00:05.000Z"
        assert "INTERVAL 5 SECOND" in _sql(mock_store)

    @pytest.mark.asyncio
    async def test_zero_fills_missing_types(self, mock_store):
        mock_store.query.return_value = [
            {"function_type": "mutation", "time_bucket": _bucket(0), "record_count": "120"},
            {"function_type": "http_action", "time_bucket": _bucket(0), "record_count": "60"},
            {"function_type": "action", "time_bucket": _bucket(60), "record_count": "30"},
        ]

        data = await get_convex_functions(mock_store, "1d")

        assert data == [
            {"date": "2025-03-01T12:00:00.000Z", "query": 0.0, "mutation": 2.0, "action": 0.0, "http_action": 1.0},
            {"date": "2025-03-01T12:01:00.000Z", "query": 0.0, "mutation": 0.0, "action": 0.5, "http_action": 0.0},
        ]

    @pytest.mark.asyncio
    async def test_custom_range_passes_bound_params(self, mock_store):
        start = BASE
        end = BASE + timedelta(hours=2)
        await get_convex_functions(mock_store, "custom", start, end)

        assert "INTERVAL 1 MINUTE" in _sql(mock_store)
        assert _params(mock_store) == {"startDate": start, "endDate": end}

    @pytest.mark.asyncio
    async def test_empty(self, mock_store):
        assert await get_convex_functions(mock_store, "all") == []


class TestFailureRate:
    @pytest.mark.asyncio
    async def test_only_failing_functions_charted(self, mock_store):
        """foo:bar fails 10/100, foo:baz never fails and is excluded."""
        mock_store.query = AsyncMock(side_effect=[
            [{"function_path": "foo:bar"}],
            [
                {"function_path": "foo:bar", "time_bucket": _bucket(0), "total_count": "50", "failure_count": "10"},
                {"function_path": "foo:bar", "time_bucket": _bucket(3600), "total_count": "50", "failure_count": "0"},
            ],
            [{"function_path": "foo:bar", "total_count": "100", "failure_count": "10"}],
        ])

        result = await get_failure_rate(mock_store, "all")

        assert result["functions"] == ["foo:bar"]
        assert "foo:baz" not in result["functions"]
        assert result["aggregates"] == [
            {"functionPath": "foo:bar", "totalCount": 100, "failureCount": 10, "failureRate": 10.0},
        ]
        assert result["data"] == [
            {"date": "2025-03-01T12:00:00.000Z", "foo:bar": 20.0},
            {"date": "2025-03-01T13:00:00.000Z", "foo:bar": 0.0},
        ]
        assert "status = 'failure'" in _sql(mock_store, 0)
        assert _params(mock_store, 1)["functionPaths"] == ["foo:bar"]
        assert _params(mock_store, 2)["functionPaths"] == ["foo:bar"]

    @pytest.mark.asyncio
    async def test_no_failures_returns_empty(self, mock_store):
        mock_store.query.return_value = []

        result = await get_failure_rate(mock_store, "1h")

        assert result == {"data": [], "functions": [], "aggregates": []}
        assert mock_store.query.await_count == 1

    @pytest.mark.asyncio
    async def test_aggregates_sorted_by_descending_rate(self, mock_store):
        mock_store.query = AsyncMock(side_effect=[
            [{"function_path": "a:low"}, {"function_path": "b:high"}, {"function_path": "c:mid"}],
            [],
            [
                {"function_path": "a:low", "total_count": "100", "failure_count": "1"},
                {"function_path": "b:high", "total_count": "10", "failure_count": "5"},
                {"function_path": "c:mid", "total_count": "10", "failure_count": "2"},
            ],
        ])

        result = await get_failure_rate(mock_store, "1d")

        assert [a["functionPath"] for a in result["aggregates"]] == ["b:high", "c:mid", "a:low"]
        assert result["aggregates"][0]["failureRate"] == 50.0


class TestExecutionTime:
    @pytest.mark.asyncio
    async def test_top_ten_slowest_charted(self, mock_store):
        """15 functions -> exactly the 10 with the highest whole-window averages."""
        paths = [f"fn:{i:02d}" for i in range(15)]
        series_rows = [
            {"function_path": p, "time_bucket": _bucket(0), "avg_execution_time": float(i * 10)}
            for i, p in enumerate(paths)
        ]
        aggregate_rows = [
            {"function_path": p, "avg_execution_time": float(i * 10), "total_count": "4"}
            for i, p in enumerate(paths)
        ]
        mock_store.query = AsyncMock(side_effect=[series_rows, aggregate_rows])

        result = await get_execution_time(mock_store, "1h")

        expected = [f"fn:{i:02d}" for i in range(14, 4, -1)]
        assert result["functions"] == expected
        assert len(result["functions"]) == 10
        assert len(result["aggregates"]) == 15
        assert result["aggregates"][0] == {"functionPath": "fn:14", "avgExecutionTime": 140.0, "totalCount": 4}
        point = result["data"][0]
        assert set(point) == {"date", *expected}
        assert "fn:00" not in point

    @pytest.mark.asyncio
    async def test_bucket_without_top_functions_keeps_date(self, mock_store):
        mock_store.query = AsyncMock(side_effect=[
            [
                {"function_path": "slow", "time_bucket": _bucket(0), "avg_execution_time": "900.5"},
            ] + [
                {"function_path": f"fast:{i}", "time_bucket": _bucket(5), "avg_execution_time": "1"}
                for i in range(10)
            ],
            [{"function_path": "slow", "avg_execution_time": "900.5", "total_count": "1"}] + [
                {"function_path": f"fast:{i}", "avg_execution_time": "1", "total_count": "1"}
                for i in range(10)
            ],
        ])

        result = await get_execution_time(mock_store, "1h")

        assert "slow" in result["functions"]
        assert len(result["functions"]) == 10
        assert result["data"][0] == {"date": "2025-03-01T12:00:00.000Z", "slow": 900.5}
        assert result["data"][1]["date"] == "2025-03-01T12:00:05.000Z"

    @pytest.mark.asyncio
    async def test_no_data_returns_empty(self, mock_store):
        result = await get_execution_time(mock_store, "1m")
        assert result == {"data": [], "functions": [], "aggregates": []}
        assert mock_store.query.await_count == 1


class TestConsoleLogs:
    def test_clamp_log_limit(self):
        assert clamp_log_limit(50000) == LOG_LIMIT_MAX == 10000
        assert clamp_log_limit(0) == 1
        assert clamp_log_limit(-5) == 1
        assert clamp_log_limit(250) == 250
        assert clamp_log_limit(12.9) == 12
        assert clamp_log_limit("bogus") == 1000

    @pytest.mark.asyncio
    async def test_limit_capped(self, mock_store):
        await get_console_logs(mock_store, "1h", limit=50000)
        assert _params(mock_store)["limit"] == 10000
        assert "LIMIT {limit:UInt32}" in _sql(mock_store)

    @pytest.mark.asyncio
    async def test_filters_combined_with_and(self, mock_store):
        await get_console_logs(
            mock_store, "1d",
            function_path="messages:send", log_level="ERROR", search_query="  Timeout ",
        )
        sql = _sql(mock_store)
        params = _params(mock_store)
        assert "function_path = {functionPath:String}" in sql
        assert "log_level = {logLevel:String}" in sql
        assert "positionCaseInsensitive(message, {searchQuery:String}) > 0" in sql
        assert sql.count(" AND ") == 3
        assert "ORDER BY timestamp DESC" in sql
        assert params["functionPath"] == "messages:send"
        assert params["logLevel"] == "ERROR"
        assert params["searchQuery"] == "Timeout"

    @pytest.mark.asyncio
    async def test_all_and_blank_filters_ignored(self, mock_store):
        await get_console_logs(mock_store, "all", function_path="all", log_level="all", search_query="   ")
        sql = _sql(mock_store)
        params = _params(mock_store)
        assert "functionPath" not in params
        assert "logLevel" not in params
        assert "searchQuery" not in params
        assert "WHERE 1 = 1" in sql

    @pytest.mark.asyncio
    async def test_rows_get_iso_timestamps(self, mock_store):
        mock_store.query.return_value = [{
            "function_type": "query",
            "function_path": "messages:list",
            "function_cached": None,
            "request_id": "abc",
            "timestamp": "2025-03-01 12:00:07",
            "log_level": "LOG",
            "message": "hi",
            "is_truncated": False,
            "system_code": None,
        }]

        rows = await get_console_logs(mock_store, "1h")

        assert rows[0]["timestamp"] == "2025-03-01T12:00:07.000Z"
        assert rows[0]["message"] == "hi"


class TestFunctionList:
    @pytest.mark.asyncio
    async def test_returns_paths(self, mock_store):
        mock_store.query.return_value = [{"function_path": "a:one"}, {"function_path": "b:two"}]
        assert await get_function_list(mock_store) == ["a:one", "b:two"]
        assert "DISTINCT function_path" in _sql(mock_store)


class TestDashboardOverview:
    @pytest.mark.asyncio
    async def test_combines_all_charts(self, mock_store):
        result = await get_dashboard_overview(mock_store, "1h")

        assert result == {
            "throughput": [],
            "failureRate": {"data": [], "functions": [], "aggregates": []},
            "executionTime": {"data": [], "functions": [], "aggregates": []},
        }
        assert mock_store.query.await_count == 3

    @pytest.mark.asyncio
    async def test_bad_range_fails_before_querying(self, mock_store):
        with pytest.raises(ValueError):
            await get_dashboard_overview(mock_store, "custom")
        mock_store.query.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_store_error_propagates(self, mock_store):
        mock_store.query = AsyncMock(side_effect=StoreError("down"))
        with pytest.raises(StoreError):
            await get_dashboard_overview(mock_store, "1h")
