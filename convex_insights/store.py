"""
Analytics store client - ClickHouse over its HTTP interface.

Rows go in and come out as JSONEachRow (one JSON object per line).
Query parameters are bound server-side via param_<name> so no user input
is ever interpolated into SQL text.

The client is constructed once at startup (see main.lifespan), stored on
app.state and handed to request handlers through the get_store dependency.
"""
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
from fastapi import Request

from convex_insights.models import ALL_TABLES

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Insert or query against the analytics store failed."""


class AnalyticsStore(ABC):
    """Abstract interface for the columnar analytics store."""

    @abstractmethod
    async def insert(self, table: str, rows: list[dict]) -> None:
        """Bulk insert rows into a table. All-or-nothing per call."""
        ...

    @abstractmethod
    async def query(self, sql: str, params: Optional[dict] = None) -> list[dict]:
        """Run a SELECT and return one dict per result row."""
        ...

    @abstractmethod
    async def command(self, sql: str) -> None:
        """Run a statement that returns no rows (DDL)."""
        ...

    @abstractmethod
    async def ping(self) -> bool:
        ...

    async def close(self) -> None:
        return None

    async def setup_schema(self) -> None:
        """Create every known table if it does not exist yet."""
        for table in ALL_TABLES:
            await self.command(table.DDL)
            logger.info("Store table ready: %s", table.TABLE_NAME, extra={"table": table.TABLE_NAME})


def format_query_param(value: Any) -> str:
    """Render a Python value in the text form ClickHouse expects for param_<name>."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_quote_array_item(v) for v in value) + "]"
    return str(value)


def _quote_array_item(value: Any) -> str:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    text = format_query_param(value)
    escaped = text.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


class ClickHouseStore(AnalyticsStore):
    """ClickHouse HTTP interface client."""

    def __init__(
        self,
        url: str,
        username: str = "default",
        password: str = "",
        database: str = "default",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url.rstrip("/")
        self.database = database
        self._headers = {
            "X-ClickHouse-User": username,
            "X-ClickHouse-Key": password,
            "X-ClickHouse-Database": database,
        }
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_settings(cls, settings) -> "ClickHouseStore":
        return cls(
            url=settings.clickhouse_url,
            username=settings.clickhouse_username,
            password=settings.clickhouse_password,
            database=settings.clickhouse_database,
            timeout=settings.clickhouse_timeout_seconds,
        )

    async def _post(self, content: str, params: Optional[dict] = None) -> httpx.Response:
        """POST to the HTTP interface and translate failures into StoreError."""
        try:
            response = await self._client.post(
                f"{self.url}/",
                params=params,
                content=content.encode("utf-8"),
                headers=self._headers,
            )
            response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            detail = e.response.text.strip()[:500]
            logger.error("ClickHouse returned %d: %s", e.response.status_code, detail)
            raise StoreError(f"ClickHouse error {e.response.status_code}: {detail}") from e
        except httpx.HTTPError as e:
            logger.error("ClickHouse request failed: %s", str(e))
            raise StoreError(f"ClickHouse request failed: {e}") from e

    async def insert(self, table: str, rows: list[dict]) -> None:
        if not rows:
            return
        body = "\n".join(json.dumps(row, default=str) for row in rows)
        await self._post(body, params={"query": f"INSERT INTO {table} FORMAT JSONEachRow"})

    async def query(self, sql: str, params: Optional[dict] = None) -> list[dict]:
        url_params = {
            f"param_{name}": format_query_param(value)
            for name, value in (params or {}).items()
        }
        statement = sql.strip().rstrip(";") + "\nFORMAT JSONEachRow"
        response = await self._post(statement, params=url_params)
        return [json.loads(line) for line in response.text.splitlines() if line.strip()]

    async def command(self, sql: str) -> None:
        await self._post(sql.strip())

    async def ping(self) -> bool:
        try:
            response = await self._client.get(f"{self.url}/ping")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning("ClickHouse ping failed: %s", str(e))
            return False

    async def close(self) -> None:
        await self._client.aclose()


def get_store(request: Request) -> AnalyticsStore:
    """FastAPI dependency returning the store client created at startup."""
    return request.app.state.store
