"""
Create the analytics store tables (idempotent).

Usage:
    CLICKHOUSE_URL=http://localhost:8123 python scripts/setup_store.py
"""
import asyncio
import logging
import sys

from convex_insights.config import get_settings
from convex_insights.store import ClickHouseStore, StoreError

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def setup() -> int:
    store = ClickHouseStore.from_settings(get_settings())
    try:
        await store.setup_schema()
    except StoreError as e:
        logger.error("Schema setup failed: %s", str(e))
        return 1
    finally:
        await store.close()
    logger.info("Database setup completed successfully")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(setup()))
