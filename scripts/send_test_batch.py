"""
Send a synthetic log stream batch to a running ingest server.

Usage:
    python scripts/send_test_batch.py
    python scripts/send_test_batch.py --count 500 --failure-rate 0.1
    python scripts/send_test_batch.py --secret my_webhook_secret --base-url http://localhost:3000
"""
import argparse
import asyncio
import json
import logging
import random
import time
import uuid

import httpx

from convex_insights.utils.webhook_signatures import SIGNATURE_HEADER, compute_signature

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

BASE_URL = "http://localhost:3000"

FUNCTIONS = [
    ("query", "messages:list"),
    ("query", "users:get"),
    ("mutation", "messages:send"),
    ("mutation", "users:update"),
    ("action", "openai:chat"),
    ("http_action", "POST /webhook"),
]

DEPLOYMENT = {
    "deployment_name": "happy-otter-123",
    "deployment_type": "dev",
    "project_name": "Demo",
    "project_slug": "demo",
}


def build_execution_event(function_type: str, path: str, failure_rate: float) -> dict:
    failed = random.random() < failure_rate
    return {
        "topic": "function_execution",
        "timestamp": int(time.time() * 1000),
        "convex": DEPLOYMENT,
        "function": {
            "type": function_type,
            "path": path,
            "cached": function_type == "query" and random.random() < 0.3,
            "request_id": uuid.uuid4().hex[:16],
        },
        "execution_time_ms": round(random.uniform(2, 400), 2),
        "status": "failure" if failed else "success",
        "error_message": "Uncaught Error: simulated failure" if failed else None,
        "usage": {
            "database_read_bytes": random.randint(0, 50_000),
            "database_write_bytes": random.randint(0, 5_000) if function_type == "mutation" else 0,
            "database_read_documents": random.randint(0, 100),
            "file_storage_read_bytes": 0,
            "file_storage_write_bytes": 0,
            "vector_storage_read_bytes": 0,
            "vector_storage_write_bytes": 0,
            "memory_used_mb": round(random.uniform(20, 120), 1),
        },
    }


def build_console_event(function_type: str, path: str) -> dict:
    level = random.choice(["DEBUG", "INFO", "LOG", "WARN", "ERROR"])
    return {
        "topic": "console",
        "timestamp": int(time.time() * 1000),
        "convex": DEPLOYMENT,
        "function": {
            "type": function_type,
            "path": path,
            "request_id": uuid.uuid4().hex[:16],
        },
        "log_level": level,
        "message": f"[{level}] handled request in {path}",
        "is_truncated": False,
    }


def build_batch(count: int, failure_rate: float) -> bytes:
    events = []
    for _ in range(count):
        function_type, path = random.choice(FUNCTIONS)
        events.append(build_execution_event(function_type, path, failure_rate))
        if random.random() < 0.5:
            events.append(build_console_event(function_type, path))
    return "\n".join(json.dumps(e) for e in events).encode("utf-8")


async def send_batch(base_url: str, body: bytes, secret: str) -> httpx.Response:
    headers = {"Content-Type": "application/x-ndjson"}
    if secret:
        headers[SIGNATURE_HEADER] = compute_signature(secret, body)
    async with httpx.AsyncClient(timeout=30) as client:
        resp = await client.post(f"{base_url}/ingest", content=body, headers=headers)
        logger.info("Ingest response: %s %s", resp.status_code, resp.text)
        return resp


def main():
    parser = argparse.ArgumentParser(description="Send a synthetic batch to /ingest")
    parser.add_argument("--base-url", default=BASE_URL)
    parser.add_argument("--count", type=int, default=100, help="Function executions to generate")
    parser.add_argument("--failure-rate", type=float, default=0.05)
    parser.add_argument("--secret", default="", help="Webhook secret used to sign the batch")
    args = parser.parse_args()

    body = build_batch(args.count, args.failure_rate)
    asyncio.run(send_batch(args.base_url, body, args.secret))


if __name__ == "__main__":
    main()
