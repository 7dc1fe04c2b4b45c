"""
API response schemas for the ingest and analytics endpoints.
"""
from typing import Optional
from pydantic import BaseModel


class IngestResponse(BaseModel):
    message: str = "Event ingested"


class ReadinessResponse(BaseModel):
    status: str
    checks: dict[str, bool]
    timestamp: str


class FailureRateAggregate(BaseModel):
    functionPath: str
    totalCount: int
    failureCount: int
    failureRate: float


class FailureRateResponse(BaseModel):
    data: list[dict]
    functions: list[str]
    aggregates: list[FailureRateAggregate]


class ExecutionTimeAggregate(BaseModel):
    functionPath: str
    avgExecutionTime: float
    totalCount: int


class ExecutionTimeResponse(BaseModel):
    data: list[dict]
    functions: list[str]
    aggregates: list[ExecutionTimeAggregate]


class ConsoleLogEntry(BaseModel):
    function_type: str
    function_path: str
    function_cached: Optional[bool] = None
    request_id: str
    timestamp: str
    log_level: str
    message: str
    is_truncated: bool
    system_code: Optional[str] = None
