"""
Log stream event schemas - the shapes the platform delivers to /ingest.

Every event carries a `topic` discriminant. Types are strict: a string where
a number is expected is a violation, not something to coerce. Unknown keys
are ignored so new producer fields don't break ingestion.
"""
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

StrictStr = Annotated[str, Field(strict=True)]
StrictBool = Annotated[bool, Field(strict=True)]
# Finite values only: NaN and infinities are violations
Number = Annotated[float, Field(strict=True, allow_inf_nan=False)]

FunctionType = Literal["query", "mutation", "action", "http_action"]
LogLevel = Literal["DEBUG", "INFO", "LOG", "WARN", "ERROR"]
ExecutionStatus = Literal["success", "failure"]

FUNCTION_TYPES: tuple[str, ...] = ("query", "mutation", "action", "http_action")

TOPIC_VERIFICATION = "verification"
TOPIC_CONSOLE = "console"
TOPIC_FUNCTION_EXECUTION = "function_execution"


class DeploymentInfo(BaseModel):
    """Deployment the event was emitted from."""
    deployment_name: StrictStr
    deployment_type: StrictStr
    project_name: StrictStr
    project_slug: StrictStr


class FunctionRef(BaseModel):
    """The function invocation an event belongs to."""
    type: FunctionType
    path: StrictStr
    cached: Optional[StrictBool] = None
    request_id: StrictStr


class SchedulerInfo(BaseModel):
    job_id: StrictStr


class UsageStats(BaseModel):
    """Resource usage of a single execution."""
    database_read_bytes: Number
    database_write_bytes: Number
    database_read_documents: Number
    file_storage_read_bytes: Number
    file_storage_write_bytes: Number
    vector_storage_read_bytes: Number
    vector_storage_write_bytes: Number
    memory_used_mb: Number


class BaseEvent(BaseModel):
    timestamp: Number  # epoch milliseconds, producer clock
    deployment: DeploymentInfo = Field(alias="convex")


class VerificationEvent(BaseEvent):
    """Connectivity check sent when the webhook is configured. Never stored."""
    topic: Literal["verification"]
    message: StrictStr


class ConsoleLogEvent(BaseEvent):
    topic: Literal["console"]
    function: FunctionRef
    log_level: LogLevel
    message: StrictStr
    is_truncated: StrictBool
    system_code: Optional[StrictStr] = None


class FunctionExecutionEvent(BaseEvent):
    topic: Literal["function_execution"]
    function: FunctionRef
    execution_time_ms: Number
    status: ExecutionStatus
    error_message: Optional[StrictStr] = None
    # May be absent, but an explicit null is a violation
    mutation_queue_length: Number = None
    mutation_retry_count: Number = None
    scheduler_info: Optional[SchedulerInfo] = None
    usage: UsageStats


LogStreamEvent = Annotated[
    Union[VerificationEvent, ConsoleLogEvent, FunctionExecutionEvent],
    Field(discriminator="topic"),
]

log_stream_event_adapter: TypeAdapter = TypeAdapter(LogStreamEvent)
