"""
function_execution table - one row per completed function invocation.
Timestamps are stored at second resolution (DateTime, UTC).
"""

TABLE_NAME = "function_execution"

USAGE_FIELDS = (
    "database_read_bytes",
    "database_write_bytes",
    "database_read_documents",
    "file_storage_read_bytes",
    "file_storage_write_bytes",
    "vector_storage_read_bytes",
    "vector_storage_write_bytes",
    "memory_used_mb",
)

COLUMNS = (
    "function_type",
    "function_path",
    "function_cached",
    "request_id",
    "timestamp",
    "status",
    "error_message",
    "mutation_queue_length",
    "mutation_retry_count",
    "scheduler_job_id",
    "execution_time_ms",
) + tuple(f"usage_{name}" for name in USAGE_FIELDS)

DDL = f"""
CREATE TABLE IF NOT EXISTS {TABLE_NAME}
(
    function_type LowCardinality(String),
    function_path String,
    function_cached Nullable(Bool),
    request_id String,
    timestamp DateTime('UTC'),
    status LowCardinality(String),
    error_message Nullable(String),
    mutation_queue_length Nullable(UInt32),
    mutation_retry_count Nullable(UInt32),
    scheduler_job_id Nullable(String),
    execution_time_ms Float64,
    usage_database_read_bytes UInt64,
    usage_database_write_bytes UInt64,
    usage_database_read_documents UInt64,
    usage_file_storage_read_bytes UInt64,
    usage_file_storage_write_bytes UInt64,
    usage_vector_storage_read_bytes UInt64,
    usage_vector_storage_write_bytes UInt64,
    usage_memory_used_mb Float64
)
ENGINE = MergeTree
ORDER BY (function_path, timestamp)
"""
