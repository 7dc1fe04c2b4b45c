"""
console_log table - one row per console line emitted by a function.
"""

TABLE_NAME = "console_log"

COLUMNS = (
    "function_type",
    "function_path",
    "function_cached",
    "request_id",
    "timestamp",
    "log_level",
    "message",
    "is_truncated",
    "system_code",
)

DDL = f"""
CREATE TABLE IF NOT EXISTS {TABLE_NAME}
(
    function_type LowCardinality(String),
    function_path String,
    function_cached Nullable(Bool),
    request_id String,
    timestamp DateTime('UTC'),
    log_level LowCardinality(String),
    message String,
    is_truncated Bool,
    system_code Nullable(String)
)
ENGINE = MergeTree
ORDER BY timestamp
"""
