"""
Store tables - import every table module here so schema setup can discover them.
"""
from convex_insights.models import console_log, function_execution

ALL_TABLES = (function_execution, console_log)

__all__ = [
    "ALL_TABLES",
    "console_log",
    "function_execution",
]
