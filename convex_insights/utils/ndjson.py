"""
Newline-delimited JSON batches - one event object per line.

A line that doesn't parse fails the whole batch: that means the transport
mangled the body, which is a different problem from a well-formed event
with bad fields.
"""
import json
from typing import Any, Optional


class BatchFormatError(Exception):
    """The request body is not a valid newline-delimited JSON batch."""

    def __init__(self, message: str, line_number: Optional[int] = None):
        self.line_number = line_number
        super().__init__(message)


def _decode(body: bytes) -> str:
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise BatchFormatError(f"Batch is not valid UTF-8: {e}") from e


def _parse_line(line: str, line_number: int) -> Any:
    def reject_constant(name: str) -> Any:
        # NaN / Infinity / -Infinity are not JSON
        raise BatchFormatError(f"Line {line_number} is not valid JSON: {name} is not allowed", line_number)

    try:
        return json.loads(line, parse_constant=reject_constant)
    except json.JSONDecodeError as e:
        raise BatchFormatError(f"Line {line_number} is not valid JSON: {e.msg}", line_number) from e


def parse_batch(body: bytes) -> list[Any]:
    """Parse every line of the batch. Blank lines (e.g. a trailing newline) are skipped."""
    events = []
    for line_number, line in enumerate(_decode(body).split("\n"), start=1):
        if not line.strip():
            continue
        events.append(_parse_line(line, line_number))
    return events


def parse_first_event(body: bytes) -> Any:
    """Parse only the first non-blank line. Returns None for an empty batch."""
    for line_number, line in enumerate(_decode(body).split("\n"), start=1):
        if line.strip():
            return _parse_line(line, line_number)
    return None
