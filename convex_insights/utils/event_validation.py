"""
Event validation - turns pydantic errors into per-field violations.

A failed event reports every violated constraint, not just the first, and
each violation says whether the field was absent, null, the wrong type, or
outside its allowed values. Nested `function` / `usage` failures keep their
dotted path so they are attributed to the parent event.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from convex_insights.schemas.events import log_stream_event_adapter

M = TypeVar("M", bound=BaseModel)

MAX_INPUT_REPR = 60

_INVALID_VALUE_TYPES = {"literal_error", "enum", "union_tag_invalid", "finite_number"}


class ViolationCause(str, Enum):
    MISSING = "missing"
    NULL = "null"
    WRONG_TYPE = "wrong_type"
    INVALID_VALUE = "invalid_value"


@dataclass(frozen=True)
class FieldViolation:
    path: str
    cause: ViolationCause
    message: str

    def describe(self) -> str:
        return f"{self.path} {self.message}"


class EventValidationError(Exception):
    """An event did not match its schema. Carries every violation found."""

    def __init__(self, violations: list[FieldViolation], topic: Any = None):
        self.violations = violations
        self.topic = topic
        super().__init__(self.summary)

    @property
    def summary(self) -> str:
        return "; ".join(v.describe() for v in self.violations)


def _short_repr(value: Any) -> str:
    text = repr(value)
    if len(text) > MAX_INPUT_REPR:
        text = text[: MAX_INPUT_REPR - 3] + "..."
    return text


def _classify(error: dict) -> ViolationCause:
    error_type = error.get("type", "")
    if error_type in ("missing", "union_tag_not_found"):
        return ViolationCause.MISSING
    if error.get("input", ...) is None:
        return ViolationCause.NULL
    if error_type in _INVALID_VALUE_TYPES:
        return ViolationCause.INVALID_VALUE
    return ViolationCause.WRONG_TYPE


def violations_from_error(exc: ValidationError, strip_prefix: Any = None) -> list[FieldViolation]:
    """Convert a pydantic ValidationError into FieldViolations."""
    violations = []
    for error in exc.errors():
        loc = list(error.get("loc", ()))
        if strip_prefix is not None and loc and loc[0] == strip_prefix:
            loc = loc[1:]
        if error.get("type") in ("union_tag_not_found", "union_tag_invalid"):
            loc = ["topic"]
        path = ".".join(str(part) for part in loc) or "event"

        cause = _classify(error)
        if cause is ViolationCause.MISSING:
            message = "is missing"
        elif cause is ViolationCause.NULL:
            message = "must not be null"
        else:
            message = f"{error.get('msg', 'is invalid')} (was {_short_repr(error.get('input'))})"
        violations.append(FieldViolation(path=path, cause=cause, message=message))
    return violations


def parse_event(model: type[M], raw: Any) -> M:
    """Validate a raw record against one event shape. Raises EventValidationError."""
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        topic = raw.get("topic") if isinstance(raw, dict) else None
        raise EventValidationError(violations_from_error(e), topic=topic) from e


def parse_any_event(raw: Any) -> BaseModel:
    """
    Validate a raw record against whichever shape its `topic` selects.

    Standalone entry point for callers holding a single event (scripts,
    tooling). The ingest pipeline groups a batch by topic first and calls
    parse_event per group so unknown topics can be ignored rather than
    reported as violations.
    """
    topic = raw.get("topic") if isinstance(raw, dict) else None
    try:
        return log_stream_event_adapter.validate_python(raw)
    except ValidationError as e:
        raise EventValidationError(violations_from_error(e, strip_prefix=topic), topic=topic) from e
