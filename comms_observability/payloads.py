"""Ingestion models for raw error and network payloads.

Callers hand the collector loosely-shaped dicts (from excepthooks, transport
callbacks or other components). These models validate them at the boundary:
every field is optional, camelCase keys are accepted, and values that cannot
be converted become ``None`` instead of raising.
"""

import math
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def _text_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    try:
        text = str(value)
    except Exception:
        return type(value).__name__ if isinstance(value, BaseException) else None
    if isinstance(value, BaseException):
        return text or type(value).__name__
    return text


def _number_or_none(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


class ErrorPayload(BaseModel):
    """Raw error data as reported by a hook or a caller."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    kind: Optional[str] = Field(default=None, validation_alias=AliasChoices("kind", "type"))
    message: Optional[str] = None
    error_type: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("error_type", "errorType", "name")
    )
    source_location: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("source_location", "sourceLocation", "source")
    )
    line: Optional[int] = Field(default=None, validation_alias=AliasChoices("line", "lineno"))
    stack_trace: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("stack_trace", "stackTrace", "stack")
    )

    @field_validator("kind", "message", "error_type", "source_location", "stack_trace", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Optional[str]:
        return _text_or_none(value)

    @field_validator("line", mode="before")
    @classmethod
    def _coerce_line(cls, value: Any) -> Optional[int]:
        number = _number_or_none(value)
        return int(number) if number is not None else None

    def location(self) -> Optional[str]:
        """Combine source and line into a single ``file:line`` string."""
        if self.source_location and self.line is not None:
            return f"{self.source_location}:{self.line}"
        return self.source_location


class NetworkRequestPayload(BaseModel):
    """Raw outcome of an HTTP call."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    url: Optional[str] = None
    method: Optional[str] = None
    status_code: int = Field(
        default=0, validation_alias=AliasChoices("status_code", "statusCode", "status")
    )
    duration_ms: float = Field(
        default=0.0, validation_alias=AliasChoices("duration_ms", "durationMs", "duration")
    )
    error: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("error", "errorMessage", "error_message")
    )

    @field_validator("url", "method", "error", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Optional[str]:
        return _text_or_none(value)

    @field_validator("status_code", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> int:
        number = _number_or_none(value)
        return int(number) if number is not None else 0

    @field_validator("duration_ms", mode="before")
    @classmethod
    def _coerce_duration(cls, value: Any) -> float:
        number = _number_or_none(value)
        return max(number, 0.0) if number is not None else 0.0
