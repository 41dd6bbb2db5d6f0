"""Pydantic models for events streamed during a deep-thinking session.

The wire format is a JSON object with a required ``type`` field
(``thinking``, ``stage``, ``error`` or ``done``) and optional ``stage``,
``content``, ``thinking``, ``progress`` and ``error`` fields.
"""

import math
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class _WireEvent(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    def to_wire(self) -> dict[str, Any]:
        """Serialize back to the wire representation."""
        return self.model_dump(exclude_none=True)


class _ProgressEvent(_WireEvent):
    progress: int = 0

    @field_validator("progress", mode="before")
    @classmethod
    def _clamp_progress(cls, value: Any) -> int:
        if value is None:
            return 0
        try:
            number = float(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"progress must be a number, got {value!r}") from e
        if not math.isfinite(number):
            raise ValueError(f"progress must be finite, got {value!r}")
        return max(0, min(100, round(number)))


class ThinkingEvent(_ProgressEvent):
    """Intermediate narrative update."""

    type: Literal["thinking"] = "thinking"
    thinking: str = ""


class StageEvent(_ProgressEvent):
    """One completed unit of work."""

    type: Literal["stage"] = "stage"
    stage: str = ""
    content: str = ""
    total_stages: int | None = None


class ErrorEvent(_WireEvent):
    """Terminal failure reported by the service or the transport."""

    type: Literal["error"] = "error"
    error: str | None = None


class DoneEvent(_WireEvent):
    """Terminal success."""

    type: Literal["done"] = "done"


StreamEvent = Annotated[
    ThinkingEvent | StageEvent | ErrorEvent | DoneEvent,
    Field(discriminator="type"),
]

_event_adapter: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)


def parse_event(record: dict[str, Any]) -> StreamEvent:
    """Validate a raw wire record into a typed event.

    Raises:
        pydantic.ValidationError: If ``type`` is missing or unknown, or a
            field has the wrong shape.
    """
    return _event_adapter.validate_python(record)
