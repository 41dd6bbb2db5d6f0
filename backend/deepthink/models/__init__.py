"""Pydantic models for the deep-thinking assistant."""

from deepthink.models.event import (
    DoneEvent,
    ErrorEvent,
    StageEvent,
    StreamEvent,
    ThinkingEvent,
    parse_event,
)
from deepthink.models.question import ChatRequest, DeepThinkRequest, ExampleQuestion
from deepthink.models.session import (
    CompleteCallback,
    ErrorCallback,
    ThinkingCallbacks,
    ThinkingOptions,
    ThinkingSession,
)

__all__ = [
    # Events
    "StreamEvent",
    "ThinkingEvent",
    "StageEvent",
    "ErrorEvent",
    "DoneEvent",
    "parse_event",
    # Session
    "ThinkingSession",
    "ThinkingCallbacks",
    "ThinkingOptions",
    "ErrorCallback",
    "CompleteCallback",
    # Requests
    "DeepThinkRequest",
    "ChatRequest",
    "ExampleQuestion",
]
