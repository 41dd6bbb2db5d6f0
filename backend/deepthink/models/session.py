"""Pydantic models for a deep-thinking session and its callbacks."""

import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, Field

from deepthink.models.event import StageEvent, ThinkingEvent


def _new_session_id() -> str:
    return str(uuid.uuid4())[:12]


class ThinkingSession(BaseModel):
    """State of one question being processed, from start to terminal event."""

    session_id: str = Field(default_factory=_new_session_id)
    question: str
    started_at: datetime = Field(default_factory=datetime.now)
    total_stages: int = 0  # 0 until the first stage-bearing event
    completed_stages: int = 0
    is_active: bool = True

    @property
    def progress_percent(self) -> int:
        """Completed share of the known stages (0 while the total is unknown)."""
        if self.total_stages <= 0:
            return 0
        return min(100, round(self.completed_stages * 100 / self.total_stages))

    @property
    def elapsed_seconds(self) -> float:
        return (datetime.now() - self.started_at).total_seconds()

    def snapshot(self) -> "ThinkingSession":
        """Detached copy handed to observers."""
        return self.model_copy()


ThinkingEventCallback = Callable[[ThinkingEvent], None]
StageEventCallback = Callable[[StageEvent], None]
ErrorCallback = Callable[[str], None]
CompleteCallback = Callable[[ThinkingSession], None]


@dataclass
class ThinkingCallbacks:
    """Observer slots for a session. Every slot is optional."""

    on_thinking: ThinkingEventCallback | None = None
    on_stage: StageEventCallback | None = None
    on_error: ErrorCallback | None = None
    on_complete: CompleteCallback | None = None


@dataclass
class ThinkingOptions(ThinkingCallbacks):
    """Callbacks plus the research shape requested from the remote service."""

    depth: int | None = None
    breadth: int | None = None
    concurrency: int | None = None
