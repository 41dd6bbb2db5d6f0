"""Pydantic models for requests sent to the reasoning service."""

from typing import Literal

from pydantic import AliasChoices, BaseModel, Field

DEFAULT_DEPTH = 2
DEFAULT_BREADTH = 3
DEFAULT_CONCURRENCY = 2


class DeepThinkRequest(BaseModel):
    """Payload that opens a streamed deep-thinking run."""

    mode: Literal["deep_thinking"] = "deep_thinking"
    question: str
    page_context: str = "ai_assistant"
    user_role: str = "student"
    depth: int = DEFAULT_DEPTH
    breadth: int = DEFAULT_BREADTH
    concurrency: int = DEFAULT_CONCURRENCY


class ChatRequest(BaseModel):
    """Payload for a plain (non deep-thinking) question."""

    mode: Literal["normal"] = "normal"
    message: str
    page_context: str = "ai_assistant"
    user_role: str = "student"


class ExampleQuestion(BaseModel):
    """Advisory question used to seed the assistant panel."""

    id: str = ""
    text: str = Field(validation_alias=AliasChoices("text", "question"))
    category: str = "general"
    difficulty: str = "beginner"
    priority: int = 0
