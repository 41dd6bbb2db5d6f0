"""Assistant API endpoints: deep-thinking relay, plain questions, examples."""

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from deepthink.assist.errors import InvalidInputError
from deepthink.assist.registry import get_registry
from deepthink.assist.report import TranscriptRecorder
from deepthink.models import ErrorEvent, ThinkingOptions

logger = logging.getLogger(__name__)

router = APIRouter()


class Caller(BaseModel):
    """Identity supplied by the gateway in front of this service."""

    user_id: str
    role: str


def get_caller(
    x_user_id: str = Header(default="anonymous"),
    x_user_role: str = Header(default="student"),
) -> Caller:
    return Caller(user_id=x_user_id, role=x_user_role)


class DeepThinkingStartRequest(BaseModel):
    """Request to start a deep-thinking session."""

    question: str
    page_context: str = "ai_assistant"
    depth: int | None = None
    breadth: int | None = None
    concurrency: int | None = None


class AskRequest(BaseModel):
    """Request for a plain answer."""

    message: str
    page_context: str = "ai_assistant"


def _sse(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


@router.post("/assist/deep-thinking")
async def start_deep_thinking(
    request: DeepThinkingStartRequest,
    caller: Caller = Depends(get_caller),
) -> StreamingResponse:
    """Start a deep-thinking session and relay its events as SSE.

    Frames use the same format as the reasoning service:
    {"type": "thinking", "thinking": "...", "progress": 10}
    {"type": "stage", "stage": "...", "content": "...", "progress": 20}
    {"type": "error", "error": "..."}
    {"type": "done", "report": "...", "session": {...}}
    """
    manager = get_registry().get_manager(caller.user_id)
    queue: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue()
    recorder = TranscriptRecorder(request.question)

    def on_complete(session) -> None:
        recorder.on_complete(session)
        queue.put_nowait({
            "type": "done",
            "report": recorder.report(),
            "session": session.model_dump(mode="json"),
        })

    def on_error(message: str) -> None:
        recorder.on_error(message)
        queue.put_nowait(ErrorEvent(error=message).to_wire())

    def on_thinking(event) -> None:
        recorder.on_thinking(event)
        queue.put_nowait(event.to_wire())

    def on_stage(event) -> None:
        recorder.on_stage(event)
        queue.put_nowait(event.to_wire())

    options = ThinkingOptions(
        on_thinking=on_thinking,
        on_stage=on_stage,
        on_error=on_error,
        on_complete=on_complete,
        depth=request.depth,
        breadth=request.breadth,
        concurrency=request.concurrency,
    )

    try:
        handle = manager.start(
            request.question,
            role=caller.role,
            context=request.page_context,
            options=options,
        )
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    async def close_when_finished() -> None:
        try:
            await handle.wait()
        finally:
            if not recorder.finished:
                queue.put_nowait(ErrorEvent(error="Session cancelled").to_wire())
            queue.put_nowait(None)

    watcher = asyncio.create_task(close_when_finished())

    async def event_generator():
        try:
            while True:
                item = await queue.get()
                if item is None:
                    break
                yield _sse(item)
        finally:
            if not handle.done:
                logger.info(f"Client left session {handle.session_id}; cancelling")
                handle.cancel()
            await watcher

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.delete("/assist/deep-thinking")
async def cancel_deep_thinking(caller: Caller = Depends(get_caller)) -> dict[str, Any]:
    """Cancel the caller's active session."""
    manager = get_registry().find_manager(caller.user_id)
    if manager is None or not manager.is_active():
        return {"status": "idle"}
    session = manager.cancel()
    return {"status": "cancelled", "session_id": session.session_id if session else None}


@router.get("/assist/session")
async def get_current_session(caller: Caller = Depends(get_caller)) -> dict[str, Any]:
    """Get the caller's current (or last) session."""
    manager = get_registry().find_manager(caller.user_id)
    session = manager.current_session() if manager else None
    if session is None:
        raise HTTPException(status_code=404, detail="No session")
    return {
        **session.model_dump(mode="json"),
        "progress_percent": session.progress_percent,
    }


@router.post("/assist/ask")
async def ask(request: AskRequest, caller: Caller = Depends(get_caller)) -> dict[str, Any]:
    """Answer a question without deep thinking."""
    manager = get_registry().get_manager(caller.user_id)
    try:
        answer = await manager.ask_once(
            request.message, role=caller.role, context=request.page_context
        )
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"data": {"response": answer}}


@router.get("/assist/examples")
async def example_questions(
    page_context: str = "",
    user_level: str = "beginner",
    limit: int = 4,
    caller: Caller = Depends(get_caller),
) -> dict[str, Any]:
    """Example questions for the caller's role."""
    manager = get_registry().get_manager(caller.user_id)
    questions = await manager.get_example_questions(
        page_context=page_context,
        user_role=caller.role,
        user_level=user_level,
        limit=limit,
    )
    return {"data": {"questions": [q.model_dump() for q in questions]}}


# Admin endpoint for monitoring
@router.get("/assist/stats")
async def get_assist_stats() -> dict[str, Any]:
    """Get assistant registry statistics (admin endpoint)."""
    return get_registry().get_stats()
