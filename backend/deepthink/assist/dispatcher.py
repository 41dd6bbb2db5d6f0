"""Routes decoded events to observer callbacks and updates session state.

Transition table:

    event     precondition   mutation                  callback
    thinking  active         none                      on_thinking(event)
    stage     active         completed_stages += 1     on_stage(event)
    error     active         is_active = False         on_error(message)
    done      active         is_active = False         on_complete(snapshot)
    any       inactive       none                      none

Dispatch is synchronous and not reentrant for the same session; callers
serialize events.
"""

import logging
from collections.abc import Callable
from typing import Any

from deepthink.models.event import DoneEvent, ErrorEvent, StageEvent, StreamEvent, ThinkingEvent
from deepthink.models.session import ThinkingCallbacks, ThinkingSession

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "An error occurred during deep thinking"


def _invoke(callback: Callable[[Any], None] | None, payload: Any, slot: str) -> None:
    if callback is None:
        return
    try:
        callback(payload)
    except Exception:
        logger.exception(f"Callback {slot} raised; continuing session")


def dispatch_event(
    event: StreamEvent,
    session: ThinkingSession,
    callbacks: ThinkingCallbacks,
) -> bool:
    """Apply one event to the session and notify the observer.

    Args:
        event: The decoded or synthesized event.
        session: Live session state, mutated in place.
        callbacks: Observer slots.

    Returns:
        True if the event was delivered, False if it was dropped because the
        session is no longer active.
    """
    if not session.is_active:
        logger.debug(
            f"Dropped {event.type} event for inactive session {session.session_id}"
        )
        return False

    if isinstance(event, ThinkingEvent):
        _invoke(callbacks.on_thinking, event, "on_thinking")

    elif isinstance(event, StageEvent):
        session.completed_stages += 1
        if session.total_stages == 0 and event.total_stages:
            session.total_stages = max(event.total_stages, session.completed_stages)
        elif session.completed_stages > session.total_stages:
            # No declared total: the remote path stays open-ended
            session.total_stages = session.completed_stages
        _invoke(callbacks.on_stage, event, "on_stage")

    elif isinstance(event, ErrorEvent):
        session.is_active = False
        message = event.error or DEFAULT_ERROR_MESSAGE
        logger.warning(f"Session {session.session_id} ended with error: {message}")
        _invoke(callbacks.on_error, message, "on_error")

    elif isinstance(event, DoneEvent):
        session.is_active = False
        logger.info(
            f"Session {session.session_id} complete "
            f"({session.completed_stages} stage(s), {session.elapsed_seconds:.1f}s)"
        )
        _invoke(callbacks.on_complete, session.snapshot(), "on_complete")

    return True
