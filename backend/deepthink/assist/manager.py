"""DeepThinkingManager drives one deep-thinking session at a time.

The manager tries the remote reasoning service first and falls back to the
local simulator when the stream cannot be established. Both paths are event
sources consumed by the same dispatch loop, so observers cannot tell them
apart except by content.

Cancellation is cooperative: ``cancel()`` marks the session inactive before
returning (the dispatcher drops anything after that) and cancels the
consumption task, which interrupts the pending read or simulator delay and
closes the HTTP response.
"""

import asyncio
import logging
from collections.abc import Callable
from contextlib import aclosing
from datetime import datetime, timedelta
from typing import Any

from deepthink.assist.dispatcher import DEFAULT_ERROR_MESSAGE, dispatch_event
from deepthink.assist.errors import (
    AssistError,
    InvalidInputError,
    RemoteReportedError,
    StreamInterruptedError,
    TransportUnavailableError,
)
from deepthink.assist.fallback import (
    default_example_questions,
    extract_chat_response,
    keyword_fallback_answer,
)
from deepthink.assist.simulator import SimulatedEventSource, SimulatorPacing
from deepthink.assist.source import EventSource
from deepthink.assist.transport import AssistTransport
from deepthink.config import AssistConfig
from deepthink.models.event import DoneEvent, ErrorEvent
from deepthink.models.question import (
    DEFAULT_BREADTH,
    DEFAULT_CONCURRENCY,
    DEFAULT_DEPTH,
    ChatRequest,
    DeepThinkRequest,
    ExampleQuestion,
)
from deepthink.models.session import ThinkingCallbacks, ThinkingOptions, ThinkingSession

logger = logging.getLogger(__name__)

AnswerFallback = Callable[[str, str], str]
ResponseTransform = Callable[[dict[str, Any]], str]
ChunkCallback = Callable[[str], None]


def require_question(question: str) -> str:
    """Reject empty or whitespace-only questions.

    Raises:
        InvalidInputError: If nothing remains after trimming.
    """
    if not isinstance(question, str) or not question.strip():
        raise InvalidInputError("Question must not be empty")
    return question


class ThinkingHandle:
    """Caller-side handle for a started session."""

    def __init__(self, manager: "DeepThinkingManager", session: ThinkingSession):
        self._manager = manager
        self._session = session
        self._task: asyncio.Task[None] | None = None
        self.session_id = session.session_id
        self.source_name: str | None = None
        """Which event source served the session ("remote" or "simulator")."""
        self.error: AssistError | None = None

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    @property
    def session(self) -> ThinkingSession:
        """Snapshot of the session's current state."""
        return self._session.snapshot()

    def cancel(self) -> None:
        """Cancel this session if it is still the manager's current one."""
        if self._manager._handle is self:
            self._manager.cancel()

    async def wait(self) -> ThinkingSession:
        """Wait for the session to finish (or be cancelled).

        Returns:
            The final session snapshot.
        """
        if self._task is not None:
            try:
                await asyncio.shield(self._task)
            except asyncio.CancelledError:
                if not self._task.cancelled():
                    raise
        return self._session.snapshot()

    def raise_for_error(self) -> None:
        """Raise the error that ended the session, if any."""
        if self.error is not None:
            raise self.error


class DeepThinkingManager:
    """Owns the single active deep-thinking session for one assistant panel.

    Args:
        config: Service settings (defaults to ``AssistConfig()``).
        transport: Optional transport, e.g. one built on a mock HTTP client.
        answer_fallback: Policy producing a degraded answer for ``ask_once``.
        response_transform: Turns a chat response body into answer text.
        pacing: Simulator think-time bounds (defaults come from the config).
    """

    def __init__(
        self,
        config: AssistConfig | None = None,
        transport: AssistTransport | None = None,
        *,
        answer_fallback: AnswerFallback = keyword_fallback_answer,
        response_transform: ResponseTransform = extract_chat_response,
        pacing: SimulatorPacing | None = None,
    ):
        self.config = config or (transport.config if transport else AssistConfig())
        self._owns_transport = transport is None
        self._transport = transport or AssistTransport(self.config)
        self._answer_fallback = answer_fallback
        self._response_transform = response_transform
        self._pacing = pacing or SimulatorPacing(
            self.config.stage_delay_min, self.config.stage_delay_max
        )
        self._session: ThinkingSession | None = None
        self._handle: ThinkingHandle | None = None
        self._examples_cache: dict[tuple[str, str, str, int], tuple[datetime, list[ExampleQuestion]]] = {}
        self.created_at = datetime.now()
        self.last_activity = datetime.now()

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def start(
        self,
        question: str,
        role: str = "student",
        context: str = "ai_assistant",
        options: ThinkingOptions | None = None,
    ) -> ThinkingHandle:
        """Start a deep-thinking session on the running event loop.

        An active session is cancelled first.

        Raises:
            InvalidInputError: If the question is blank. No session is created.
            RuntimeError: If called outside a running event loop.
        """
        require_question(question)
        options = options or ThinkingOptions()
        loop = asyncio.get_running_loop()

        if self.is_active():
            logger.info(f"Cancelling session {self._session.session_id} for a new question")
        self.cancel()

        request = DeepThinkRequest(
            question=question,
            page_context=context,
            user_role=role,
            depth=options.depth or DEFAULT_DEPTH,
            breadth=options.breadth or DEFAULT_BREADTH,
            concurrency=options.concurrency or DEFAULT_CONCURRENCY,
        )
        session = ThinkingSession(question=question)
        handle = ThinkingHandle(self, session)
        handle._task = loop.create_task(
            self._run(session, request, options, handle),
            name=f"deep-thinking-{session.session_id}",
        )

        self._session = session
        self._handle = handle
        self.last_activity = datetime.now()
        logger.info(
            f"Started session {session.session_id} "
            f"(role={role}, context={context}, depth={request.depth}, "
            f"breadth={request.breadth}, concurrency={request.concurrency})"
        )
        return handle

    async def run(
        self,
        question: str,
        role: str = "student",
        context: str = "ai_assistant",
        options: ThinkingOptions | None = None,
    ) -> ThinkingSession:
        """Start a session and wait for it to finish."""
        return await self.start(question, role, context, options).wait()

    def cancel(self) -> ThinkingSession | None:
        """Cancel the current session.

        The session is inactive when this returns and no callback fires for
        it afterwards.

        Returns:
            Snapshot of the cancelled session, or None if there is none.
        """
        session = self._session
        if session is None:
            return None

        was_active = session.is_active
        session.is_active = False
        if self._handle is not None and not self._handle.done and self._handle._task:
            self._handle._task.cancel()
        if was_active:
            logger.info(
                f"Cancelled session {session.session_id} after "
                f"{session.completed_stages} stage(s)"
            )
        return session.snapshot()

    def is_active(self) -> bool:
        return self._session is not None and self._session.is_active

    def current_session(self) -> ThinkingSession | None:
        return self._session.snapshot() if self._session else None

    @property
    def current_handle(self) -> ThinkingHandle | None:
        return self._handle

    def create_event_source(
        self,
        request: DeepThinkRequest,
        remote: bool = True,
    ) -> EventSource:
        """Build the event source for a run: the remote stream or the simulator."""
        if remote:
            return self._transport.open_deep_thinking(request)
        return SimulatedEventSource(request.question, request.user_role, pacing=self._pacing)

    async def _run(
        self,
        session: ThinkingSession,
        request: DeepThinkRequest,
        callbacks: ThinkingCallbacks,
        handle: ThinkingHandle,
    ) -> None:
        source = self.create_event_source(request, remote=True)
        handle.source_name = source.name
        try:
            try:
                await self._pump(source, session, callbacks, handle)
            except TransportUnavailableError as e:
                await source.aclose()
                if not session.is_active:
                    return
                logger.warning(
                    f"Remote deep thinking unavailable for session {session.session_id} "
                    f"({e}); falling back to local simulation"
                )
                source = self.create_event_source(request, remote=False)
                handle.source_name = source.name
                await self._pump(source, session, callbacks, handle)
        except StreamInterruptedError as e:
            logger.error(f"Stream interrupted for session {session.session_id}: {e}")
            if dispatch_event(ErrorEvent(error=str(e)), session, callbacks):
                handle.error = e
        except Exception as e:
            logger.exception(f"Event source {source.name} failed for session {session.session_id}")
            error = StreamInterruptedError(f"Deep thinking failed: {e}")
            if dispatch_event(ErrorEvent(error=str(error)), session, callbacks):
                handle.error = error
        finally:
            await source.aclose()

        if session.is_active:
            logger.info(
                f"Stream for session {session.session_id} ended without a terminal "
                f"frame; completing"
            )
            dispatch_event(DoneEvent(), session, callbacks)

    async def _pump(
        self,
        source: EventSource,
        session: ThinkingSession,
        callbacks: ThinkingCallbacks,
        handle: ThinkingHandle,
    ) -> None:
        """Dispatch events from ``source`` until it ends or the session does."""
        async with aclosing(source.events()) as events:
            async for event in events:
                delivered = dispatch_event(event, session, callbacks)
                if delivered and isinstance(event, ErrorEvent):
                    handle.error = RemoteReportedError(event.error or DEFAULT_ERROR_MESSAGE)
                if not session.is_active:
                    break

    # ------------------------------------------------------------------
    # Plain questions
    # ------------------------------------------------------------------

    async def ask_once(
        self,
        question: str,
        role: str = "student",
        context: str = "ai_assistant",
    ) -> str:
        """Ask a question without deep thinking and return the whole answer.

        Falls back to ``answer_fallback`` if the service is unavailable.

        Raises:
            InvalidInputError: If the question is blank.
        """
        require_question(question)
        self.last_activity = datetime.now()
        request = ChatRequest(message=question, page_context=context, user_role=role)
        try:
            body = await self._transport.ask(request)
        except TransportUnavailableError as e:
            logger.warning(f"Chat service unavailable ({e}); using fallback answer")
            return self._answer_fallback(question, role)
        return self._response_transform(body)

    async def ask_stream(
        self,
        question: str,
        role: str = "student",
        context: str = "ai_assistant",
        on_chunk: ChunkCallback | None = None,
    ) -> str:
        """Ask a question and receive the answer incrementally.

        Returns:
            The full answer text.

        Raises:
            InvalidInputError: If the question is blank.
            StreamInterruptedError: If the answer broke off mid-stream.
        """
        require_question(question)
        self.last_activity = datetime.now()
        request = ChatRequest(message=question, page_context=context, user_role=role)
        parts: list[str] = []
        try:
            async for text in self._transport.ask_stream(request):
                parts.append(text)
                if on_chunk:
                    on_chunk(text)
        except TransportUnavailableError as e:
            logger.warning(f"Chat stream unavailable ({e}); using fallback answer")
            answer = self._answer_fallback(question, role)
            if on_chunk:
                on_chunk(answer)
            return answer
        return "".join(parts)

    async def get_example_questions(
        self,
        page_context: str = "",
        user_role: str = "student",
        user_level: str = "beginner",
        limit: int = 4,
    ) -> list[ExampleQuestion]:
        """Example questions for the panel, cached for ``examples_ttl_seconds``.

        Returns the built-in list for the role when the service is down.
        """
        key = (page_context, user_role, user_level, limit)
        now = datetime.now()
        cached = self._examples_cache.get(key)
        if cached and cached[0] > now:
            return list(cached[1])

        try:
            questions = await self._transport.fetch_example_questions(
                page_context, user_role, user_level, limit
            )
        except TransportUnavailableError as e:
            logger.warning(f"Example questions unavailable ({e}); using built-in list")
            return default_example_questions(user_role, limit)

        expires = now + timedelta(seconds=self.config.examples_ttl_seconds)
        self._examples_cache[key] = (expires, questions)
        return list(questions)

    async def aclose(self) -> None:
        """Cancel any session and release the HTTP client."""
        self.cancel()
        if self._handle is not None:
            await self._handle.wait()
        if self._owns_transport:
            await self._transport.aclose()
