"""Final markdown report assembled from the stages of a session."""

from deepthink.models.event import StageEvent, ThinkingEvent
from deepthink.models.session import ThinkingCallbacks, ThinkingSession

CLOSING_ADVICE = (
    "Based on the analysis above, prefer a modular design: keep initialisation, "
    "driver code and application logic separate so each part can be verified on "
    "its own."
)


def compose_report(question: str, stages: list[StageEvent]) -> str:
    """Render the deep-thinking result as markdown."""
    lines = [
        "# Deep thinking result",
        "",
        f"**Question:** {question}",
        "",
        f"**Analysis depth:** {len(stages)} research direction(s)",
        "",
    ]
    for index, stage in enumerate(stages, start=1):
        if not stage.content:
            continue
        title = f"Analysis {index}"
        if stage.stage:
            title += f": {stage.stage}"
        lines += [f"## {title}", stage.content, ""]

    lines += ["## Recommendation", CLOSING_ADVICE]
    return "\n".join(lines)


class TranscriptRecorder(ThinkingCallbacks):
    """Callbacks that keep a transcript of a session.

    Optionally forwards every notification to ``downstream`` after recording.
    """

    def __init__(self, question: str, downstream: ThinkingCallbacks | None = None):
        super().__init__(
            on_thinking=self._record_thinking,
            on_stage=self._record_stage,
            on_error=self._record_error,
            on_complete=self._record_complete,
        )
        self.question = question
        self.downstream = downstream or ThinkingCallbacks()
        self.stages: list[StageEvent] = []
        self.last_thinking: ThinkingEvent | None = None
        self.error: str | None = None
        self.final_session: ThinkingSession | None = None

    def _record_thinking(self, event: ThinkingEvent) -> None:
        self.last_thinking = event
        if self.downstream.on_thinking:
            self.downstream.on_thinking(event)

    def _record_stage(self, event: StageEvent) -> None:
        self.stages.append(event)
        if self.downstream.on_stage:
            self.downstream.on_stage(event)

    def _record_error(self, message: str) -> None:
        self.error = message
        if self.downstream.on_error:
            self.downstream.on_error(message)

    def _record_complete(self, session: ThinkingSession) -> None:
        self.final_session = session
        if self.downstream.on_complete:
            self.downstream.on_complete(session)

    @property
    def finished(self) -> bool:
        return self.error is not None or self.final_session is not None

    def report(self) -> str:
        return compose_report(self.question, self.stages)
