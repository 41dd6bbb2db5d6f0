"""Local stand-in for the remote reasoning service.

Produces the same event contract as a well-behaved remote run: one
thinking/stage pair per phase, then ``done``. Stage content is a pure
function of ``(stage, question, role)``; only the pacing is random.
"""

import asyncio
import logging
import random
import re
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass

from deepthink.assist.dispatcher import dispatch_event
from deepthink.models.event import DoneEvent, StageEvent, StreamEvent, ThinkingEvent
from deepthink.models.session import ThinkingCallbacks, ThinkingSession

logger = logging.getLogger(__name__)

SIMULATED_STAGES: tuple[str, ...] = (
    "problem analysis",
    "knowledge retrieval",
    "solution design",
    "illustrative example",
    "summary",
)

THINKING_TEXT = {
    "problem analysis": "Breaking the question down into its core requirements...",
    "knowledge retrieval": "Collecting the relevant reference material...",
    "solution design": "Working out a step-by-step approach...",
    "illustrative example": "Preparing a concrete worked example...",
    "summary": "Pulling the findings together...",
}

# Known embedded-systems topics, checked in order
TOPIC_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("gpio", "GPIO configuration"),
    ("pin", "GPIO configuration"),
    ("pwm", "PWM generation"),
    ("timer", "timer peripherals"),
    ("adc", "analog-to-digital conversion"),
    ("dac", "digital-to-analog conversion"),
    ("uart", "UART serial communication"),
    ("serial", "UART serial communication"),
    ("interrupt", "interrupt handling"),
    ("exti", "interrupt handling"),
    ("dma", "DMA transfers"),
    ("lcd", "LCD display driving"),
    ("i2c", "I2C bus communication"),
    ("spi", "SPI bus communication"),
    ("clock", "clock tree configuration"),
)

ROLE_FRAMING = {
    "student": "Explained for a learner working through the lab exercises.",
    "teacher": "Framed for preparing a lesson and anticipating common student mistakes.",
    "admin": "Summarized for reviewing course content and lab readiness.",
}
DEFAULT_ROLE_FRAMING = "General explanation."

_WORD_RE = re.compile(r"[A-Za-z0-9_]+")
_STOP_WORDS = frozenset(
    {"how", "do", "i", "a", "an", "the", "to", "what", "is", "are", "of", "in",
     "on", "for", "with", "and", "or", "can", "my", "why", "does", "should"}
)


def detect_topic(question: str) -> str:
    """Name the subject of a question, falling back to its salient words."""
    lowered = question.lower()
    for keyword, topic in TOPIC_KEYWORDS:
        if keyword in lowered:
            return topic
    words = [w for w in _WORD_RE.findall(lowered) if w not in _STOP_WORDS]
    return " ".join(words[:4]) or "the question"


def compose_stage_content(stage: str, question: str, role: str) -> str:
    """Synthesize deterministic content for one simulated stage."""
    topic = detect_topic(question)
    framing = ROLE_FRAMING.get(role, DEFAULT_ROLE_FRAMING)
    question = question.strip()

    if stage == "problem analysis":
        body = (
            f"The question \"{question}\" is about {topic}. "
            f"Key points: which peripheral is involved, what its initial state "
            f"must be, and how the result will be verified."
        )
    elif stage == "knowledge retrieval":
        body = (
            f"Relevant background for {topic}: the reference manual chapter for the "
            f"peripheral, the register map, and the HAL/driver functions that wrap it."
        )
    elif stage == "solution design":
        body = (
            f"Approach for {topic}: 1) enable the peripheral clock, "
            f"2) configure the mode and parameters, 3) initialise the driver, "
            f"4) exercise it from the main loop or an interrupt."
        )
    elif stage == "illustrative example":
        body = (
            f"Example for {topic}: start from a minimal project, configure only what "
            f"the task needs, then observe the behaviour with the debugger or a scope."
        )
    elif stage == "summary":
        body = (
            f"Summary for {topic}: configure step by step, verify each step in "
            f"isolation, and keep the initialisation code modular."
        )
    else:
        body = f"Notes on {topic} for stage '{stage}'."

    return f"{body}\n\n{framing}"


@dataclass
class SimulatorPacing:
    """Bounds of the artificial think-time between stage pairs (seconds)."""

    min_delay: float = 0.8
    max_delay: float = 2.0

    def draw(self, rng: random.Random) -> float:
        low, high = sorted((max(0.0, self.min_delay), max(0.0, self.max_delay)))
        return rng.uniform(low, high)


class SimulatedEventSource:
    """Event source that never touches the network.

    The pacing delay is a plain ``asyncio.sleep`` in the consuming task, so
    cancelling that task interrupts it immediately.
    """

    name = "simulator"

    def __init__(
        self,
        question: str,
        role: str,
        pacing: SimulatorPacing | None = None,
        stages: tuple[str, ...] = SIMULATED_STAGES,
        rng: random.Random | None = None,
    ):
        self.question = question
        self.role = role
        self.pacing = pacing or SimulatorPacing()
        self.stages = stages
        self._rng = rng or random.Random()
        self._closed = False

    async def events(self) -> AsyncIterator[StreamEvent]:
        total = len(self.stages)
        logger.info(f"Simulating {total} stage(s) for question: {self.question[:80]!r}")

        for index, stage in enumerate(self.stages):
            if self._closed:
                return
            await asyncio.sleep(self.pacing.draw(self._rng))
            if self._closed:
                return

            yield ThinkingEvent(
                thinking=THINKING_TEXT.get(stage, f"Working on {stage}..."),
                progress=(2 * index + 1) * 50 // total,
            )
            yield StageEvent(
                stage=stage,
                content=compose_stage_content(stage, self.question, self.role),
                progress=(index + 1) * 100 // total,
                total_stages=total,
            )

        yield DoneEvent()

    async def aclose(self) -> None:
        self._closed = True


async def simulate(
    question: str,
    role: str,
    callbacks: ThinkingCallbacks,
    pacing: SimulatorPacing | None = None,
) -> ThinkingSession:
    """Run a complete simulated session without a manager.

    Returns:
        The final session snapshot.
    """
    session = ThinkingSession(question=question)
    source = SimulatedEventSource(question, role, pacing=pacing)
    try:
        async with aclosing(source.events()) as events:
            async for event in events:
                dispatch_event(event, session, callbacks)
                if not session.is_active:
                    break
    finally:
        await source.aclose()
    return session.snapshot()
