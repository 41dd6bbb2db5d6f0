"""Deep-thinking session core.

This module provides:
- StreamFrameDecoder: Turns transport chunks into typed events
- dispatch_event: Applies events to session state and notifies observers
- SimulatedEventSource / simulate: Network-free fallback producing the same events
- DeepThinkingManager: Owns the active session, remote-first with local fallback
- AssistantRegistry: One manager per caller
"""

from deepthink.assist.decoder import StreamFrameDecoder, classify_line, decode_line, parse_record
from deepthink.assist.dispatcher import dispatch_event
from deepthink.assist.errors import (
    AssistError,
    InvalidInputError,
    MalformedFrameError,
    RemoteReportedError,
    StreamInterruptedError,
    TransportUnavailableError,
)
from deepthink.assist.manager import DeepThinkingManager, ThinkingHandle
from deepthink.assist.registry import AssistantRegistry, get_registry
from deepthink.assist.report import TranscriptRecorder, compose_report
from deepthink.assist.simulator import (
    SIMULATED_STAGES,
    SimulatedEventSource,
    SimulatorPacing,
    compose_stage_content,
    simulate,
)
from deepthink.assist.source import EventSource
from deepthink.assist.transport import AssistTransport, RemoteEventSource

__all__ = [
    # Decoding and dispatch
    "StreamFrameDecoder",
    "classify_line",
    "decode_line",
    "parse_record",
    "dispatch_event",
    # Event sources
    "EventSource",
    "RemoteEventSource",
    "SimulatedEventSource",
    "SimulatorPacing",
    "SIMULATED_STAGES",
    "compose_stage_content",
    "simulate",
    # Session management
    "AssistTransport",
    "DeepThinkingManager",
    "ThinkingHandle",
    "AssistantRegistry",
    "get_registry",
    # Reporting
    "TranscriptRecorder",
    "compose_report",
    # Errors
    "AssistError",
    "InvalidInputError",
    "MalformedFrameError",
    "RemoteReportedError",
    "StreamInterruptedError",
    "TransportUnavailableError",
]
