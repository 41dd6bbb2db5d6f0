"""Exceptions raised by the deep-thinking core.

Only ``InvalidInputError``, ``StreamInterruptedError`` and
``RemoteReportedError`` ever reach callers; the others are absorbed by the
fallback path and the frame decoder.
"""


class AssistError(Exception):
    """Base exception for assistant errors."""

    def __init__(self, message: str, retriable: bool = False):
        super().__init__(message)
        self.retriable = retriable


class InvalidInputError(AssistError, ValueError):
    """Caller supplied an unusable question (empty or whitespace only)."""

    pass


class TransportUnavailableError(AssistError):
    """The remote service could not be reached or sent nothing usable."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message, retriable=True)
        self.status_code = status_code


class StreamInterruptedError(AssistError):
    """The stream failed after at least one valid event was received."""

    def __init__(self, message: str, events_received: int = 0):
        super().__init__(message)
        self.events_received = events_received


class RemoteReportedError(AssistError):
    """The remote service emitted an error event."""

    pass


class MalformedFrameError(AssistError):
    """A single stream line could not be parsed into an event."""

    def __init__(self, message: str, line: str = ""):
        super().__init__(message)
        self.line = line
